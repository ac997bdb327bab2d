"""
Logger setup shared by all contexts.

Each conversion session writes a DEBUG-level file log plus a colorized console
stream, both opened with a provenance header. Context-specific wrappers with
message prefixes live in contexts/{context}/logger.py.
"""

import sys
from pathlib import Path
from typing import Dict, Optional

from dotenv import load_dotenv
from loguru import logger

from htmlpress import __version__
from htmlpress.utils.timestamp import now

load_dotenv()

LEVEL_COLORS = {
    "WARNING": "<yellow>",
    "ERROR": "<red>",
    "CRITICAL": "<bold><red>",
}

FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <7} | {thread.name} | {message}"
CONSOLE_FORMAT = "{time:HH:mm:ss} | <level>{level: <7}</level> | <level>{message}</level>"


def session_log_dir(context_name: str, logs_root: Path) -> Path:
    """Timestamped directory for one logging session, e.g. outs/logs/render_20251114_123456."""
    return Path(logs_root) / f"{context_name}_{now()}"


def setup_logger(
    context_name: str,
    log_dir: Path,
    extra_provenance: Optional[Dict[str, object]] = None,
    level_colors: Optional[Dict[str, str]] = None,
    console_level: str = "INFO",
) -> Path:
    """
    Route loguru output for a session to <log_dir>/<context_name>.log and stdout.

    Any previously configured sinks are removed. The file always receives DEBUG
    and above, including the thread name so stdin/stderr/dispatcher activity
    can be told apart.

    Args:
        context_name: Context identifier, used as the log file stem
        log_dir: Directory for this session (created if missing)
        extra_provenance: Additional key-value pairs for the provenance header
        level_colors: Overrides for LEVEL_COLORS
        console_level: Minimum level echoed to stdout

    Returns:
        Path to log file
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(exist_ok=True, parents=True)
    log_file = log_dir / f"{context_name}.log"

    logger.remove()

    for level_name, color in {**LEVEL_COLORS, **(level_colors or {})}.items():
        logger.level(level_name, color=color)

    logger.add(log_file, format=FILE_FORMAT, level="DEBUG", encoding="utf-8")
    logger.add(sys.stdout, format=CONSOLE_FORMAT, level=console_level, colorize=True)

    log_provenance(extra_provenance)

    return log_file


def log_provenance(extra_context: Optional[Dict[str, object]] = None) -> None:
    """Write a header with the invocation, interpreter and package version."""
    logger.info("=" * 80)
    logger.info(f"htmlpress: {__version__}")
    logger.info(f"Command: {' '.join(sys.argv)}")
    logger.info(f"Working directory: {Path.cwd()}")
    logger.info(f"Python: {sys.version.split()[0]} ({sys.platform})")

    for key, value in (extra_context or {}).items():
        if value is not None:
            logger.info(f"{key}: {value}")

    logger.info("=" * 80)
