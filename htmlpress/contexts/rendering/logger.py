"""
Rendering context logger.

Provides logging interface for rendering context with automatic [render] prefix.
All rendering modules should import from this module, not from utils.logger directly.
"""

from pathlib import Path
from typing import Optional

from loguru import logger

from htmlpress.utils.logger import setup_logger as _setup_logger

CONTEXT_PREFIX = "[render]"
RENDERER_PREFIX = "[wkhtmltopdf]"


def setup_rendering_logger(
    log_dir: Path, executable: Optional[Path] = None, verbose: bool = False
) -> Path:
    """
    Setup logger for rendering context.

    Configures loguru with provenance tracking and rendering-specific context.

    Args:
        log_dir: Directory for this rendering session
        executable: wkhtmltopdf binary recorded in the provenance header
        verbose: Echo DEBUG messages (including renderer stderr) to the console

    Returns:
        Path to log file
    """
    return _setup_logger(
        context_name="render",
        log_dir=log_dir,
        extra_provenance={"wkhtmltopdf": executable},
        console_level="DEBUG" if verbose else "INFO",
    )


# Wrapper functions with automatic [render] prefix


def _log_info(message: str) -> None:
    """Log info message with [render] prefix."""
    logger.info(f"{CONTEXT_PREFIX} {message}")


def _log_success(message: str) -> None:
    """Log success message with [render] prefix."""
    logger.success(f"{CONTEXT_PREFIX} {message}")


def _log_error(message: str) -> None:
    """Log error message with [render] prefix."""
    logger.error(f"{CONTEXT_PREFIX} {message}")


def _log_warning(message: str) -> None:
    """Log warning message with [render] prefix."""
    logger.warning(f"{CONTEXT_PREFIX} {message}")


def _log_debug(message: str) -> None:
    """Log debug message with [render] prefix."""
    logger.debug(f"{CONTEXT_PREFIX} {message}")


def log_renderer_line(line: str) -> None:
    """Relay one stderr line from the renderer process."""
    logger.debug(f"{RENDERER_PREFIX} {line}")


# High-level rendering-specific logging helpers


def log_process_start(executable: Path, arguments: str, timeout) -> None:
    """Log spawn of a renderer process."""
    _log_debug(f"Spawning {executable.name} in {executable.parent}")
    _log_debug(f"  Arguments: {arguments or '(none)'} - -")
    if timeout is not None:
        _log_debug(f"  Timeout: {timeout}")


def log_conversion_start(source_name: str, html_file: Path, arguments: str) -> None:
    """Log start of a document conversion with context."""
    _log_info(f"Starting conversion: {source_name}")
    _log_debug(f"  Source: {html_file}")
    _log_debug(f"  Arguments: {arguments or '(none)'}")


def log_conversion_result(
    source_name: str,
    result,  # ConversionResult
    verbose: bool = False,
) -> None:
    """
    Log conversion result with diagnostics.

    Args:
        source_name: Document identifier
        result: ConversionResult from convert_document()
        verbose: Show every captured renderer line (default: False)
    """
    if result.success:
        _log_success("Conversion succeeded.")
        pages = f", {result.page_count} pages" if result.page_count is not None else ""
        _log_success(f"{source_name}: {result.elapsed_s:.2f}s{pages}")
        if result.pdf_path:
            _log_debug(f"  PDF: {result.pdf_path}")
    else:
        _log_error("Conversion failed.")
        _log_error(f"{source_name}: exit code {result.exit_code} ({result.elapsed_s:.2f}s)")
        for i, err in enumerate(result.errors, 1):
            _log_error(f"  Error {i}: {err}")

    # Dump captured stderr in verbose mode (or always on failure)
    # opt(raw=True) keeps loguru from prefixing every line of the block
    if result.log_lines and (verbose or not result.success):
        block = "\n".join(result.log_lines)
        logger.opt(raw=True).debug(f"\n{'=' * 80}\nWKHTMLTOPDF STDERR:\n{'=' * 80}\n{block}\n")
