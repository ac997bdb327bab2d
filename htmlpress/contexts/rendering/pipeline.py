"""
Document Conversion Pipeline

File-level wrapper around HtmlToPdfConverter: reads an HTML file, records a
timestamped session log, writes the PDF, and reports the outcome as a result
object instead of raising on renderer failures.
"""

import io
import os
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from htmlpress.contexts.rendering.converter import HtmlToPdfConverter
from htmlpress.contexts.rendering.logger import (
    _log_debug,
    _log_info,
    log_conversion_result,
    log_conversion_start,
    setup_rendering_logger,
)
from htmlpress.contexts.settings.conversion_settings import ConversionSettings
from htmlpress.exceptions import RendererProcessError, RenderIOError
from htmlpress.utils.logger import session_log_dir
from htmlpress.utils.pdf_processing import looks_like_pdf, page_count
from htmlpress.utils.timestamp import today

load_dotenv()

LOGS_PATH = Path(os.getenv("LOGS_PATH", "outs/logs"))
RESULTS_PATH = Path(os.getenv("RESULTS_PATH", "outs/results"))


@dataclass
class ConversionResult:
    """
    Result of a document conversion.

    Attributes:
        success: Whether conversion succeeded
        pdf_path: Path to generated PDF (None if failed)
        exit_code: Renderer exit code (0 on success, -2 on timeout, None if never run)
        errors: Error messages collected during conversion
        log_lines: Every stderr line the renderer emitted
        page_count: Number of pages in generated PDF (None if not available)
        elapsed_s: Wall-clock duration of the conversion
        log_dir: Directory containing the session log
    """

    success: bool
    pdf_path: Optional[Path] = None
    exit_code: Optional[int] = None
    errors: List[str] = field(default_factory=list)
    log_lines: List[str] = field(default_factory=list)
    page_count: Optional[int] = None
    elapsed_s: float = 0.0
    log_dir: Optional[Path] = None


def convert_document(
    html_file: Path,
    output_file: Optional[Path] = None,
    settings: Optional[ConversionSettings] = None,
    converter: Optional[HtmlToPdfConverter] = None,
    log_dir: Optional[Path] = None,
    verbose: bool = False,
) -> ConversionResult:
    """
    Convert an HTML file to PDF with session logging and organized output.

    On success:
        - Writes the PDF to output_file (default: RESULTS_PATH/YYYY-MM-DD/<stem>.pdf)
        - Records page count

    On failure:
        - Leaves no PDF behind
        - Keeps every captured renderer line in the result and the session log

    Args:
        html_file: HTML document to convert
        output_file: Destination PDF path
        settings: Conversion settings (default: ConversionSettings.create_default())
        converter: Converter to use (default: HtmlToPdfConverter.from_env())
        log_dir: Session log directory (default: LOGS_PATH/render_<timestamp>)
        verbose: Echo renderer output and debug messages to the console

    Returns:
        ConversionResult with success status and diagnostic information

    Raises:
        ConfigurationError: Executable or settings are unusable
        InvalidStateError: The converter is busy with another render
    """
    html_file = Path(html_file).resolve()
    if not html_file.exists():
        return ConversionResult(success=False, errors=[f"HTML file not found: {html_file}"])

    if settings is None:
        settings = ConversionSettings.create_default()
    if converter is None:
        converter = HtmlToPdfConverter.from_env()
    if output_file is None:
        output_file = RESULTS_PATH / today() / f"{html_file.stem}.pdf"
    output_file = Path(output_file).resolve()

    if log_dir is None:
        log_dir = session_log_dir("render", LOGS_PATH)
    setup_rendering_logger(log_dir, executable=converter.executable, verbose=verbose)

    arguments = settings.to_arguments()
    log_conversion_start(html_file.stem, html_file, arguments)

    log_lines: List[str] = []
    listener = log_lines.append
    converter.add_log_listener(listener)

    result = ConversionResult(success=False, log_dir=log_dir, log_lines=log_lines)
    start_time = time.time()
    try:
        # Raw bytes: wkhtmltopdf honours the document's own charset declaration
        sink = io.BytesIO()
        with html_file.open("rb") as source:
            converter.convert_stream(source, sink, settings)
        pdf_bytes = sink.getvalue()
        result.success = True
        result.exit_code = 0
    except RendererProcessError as e:
        result.exit_code = e.exit_code
        result.errors.append(str(e))
    except RenderIOError as e:
        result.errors.append(str(e))
    except OSError as e:
        result.errors.append(f"Cannot read HTML file {html_file}: {e}")
    finally:
        converter.remove_log_listener(listener)
        result.elapsed_s = time.time() - start_time

    if result.success:
        if pdf_bytes and not looks_like_pdf(pdf_bytes):
            _log_debug("Renderer output does not start with a PDF header")

        output_file.parent.mkdir(parents=True, exist_ok=True)
        output_file.write_bytes(pdf_bytes)
        _log_info(f"PDF saved to: {output_file}")

        result.pdf_path = output_file
        result.page_count = page_count(output_file) if pdf_bytes else 0

    log_conversion_result(html_file.stem, result, verbose=verbose)
    return result
