"""
Rendering Context

Responsibilities:
- Supervises the wkhtmltopdf process (spawn, stream piping, timeout, teardown)
- Classifies exit codes, including benign non-zero exits
- Relays renderer diagnostics to log listeners
- Converts HTML files to PDF with session logging

Owns: Renderer process lifecycle, exit classification, PDF output
Never: Builds argument strings itself (see settings context)
"""

from htmlpress.contexts.rendering.converter import (
    HtmlToPdfConverter,
    RendererState,
    RenderRequest,
)
from htmlpress.contexts.rendering.outcome import (
    BENIGN_FAILURES,
    RenderOutcome,
    classify_exit,
    raise_for_outcome,
)
from htmlpress.contexts.rendering.pipeline import ConversionResult, convert_document

__all__ = [
    "BENIGN_FAILURES",
    "ConversionResult",
    "HtmlToPdfConverter",
    "RenderOutcome",
    "RenderRequest",
    "RendererState",
    "classify_exit",
    "convert_document",
    "raise_for_outcome",
]
