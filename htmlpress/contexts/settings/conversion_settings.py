"""
Conversion settings for wkhtmltopdf.

Holds the user-facing options for a single conversion and serializes them to
the command-line argument string handed to the renderer process.
"""

import os
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Optional
from urllib.parse import urlparse

from htmlpress.exceptions import ConfigurationError


class PageSize(Enum):
    """PDF paper size. DEFAULT leaves the choice to wkhtmltopdf."""

    DEFAULT = "Default"
    A0 = "A0"
    A1 = "A1"
    A2 = "A2"
    A3 = "A3"
    A4 = "A4"
    A5 = "A5"
    A6 = "A6"
    A7 = "A7"
    A8 = "A8"
    A9 = "A9"
    B0 = "B0"
    B1 = "B1"
    B2 = "B2"
    B3 = "B3"
    B4 = "B4"
    B5 = "B5"
    B6 = "B6"
    B7 = "B7"
    B8 = "B8"
    B9 = "B9"
    B10 = "B10"
    C5E = "C5E"
    COMM10E = "Comm10E"
    DLE = "DLE"
    EXECUTIVE = "Executive"
    FOLIO = "Folio"
    LEDGER = "Ledger"
    LEGAL = "Legal"
    LETTER = "Letter"
    TABLOID = "Tabloid"


class PageOrientation(Enum):
    """PDF page orientation. DEFAULT leaves the choice to wkhtmltopdf."""

    DEFAULT = "Default"
    LANDSCAPE = "Landscape"
    PORTRAIT = "Portrait"


@dataclass
class PageMargins:
    """
    PDF page margins in millimetres.

    Each side is independent; None leaves that side to wkhtmltopdf.
    """

    left: Optional[float] = None
    top: Optional[float] = None
    right: Optional[float] = None
    bottom: Optional[float] = None

    @classmethod
    def create_default(cls) -> "PageMargins":
        return cls()


def _format_number(value: float) -> str:
    # Shortest round-trip form, "10" rather than "10.0"; never locale-dependent
    text = repr(float(value))
    return text[:-2] if text.endswith(".0") else text


def is_valid_path(path: str) -> bool:
    """True if path names an existing file or parses as an absolute URI."""
    if os.path.isfile(path):
        return True
    parsed = urlparse(path)
    return bool(parsed.scheme) and bool(parsed.netloc or parsed.path)


@dataclass
class ConversionSettings:
    """
    Settings for converting HTML to PDF.

    Attributes:
        page_size: PDF paper size
        orientation: PDF page orientation
        margins: PDF page margins (mm)
        grayscale: Generate a grayscale PDF
        low_quality: Generate a low quality PDF to shrink the document
        quiet: Suppress wkhtmltopdf info/debug output (disable to see it in logs)
        enable_javascript: Allow pages to run JavaScript
        javascript_delay: Wait for JavaScript to finish (only with JavaScript enabled)
        enable_external_links: Make links to remote web pages
        enable_images: Load and print images
        execution_timeout: Maximum lifetime of the renderer process (None = no limit)
        header_path: File path or URL of the header HTML
        footer_path: File path or URL of the footer HTML
        additional_settings: Raw argument text appended last, verbatim
    """

    page_size: PageSize = PageSize.DEFAULT
    orientation: PageOrientation = PageOrientation.DEFAULT
    margins: PageMargins = field(default_factory=PageMargins)
    grayscale: bool = False
    low_quality: bool = False
    quiet: bool = True
    enable_javascript: bool = True
    javascript_delay: Optional[timedelta] = None
    enable_external_links: bool = False
    enable_images: bool = True
    execution_timeout: Optional[timedelta] = None
    header_path: Optional[str] = None
    footer_path: Optional[str] = None
    additional_settings: Optional[str] = None

    @classmethod
    def create_default(cls) -> "ConversionSettings":
        return cls()

    def to_arguments(self) -> str:
        """
        Compose all settings into a single wkhtmltopdf argument string.

        The execution timeout is not part of the string; the orchestrator
        enforces it.

        Raises:
            ConfigurationError: If header_path or footer_path is neither an
                existing file nor an absolute URL
        """
        parts = []

        if self.page_size != PageSize.DEFAULT:
            parts.append(f"-s {self.page_size.value}")

        if self.orientation != PageOrientation.DEFAULT:
            parts.append(f"-O {self.orientation.value}")

        margins = self.margins or PageMargins()
        for flag, value in (
            ("-L", margins.left),
            ("-T", margins.top),
            ("-R", margins.right),
            ("-B", margins.bottom),
        ):
            if value is not None:
                parts.append(f"{flag} {_format_number(value)}")

        if self.grayscale:
            parts.append("-g")

        if self.low_quality:
            parts.append("-l")

        if self.quiet:
            parts.append("-q")

        if self.enable_javascript:
            parts.append("--enable-javascript")
            if self.javascript_delay is not None:
                delay_ms = round(self.javascript_delay.total_seconds() * 1000)
                parts.append(f"--javascript-delay {delay_ms}")
        else:
            parts.append("--disable-javascript")

        if self.enable_external_links:
            parts.append("--enable-external-links")
        else:
            parts.append("--disable-external-links")

        parts.append("--images" if self.enable_images else "--no-images")

        if self.header_path:
            if not is_valid_path(self.header_path):
                raise ConfigurationError(
                    f"The specified header path '{self.header_path}' is not a valid path or URL."
                )
            parts.append(f'--header-html "{self.header_path}"')

        if self.footer_path:
            if not is_valid_path(self.footer_path):
                raise ConfigurationError(
                    f"The specified footer path '{self.footer_path}' is not a valid path or URL."
                )
            parts.append(f'--footer-html "{self.footer_path}"')

        if self.additional_settings:
            parts.append(self.additional_settings.strip())

        return " ".join(parts).strip()

    def __str__(self) -> str:
        return self.to_arguments()
