"""Exceptions shared by the settings and rendering contexts."""

from datetime import timedelta
from typing import Optional

from htmlpress.utils.timestamp import format_duration

# Exit code reported for a process aborted by the execution timeout
TIMEOUT_EXIT_CODE = -2


class HtmlPressError(Exception):
    """Base class for all htmlpress errors."""


class ConfigurationError(HtmlPressError, ValueError):
    """
    Exception raised before any process is spawned because the setup is unusable.

    Covers a missing executable, a missing required argument, an invalid
    header/footer path, and unknown presets or setting values.
    """


class InvalidStateError(HtmlPressError, RuntimeError):
    """Exception raised when a render is requested while another one is in flight."""


class RendererProcessError(HtmlPressError):
    """
    Exception raised when wkhtmltopdf exits with a non-zero, non-benign code.

    Attributes:
        exit_code: Process exit code
        diagnostic: Last line the process wrote to stderr (may be None)
    """

    def __init__(self, exit_code: int, diagnostic: Optional[str] = None):
        self.exit_code = exit_code
        self.diagnostic = diagnostic
        super().__init__(f"{diagnostic or 'wkhtmltopdf failed'} ({exit_code:d})")


class RenderTimeoutError(RendererProcessError):
    """
    Exception raised when wkhtmltopdf outlives its execution timeout and is killed.

    Attributes:
        timeout: The configured execution timeout
    """

    def __init__(self, timeout: timedelta):
        self.timeout = timeout
        super().__init__(
            TIMEOUT_EXIT_CODE,
            f"wkhtmltopdf process exceeded execution timeout ({format_duration(timeout)}) "
            "and was aborted",
        )


class RenderIOError(HtmlPressError, OSError):
    """
    Exception raised when copying bytes to or from the process fails.

    Attributes:
        message: Error description
        original_error: The underlying I/O error
    """

    def __init__(self, message: str, original_error: Optional[BaseException] = None):
        self.message = message
        self.original_error = original_error

        parts = [f"Failed to generate PDF: {message}"]
        if original_error is not None and str(original_error) not in message:
            parts.append(f"Original error: {original_error}")

        super().__init__("\n".join(parts))
