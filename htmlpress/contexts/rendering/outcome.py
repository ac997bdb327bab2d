"""
Exit classification for wkhtmltopdf runs.

wkhtmltopdf uses exit code 1 both for fatal errors and for recoverable ones
that still produced a usable PDF (a missing remote image, an odd font size).
The recoverable cases are recognised by the exact text of the last line the
process wrote to stderr.
"""

from dataclasses import dataclass
from typing import AbstractSet, Optional

from htmlpress.exceptions import RendererProcessError

# Last stderr lines that turn exit code 1 into a success. Matched exactly.
BENIGN_FAILURES: AbstractSet[str] = frozenset(
    {
        "Exit with code 1 due to network error: HostNotFoundError",
        "Exit with code 1 due to network error: ContentNotFoundError",
        "Exit with code 1 due to network error: ContentOperationNotPermittedError",
        "Exit with code 1 due to network error: ProtocolUnknownError",
        "Exit with code 1 due to network error: UnknownContentError",
        "QFont::setPixelSize: Pixel size <= 0",
    }
)

BENIGN_EXIT_CODE = 1


@dataclass(frozen=True)
class RenderOutcome:
    """
    Classified result of a finished wkhtmltopdf process.

    Attributes:
        success: Whether the output should be accepted
        exit_code: Raw process exit code
        message: Last diagnostic line (None if stderr was silent)
        benign: True when a non-zero exit was accepted via the allow-list
    """

    success: bool
    exit_code: int
    message: Optional[str] = None
    benign: bool = False


def classify_exit(
    exit_code: int,
    last_line: Optional[str],
    benign_failures: AbstractSet[str] = BENIGN_FAILURES,
) -> RenderOutcome:
    """
    Map an exit code and the last stderr line to success or failure.

    Args:
        exit_code: Exit code of the finished process
        last_line: Last non-empty stderr line, if any
        benign_failures: Lines that make exit code 1 a success

    Returns:
        RenderOutcome describing the decision

    Examples:
        >>> classify_exit(0, "Done").success
        True
        >>> classify_exit(1, "QFont::setPixelSize: Pixel size <= 0").benign
        True
        >>> classify_exit(2, "QFont::setPixelSize: Pixel size <= 0").success
        False
    """
    if exit_code == 0:
        return RenderOutcome(success=True, exit_code=exit_code, message=last_line)

    if exit_code == BENIGN_EXIT_CODE and last_line is not None and last_line in benign_failures:
        return RenderOutcome(success=True, exit_code=exit_code, message=last_line, benign=True)

    return RenderOutcome(success=False, exit_code=exit_code, message=last_line)


def raise_for_outcome(outcome: RenderOutcome) -> None:
    """Raise RendererProcessError for a failed outcome; do nothing otherwise."""
    if not outcome.success:
        raise RendererProcessError(outcome.exit_code, outcome.message)
