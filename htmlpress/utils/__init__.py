"""
Shared utilities for htmlpress.

Common functionality used across contexts:
- Logger setup
- Timestamps
- PDF inspection
"""

from htmlpress.utils.timestamp import format_duration, now, today

__all__ = ["format_duration", "now", "today"]
