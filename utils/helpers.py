"""
============================================================================
UPTIME MONITOR - HELPERS UTILITY
============================================================================
Collection of helper functions and utilities.

Author: Professional Development Team
Version: 1.0.0
License: MIT
============================================================================
"""

import html
import math
from datetime import datetime, timezone
from typing import Optional, Any, List


# ============================================================================
# TIME UTILITIES
# ============================================================================

class TimeHelper:
    """
    Time and date manipulation utilities.

    All timestamps stored by the engine are naive UTC datetimes.
    """

    @staticmethod
    def utc_now() -> datetime:
        """Get current UTC datetime (naive)."""
        return datetime.now(timezone.utc).replace(tzinfo=None)

    @staticmethod
    def format_datetime(dt: Optional[datetime], fmt: str = "%Y-%m-%d %H:%M:%S UTC") -> str:
        """
        Format datetime to string.

        Args:
            dt: Datetime to format
            fmt: Format string

        Returns:
            Formatted string, or "N/A" when no datetime is given
        """
        if dt is None:
            return "N/A"
        return dt.strftime(fmt)

    @staticmethod
    def minutes_between(start: datetime, end: datetime) -> int:
        """
        Whole minutes between two datetimes, rounded half up.

        Args:
            start: Earlier datetime
            end: Later datetime

        Returns:
            Rounded number of minutes (never negative)
        """
        minutes = (end - start).total_seconds() / 60
        return max(0, int(math.floor(minutes + 0.5)))

    @staticmethod
    def format_duration_minutes(duration: Optional[int]) -> str:
        """
        Format a duration in minutes.

        Returns "1h 5m" for durations of an hour or more, "12m" below
        that and "N/A" when there is no (or a zero) duration.
        """
        if not duration:
            return "N/A"

        hours, minutes = divmod(duration, 60)
        if hours > 0:
            return f"{hours}h {minutes}m"
        return f"{minutes}m"

    @staticmethod
    def seconds_to_human_readable(seconds: int) -> str:
        """
        Convert seconds to human-readable format.

        Args:
            seconds: Number of seconds

        Returns:
            Human-readable string (e.g., "2h 30m 15s")
        """
        if seconds < 0:
            return "0s"

        days, remainder = divmod(int(seconds), 86400)
        hours, remainder = divmod(remainder, 3600)
        minutes, secs = divmod(remainder, 60)

        parts = []
        if days > 0:
            parts.append(f"{days}d")
        if hours > 0:
            parts.append(f"{hours}h")
        if minutes > 0:
            parts.append(f"{minutes}m")
        if secs > 0 or not parts:
            parts.append(f"{secs}s")

        return " ".join(parts)


# ============================================================================
# STRING UTILITIES
# ============================================================================

class StringHelper:
    """
    String manipulation utilities.
    """

    @staticmethod
    def truncate(text: str, max_length: int = 100, suffix: str = "...") -> str:
        """
        Truncate string to maximum length.

        Args:
            text: Text to truncate
            max_length: Maximum length
            suffix: Suffix to add if truncated

        Returns:
            Truncated string
        """
        if len(text) <= max_length:
            return text

        return text[:max_length - len(suffix)] + suffix

    @staticmethod
    def escape_html(text: Any) -> str:
        """Escape HTML special characters."""
        return html.escape(str(text))

    @staticmethod
    def humanize_identifier(value: str) -> str:
        """Turn "status_code_mismatch" into "STATUS CODE MISMATCH"."""
        return value.replace("_", " ").upper()


# ============================================================================
# DATA STRUCTURE HELPERS
# ============================================================================

class DataHelper:
    """
    Data structure manipulation helpers.
    """

    @staticmethod
    def chunk_list(lst: List[Any], chunk_size: int) -> List[List[Any]]:
        """
        Split list into chunks.

        Args:
            lst: List to split
            chunk_size: Size of each chunk

        Returns:
            List of chunks
        """
        if chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")
        return [lst[i:i + chunk_size] for i in range(0, len(lst), chunk_size)]
