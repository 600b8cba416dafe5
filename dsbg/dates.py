"""Date detection in free text.

Dates hide in file names, directory names and frontmatter strings in many
shapes ("2024-01-15", "15.01.2024", "2024 1 5 10:30:00"). This module finds
them with a small ordered list of regular expressions and can also cut them
out of a string before it becomes a title or a URL slug.

Key names:
- DatePatterns: Immutable set of compiled patterns with the two operations.
- datetime_from_string: Parse a UTC datetime out of arbitrary text.
- remove_dates: Strip every date-like substring and leftover separators.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import lru_cache

# Tried in this order; later matches overwrite earlier ones per field.
DEFAULT_DATE_PATTERNS = (
    r"(?P<year>\d{4})\D+(?P<month>\d{1,2})\D+(?P<day>\d{1,2})",
    r"(?P<day>\d{1,2})\D+(?P<month>\d{1,2})\D+(?P<year>\d{4})",
    r"(?P<hour>\d{2}):(?P<min>\d{2}):(?P<sec>\d{2})",
)

# Python has no year 0, so a time-only match lands on 0001-01-01.
_FIELD_DEFAULTS = {"year": 1, "month": 1, "day": 1, "hour": 0, "min": 0, "sec": 0}

_SEPARATORS = "-_ "


class DateParseError(ValueError):
    """Base class for date parsing failures."""


class NoDateFound(DateParseError):
    """None of the patterns matched the text."""


class MalformedNumber(DateParseError):
    """A matched group could not be converted to an integer."""


class InvalidDate(DateParseError):
    """The matched fields do not form a valid calendar date."""


@dataclass(frozen=True)
class DatePatterns:
    """Ordered, compiled date patterns.

    Attributes:
        patterns: Compiled regular expressions, highest priority first.
    """

    patterns: tuple[re.Pattern[str], ...]

    @classmethod
    def compile(cls, sources: tuple[str, ...] = DEFAULT_DATE_PATTERNS) -> DatePatterns:
        """Compile pattern sources into a DatePatterns instance.

        Args:
            sources: Regular expression sources using the named groups
                year, month, day, hour, min and sec.

        Returns:
            New DatePatterns instance.
        """
        return cls(tuple(re.compile(source, re.ASCII) for source in sources))

    def datetime_from_string(self, text: str) -> datetime:
        """Extract a UTC datetime from text.

        Every pattern is searched; the named groups of all matching patterns
        are merged, later patterns winning for fields they share.

        Args:
            text: Arbitrary text, e.g. a path or a frontmatter value.

        Returns:
            Timezone-aware datetime in UTC.

        Raises:
            NoDateFound: If no pattern matches.
            MalformedNumber: If a matched group is not an integer.
            InvalidDate: If the merged fields are out of range.

        Examples:
            >>> DatePatterns.compile().datetime_from_string("posts/2024-01-15-hello")
            datetime.datetime(2024, 1, 15, 0, 0, tzinfo=datetime.timezone.utc)
        """
        fields: dict[str, int] = {}
        found = False
        for pattern in self.patterns:
            match = pattern.search(text)
            if match is None:
                continue
            found = True
            for name, value in match.groupdict().items():
                if value is None:
                    continue
                try:
                    fields[name] = int(value)
                except ValueError as exc:
                    raise MalformedNumber(
                        f"failed to convert '{value}' to integer in '{text}'"
                    ) from exc

        if not found:
            raise NoDateFound(f"no date information found in '{text}'")

        merged = {**_FIELD_DEFAULTS, **fields}
        try:
            return datetime(
                merged["year"],
                merged["month"],
                merged["day"],
                merged["hour"],
                merged["min"],
                merged["sec"],
                tzinfo=timezone.utc,
            )
        except ValueError as exc:
            raise InvalidDate(f"invalid date in '{text}': {exc}") from exc

    def remove_dates(self, text: str) -> str:
        """Remove every date-like substring from text.

        Args:
            text: String that may contain dates.

        Returns:
            The text without dates, trimmed of dashes, underscores and spaces.

        Examples:
            >>> DatePatterns.compile().remove_dates("2024-01-15-hello-world")
            'hello-world'
        """
        for pattern in self.patterns:
            text = pattern.sub("", text)
        return text.strip(_SEPARATORS)


@lru_cache(maxsize=1)
def default_patterns() -> DatePatterns:
    """Return the shared DatePatterns built from DEFAULT_DATE_PATTERNS."""
    return DatePatterns.compile()


def datetime_from_string(text: str, patterns: DatePatterns | None = None) -> datetime:
    """Parse a datetime out of text. See DatePatterns.datetime_from_string."""
    return (patterns or default_patterns()).datetime_from_string(text)


def remove_dates(text: str, patterns: DatePatterns | None = None) -> str:
    """Strip dates out of text. See DatePatterns.remove_dates."""
    return (patterns or default_patterns()).remove_dates(text)
