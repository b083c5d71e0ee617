"""Temporal phrase extraction for natural-language search queries."""

import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from waffle_intel.domain.value_objects import DateRange

# Alternatives are tried left to right at each position; re.search returns the
# leftmost match, so the first temporal phrase in the text wins.
_TEMPORAL_PATTERN = re.compile(
    r"(?:\b(?:from|in|during|over|since)\s+)?"
    r"\b(?:"
    r"(?P<relative>(?:last|past)\s+(?P<count>\d{1,3})\s+(?P<unit>day|week)s?)"
    r"|(?P<today>today)"
    r"|(?P<yesterday>yesterday)"
    r"|(?P<this_week>this\s+week)"
    r"|(?P<last_week>(?:last|past)\s+week)"
    r"|(?P<this_month>this\s+month)"
    r"|(?P<last_month>(?:last|past)\s+month)"
    r")\b",
    re.IGNORECASE,
)

_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class ParsedQuery:
    """A query split into embeddable text and an optional time window."""

    original: str
    cleaned: str
    date_range: DateRange | None = None
    temporal_phrase: str | None = None

    @property
    def text_for_embedding(self) -> str:
        """Cleaned text, or the original when cleaning left nothing."""
        return self.cleaned or self.original.strip()


def normalize_query(text: str) -> str:
    """Lower-case and collapse whitespace; used as the embedding cache key."""
    return _WHITESPACE.sub(" ", text).strip().lower()


class QueryParser:
    """Pulls one temporal phrase out of a query and turns it into a DateRange.

    Examples:
        >>> parser = QueryParser()
        >>> parsed = parser.parse("waffles about hiking last week")
        >>> parsed.cleaned
        'waffles about hiking'
    """

    def __init__(self, now: Callable[[], datetime] | None = None) -> None:
        """Initialize the parser.

        Args:
            now: Returns the current aware datetime. Defaults to UTC now.
        """
        self._now = now or (lambda: datetime.now(UTC))

    def parse(self, query: str) -> ParsedQuery:
        text = query.strip()
        match = _TEMPORAL_PATTERN.search(text)
        if match is None:
            return ParsedQuery(original=query, cleaned=text)

        date_range = self._range_for(match, self._now())
        remainder = text[: match.start()] + " " + text[match.end() :]
        cleaned = _WHITESPACE.sub(" ", remainder).strip(" ,.;:-")
        return ParsedQuery(
            original=query,
            cleaned=cleaned,
            date_range=date_range,
            temporal_phrase=match.group(0).strip(),
        )

    @staticmethod
    def _range_for(match: re.Match[str], now: datetime) -> DateRange:
        midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)

        if match.group("relative"):
            count = int(match.group("count"))
            days = count * 7 if match.group("unit").lower() == "week" else count
            return DateRange(start=now - timedelta(days=days), end=now)
        if match.group("today"):
            return DateRange(start=midnight, end=now)
        if match.group("yesterday"):
            return DateRange(start=midnight - timedelta(days=1), end=midnight)
        if match.group("this_week"):
            return DateRange(start=midnight - timedelta(days=now.weekday()), end=now)
        if match.group("last_week"):
            return DateRange(start=now - timedelta(days=7), end=now)
        if match.group("this_month"):
            return DateRange(start=midnight.replace(day=1), end=now)
        # last/past month
        return DateRange(start=now - timedelta(days=30), end=now)
