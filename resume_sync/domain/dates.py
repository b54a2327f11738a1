"""Lenient date parsing for resume date strings."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, Optional

ONGOING_MARKERS = ("present", "current", "now")
EDUCATION_ONGOING_MARKERS = ("present", "current", "now", "expected")

_MONTHS = {
    "jan": 1, "january": 1,
    "feb": 2, "february": 2,
    "mar": 3, "march": 3,
    "apr": 4, "april": 4,
    "may": 5,
    "jun": 6, "june": 6,
    "jul": 7, "july": 7,
    "aug": 8, "august": 8,
    "sep": 9, "sept": 9, "september": 9,
    "oct": 10, "october": 10,
    "nov": 11, "november": 11,
    "dec": 12, "december": 12,
}

_MONTH_YEAR_RE = re.compile(r"([A-Za-z]+)\.?,?\s+(\d{4})")
_NUMERIC_MONTH_YEAR_RE = re.compile(r"^(\d{1,2})[/-](\d{4})$")
_YEAR_RE = re.compile(r"(?<!\d)(\d{4})(?!\d)")
_ISO_FORMATS = ("%Y-%m-%d", "%Y-%m", "%Y/%m/%d")


@dataclass(frozen=True)
class DateRange:
    start_date: date
    end_date: Optional[date]
    is_current: bool

    def as_iso(self) -> tuple:
        return (
            self.start_date.isoformat(),
            self.end_date.isoformat() if self.end_date else None,
        )


def is_ongoing(value: Optional[str], markers: Iterable[str] = ONGOING_MARKERS) -> bool:
    if not value:
        return False
    pattern = r"\b(" + "|".join(re.escape(m) for m in markers) + r")\b"
    return re.search(pattern, value, re.IGNORECASE) is not None


def parse_date(value: Optional[str]) -> Optional[date]:
    """Parse ISO, ``Month Year`` or a bare year; ``None`` when nothing matches.

    Ongoing markers (present/current/now) also yield ``None``.
    """
    if not value or not value.strip():
        return None
    text = value.strip()
    if is_ongoing(text):
        return None

    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    for fmt in _ISO_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue

    match = _NUMERIC_MONTH_YEAR_RE.match(text)
    if match and 1 <= int(match.group(1)) <= 12:
        return date(int(match.group(2)), int(match.group(1)), 1)

    for match in _MONTH_YEAR_RE.finditer(text):
        month = _MONTHS.get(match.group(1).lower())
        if month:
            return date(int(match.group(2)), month, 1)

    match = _YEAR_RE.search(text)
    if match:
        return date(int(match.group(1)), 1, 1)
    return None


def normalize_date_range(
    start: Optional[str],
    end: Optional[str],
    *,
    ongoing_markers: Iterable[str] = ONGOING_MARKERS,
    today: Optional[date] = None,
) -> DateRange:
    """Resolve a start/end pair for persistence.

    A missing or unparseable start falls back to ``today``. An end that
    names an ongoing marker sets ``is_current``; an unparseable end is
    dropped.
    """
    markers = tuple(ongoing_markers)
    start_date = parse_date(start) or today or date.today()
    end_date = parse_date(end)
    is_current = is_ongoing(end, markers)
    if is_current and is_ongoing(end, ONGOING_MARKERS):
        end_date = None
    return DateRange(start_date=start_date, end_date=end_date, is_current=is_current)
