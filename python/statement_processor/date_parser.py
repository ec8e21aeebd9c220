"""
Date Parser Module

Converts the date representations found in bank exports and receipts
(numeric formats, month-name formats, spreadsheet serials, free text)
into a calendar date.
"""

import logging
import math
import re
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Callable

from dateutil import parser as dateutil_parser

logger = logging.getLogger(__name__)


# Spreadsheet epoch; day 60 is the non-existent 1900-02-29, kept for compatibility
SPREADSHEET_EPOCH = datetime(1899, 12, 30)

MONTHS = {
    "january": 1, "february": 2, "march": 3, "april": 4,
    "may": 5, "june": 6, "july": 7, "august": 8,
    "september": 9, "october": 10, "november": 11, "december": 12,
}


class DateParser:
    """Best-effort date parser that never raises.

    Anything that cannot be interpreted resolves to today's date. Callers
    that need to know whether a value was understood should check the
    input themselves before parsing.
    """

    # Plausible serial range, roughly 1954 to 2064
    SERIAL_MIN = 20000
    SERIAL_MAX = 60000

    ISO_PATTERN = re.compile(r'^(\d{4})[-/](\d{1,2})[-/](\d{1,2})(?!\d)')
    DAY_FIRST_PATTERN = re.compile(r'^(\d{1,2})[-/](\d{1,2})[-/](\d{4})(?!\d)')
    MONTH_NAME_PATTERN = re.compile(
        r'^(\d{1,2})(?:st|nd|rd|th)?[-/\s]+([A-Za-z]{3,9})\.?[-/\s,]+(\d{4}|\d{2})(?!\d)',
        re.IGNORECASE
    )
    SHORT_YEAR_PATTERN = re.compile(r'^(\d{1,2})[-/](\d{1,2})[-/](\d{2})(?!\d)')
    DIGITS_PATTERN = re.compile(r'^\d+$')

    def __init__(self, today: Callable[[], date] | None = None):
        """Initialize the parser.

        Args:
            today: Callable returning the fallback date (defaults to date.today)
        """
        self._today = today or date.today

    def parse(self, value: Any) -> date:
        """Parse a date value.

        Args:
            value: String, spreadsheet serial number, date or datetime

        Returns:
            Parsed date, or today's date when nothing matches
        """
        if isinstance(value, datetime):
            return value.date()

        if isinstance(value, date):
            return value

        if isinstance(value, bool) or value is None:
            return self._fallback(value)

        if isinstance(value, (int, float, Decimal)):
            return self.from_serial(value)

        return self.parse_string(str(value))

    def parse_string(self, text: str) -> date:
        """Parse a textual date, trying known formats in order."""
        text = text.strip()
        if not text:
            return self._fallback(text)

        for parse_format in (
            self._parse_iso,
            self._parse_day_first,
            self._parse_month_name,
            self._parse_short_year,
        ):
            parsed = parse_format(text)
            if parsed:
                return parsed

        if self.DIGITS_PATTERN.match(text):
            serial = int(text)
            if self.SERIAL_MIN <= serial <= self.SERIAL_MAX:
                return self.from_serial(serial)

        try:
            return dateutil_parser.parse(text, dayfirst=True, fuzzy=True).date()
        except (ValueError, OverflowError):
            return self._fallback(text)

    def from_serial(self, serial: int | float | Decimal) -> date:
        """Convert a spreadsheet serial number to a date.

        Args:
            serial: Days since the spreadsheet epoch

        Returns:
            Converted date, or today's date for NaN/out-of-range values
        """
        try:
            if math.isnan(float(serial)):
                return self._fallback(serial)
            seconds = round(float(serial)) * 86400
            return (SPREADSHEET_EPOCH + timedelta(seconds=seconds)).date()
        except (OverflowError, ValueError):
            return self._fallback(serial)

    def _parse_iso(self, text: str) -> date | None:
        match = self.ISO_PATTERN.match(text)
        if not match:
            return None
        year, month, day = (int(g) for g in match.groups())
        return _safe_date(year, month, day)

    def _parse_day_first(self, text: str) -> date | None:
        match = self.DAY_FIRST_PATTERN.match(text)
        if not match:
            return None
        day, month, year = (int(g) for g in match.groups())
        return _safe_date(year, month, day)

    def _parse_month_name(self, text: str) -> date | None:
        match = self.MONTH_NAME_PATTERN.match(text)
        if not match:
            return None

        day_str, month_name, year_str = match.groups()
        month = month_number(month_name)
        if month is None:
            return None

        year = int(year_str)
        if len(year_str) == 2:
            year += 2000
        return _safe_date(year, month, int(day_str))

    def _parse_short_year(self, text: str) -> date | None:
        match = self.SHORT_YEAR_PATTERN.match(text)
        if not match:
            return None
        day, month, year = (int(g) for g in match.groups())
        return _safe_date(2000 + year, month, day)

    def _fallback(self, value: Any) -> date:
        today = self._today()
        logger.warning(f"Unparseable date {value!r}, using {today.isoformat()}")
        return today


def month_number(name: str) -> int | None:
    """Resolve a 3-letter or full month name (or a prefix like 'Sept')."""
    name = name.lower()
    if len(name) < 3:
        return None
    for full_name, number in MONTHS.items():
        if full_name.startswith(name):
            return number
    return None


def _safe_date(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        return None


_default_parser = DateParser()


def parse_date(value: Any) -> date:
    """Parse a date using the shared default parser."""
    return _default_parser.parse(value)
