"""
Utility Functions and Helpers

ID generation, calendar-date handling and money rounding shared by the
ledger services.
"""

import calendar
import secrets
import string
import time
from datetime import date, datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterator, Optional, Union

import pytz

from smartmess.config.settings import settings


class IDGenerator:
    """ID generation utilities"""

    @staticmethod
    def generate_short_id(length: int = 6) -> str:
        """Generate a short uppercase alphanumeric ID"""
        alphabet = string.ascii_uppercase + string.digits
        return ''.join(secrets.choice(alphabet) for _ in range(length))

    @staticmethod
    def generate_transaction_id() -> str:
        """Generate a transaction id in format TXN_<epoch ms>_<RANDOM6>"""
        return f"TXN_{int(time.time() * 1000)}_{IDGenerator.generate_short_id()}"

    @staticmethod
    def generate_refund_id() -> str:
        """Generate a refund id in format REF_<epoch ms>_<RANDOM6>"""
        return f"REF_{int(time.time() * 1000)}_{IDGenerator.generate_short_id()}"


class DateTimeUtils:
    """Date and time utility functions"""

    @staticmethod
    def utc_now() -> datetime:
        """Current UTC time as a naive datetime, the form stored in the database"""
        return datetime.now(timezone.utc).replace(tzinfo=None)

    @staticmethod
    def local_today(tz_name: Optional[str] = None) -> date:
        """Today's calendar date on the messes' wall clock"""
        return datetime.now(pytz.timezone(tz_name or settings.TIMEZONE)).date()

    @staticmethod
    def parse_calendar_date(value: Union[str, date, datetime, None]) -> Optional[date]:
        """
        Parse a calendar date from 'YYYY-MM-DD' or 'YYYY-MM-DDThh:mm...'.

        Only the year, month and day components are read. No timezone
        conversion is applied, so the day the caller typed is the day stored.

        Raises:
            ValueError: If the value is not a recognizable date
        """
        if value is None or value == "":
            return None
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value

        date_part = str(value).strip().split('T', 1)[0].split(' ', 1)[0]
        parts = date_part.split('-')
        if len(parts) != 3:
            raise ValueError(f"Invalid date: {value!r}")
        year, month, day = (int(p) for p in parts)
        return date(year, month, day)

    @staticmethod
    def iter_dates(start: date, end: date) -> Iterator[date]:
        """Yield every calendar date from start to end inclusive"""
        current = start
        while current <= end:
            yield current
            current += timedelta(days=1)

    @staticmethod
    def add_months(value: date, months: int) -> date:
        """Add calendar months, clamping the day to the target month's length"""
        month_index = value.month - 1 + months
        year = value.year + month_index // 12
        month = month_index % 12 + 1
        day = min(value.day, calendar.monthrange(year, month)[1])
        return date(year, month, day)

    @staticmethod
    def start_of_week(value: date) -> date:
        """Sunday that starts the week containing value"""
        return value - timedelta(days=(value.weekday() + 1) % 7)


class CurrencyUtils:
    """Currency and money handling utilities"""

    @staticmethod
    def to_money(amount: Union[int, float, str, Decimal]) -> Decimal:
        """Convert to Decimal rounded to 2 decimal places"""
        if not isinstance(amount, Decimal):
            amount = Decimal(str(amount))
        return amount.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)


def utc_now() -> datetime:
    return DateTimeUtils.utc_now()


def local_today() -> date:
    return DateTimeUtils.local_today()


def parse_calendar_date(value: Union[str, date, datetime, None]) -> Optional[date]:
    return DateTimeUtils.parse_calendar_date(value)


__all__ = [
    "IDGenerator",
    "DateTimeUtils",
    "CurrencyUtils",
    "utc_now",
    "local_today",
    "parse_calendar_date",
]
