# pocketplan/services/dates.py
#
# Date bucketing for the income/expense charts.
#
# Transactions carry their date in whatever shape the client sent: an ISO day
# string, epoch milliseconds, a datetime, a free-form string, or nothing at
# all. Everything here turns those into plain calendar dates, derives the
# bucket key for a granularity, and walks the dense period axis between two
# bounds.

from __future__ import annotations

import math
import re
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Iterator, NamedTuple

import pandas as pd

from pocketplan.services.errors import ValidationError
from pocketplan.services.formatting import day_label, month_label, week_label

ISO_DAY_RE = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")

MAX_WINDOW_DAYS = 3660


class Granularity(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    @classmethod
    def parse(cls, value: "Granularity | str | None") -> "Granularity":
        if isinstance(value, Granularity):
            return value
        try:
            return cls(str(value or cls.DAILY.value).strip().lower())
        except ValueError:
            raise ValidationError(
                f"Unknown granularity {value!r}; expected daily, weekly or monthly"
            ) from None


class DateKind(str, Enum):
    """Tag for the shapes a transaction date can arrive in."""

    ISO_DAY = "iso_day"
    EPOCH_MILLIS = "epoch_millis"
    NATIVE = "native"
    TEXT = "text"
    MISSING = "missing"
    INVALID = "invalid"


class AxisEntry(NamedTuple):
    key: str
    label: str


# ---- Normalization ----

def classify_date_input(raw: Any) -> DateKind:
    if raw is None:
        return DateKind.MISSING
    # bool is an int subclass; a True/False "date" is garbage, not epoch 0/1.
    if isinstance(raw, bool):
        return DateKind.INVALID
    if isinstance(raw, (datetime, date)):
        return DateKind.NATIVE
    if isinstance(raw, (int, float)):
        return DateKind.EPOCH_MILLIS
    if isinstance(raw, str):
        if not raw.strip():
            return DateKind.MISSING
        if ISO_DAY_RE.fullmatch(raw):
            return DateKind.ISO_DAY
        return DateKind.TEXT
    return DateKind.INVALID


def _from_iso_day(raw: str) -> date | None:
    # Built from the components so no timezone shift can move the day.
    year, month, day = (int(part) for part in raw.split("-"))
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _from_epoch_millis(raw: int | float) -> date | None:
    try:
        if not math.isfinite(raw):
            return None
        return datetime.fromtimestamp(raw / 1000).date()
    except (OverflowError, OSError, ValueError):
        return None


def _from_native(raw: date) -> date:
    if isinstance(raw, datetime):
        if raw.tzinfo is not None:
            raw = raw.astimezone()
        return raw.date()
    return raw


def _from_text(raw: str) -> date | None:
    # pandas reads keywords like "today" or "now" as the current clock time;
    # a stored date always carries at least one digit.
    if not any(ch.isdigit() for ch in raw):
        return None
    parsed = pd.to_datetime(raw, errors="coerce")
    if parsed is None or pd.isna(parsed):
        return None
    if parsed.tzinfo is not None:
        return parsed.to_pydatetime().astimezone().date()
    return parsed.date()


_NORMALIZERS = {
    DateKind.ISO_DAY: _from_iso_day,
    DateKind.EPOCH_MILLIS: _from_epoch_millis,
    DateKind.NATIVE: _from_native,
    DateKind.TEXT: _from_text,
}


def normalize_date(raw: Any) -> date | None:
    """
    Turn any supported date representation into a local calendar date.

    Returns None for missing input and for anything that cannot be parsed;
    callers treat None as "leave this record out of the chart".
    """
    handler = _NORMALIZERS.get(classify_date_input(raw))
    if handler is None:
        return None
    return handler(raw)


# ---- Keys and periods ----

def iso_day(day: date) -> str:
    return f"{day.year:04d}-{day.month:02d}-{day.day:02d}"


def week_start(day: date) -> date:
    """Monday of the week containing `day` (Sunday belongs to the week before)."""
    return day - timedelta(days=day.isoweekday() - 1)


def period_start(day: date, granularity: Granularity | str) -> date:
    granularity = Granularity.parse(granularity)
    if granularity is Granularity.WEEKLY:
        return week_start(day)
    if granularity is Granularity.MONTHLY:
        return day.replace(day=1)
    return day


def canonical_key(day: date, granularity: Granularity | str) -> str:
    granularity = Granularity.parse(granularity)
    if granularity is Granularity.MONTHLY:
        return f"{day.year:04d}-{day.month:02d}"
    return iso_day(period_start(day, granularity))


def _next_period(cursor: date, granularity: Granularity) -> date:
    if granularity is Granularity.WEEKLY:
        return cursor + timedelta(days=7)
    if granularity is Granularity.MONTHLY:
        if cursor.month == 12:
            return date(cursor.year + 1, 1, 1)
        return date(cursor.year, cursor.month + 1, 1)
    return cursor + timedelta(days=1)


def _label(cursor: date, granularity: Granularity, locale: str | None) -> str:
    if granularity is Granularity.WEEKLY:
        return week_label(cursor, locale)
    if granularity is Granularity.MONTHLY:
        return month_label(cursor, locale)
    return day_label(cursor, locale)


def iter_axis(
    start: date,
    end: date,
    granularity: Granularity | str = Granularity.DAILY,
    locale: str | None = None,
) -> Iterator[AxisEntry]:
    """
    Yield one AxisEntry per period from `start` to `end`.

    The cursor is snapped to the start of `start`'s period, but `end` is
    compared as given, so the last period may run past `end`.
    """
    granularity = Granularity.parse(granularity)
    cursor = period_start(start, granularity)
    while cursor <= end:
        yield AxisEntry(canonical_key(cursor, granularity), _label(cursor, granularity, locale))
        cursor = _next_period(cursor, granularity)


def enumerate_axis(
    start: date,
    end: date,
    granularity: Granularity | str = Granularity.DAILY,
    locale: str | None = None,
) -> list[AxisEntry]:
    return list(iter_axis(start, end, granularity, locale))


def clamp_days(days: Any) -> int | None:
    """
    Window length in days, or None when no usable day count was given.

    Only finite positive numbers count; they are clamped to
    [1, MAX_WINDOW_DAYS] and floored.
    """
    if days is None or isinstance(days, bool):
        return None
    try:
        value = float(days)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value) or value <= 0:
        return None
    return int(math.floor(min(max(value, 1.0), float(MAX_WINDOW_DAYS))))
