# pocketplan/services/formatting.py
#
# Display formatting for the dashboard: chart axis labels and Rupiah amounts.
# Month names come from fixed tables so output does not depend on the
# process-wide C locale.

from __future__ import annotations

import math
from datetime import date
from typing import Any

DEFAULT_LOCALE = "id"

MONTH_ABBR = {
    "en": ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"],
    "id": ["Jan", "Feb", "Mar", "Apr", "Mei", "Jun", "Jul", "Agu", "Sep", "Okt", "Nov", "Des"],
}

WEEK_PREFIX = {
    "en": "Week of",
    "id": "Minggu",
}


def _locale_key(locale: str | None) -> str:
    key = (locale or DEFAULT_LOCALE).split("-")[0].split("_")[0].lower()
    return key if key in MONTH_ABBR else "en"


def month_abbr(month: int, locale: str | None = None) -> str:
    return MONTH_ABBR[_locale_key(locale)][month - 1]


# ---- Axis labels ----

def day_label(day: date, locale: str | None = None) -> str:
    """'05 Jan' style label."""
    return f"{day.day:02d} {month_abbr(day.month, locale)}"


def week_label(week_start: date, locale: str | None = None) -> str:
    return f"{WEEK_PREFIX[_locale_key(locale)]} {day_label(week_start, locale)}"


def month_label(month_start: date, locale: str | None = None) -> str:
    return f"{month_abbr(month_start.month, locale)} {month_start.year}"


# ---- Currency ----

def format_grouped(value: Any) -> str:
    """
    Format a number with id-ID grouping: '.' between thousands, ',' before
    decimals, at most three fraction digits (trailing zeros dropped).
    """
    try:
        number = float(value)
    except (TypeError, ValueError):
        number = 0.0
    if not math.isfinite(number):
        number = 0.0

    whole, frac = f"{abs(number):,.3f}".split(".")
    frac = frac.rstrip("0")
    text = whole.replace(",", ".")
    if frac:
        text = f"{text},{frac}"

    if number < 0 and text != "0":
        return f"-{text}"
    return text


def format_rupiah(value: Any, prefix: str = "Rp") -> str:
    """Rp + grouped digits, e.g. format_rupiah(1500000) -> 'Rp 1.500.000'."""
    return f"{prefix} {format_grouped(value)}"
