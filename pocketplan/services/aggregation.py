# pocketplan/services/aggregation.py
#
# Aggregation for the dashboard: income/expense chart series, the overview
# summary (balance, totals) and goal progress.
#
# Everything here is a pure function of its inputs. Nothing is cached; the
# callers recompute on every change to the transaction list.

from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Iterable, Mapping

from pocketplan.logging_setup import get_logger
from pocketplan.services.dates import (
    Granularity,
    canonical_key,
    clamp_days,
    enumerate_axis,
    normalize_date,
)
from pocketplan.services.records import (
    Goal,
    Transaction,
    TransactionType,
    coerce_amount,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class AggregationWindow:
    start: date
    end: date
    granularity: Granularity


@dataclass(frozen=True)
class ChartSeries:
    """Index-aligned labels and per-period totals, ready for a line chart."""

    labels: list[str] = field(default_factory=list)
    income: list[float] = field(default_factory=list)
    expense: list[float] = field(default_factory=list)
    keys: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "labels": list(self.labels),
            "income": list(self.income),
            "expense": list(self.expense),
        }


@dataclass(frozen=True)
class Summary:
    balance: float
    income: float
    expense: float
    month_income: float
    month_expense: float

    def to_dict(self) -> dict[str, float]:
        return {
            "balance": self.balance,
            "income": self.income,
            "expense": self.expense,
            "monthIncome": self.month_income,
            "monthExpense": self.month_expense,
        }


def _as_transaction(record: Transaction | Mapping[str, Any]) -> Transaction:
    if isinstance(record, Transaction):
        return record
    return Transaction.from_dict(record)


def effective_date(record: Transaction | Mapping[str, Any]) -> date | None:
    """The record's `date`, or its `createdAt` when the date is missing or unparseable."""
    tx = _as_transaction(record)
    day = normalize_date(tx.date)
    if day is None:
        day = normalize_date(tx.created_at)
    return day


def compute_window(
    dates: list[date],
    days: Any = None,
    granularity: Granularity | str = Granularity.DAILY,
    today: date | None = None,
) -> AggregationWindow:
    """
    Window ending at the latest transaction date (today when there is none).

    With a usable `days` the window covers the last `days` days up to that
    end; otherwise it starts at the earliest transaction date.
    """
    granularity = Granularity.parse(granularity)
    end = max(dates) if dates else (today or date.today())

    window_days = clamp_days(days)
    if window_days is not None:
        start = end - timedelta(days=window_days - 1)
    elif dates:
        start = min(dates)
    else:
        start = end

    return AggregationWindow(start=start, end=end, granularity=granularity)


def aggregate(
    transactions: Iterable[Transaction | Mapping[str, Any]],
    days: Any = None,
    granularity: Granularity | str = Granularity.DAILY,
    today: date | None = None,
    locale: str | None = None,
) -> ChartSeries:
    """
    Bucket transactions into income/expense totals per period.

    Records without a usable date are skipped. The result always has at
    least one period, and labels/income/expense have equal length.
    """
    granularity = Granularity.parse(granularity)

    dated: list[tuple[date, Transaction]] = []
    for record in transactions:
        tx = _as_transaction(record)
        day = effective_date(tx)
        if day is not None:
            dated.append((day, tx))

    window = compute_window([day for day, _ in dated], days, granularity, today)

    income_buckets: dict[str, float] = defaultdict(float)
    expense_buckets: dict[str, float] = defaultdict(float)

    for day, tx in dated:
        if day < window.start or day > window.end:
            continue
        key = canonical_key(day, granularity)
        if tx.type == TransactionType.INCOME.value:
            income_buckets[key] += coerce_amount(tx.amount)
        elif tx.type == TransactionType.EXPENSE.value:
            expense_buckets[key] += coerce_amount(tx.amount)

    labels: list[str] = []
    keys: list[str] = []
    income: list[float] = []
    expense: list[float] = []
    for entry in enumerate_axis(window.start, window.end, granularity, locale):
        keys.append(entry.key)
        labels.append(entry.label)
        income.append(income_buckets.get(entry.key, 0.0))
        expense.append(expense_buckets.get(entry.key, 0.0))

    logger.debug(
        "Aggregated %d dated transactions into %d %s periods (%s..%s)",
        len(dated),
        len(labels),
        granularity.value,
        window.start,
        window.end,
    )
    return ChartSeries(labels=labels, income=income, expense=expense, keys=keys)


def summarize(
    transactions: Iterable[Transaction | Mapping[str, Any]],
    base_balance: Any = 0,
) -> Summary:
    """
    All-time totals over every transaction and the resulting balance.

    The month fields carry the same all-time totals; the overview cards show
    them as "this month" figures.
    """
    income = 0.0
    expense = 0.0
    for record in transactions:
        tx = _as_transaction(record)
        if tx.type == TransactionType.INCOME.value:
            income += coerce_amount(tx.amount)
        elif tx.type == TransactionType.EXPENSE.value:
            expense += coerce_amount(tx.amount)

    balance = coerce_amount(base_balance) + income - expense
    return Summary(
        balance=balance,
        income=income,
        expense=expense,
        month_income=income,
        month_expense=expense,
    )


def goal_progress(goal: Goal | Mapping[str, Any], balance: Any = None) -> int:
    """
    Percent of the goal's target reached, 0..100.

    Measured against `balance` when given, else against the goal's own
    stored amount. Rounds half up.
    """
    if not isinstance(goal, Goal):
        goal = Goal.from_dict(goal)

    target = coerce_amount(goal.target)
    if target <= 0:
        return 0

    reached = coerce_amount(goal.amount) if balance is None else coerce_amount(balance)
    percent = math.floor(reached / target * 100 + 0.5)
    return int(min(100, max(0, percent)))
