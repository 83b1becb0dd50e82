# pocketplan/services/records.py
#
# Immutable transaction / goal records as they travel between the store,
# the aggregation code and the HTTP layer, plus the helpers that build new
# records from client payloads and apply partial updates.

from __future__ import annotations

import dataclasses
import math
from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Mapping

from pocketplan.services.dates import normalize_date
from pocketplan.services.errors import ValidationError


class TransactionType(str, Enum):
    INCOME = "Income"
    EXPENSE = "Expense"


class GoalType(str, Enum):
    SAVING = "Saving"
    EXPENSE = "Expense"


def coerce_amount(value: Any) -> float:
    """
    Numeric value of an amount field; anything non-numeric counts as 0.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(number):
        return 0.0
    return number


def utc_now_iso(now: datetime | None = None) -> str:
    """ISO timestamp in UTC with millisecond precision and a Z suffix."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    now = now.astimezone(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


@dataclass(frozen=True)
class Transaction:
    """
    One income or expense entry.

    `date` is kept exactly as supplied (ISO day string, epoch millis, ...);
    it is only interpreted when aggregating.
    """

    id: str
    category: str = ""
    type: str = TransactionType.EXPENSE.value
    amount: Any = 0
    date: Any = None
    description: str | None = None
    created_at: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Transaction":
        return cls(
            id=str(data.get("id") or ""),
            category=data.get("category") or "",
            type=str(data.get("type") or ""),
            amount=data.get("amount"),
            date=data.get("date"),
            description=data.get("description"),
            created_at=data.get("createdAt", data.get("created_at")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "category": self.category,
            "type": self.type,
            "amount": self.amount,
            "date": self.date,
            "description": self.description,
            "createdAt": self.created_at,
        }


@dataclass(frozen=True)
class Goal:
    id: str
    name: str = ""
    type: str = GoalType.SAVING.value
    amount: Any = 0
    target: Any = 0
    created_at: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Goal":
        return cls(
            id=str(data.get("id") or ""),
            name=data.get("name") or "",
            type=str(data.get("type") or GoalType.SAVING.value),
            amount=data.get("amount"),
            target=data.get("target"),
            created_at=data.get("createdAt", data.get("created_at")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "amount": self.amount,
            "target": self.target,
            "createdAt": self.created_at,
        }


# Wire names accepted in update payloads → dataclass field names
_WIRE_ALIASES = {"createdAt": "created_at"}

# Money fields are stored as numbers whichever store holds the record
_AMOUNT_FIELDS = {"amount", "target"}


def patch(record, updates: Mapping[str, Any]):
    """
    Return a copy of `record` with the fields in `updates` replaced.

    Unknown fields are rejected; the id never changes. Amount and target
    values are coerced the same way new records coerce them.
    """
    names = {f.name for f in dataclasses.fields(record)}
    changes: dict[str, Any] = {}
    for key, value in updates.items():
        field_name = _WIRE_ALIASES.get(key, key)
        if field_name == "id":
            raise ValidationError("Record id cannot be changed")
        if field_name not in names:
            raise ValidationError(f"Unknown field {key!r} for {type(record).__name__}")
        changes[field_name] = coerce_amount(value) if field_name in _AMOUNT_FIELDS else value
    return dataclasses.replace(record, **changes)


# ---- Builders for new records ----

def new_transaction(payload: Mapping[str, Any], record_id: str, now: datetime | None = None) -> Transaction:
    """
    Build a transaction from a client payload: amount coerced, date defaulting
    to today's ISO day, createdAt stamped.
    """
    created_at = utc_now_iso(now)
    return Transaction(
        id=record_id,
        category=payload.get("category") or "",
        type=str(payload.get("type") or TransactionType.EXPENSE.value),
        amount=coerce_amount(payload.get("amount")),
        date=payload.get("date") or created_at[:10],
        description=payload.get("description"),
        created_at=created_at,
    )


def new_goal(payload: Mapping[str, Any], record_id: str, now: datetime | None = None) -> Goal:
    return Goal(
        id=record_id,
        name=payload.get("name") or "",
        type=str(payload.get("type") or GoalType.SAVING.value),
        amount=coerce_amount(payload.get("amount")),
        target=coerce_amount(payload.get("target")),
        created_at=utc_now_iso(now),
    )


def transaction_sort_key(tx: Transaction) -> date:
    """
    Calendar date a transaction sorts by: its `date`, else its `createdAt`.

    Records with neither sort before everything else.
    """
    day = normalize_date(tx.date)
    if day is None:
        day = normalize_date(tx.created_at)
    return day or date.min
