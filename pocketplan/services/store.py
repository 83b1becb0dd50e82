# pocketplan/services/store.py
#
# Record storage for transactions, goals and the per-user base balance.
#
# Two implementations share one interface:
# - SqlRecordStore: SQLAlchemy tables from models.py
# - MemoryRecordStore: plain lists, used in demo mode and in tests
#
# Every operation is scoped to a user id.

from __future__ import annotations

import threading
import uuid
from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Any, Callable, Mapping

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models import GoalRow, TransactionRow, UserProfileRow
from pocketplan.logging_setup import get_logger
from pocketplan.services.dates import iso_day, normalize_date
from pocketplan.services.errors import NotFoundError, PersistenceError
from pocketplan.services.records import (
    Goal,
    Transaction,
    coerce_amount,
    patch,
    transaction_sort_key,
)

logger = get_logger(__name__)


def new_record_id() -> str:
    return uuid.uuid4().hex


def _sorted_transactions(items: list[Transaction]) -> list[Transaction]:
    return sorted(items, key=transaction_sort_key, reverse=True)


def _sorted_goals(items: list[Goal]) -> list[Goal]:
    return sorted(items, key=lambda g: g.name or "", reverse=True)


class RecordStore(ABC):
    """
    Storage interface used by DataContext.

    Lists are returned newest date first for transactions and by name
    (descending) for goals.
    """

    @abstractmethod
    def list_transactions(self, user_id: str) -> list[Transaction]:
        ...

    @abstractmethod
    def add_transaction(self, user_id: str, tx: Transaction) -> Transaction:
        ...

    @abstractmethod
    def update_transaction(self, user_id: str, tx_id: str, updates: Mapping[str, Any]) -> Transaction:
        """Raises NotFoundError when the id is unknown for this user."""

    @abstractmethod
    def delete_transaction(self, user_id: str, tx_id: str) -> None:
        """Raises NotFoundError when the id is unknown for this user."""

    @abstractmethod
    def list_goals(self, user_id: str) -> list[Goal]:
        ...

    @abstractmethod
    def add_goal(self, user_id: str, goal: Goal) -> Goal:
        ...

    @abstractmethod
    def update_goal(self, user_id: str, goal_id: str, updates: Mapping[str, Any]) -> Goal:
        ...

    @abstractmethod
    def delete_goal(self, user_id: str, goal_id: str) -> None:
        ...

    @abstractmethod
    def get_base_balance(self, user_id: str) -> float:
        ...

    @abstractmethod
    def set_base_balance(self, user_id: str, value: float) -> float:
        ...


# -------------------------------------------------------------------
# In-memory store (demo mode)
# -------------------------------------------------------------------

class MemoryRecordStore(RecordStore):
    """Process-local store; contents are lost on restart."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._transactions: dict[str, list[Transaction]] = {}
        self._goals: dict[str, list[Goal]] = {}
        self._balances: dict[str, float] = {}

    def list_transactions(self, user_id: str) -> list[Transaction]:
        with self._lock:
            return _sorted_transactions(list(self._transactions.get(user_id, [])))

    def add_transaction(self, user_id: str, tx: Transaction) -> Transaction:
        with self._lock:
            self._transactions.setdefault(user_id, []).insert(0, tx)
        return tx

    def update_transaction(self, user_id: str, tx_id: str, updates: Mapping[str, Any]) -> Transaction:
        with self._lock:
            items = self._transactions.get(user_id, [])
            for i, tx in enumerate(items):
                if tx.id == tx_id:
                    items[i] = patch(tx, updates)
                    return items[i]
        raise NotFoundError(f"Transaction {tx_id!r} not found")

    def delete_transaction(self, user_id: str, tx_id: str) -> None:
        with self._lock:
            items = self._transactions.get(user_id, [])
            for i, tx in enumerate(items):
                if tx.id == tx_id:
                    del items[i]
                    return
        raise NotFoundError(f"Transaction {tx_id!r} not found")

    def list_goals(self, user_id: str) -> list[Goal]:
        with self._lock:
            return _sorted_goals(list(self._goals.get(user_id, [])))

    def add_goal(self, user_id: str, goal: Goal) -> Goal:
        with self._lock:
            self._goals.setdefault(user_id, []).append(goal)
        return goal

    def update_goal(self, user_id: str, goal_id: str, updates: Mapping[str, Any]) -> Goal:
        with self._lock:
            items = self._goals.get(user_id, [])
            for i, goal in enumerate(items):
                if goal.id == goal_id:
                    items[i] = patch(goal, updates)
                    return items[i]
        raise NotFoundError(f"Goal {goal_id!r} not found")

    def delete_goal(self, user_id: str, goal_id: str) -> None:
        with self._lock:
            items = self._goals.get(user_id, [])
            for i, goal in enumerate(items):
                if goal.id == goal_id:
                    del items[i]
                    return
        raise NotFoundError(f"Goal {goal_id!r} not found")

    def get_base_balance(self, user_id: str) -> float:
        with self._lock:
            return self._balances.get(user_id, 0.0)

    def set_base_balance(self, user_id: str, value: float) -> float:
        with self._lock:
            self._balances[user_id] = coerce_amount(value)
            return self._balances[user_id]


# -------------------------------------------------------------------
# SQLAlchemy store
# -------------------------------------------------------------------

def _date_to_column(value: Any) -> str | None:
    """
    Text form of a transaction date for the `date` column.

    Strings are kept verbatim; native dates and epoch numbers become an ISO
    day (or None when they do not describe a real date).
    """
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, (date, datetime, int, float)):
        day = normalize_date(value)
        return iso_day(day) if day is not None else None
    return str(value)


def _row_to_transaction(row: TransactionRow) -> Transaction:
    return Transaction(
        id=row.id,
        category=row.category or "",
        type=row.type,
        amount=row.amount,
        date=row.date,
        description=row.description,
        created_at=row.created_at,
    )


def _row_to_goal(row: GoalRow) -> Goal:
    return Goal(
        id=row.id,
        name=row.name or "",
        type=row.type,
        amount=row.amount,
        target=row.target,
        created_at=row.created_at,
    )


def _apply_transaction(row: TransactionRow, tx: Transaction) -> None:
    row.category = tx.category or ""
    row.type = tx.type
    row.amount = coerce_amount(tx.amount)
    row.date = _date_to_column(tx.date)
    row.description = tx.description
    row.created_at = tx.created_at


def _apply_goal(row: GoalRow, goal: Goal) -> None:
    row.name = goal.name or ""
    row.type = goal.type
    row.amount = coerce_amount(goal.amount)
    row.target = coerce_amount(goal.target)
    row.created_at = goal.created_at


class SqlRecordStore(RecordStore):
    """
    Store backed by the SQLAlchemy models.

    Each operation runs in its own session from `session_factory`; database
    errors are rolled back and re-raised as PersistenceError.
    """

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def _run(self, action: str, fn: Callable[[Session], Any]) -> Any:
        db = self._session_factory()
        try:
            result = fn(db)
            db.commit()
            return result
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Database error during %s: %r", action, e)
            raise PersistenceError(f"Failed to {action}") from e
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    # ---- Transactions ----

    def list_transactions(self, user_id: str) -> list[Transaction]:
        def _list(db: Session) -> list[Transaction]:
            rows = db.query(TransactionRow).filter(TransactionRow.user_id == user_id).all()
            return _sorted_transactions([_row_to_transaction(r) for r in rows])

        return self._run("list transactions", _list)

    def add_transaction(self, user_id: str, tx: Transaction) -> Transaction:
        def _add(db: Session) -> Transaction:
            row = TransactionRow(id=tx.id, user_id=user_id)
            _apply_transaction(row, tx)
            db.add(row)
            db.flush()
            return _row_to_transaction(row)

        return self._run("save transaction", _add)

    def _transaction_row(self, db: Session, user_id: str, tx_id: str) -> TransactionRow:
        row = (
            db.query(TransactionRow)
            .filter(TransactionRow.user_id == user_id, TransactionRow.id == tx_id)
            .one_or_none()
        )
        if row is None:
            raise NotFoundError(f"Transaction {tx_id!r} not found")
        return row

    def update_transaction(self, user_id: str, tx_id: str, updates: Mapping[str, Any]) -> Transaction:
        def _update(db: Session) -> Transaction:
            row = self._transaction_row(db, user_id, tx_id)
            updated = patch(_row_to_transaction(row), updates)
            _apply_transaction(row, updated)
            db.flush()
            return _row_to_transaction(row)

        return self._run("update transaction", _update)

    def delete_transaction(self, user_id: str, tx_id: str) -> None:
        def _delete(db: Session) -> None:
            db.delete(self._transaction_row(db, user_id, tx_id))

        self._run("delete transaction", _delete)

    # ---- Goals ----

    def list_goals(self, user_id: str) -> list[Goal]:
        def _list(db: Session) -> list[Goal]:
            rows = db.query(GoalRow).filter(GoalRow.user_id == user_id).all()
            return _sorted_goals([_row_to_goal(r) for r in rows])

        return self._run("list goals", _list)

    def add_goal(self, user_id: str, goal: Goal) -> Goal:
        def _add(db: Session) -> Goal:
            row = GoalRow(id=goal.id, user_id=user_id)
            _apply_goal(row, goal)
            db.add(row)
            db.flush()
            return _row_to_goal(row)

        return self._run("save goal", _add)

    def _goal_row(self, db: Session, user_id: str, goal_id: str) -> GoalRow:
        row = (
            db.query(GoalRow)
            .filter(GoalRow.user_id == user_id, GoalRow.id == goal_id)
            .one_or_none()
        )
        if row is None:
            raise NotFoundError(f"Goal {goal_id!r} not found")
        return row

    def update_goal(self, user_id: str, goal_id: str, updates: Mapping[str, Any]) -> Goal:
        def _update(db: Session) -> Goal:
            row = self._goal_row(db, user_id, goal_id)
            updated = patch(_row_to_goal(row), updates)
            _apply_goal(row, updated)
            db.flush()
            return _row_to_goal(row)

        return self._run("update goal", _update)

    def delete_goal(self, user_id: str, goal_id: str) -> None:
        def _delete(db: Session) -> None:
            db.delete(self._goal_row(db, user_id, goal_id))

        self._run("delete goal", _delete)

    # ---- Base balance ----

    def get_base_balance(self, user_id: str) -> float:
        def _get(db: Session) -> float:
            row = db.query(UserProfileRow).filter(UserProfileRow.user_id == user_id).one_or_none()
            return float(row.base_balance) if row is not None else 0.0

        return self._run("read base balance", _get)

    def set_base_balance(self, user_id: str, value: float) -> float:
        def _set(db: Session) -> float:
            row = db.query(UserProfileRow).filter(UserProfileRow.user_id == user_id).one_or_none()
            if row is None:
                row = UserProfileRow(user_id=user_id)
                db.add(row)
            row.base_balance = coerce_amount(value)
            db.flush()
            return float(row.base_balance)

        return self._run("save base balance", _set)
