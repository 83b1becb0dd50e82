# pocketplan/services/data_context.py
#
# Per-user financial data context.
#
# Owns the snapshot of one user's transactions, goals and base balance,
# routes every change through the RecordStore, and derives the summary and
# chart views from the snapshot. Callers create one per user scope, call
# init() before use and teardown() when the scope ends.

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Mapping

from pocketplan.logging_setup import get_logger
from pocketplan.services.aggregation import (
    ChartSeries,
    Summary,
    aggregate,
    goal_progress,
    summarize,
)
from pocketplan.services.errors import NotFoundError, PersistenceError, ValidationError
from pocketplan.services.records import (
    Goal,
    Transaction,
    TransactionType,
    new_goal,
    new_transaction,
    transaction_sort_key,
)
from pocketplan.services.store import RecordStore, new_record_id

logger = get_logger(__name__)

TYPE_FILTERS = ("All", TransactionType.INCOME.value, TransactionType.EXPENSE.value)
SORT_ORDERS = ("newest", "oldest")


@dataclass(frozen=True)
class Notification:
    """User-facing outcome message for a change ('success' or 'error')."""

    message: str
    kind: str = "success"

    def to_dict(self) -> dict[str, str]:
        return {"message": self.message, "type": self.kind}


@dataclass(frozen=True)
class DashboardView:
    """Everything the dashboard shows: overview cards, chart, goals."""

    summary: Summary
    chart: ChartSeries
    goals: list[dict[str, Any]]

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary.to_dict(),
            "chart": self.chart.to_dict(),
            "goals": self.goals,
        }


@dataclass
class DataContext:
    store: RecordStore
    user_id: str
    demo: bool = False
    now: Callable[[], datetime] | None = None

    transactions: list[Transaction] = field(default_factory=list)
    goals: list[Goal] = field(default_factory=list)
    base_balance: float = 0.0
    notification: Notification | None = None
    loaded: bool = False

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------

    def init(self) -> "DataContext":
        """Load the user's snapshot from the store."""
        self.transactions = self.store.list_transactions(self.user_id)
        self.goals = self.store.list_goals(self.user_id)
        try:
            self.base_balance = self.store.get_base_balance(self.user_id)
        except PersistenceError:
            # Balance is optional; the overview falls back to 0.
            logger.warning("Could not read base balance for user %s", self.user_id)
            self.base_balance = 0.0
        self.loaded = True
        return self

    def teardown(self) -> None:
        self.transactions = []
        self.goals = []
        self.base_balance = 0.0
        self.notification = None
        self.loaded = False

    def _refresh(self) -> None:
        self.transactions = self.store.list_transactions(self.user_id)
        self.goals = self.store.list_goals(self.user_id)

    def _notify(self, message: str, kind: str = "success") -> None:
        self.notification = Notification(message, kind)

    def _success(self, saved: str, demo: str) -> str:
        return f"{demo} (demo mode)." if self.demo else f"{saved}."

    def _perform(self, action: str, success: str, fn: Callable[[], Any]) -> Any:
        """
        Run one store operation, refresh the snapshot and record the outcome.

        Not-found and validation errors go straight back to the caller;
        store failures are logged, turned into an error notification and
        re-raised. Nothing is retried.
        """
        try:
            result = fn()
        except (NotFoundError, ValidationError):
            raise
        except PersistenceError as e:
            logger.error("%s failed for user %s: %s", action, self.user_id, e)
            self._notify(str(e) or f"Failed to {action.lower()}", "error")
            raise
        self._refresh()
        self._notify(success)
        return result

    # -------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------

    def add_transaction(self, payload: Mapping[str, Any]) -> Transaction:
        now = self.now() if self.now else None
        tx = new_transaction(payload, new_record_id(), now)
        return self._perform(
            "Add transaction",
            self._success("Transaction saved", "Transaction added"),
            lambda: self.store.add_transaction(self.user_id, tx),
        )

    def update_transaction(self, tx_id: str, updates: Mapping[str, Any]) -> Transaction:
        return self._perform(
            "Update transaction",
            self._success("Transaction updated", "Transaction updated"),
            lambda: self.store.update_transaction(self.user_id, tx_id, updates),
        )

    def delete_transaction(self, tx_id: str) -> None:
        self._perform(
            "Delete transaction",
            self._success("Transaction deleted", "Transaction deleted"),
            lambda: self.store.delete_transaction(self.user_id, tx_id),
        )

    # -------------------------------------------------------------------
    # Goals
    # -------------------------------------------------------------------

    def add_goal(self, payload: Mapping[str, Any]) -> Goal:
        now = self.now() if self.now else None
        goal = new_goal(payload, new_record_id(), now)
        return self._perform(
            "Add goal",
            self._success("Goal saved", "Goal added"),
            lambda: self.store.add_goal(self.user_id, goal),
        )

    def update_goal(self, goal_id: str, updates: Mapping[str, Any]) -> Goal:
        return self._perform(
            "Update goal",
            self._success("Goal updated", "Goal updated"),
            lambda: self.store.update_goal(self.user_id, goal_id, updates),
        )

    def delete_goal(self, goal_id: str) -> None:
        self._perform(
            "Delete goal",
            self._success("Goal deleted", "Goal deleted"),
            lambda: self.store.delete_goal(self.user_id, goal_id),
        )

    def set_base_balance(self, value: Any) -> float:
        self.base_balance = self.store.set_base_balance(self.user_id, value)
        return self.base_balance

    # -------------------------------------------------------------------
    # Derived views
    # -------------------------------------------------------------------

    def summary(self) -> Summary:
        return summarize(self.transactions, self.base_balance)

    def chart(
        self,
        days: Any = None,
        granularity: str = "daily",
        today: date | None = None,
        locale: str | None = None,
    ) -> ChartSeries:
        return aggregate(self.transactions, days=days, granularity=granularity, today=today, locale=locale)

    def goals_with_progress(self) -> list[dict[str, Any]]:
        return [{**goal.to_dict(), "progress": goal_progress(goal)} for goal in self.goals]

    def dashboard(
        self,
        days: Any = None,
        granularity: str = "daily",
        today: date | None = None,
        locale: str | None = None,
    ) -> DashboardView:
        return DashboardView(
            summary=self.summary(),
            chart=self.chart(days, granularity, today, locale),
            goals=self.goals_with_progress(),
        )

    def filtered_transactions(
        self,
        search: str | None = None,
        type_filter: str = "All",
        sort: str = "newest",
    ) -> list[Transaction]:
        """
        Search category/type/description (case-insensitive), filter by type,
        and order by date (createdAt when the date is missing or unreadable).
        """
        if type_filter not in TYPE_FILTERS:
            raise ValidationError(f"Unknown type filter {type_filter!r}")
        if sort not in SORT_ORDERS:
            raise ValidationError(f"Unknown sort order {sort!r}")

        q = (search or "").strip().lower()

        def matches(tx: Transaction) -> bool:
            if type_filter != "All" and tx.type != type_filter:
                return False
            if not q:
                return True
            haystacks = (tx.category or "", tx.type or "", tx.description or "")
            return any(q in h.lower() for h in haystacks)

        items = [tx for tx in self.transactions if matches(tx)]
        return sorted(
            items,
            key=transaction_sort_key,
            reverse=(sort == "newest"),
        )

    def filtered_goals(self, search: str | None = None) -> list[Goal]:
        q = (search or "").strip().lower()
        if not q:
            return list(self.goals)
        return [goal for goal in self.goals if q in (goal.name or "").lower()]
