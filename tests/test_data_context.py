from datetime import date, datetime, timezone

import pytest

from pocketplan.services.data_context import DataContext, Notification
from pocketplan.services.errors import NotFoundError, PersistenceError, ValidationError
from pocketplan.services.store import MemoryRecordStore

NOW = datetime(2025, 1, 8, 9, 0, tzinfo=timezone.utc)


class FailingStore(MemoryRecordStore):
    """Memory store whose writes and balance reads fail like a broken database."""

    def add_transaction(self, user_id, tx):
        raise PersistenceError("Failed to save transaction")

    def delete_goal(self, user_id, goal_id):
        raise PersistenceError("")

    def get_base_balance(self, user_id):
        raise PersistenceError("Failed to read base balance")


@pytest.fixture
def ctx(memory_store):
    context = DataContext(store=memory_store, user_id="u1", now=lambda: NOW).init()
    yield context
    context.teardown()


def test_add_transaction_refreshes_snapshot(ctx):
    tx = ctx.add_transaction({"category": "Salary", "type": "Income", "amount": "1000"})
    assert ctx.transactions == [tx]
    assert tx.date == "2025-01-08"
    assert ctx.notification == Notification("Transaction saved.")


def test_demo_mode_messages(memory_store):
    ctx = DataContext(store=memory_store, user_id="u1", demo=True).init()
    ctx.add_transaction({"amount": 5})
    assert ctx.notification.message == "Transaction added (demo mode)."
    ctx.add_goal({"name": "Bike", "target": 100})
    assert ctx.notification.to_dict() == {"message": "Goal added (demo mode).", "type": "success"}


def test_update_and_delete(ctx):
    tx = ctx.add_transaction({"amount": 5, "date": "2025-01-02"})
    ctx.update_transaction(tx.id, {"amount": 7})
    assert ctx.transactions[0].amount == 7
    assert ctx.notification.message == "Transaction updated."

    ctx.delete_transaction(tx.id)
    assert ctx.transactions == []
    assert ctx.notification.message == "Transaction deleted."


def test_missing_record_raises_without_notification(ctx):
    with pytest.raises(NotFoundError):
        ctx.delete_transaction("nope")
    assert ctx.notification is None


def test_store_failure_sets_error_notification():
    ctx = DataContext(store=FailingStore(), user_id="u1").init()
    assert ctx.base_balance == 0
    assert ctx.loaded

    with pytest.raises(PersistenceError):
        ctx.add_transaction({"amount": 5})
    assert ctx.notification == Notification("Failed to save transaction", "error")
    assert ctx.transactions == []

    ctx.add_goal({"name": "Bike"})
    with pytest.raises(PersistenceError):
        ctx.delete_goal(ctx.goals[0].id)
    assert ctx.notification.message == "Failed to delete goal"


def test_summary_uses_base_balance(ctx):
    ctx.set_base_balance(1000)
    ctx.add_transaction({"type": "Income", "amount": 500, "date": "2025-01-01"})
    ctx.add_transaction({"type": "Expense", "amount": 200, "date": "2025-01-02"})
    summary = ctx.summary()
    assert summary.balance == 1300
    assert summary.income == 500
    assert summary.expense == 200


def test_chart_over_snapshot(ctx):
    ctx.add_transaction({"type": "Income", "amount": 100, "date": "2025-01-01"})
    ctx.add_transaction({"type": "Expense", "amount": 30, "date": "2025-01-02"})
    series = ctx.chart(today=date(2025, 1, 8))
    assert series.keys == ["2025-01-01", "2025-01-02"]
    assert series.income == [100, 0]


def test_goals_with_progress(ctx):
    ctx.add_goal({"name": "Laptop", "amount": 2340000, "target": 15000000})
    [goal] = ctx.goals_with_progress()
    assert goal["name"] == "Laptop"
    assert goal["progress"] == 16


def test_filtered_transactions(ctx):
    ctx.add_transaction({"category": "Food", "type": "Expense", "amount": 1, "date": "2025-01-03"})
    ctx.add_transaction({"category": "Salary", "type": "Income", "amount": 2, "date": "2025-01-01",
                         "description": "January pay"})
    ctx.add_transaction({"category": "Coffee", "type": "Expense", "amount": 3, "date": "2025-01-02"})

    assert [t.category for t in ctx.filtered_transactions()] == ["Food", "Coffee", "Salary"]
    assert [t.category for t in ctx.filtered_transactions(sort="oldest")] == ["Salary", "Coffee", "Food"]
    assert [t.category for t in ctx.filtered_transactions(type_filter="Expense")] == ["Food", "Coffee"]
    assert [t.category for t in ctx.filtered_transactions(search="PAY")] == ["Salary"]
    assert [t.category for t in ctx.filtered_transactions(search="income")] == ["Salary"]


@pytest.mark.parametrize("kwargs", [{"type_filter": "Transfer"}, {"sort": "largest"}])
def test_filtered_transactions_rejects_unknown_options(ctx, kwargs):
    with pytest.raises(ValidationError):
        ctx.filtered_transactions(**kwargs)


def test_filtered_goals(ctx):
    ctx.add_goal({"name": "New laptop"})
    ctx.add_goal({"name": "Trip"})
    assert [g.name for g in ctx.filtered_goals("LAP")] == ["New laptop"]
    assert len(ctx.filtered_goals()) == 2


def test_teardown_clears_snapshot(memory_store):
    ctx = DataContext(store=memory_store, user_id="u1").init()
    ctx.add_transaction({"amount": 1})
    ctx.teardown()
    assert ctx.transactions == []
    assert ctx.notification is None
    assert not ctx.loaded
    # The store keeps the data for the next context.
    assert len(DataContext(store=memory_store, user_id="u1").init().transactions) == 1


def test_dashboard_view(ctx):
    ctx.add_transaction({"type": "Income", "amount": 100, "date": "2025-01-01"})
    ctx.add_goal({"name": "Trip", "amount": 25, "target": 100})
    view = ctx.dashboard(granularity="monthly", locale="en")
    body = view.to_dict()
    assert body["summary"]["balance"] == 100
    assert body["chart"] == {"labels": ["Jan 2025"], "income": [100], "expense": [0]}
    assert body["goals"][0]["progress"] == 25


def test_sort_uses_the_parsed_date_across_formats(ctx):
    a = ctx.add_transaction({"category": "a", "amount": 1, "date": "2025-03-05"})
    b = ctx.add_transaction({"category": "b", "amount": 1, "date": "Feb 10, 2025"})
    c = ctx.add_transaction({"category": "c", "amount": 1, "date": "December 1, 2024"})
    undated = ctx.add_transaction({"category": "d", "amount": 1, "date": "garbage"})

    newest = [t.id for t in ctx.filtered_transactions(sort="newest")]
    # "garbage" falls back to createdAt (2025-01-08), which sits between b and c.
    assert newest == [a.id, b.id, undated.id, c.id]
    assert [t.id for t in ctx.filtered_transactions(sort="oldest")] == list(reversed(newest))
