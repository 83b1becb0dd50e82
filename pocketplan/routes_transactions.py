# routes_transactions.py
"""
Routes for the transaction list and create/update/delete.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from pocketplan.deps import get_data_context
from pocketplan.schemas import TransactionIn, TransactionPatch
from pocketplan.services.data_context import DataContext

router = APIRouter(prefix="/api/transactions", tags=["transactions"])


@router.get("")
def list_transactions(
    search: Optional[str] = Query(None),
    type: str = Query("All"),
    sort: str = Query("newest"),
    ctx: DataContext = Depends(get_data_context),
):
    """
    List the user's transactions.

    - search: matches category, type or description (case-insensitive)
    - type:   All / Income / Expense
    - sort:   newest / oldest (by date, createdAt when the date is missing or unreadable)
    """
    items = ctx.filtered_transactions(search=search, type_filter=type, sort=sort)
    return [tx.to_dict() for tx in items]


@router.post("", status_code=201)
def create_transaction(
    payload: TransactionIn,
    ctx: DataContext = Depends(get_data_context),
):
    tx = ctx.add_transaction(payload.model_dump())
    return {
        "transaction": tx.to_dict(),
        "notification": ctx.notification.to_dict(),
    }


@router.patch("/{tx_id}")
def update_transaction(
    tx_id: str,
    payload: TransactionPatch,
    ctx: DataContext = Depends(get_data_context),
):
    tx = ctx.update_transaction(tx_id, payload.model_dump(exclude_unset=True))
    return {
        "transaction": tx.to_dict(),
        "notification": ctx.notification.to_dict(),
    }


@router.delete("/{tx_id}")
def delete_transaction(
    tx_id: str,
    ctx: DataContext = Depends(get_data_context),
):
    ctx.delete_transaction(tx_id)
    return {"ok": True, "notification": ctx.notification.to_dict()}
