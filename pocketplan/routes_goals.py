# routes_goals.py
"""
Routes for saving goals.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from pocketplan.deps import get_data_context
from pocketplan.schemas import GoalIn, GoalPatch
from pocketplan.services.aggregation import goal_progress
from pocketplan.services.data_context import DataContext

router = APIRouter(prefix="/api/goals", tags=["goals"])


@router.get("")
def list_goals(
    search: Optional[str] = Query(None),
    ctx: DataContext = Depends(get_data_context),
):
    return [
        {**goal.to_dict(), "progress": goal_progress(goal)}
        for goal in ctx.filtered_goals(search)
    ]


@router.post("", status_code=201)
def create_goal(
    payload: GoalIn,
    ctx: DataContext = Depends(get_data_context),
):
    goal = ctx.add_goal(payload.model_dump())
    return {"goal": goal.to_dict(), "notification": ctx.notification.to_dict()}


@router.patch("/{goal_id}")
def update_goal(
    goal_id: str,
    payload: GoalPatch,
    ctx: DataContext = Depends(get_data_context),
):
    goal = ctx.update_goal(goal_id, payload.model_dump(exclude_unset=True))
    return {"goal": goal.to_dict(), "notification": ctx.notification.to_dict()}


@router.delete("/{goal_id}")
def delete_goal(
    goal_id: str,
    ctx: DataContext = Depends(get_data_context),
):
    ctx.delete_goal(goal_id)
    return {"ok": True, "notification": ctx.notification.to_dict()}
