# pocketplan/routes_dashboard.py

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from pocketplan.config import Settings, get_settings
from pocketplan.deps import get_data_context, templates
from pocketplan.schemas import BalanceIn
from pocketplan.services.dates import Granularity
from pocketplan.services.data_context import DataContext

router = APIRouter()


def _chart_params(
    days: Optional[float] = Query(None),
    granularity: Optional[str] = Query(None),
    locale: Optional[str] = Query(None),
    settings: Settings = Depends(get_settings),
) -> dict:
    return {
        "days": days,
        "granularity": Granularity.parse(granularity or settings.default_granularity),
        "locale": locale or settings.locale,
    }


@router.get("/api/balance")
def get_balance(ctx: DataContext = Depends(get_data_context)):
    return {"baseBalance": ctx.base_balance}


@router.put("/api/balance")
def put_balance(payload: BalanceIn, ctx: DataContext = Depends(get_data_context)):
    return {"baseBalance": ctx.set_base_balance(payload.base_balance)}


@router.get("/api/summary")
def summary(ctx: DataContext = Depends(get_data_context)):
    return ctx.summary().to_dict()


@router.get("/api/chart")
def chart(
    params: dict = Depends(_chart_params),
    ctx: DataContext = Depends(get_data_context),
):
    return ctx.chart(**params).to_dict()


@router.get("/api/dashboard")
def dashboard_data(
    params: dict = Depends(_chart_params),
    ctx: DataContext = Depends(get_data_context),
):
    return ctx.dashboard(**params).to_dict()


@router.get("/dashboard")
def dashboard_page(
    request: Request,
    params: dict = Depends(_chart_params),
    ctx: DataContext = Depends(get_data_context),
):
    view = ctx.dashboard(**params)
    return templates.TemplateResponse(
        request,
        "dashboard.html",
        {
            "summary": view.summary,
            "chart": view.chart,
            "goals": view.goals,
            "granularity": params["granularity"].value,
            "demo": ctx.demo,
        },
    )
