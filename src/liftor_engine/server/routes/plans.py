"""
Base-plan API routes.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field

from ...models import CheckIn, UserProfile, WeeklyBasePlan
from ...results import Failure, Ok, TooSoon
from ...services.plan_service import PlanService

router = APIRouter()


def get_plan_service(request: Request) -> PlanService:
    return request.app.state.plan_service


class PlanResponse(BaseModel):
    success: bool
    plan: dict[str, Any] | None = None
    plans: list[dict[str, Any]] | None = None
    source: str | None = None
    reason: str | None = None
    error: str | None = None
    error_kind: str | None = None
    time_remaining_seconds: float | None = None


class RegenerationResponse(BaseModel):
    success: bool
    allowed: bool | None = None
    next_allowed_at: str | None = None
    time_remaining_seconds: float | None = None
    error: str | None = None
    error_kind: str | None = None


class GenerateRequest(BaseModel):
    user_id: str
    profile: UserProfile


class RenameRequest(BaseModel):
    user_id: str
    name: str


class TitrateRequest(BaseModel):
    user_id: str
    profile: UserProfile
    checkin: CheckIn
    weekday: str | None = None


class StatsRequest(BaseModel):
    user_id: str
    checkins: list[CheckIn] = Field(default_factory=list)


def _seconds(delta: timedelta) -> float:
    return delta.total_seconds()


def _failure(result: Failure) -> PlanResponse:
    remaining = _seconds(result.time_remaining) if isinstance(result, TooSoon) else None
    return PlanResponse(
        success=False,
        error=result.message or result.kind,
        error_kind=result.kind,
        time_remaining_seconds=remaining,
    )


def _plan(result: Ok[WeeklyBasePlan] | Failure) -> PlanResponse:
    if not isinstance(result, Ok):
        return _failure(result)
    return PlanResponse(success=True, plan=result.value.to_wire())


@router.post("/plans/generate")
async def generate_plan(
    req: GenerateRequest, service: PlanService = Depends(get_plan_service)
) -> PlanResponse:
    """Generate and activate a new base plan for a user."""
    result = await service.generate(req.user_id, req.profile)
    if not isinstance(result, Ok):
        logging.info("Generation for user %s refused: %s", req.user_id, result)
        return _failure(result)
    outcome = result.value
    return PlanResponse(success=True, plan=outcome.plan.to_wire(), source=outcome.source.value)


@router.get("/plans")
async def list_plans(
    user_id: str = Query(..., description="Owner of the plan collection"),
    service: PlanService = Depends(get_plan_service),
) -> PlanResponse:
    result = await service.list_plans(user_id)
    if not isinstance(result, Ok):
        return _failure(result)
    return PlanResponse(success=True, plans=[p.to_wire() for p in result.value])


@router.get("/plans/regeneration")
async def regeneration_window(
    user_id: str = Query(..., description="Owner of the plan collection"),
    service: PlanService = Depends(get_plan_service),
) -> RegenerationResponse:
    """Whether a new base plan may be generated now, by trusted server time."""
    result = await service.regeneration(user_id)
    if not isinstance(result, Ok):
        return RegenerationResponse(success=False, error=result.message, error_kind=result.kind)
    window = result.value
    return RegenerationResponse(
        success=True,
        allowed=window.allowed,
        next_allowed_at=window.next_allowed_at.isoformat() if window.next_allowed_at else None,
        time_remaining_seconds=_seconds(window.time_remaining),
    )


@router.post("/plans/{plan_id}/activate")
async def activate_plan(
    plan_id: str,
    user_id: str = Query(..., description="Owner of the plan collection"),
    service: PlanService = Depends(get_plan_service),
) -> PlanResponse:
    return _plan(await service.activate(user_id, plan_id))


@router.patch("/plans/{plan_id}")
async def rename_plan(
    plan_id: str, req: RenameRequest, service: PlanService = Depends(get_plan_service)
) -> PlanResponse:
    return _plan(await service.rename(req.user_id, plan_id, req.name))


@router.delete("/plans/{plan_id}")
async def delete_plan(
    plan_id: str,
    user_id: str = Query(..., description="Owner of the plan collection"),
    service: PlanService = Depends(get_plan_service),
) -> PlanResponse:
    return _plan(await service.delete(user_id, plan_id))


@router.post("/plans/titrate")
async def titrate_day(
    req: TitrateRequest, service: PlanService = Depends(get_plan_service)
) -> PlanResponse:
    """Adjust today's day of the active plan to the submitted check-in."""
    result = await service.titrate(req.user_id, req.profile, req.checkin, req.weekday)
    if not isinstance(result, Ok):
        return _failure(result)
    outcome = result.value
    return PlanResponse(
        success=True,
        plan=outcome.plan.to_wire(),
        source=outcome.source.value,
        reason=outcome.reason,
    )


@router.post("/plans/stats")
async def refresh_stats(
    req: StatsRequest, service: PlanService = Depends(get_plan_service)
) -> PlanResponse:
    result = await service.refresh_stats(req.user_id, req.checkins)
    if not isinstance(result, Ok):
        return _failure(result)
    return PlanResponse(success=True, plans=[p.to_wire() for p in result.value])
