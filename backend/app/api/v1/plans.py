"""Coach weekly plans: parse text, create draft from parsed plan, list, detail, delete, publish."""

import asyncio
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.api.deps import http_error, require_coach
from app.core.errors import EngineError
from app.db.session import get_db
from app.models.user import User
from app.models.weekly_plan import PlanDay, PlanExercise, PlanSession, PlanStatus, WeeklyPlan
from app.schemas.plan import (
    GroupRef,
    ParsedPlan,
    PlanCreate,
    PlanDayOut,
    PlanDetail,
    PlanExerciseOut,
    PlanParseRequest,
    PlanSessionOut,
    PlanSummary,
    PublishResponse,
)
from app.services.gemini_common import GeminiNotConfiguredError
from app.services.plan_builder import build_plan
from app.services.plan_parser import PlanParseError, parse_plan_text
from app.services.plan_publisher import publish_plan

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/coach/plans", tags=["plans"])


def _groups(groups) -> list[GroupRef]:
    return [GroupRef(id=g.id, name=g.name, slug=g.slug) for g in groups]


def _plan_detail(plan: WeeklyPlan) -> PlanDetail:
    return PlanDetail(
        id=plan.id,
        name=plan.name,
        week_start_date=plan.week_start_date,
        status=plan.status,
        source_text=plan.source_text,
        created_at=plan.created_at,
        published_at=plan.published_at,
        days=[
            PlanDayOut(
                id=d.id,
                day_of_week=d.day_of_week,
                is_off_day=d.is_off_day,
                notes=d.notes,
                sessions=[
                    PlanSessionOut(
                        id=s.id,
                        session_type=s.session_type,
                        title=s.title,
                        start_time=s.start_time,
                        end_time=s.end_time,
                        location=s.location,
                        is_optional=s.is_optional,
                        sort_order=s.sort_order,
                        for_specific_groups=s.for_specific_groups,
                        groups=_groups(s.target_groups),
                        exercises=[
                            PlanExerciseOut(
                                id=e.id,
                                name=e.name,
                                details=e.details,
                                sort_order=e.sort_order,
                                for_specific_groups=e.for_specific_groups,
                                groups=_groups(e.target_groups),
                            )
                            for e in s.exercises
                        ],
                    )
                    for s in d.sessions
                ],
            )
            for d in plan.days
        ],
    )


@router.post(
    "/parse",
    response_model=ParsedPlan,
    summary="Parse free-text plan into structured days and sessions",
    responses={
        422: {"description": "Text could not be parsed or is too long"},
        502: {"description": "Parser call failed"},
        503: {"description": "Parser not configured"},
        504: {"description": "Parser timed out"},
    },
)
async def parse_plan(
    coach: Annotated[User, Depends(require_coach)],
    body: PlanParseRequest,
) -> ParsedPlan:
    try:
        return await parse_plan_text(body.text)
    except GeminiNotConfiguredError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    except PlanParseError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    except asyncio.TimeoutError as e:
        logger.warning("Plan parse timed out for coach_id=%s", coach.id)
        raise HTTPException(status_code=504, detail="Plan parser timed out. Please try again.") from e
    except Exception as e:
        logger.exception("Plan parse failed for coach_id=%s", coach.id)
        raise HTTPException(status_code=502, detail="Plan parser failed. Please try again.") from e


@router.get("", response_model=list[PlanSummary], summary="List weekly plans")
async def list_plans(
    session: Annotated[AsyncSession, Depends(get_db)],
    coach: Annotated[User, Depends(require_coach)],
    status: PlanStatus | None = None,
    limit: int = Query(default=50, ge=1, le=200),
) -> list[PlanSummary]:
    training_days = (
        select(func.count(PlanDay.id))
        .where(PlanDay.weekly_plan_id == WeeklyPlan.id, PlanDay.is_off_day.is_(False))
        .correlate(WeeklyPlan)
        .scalar_subquery()
    )
    total_sessions = (
        select(func.count(PlanSession.id))
        .join(PlanDay, PlanDay.id == PlanSession.plan_day_id)
        .where(PlanDay.weekly_plan_id == WeeklyPlan.id)
        .correlate(WeeklyPlan)
        .scalar_subquery()
    )
    q = select(WeeklyPlan, training_days, total_sessions).where(WeeklyPlan.coach_id == coach.id)
    if status is not None:
        q = q.where(WeeklyPlan.status == status.value)
    r = await session.execute(q.order_by(WeeklyPlan.week_start_date.desc()).limit(limit))
    return [
        PlanSummary(
            id=p.id,
            name=p.name,
            week_start_date=p.week_start_date,
            status=p.status,
            created_at=p.created_at,
            published_at=p.published_at,
            training_days=days or 0,
            total_sessions=sessions or 0,
        )
        for p, days, sessions in r.all()
    ]


@router.post(
    "",
    response_model=dict,
    status_code=201,
    summary="Create draft plan from parsed data",
    responses={400: {"description": "weekStartDate and parsedPlan are required"}},
)
async def create_plan(
    session: Annotated[AsyncSession, Depends(get_db)],
    coach: Annotated[User, Depends(require_coach)],
    body: PlanCreate,
) -> dict:
    try:
        plan_id = await build_plan(
            session,
            owner_id=coach.id,
            week_start_date=body.week_start_date,
            parsed_plan=body.parsed_plan,
            name=body.name,
            source_text=body.source_text,
        )
    except EngineError as e:
        raise http_error(e) from e
    return {"plan_id": plan_id, "message": "Plan created successfully"}


async def _load_plan_tree(session: AsyncSession, coach_id: int, plan_id: int) -> WeeklyPlan:
    r = await session.execute(
        select(WeeklyPlan)
        .where(WeeklyPlan.id == plan_id, WeeklyPlan.coach_id == coach_id)
        .options(
            selectinload(WeeklyPlan.days)
            .selectinload(PlanDay.sessions)
            .selectinload(PlanSession.target_groups),
            selectinload(WeeklyPlan.days)
            .selectinload(PlanDay.sessions)
            .selectinload(PlanSession.exercises)
            .selectinload(PlanExercise.target_groups),
        )
    )
    plan = r.scalar_one_or_none()
    if not plan:
        raise HTTPException(status_code=404, detail="Plan not found")
    return plan


@router.get("/{plan_id}", response_model=PlanDetail, summary="Get plan with days, sessions and exercises")
async def get_plan(
    session: Annotated[AsyncSession, Depends(get_db)],
    coach: Annotated[User, Depends(require_coach)],
    plan_id: int,
) -> PlanDetail:
    return _plan_detail(await _load_plan_tree(session, coach.id, plan_id))


@router.delete("/{plan_id}", status_code=204, summary="Delete plan")
async def delete_plan(
    session: Annotated[AsyncSession, Depends(get_db)],
    coach: Annotated[User, Depends(require_coach)],
    plan_id: int,
) -> None:
    plan = await _load_plan_tree(session, coach.id, plan_id)
    await session.delete(plan)
    await session.flush()


@router.post(
    "/{plan_id}/publish",
    response_model=PublishResponse,
    summary="Publish plan to athletes",
    responses={
        404: {"description": "Plan not found"},
        409: {"description": "Plan is already published"},
        500: {"description": "Publishing stopped part way; safe to retry"},
    },
)
async def publish(
    session: Annotated[AsyncSession, Depends(get_db)],
    coach: Annotated[User, Depends(require_coach)],
    plan_id: int,
) -> PublishResponse:
    try:
        result = await publish_plan(session, plan_id, actor_id=coach.id)
    except EngineError as e:
        raise http_error(e) from e
    message = f"Plan published successfully. {result.assignments_created} workout assignments created."
    if result.unreachable_session_ids:
        message += f" {len(result.unreachable_session_ids)} session(s) matched no group and were not assigned."
    return PublishResponse(
        assignments_created=result.assignments_created,
        sessions_processed=result.sessions_processed,
        unreachable_session_ids=result.unreachable_session_ids,
        message=message,
    )
