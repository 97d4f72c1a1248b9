"""
Publish a draft weekly plan: project every session onto a calendar date, resolve who receives it,
and materialize one AssignedWorkout per (athlete, session).

Each assignment is an independent INSERT ... ON CONFLICT DO NOTHING committed on its own, so a
publish interrupted half way (or run twice concurrently) can simply be re-run: rows already created
are skipped, never duplicated or overwritten.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.errors import AlreadyPublishedError, MaterializationError, NotFoundError
from app.db.upsert import insert_or_skip
from app.models.assigned_workout import AssignedWorkout
from app.models.weekly_plan import PlanDay, PlanSession, PlanStatus, WeeklyPlan
from app.services.audit import log_action
from app.services.calendar import project_date
from app.services.group_directory import list_linked_athletes, list_members
from app.services.metrics import ASSIGNMENTS_CREATED, UNREACHABLE_SESSIONS

logger = logging.getLogger(__name__)


@dataclass
class PublishResult:
    assignments_created: int = 0
    sessions_processed: int = 0
    # Sessions authored for specific groups where none of the groups resolved: nobody received them.
    unreachable_session_ids: list[int] = field(default_factory=list)


@dataclass(frozen=True)
class _SessionTarget:
    session_id: int
    day_of_week: int
    for_specific_groups: bool
    group_ids: tuple[int, ...]


async def _load_plan(session: AsyncSession, plan_id: int, actor_id: int) -> WeeklyPlan:
    r = await session.execute(
        select(WeeklyPlan).where(WeeklyPlan.id == plan_id, WeeklyPlan.coach_id == actor_id)
    )
    plan = r.scalar_one_or_none()
    if plan is None:
        raise NotFoundError("Plan not found")
    return plan


async def _load_targets(session: AsyncSession, plan_id: int) -> list[_SessionTarget]:
    r = await session.execute(
        select(PlanSession)
        .join(PlanDay, PlanDay.id == PlanSession.plan_day_id)
        .where(PlanDay.weekly_plan_id == plan_id)
        .options(selectinload(PlanSession.target_groups), selectinload(PlanSession.day))
        .order_by(PlanDay.day_of_week, PlanSession.sort_order, PlanSession.id)
    )
    return [
        _SessionTarget(
            session_id=s.id,
            day_of_week=s.day.day_of_week,
            for_specific_groups=s.for_specific_groups,
            group_ids=tuple(g.id for g in s.target_groups),
        )
        for s in r.scalars().all()
    ]


async def resolve_audience(session: AsyncSession, coach_id: int, target: _SessionTarget) -> set[int]:
    """
    Athletes who receive a session:
    named groups that resolved -> their members; never group-scoped -> the coach's whole roster;
    group-scoped but nothing resolved -> nobody (no fallback to everyone).
    """
    if target.group_ids:
        return await list_members(session, target.group_ids)
    if not target.for_specific_groups:
        return await list_linked_athletes(session, coach_id)
    return set()


async def publish_plan(
    session: AsyncSession,
    plan_id: int,
    actor_id: int,
    now: datetime | None = None,
) -> PublishResult:
    """Publish plan_id on behalf of actor_id. Raises NotFoundError, AlreadyPublishedError, MaterializationError."""
    plan = await _load_plan(session, plan_id, actor_id)
    if plan.status != PlanStatus.DRAFT.value:
        raise AlreadyPublishedError("Plan is already published")

    week_start: date = plan.week_start_date
    targets = await _load_targets(session, plan_id)
    result = PublishResult()

    for target in targets:
        workout_date = project_date(week_start, target.day_of_week)
        try:
            athletes = await resolve_audience(session, actor_id, target)
            if not athletes and target.for_specific_groups and not target.group_ids:
                result.unreachable_session_ids.append(target.session_id)
                UNREACHABLE_SESSIONS.inc()
                logger.warning(
                    "Publish: plan_id=%s session_id=%s targets groups that matched nothing; no assignments",
                    plan_id,
                    target.session_id,
                )
            for athlete_id in sorted(athletes):
                new_id = await insert_or_skip(
                    session,
                    AssignedWorkout,
                    {
                        "athlete_id": athlete_id,
                        "plan_session_id": target.session_id,
                        "workout_date": workout_date,
                    },
                    conflict_columns=["athlete_id", "plan_session_id"],
                )
                await session.commit()
                if new_id is not None:
                    result.assignments_created += 1
        except SQLAlchemyError as e:
            await session.rollback()
            logger.exception(
                "Publish: plan_id=%s failed at session_id=%s after %s assignments",
                plan_id,
                target.session_id,
                result.assignments_created,
            )
            raise MaterializationError(
                f"Publishing stopped at session {target.session_id}", created=result.assignments_created
            ) from e
        result.sessions_processed += 1

    plan.status = PlanStatus.PUBLISHED.value
    plan.published_at = now or datetime.now(timezone.utc)
    await log_action(
        session,
        actor_id=actor_id,
        action="publish",
        resource="weekly_plan",
        resource_id=plan_id,
        details={
            "assignments_created": result.assignments_created,
            "unreachable_session_ids": result.unreachable_session_ids,
        },
    )
    await session.commit()
    ASSIGNMENTS_CREATED.inc(result.assignments_created)
    logger.info(
        "Publish: plan_id=%s published, %s assignments created over %s sessions",
        plan_id,
        result.assignments_created,
        result.sessions_processed,
    )
    return result
