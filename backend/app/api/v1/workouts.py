"""Athlete workouts: assignments created by plan publishing; list by day or week, mark complete with notes and RPE."""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.api.deps import get_current_user
from app.db.session import get_db
from app.models.assigned_workout import AssignedWorkout
from app.models.athlete_group import GroupMembership
from app.models.user import User
from app.models.weekly_plan import PlanDay, PlanExercise, PlanSession
from app.schemas.assigned_workout import AssignedExerciseOut, AssignedWorkoutOut, AssignedWorkoutUpdate
from app.services.audit import log_action
from app.services.calendar import local_today, resolve_timezone, weekday_of

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/workouts", tags=["workouts"])


def week_bounds(today: date, which: str) -> tuple[date, date]:
    """Sunday..Saturday of the current or next week containing today."""
    sunday = today - timedelta(days=weekday_of(today))
    if which == "next":
        sunday += timedelta(days=7)
    return sunday, sunday + timedelta(days=6)


def visible_exercises(exercises: list[PlanExercise], athlete_groups: set[int]) -> list[PlanExercise]:
    """Exercises for everyone, plus the group-scoped ones that name one of the athlete's groups."""
    return [
        e
        for e in exercises
        if not e.for_specific_groups or any(g.id in athlete_groups for g in e.target_groups)
    ]


def _workout_out(w: AssignedWorkout, athlete_groups: set[int]) -> AssignedWorkoutOut:
    s = w.plan_session
    return AssignedWorkoutOut(
        id=w.id,
        workout_date=w.workout_date,
        completed=w.completed,
        completed_at=w.completed_at,
        athlete_notes=w.athlete_notes,
        perceived_effort=w.perceived_effort,
        session_id=s.id,
        session_type=s.session_type,
        session_title=s.title,
        start_time=s.start_time,
        end_time=s.end_time,
        location=s.location,
        is_optional=s.is_optional,
        plan_name=s.day.plan.name,
        exercises=[
            AssignedExerciseOut(id=e.id, name=e.name, details=e.details, sort_order=e.sort_order)
            for e in visible_exercises(s.exercises, athlete_groups)
        ],
    )


async def _athlete_group_ids(session: AsyncSession, athlete_id: int) -> set[int]:
    r = await session.execute(select(GroupMembership.group_id).where(GroupMembership.athlete_id == athlete_id))
    return {row[0] for row in r.all()}


def _with_tree(q):
    return q.options(
        selectinload(AssignedWorkout.plan_session).selectinload(PlanSession.day).selectinload(PlanDay.plan),
        selectinload(AssignedWorkout.plan_session)
        .selectinload(PlanSession.exercises)
        .selectinload(PlanExercise.target_groups),
    )


@router.get("", response_model=list[AssignedWorkoutOut], summary="List my assigned workouts")
async def list_workouts(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    on_date: date | None = None,
    week: Literal["current", "next"] | None = None,
    from_date: date | None = None,
    to_date: date | None = None,
) -> list[AssignedWorkoutOut]:
    """
    Filter by a single day (on_date), a Sunday-based week relative to today (week=current|next),
    or an explicit range. With no filter, returns everything from today onwards.
    """
    q = select(AssignedWorkout).where(AssignedWorkout.athlete_id == user.id)
    if on_date is not None:
        q = q.where(AssignedWorkout.workout_date == on_date)
    elif week is not None:
        start, end = week_bounds(local_today(resolve_timezone(user.timezone)), week)
        q = q.where(AssignedWorkout.workout_date >= start, AssignedWorkout.workout_date <= end)
    else:
        if from_date is None and to_date is None:
            from_date = local_today(resolve_timezone(user.timezone))
        if from_date is not None:
            q = q.where(AssignedWorkout.workout_date >= from_date)
        if to_date is not None:
            q = q.where(AssignedWorkout.workout_date <= to_date)
    r = await session.execute(_with_tree(q).order_by(AssignedWorkout.workout_date, AssignedWorkout.id))
    workouts = r.scalars().all()
    groups = await _athlete_group_ids(session, user.id)
    return [_workout_out(w, groups) for w in workouts]


@router.patch(
    "/{workout_id}",
    response_model=AssignedWorkoutOut,
    summary="Update completion, notes or perceived effort",
    responses={404: {"description": "Workout not found"}},
)
async def update_workout(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    workout_id: int,
    body: AssignedWorkoutUpdate,
) -> AssignedWorkoutOut:
    r = await session.execute(
        _with_tree(
            select(AssignedWorkout).where(AssignedWorkout.id == workout_id, AssignedWorkout.athlete_id == user.id)
        )
    )
    workout = r.scalar_one_or_none()
    if not workout:
        raise HTTPException(status_code=404, detail="Workout not found")
    data = body.model_dump(exclude_unset=True)
    if "completed" in data and data["completed"] is not None:
        workout.completed = data["completed"]
        workout.completed_at = datetime.now(timezone.utc) if data["completed"] else None
    if "notes" in data:
        workout.athlete_notes = data["notes"]
    if "perceived_effort" in data:
        workout.perceived_effort = data["perceived_effort"]
    await session.flush()
    await log_action(
        session,
        actor_id=user.id,
        action="update",
        resource="assigned_workout",
        resource_id=workout.id,
        details={k: v for k, v in data.items() if k != "notes"},
    )
    return _workout_out(workout, await _athlete_group_ids(session, user.id))
