"""
Expand training templates into dated sessions.

Recurring generation walks the owner's calendar day by day over a rolling window and creates one
TrainingSession per scheduled weekday, keyed by (template_id, scheduled_date). Dates that already
have a session are found with one batched query up front; a unique-key conflict from a concurrent
run is treated the same way. One-off copies leave both key columns NULL and never block generation.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from app.config import settings
from app.core.errors import (
    MaterializationError,
    NoActiveScheduleError,
    NotFoundError,
    ValidationError,
)
from app.models.training_session import SessionExercise, SessionSet, TrainingSession
from app.models.training_template import TemplateExercise, TemplateSchedule, TrainingTemplate
from app.models.user import User
from app.services.audit import log_action
from app.services.calendar import (
    add_elapsed_minutes,
    iter_schedule_dates,
    local_datetime,
    local_today,
    parse_hhmm,
    resolve_timezone,
)
from app.services.metrics import SESSIONS_GENERATED

logger = logging.getLogger(__name__)

DEFAULT_DURATION_MINUTES = 60


@dataclass(frozen=True)
class _SetCopy:
    reps: int
    weight: float | None
    rpe: float | None


@dataclass(frozen=True)
class _ExerciseCopy:
    name: str
    notes: str | None
    sets: tuple[_SetCopy, ...]


@dataclass(frozen=True)
class _Blueprint:
    """Detached snapshot of a template, so copies survive rollbacks between inserts."""

    template_id: int
    owner_id: int
    name: str
    type: str | None
    duration_minutes: int
    intensity: str | None
    focus: str | None
    notes: str | None
    exercises: tuple[_ExerciseCopy, ...]


def _snapshot(template: TrainingTemplate) -> _Blueprint:
    return _Blueprint(
        template_id=template.id,
        owner_id=template.owner_id,
        name=template.name,
        type=template.type,
        duration_minutes=template.duration_minutes or DEFAULT_DURATION_MINUTES,
        intensity=template.intensity,
        focus=template.focus,
        notes=template.notes,
        exercises=tuple(
            _ExerciseCopy(
                name=e.name,
                notes=e.notes,
                sets=tuple(_SetCopy(reps=s.reps, weight=s.weight, rpe=s.rpe) for s in e.sets),
            )
            for e in template.exercises
        ),
    )


def build_session(
    blueprint: _Blueprint,
    start_at: datetime,
    scheduled_date: date | None = None,
    recurring: bool = True,
) -> TrainingSession:
    """New TrainingSession with exercises and sets copied by value; every set starts not completed."""
    training_session = TrainingSession(
        owner_id=blueprint.owner_id,
        title=blueprint.name,
        type=blueprint.type,
        start_at=start_at,
        end_at=add_elapsed_minutes(start_at, blueprint.duration_minutes),
        intensity=blueprint.intensity,
        focus=blueprint.focus,
        notes=blueprint.notes,
        completed=False,
        template_id=blueprint.template_id if recurring else None,
        scheduled_date=scheduled_date if recurring else None,
    )
    for i, exercise in enumerate(blueprint.exercises):
        copied = SessionExercise(name=exercise.name, notes=exercise.notes, sort_order=i)
        for j, s in enumerate(exercise.sets):
            copied.sets.append(SessionSet(reps=s.reps, weight=s.weight, rpe=s.rpe, completed=False, sort_order=j))
        training_session.exercises.append(copied)
    return training_session


async def _load_template(session: AsyncSession, template_id: int, actor_id: int) -> TrainingTemplate:
    r = await session.execute(
        select(TrainingTemplate)
        .where(TrainingTemplate.id == template_id, TrainingTemplate.owner_id == actor_id)
        .options(
            selectinload(TrainingTemplate.exercises).selectinload(TemplateExercise.sets),
            selectinload(TrainingTemplate.schedule),
        )
    )
    template = r.scalar_one_or_none()
    if template is None:
        raise NotFoundError("Template not found")
    return template


async def _owner_timezone(session: AsyncSession, owner_id: int):
    r = await session.execute(select(User.timezone).where(User.id == owner_id))
    return resolve_timezone(r.scalar_one_or_none())


async def _existing_dates(session: AsyncSession, template_id: int, candidates: list[date]) -> set[date]:
    if not candidates:
        return set()
    r = await session.execute(
        select(TrainingSession.scheduled_date).where(
            TrainingSession.template_id == template_id,
            TrainingSession.scheduled_date.in_(candidates),
        )
    )
    return {row[0] for row in r.all()}


async def _load_created(session: AsyncSession, ids: list[int]) -> list[TrainingSession]:
    if not ids:
        return []
    r = await session.execute(
        select(TrainingSession)
        .where(TrainingSession.id.in_(ids))
        .options(selectinload(TrainingSession.exercises).selectinload(SessionExercise.sets))
        .order_by(TrainingSession.start_at)
    )
    return list(r.scalars().all())


def candidate_dates(schedule: TemplateSchedule, today: date, weeks_ahead: int) -> list[date]:
    """Scheduled dates from today through today + weeks_ahead weeks, capped by the schedule's end_date."""
    return list(
        iter_schedule_dates(
            today,
            today + timedelta(days=weeks_ahead * 7),
            schedule.weekdays or [],
            end_date=schedule.end_date,
        )
    )


async def generate_from_template(
    session: AsyncSession,
    template_id: int,
    actor_id: int,
    weeks_ahead: int | None = None,
    today: date | None = None,
) -> list[TrainingSession]:
    """
    Create the sessions missing from template_id's schedule over the next weeks_ahead weeks.
    Returns only newly created sessions; an empty list means there was nothing left to create.
    """
    template = await _load_template(session, template_id, actor_id)
    weeks = settings.template_weeks_default if weeks_ahead is None else weeks_ahead
    if not 1 <= weeks <= settings.template_weeks_max:
        raise ValidationError(f"weeks must be between 1 and {settings.template_weeks_max}")
    schedule = template.schedule
    if schedule is None or not schedule.enabled or not schedule.weekdays:
        raise NoActiveScheduleError("Template has no active schedule")

    tz = await _owner_timezone(session, template.owner_id)
    today = today or local_today(tz)
    start_time: time = parse_hhmm(schedule.start_time, settings.default_session_start_time)

    candidates = candidate_dates(schedule, today, weeks)
    existing = await _existing_dates(session, template_id, candidates)
    new_dates = [d for d in candidates if d not in existing]
    if not new_dates:
        logger.info("Generate: template_id=%s has no missing dates in %s week(s)", template_id, weeks)
        return []

    blueprint = _snapshot(template)
    created_ids: list[int] = []
    for scheduled in new_dates:
        training_session = build_session(blueprint, local_datetime(scheduled, start_time, tz), scheduled)
        session.add(training_session)
        try:
            await session.commit()
        except IntegrityError:
            await session.rollback()
            logger.info(
                "Generate: template_id=%s date=%s created concurrently; skipping", template_id, scheduled
            )
            continue
        except SQLAlchemyError as e:
            await session.rollback()
            logger.exception(
                "Generate: template_id=%s failed at %s after %s sessions", template_id, scheduled, len(created_ids)
            )
            raise MaterializationError(
                f"Generation stopped at {scheduled.isoformat()}", created=len(created_ids)
            ) from e
        created_ids.append(training_session.id)

    await log_action(
        session,
        actor_id=actor_id,
        action="generate",
        resource="training_template",
        resource_id=template_id,
        details={"weeks": weeks, "created": len(created_ids)},
    )
    await session.commit()
    SESSIONS_GENERATED.inc(len(created_ids))
    logger.info("Generate: template_id=%s created %s sessions", template_id, len(created_ids))
    return await _load_created(session, created_ids)


async def create_session_from_template(
    session: AsyncSession,
    template_id: int,
    actor_id: int,
    on_date: date | None = None,
    start_time: str | None = None,
) -> TrainingSession:
    """One-off copy of a template onto on_date. The copy is not linked to the template's recurrence."""
    template = await _load_template(session, template_id, actor_id)
    tz = await _owner_timezone(session, template.owner_id)
    on_date = on_date or local_today(tz)
    fallback = template.schedule.start_time if template.schedule else settings.default_session_start_time
    try:
        t = parse_hhmm(start_time or fallback, settings.default_session_start_time)
    except ValueError as e:
        raise ValidationError(str(e)) from e

    training_session = build_session(_snapshot(template), local_datetime(on_date, t, tz), recurring=False)
    session.add(training_session)
    await session.flush()
    await log_action(
        session,
        actor_id=actor_id,
        action="copy",
        resource="training_template",
        resource_id=template_id,
        details={"session_id": training_session.id, "date": on_date.isoformat()},
    )
    await session.commit()
    created = await _load_created(session, [training_session.id])
    return created[0]


async def generate_all_due(session_maker: async_sessionmaker, weeks_ahead: int | None = None) -> int:
    """
    Top up every enabled schedule, each template in its own session and on behalf of its owner.
    A failing template is logged and skipped. Returns the number of sessions created.
    """
    async with session_maker() as session:
        r = await session.execute(
            select(TrainingTemplate.id, TrainingTemplate.owner_id)
            .join(TemplateSchedule, TemplateSchedule.template_id == TrainingTemplate.id)
            .where(TemplateSchedule.enabled.is_(True))
        )
        due = [(row[0], row[1]) for row in r.all()]

    total = 0
    for template_id, owner_id in due:
        async with session_maker() as session:
            try:
                created = await generate_from_template(session, template_id, owner_id, weeks_ahead)
                total += len(created)
            except NoActiveScheduleError:
                continue
            except MaterializationError as e:
                total += e.created
                logger.warning("Scheduled generation: template_id=%s partial (%s created): %s", template_id, e.created, e)
            except Exception as e:
                logger.exception("Scheduled generation: template_id=%s failed: %s", template_id, e)
    logger.info("Scheduled generation: %s templates checked, %s sessions created", len(due), total)
    return total
