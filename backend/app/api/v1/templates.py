"""Training templates: CRUD, weekly schedule, recurring generation, one-off copies; generated session listing."""

import logging
from datetime import date, datetime, time, timedelta
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.api.deps import get_current_user, http_error
from app.core.errors import EngineError
from app.db.session import get_db
from app.models.training_session import SessionExercise, TrainingSession
from app.models.training_template import (
    TemplateExercise,
    TemplateSchedule,
    TemplateSet,
    TrainingTemplate,
)
from app.models.user import User
from app.schemas.template import (
    CreateSessionRequest,
    ExerciseOut,
    GenerateRequest,
    GenerateResponse,
    ScheduleIn,
    ScheduleOut,
    SessionExerciseOut,
    SessionOut,
    SessionSetOut,
    SetOut,
    TemplateCreate,
    TemplateOut,
)
from app.services.calendar import resolve_timezone
from app.services.template_scheduler import create_session_from_template, generate_from_template

logger = logging.getLogger(__name__)
router = APIRouter(tags=["templates"])


def _template_out(t: TrainingTemplate) -> TemplateOut:
    return TemplateOut(
        id=t.id,
        name=t.name,
        type=t.type,
        duration_minutes=t.duration_minutes,
        intensity=t.intensity,
        focus=t.focus,
        notes=t.notes,
        created_at=t.created_at,
        exercises=[
            ExerciseOut(
                id=e.id,
                name=e.name,
                notes=e.notes,
                sort_order=e.sort_order,
                sets=[SetOut(id=s.id, reps=s.reps, weight=s.weight, rpe=s.rpe, sort_order=s.sort_order) for s in e.sets],
            )
            for e in t.exercises
        ],
        schedule=(
            ScheduleOut(
                enabled=t.schedule.enabled,
                weekdays=list(t.schedule.weekdays or []),
                start_time=t.schedule.start_time,
                end_date=t.schedule.end_date,
            )
            if t.schedule
            else None
        ),
    )


def session_out(s: TrainingSession) -> SessionOut:
    return SessionOut(
        id=s.id,
        title=s.title,
        type=s.type,
        start_at=s.start_at,
        end_at=s.end_at,
        intensity=s.intensity,
        focus=s.focus,
        notes=s.notes,
        completed=s.completed,
        template_id=s.template_id,
        scheduled_date=s.scheduled_date,
        exercises=[
            SessionExerciseOut(
                id=e.id,
                name=e.name,
                notes=e.notes,
                sort_order=e.sort_order,
                sets=[
                    SessionSetOut(
                        id=st.id,
                        reps=st.reps,
                        weight=st.weight,
                        rpe=st.rpe,
                        sort_order=st.sort_order,
                        completed=st.completed,
                    )
                    for st in e.sets
                ],
            )
            for e in s.exercises
        ],
    )


async def _load_template(session: AsyncSession, owner_id: int, template_id: int) -> TrainingTemplate:
    r = await session.execute(
        select(TrainingTemplate)
        .where(TrainingTemplate.id == template_id, TrainingTemplate.owner_id == owner_id)
        .options(
            selectinload(TrainingTemplate.exercises).selectinload(TemplateExercise.sets),
            selectinload(TrainingTemplate.schedule),
        )
        .execution_options(populate_existing=True)
    )
    template = r.scalar_one_or_none()
    if not template:
        raise HTTPException(status_code=404, detail="Template not found")
    return template


def _apply_schedule(template: TrainingTemplate, body: ScheduleIn) -> None:
    if template.schedule is None:
        template.schedule = TemplateSchedule(
            enabled=body.enabled, weekdays=body.weekdays, start_time=body.start_time, end_date=body.end_date
        )
        return
    template.schedule.enabled = body.enabled
    template.schedule.weekdays = body.weekdays
    template.schedule.start_time = body.start_time
    template.schedule.end_date = body.end_date


@router.get("/templates", response_model=list[TemplateOut], summary="List templates")
async def list_templates(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
) -> list[TemplateOut]:
    r = await session.execute(
        select(TrainingTemplate)
        .where(TrainingTemplate.owner_id == user.id)
        .options(
            selectinload(TrainingTemplate.exercises).selectinload(TemplateExercise.sets),
            selectinload(TrainingTemplate.schedule),
        )
        .order_by(TrainingTemplate.created_at.desc(), TrainingTemplate.id.desc())
    )
    return [_template_out(t) for t in r.scalars().all()]


@router.post("/templates", response_model=TemplateOut, status_code=201, summary="Create template")
async def create_template(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    body: TemplateCreate,
) -> TemplateOut:
    template = TrainingTemplate(
        owner_id=user.id,
        name=body.name,
        type=body.type,
        duration_minutes=body.duration_minutes,
        intensity=body.intensity,
        focus=body.focus,
        notes=body.notes,
    )
    for i, exercise in enumerate(body.exercises):
        template.exercises.append(
            TemplateExercise(
                name=exercise.name,
                notes=exercise.notes,
                sort_order=i,
                sets=[TemplateSet(reps=s.reps, weight=s.weight, rpe=s.rpe, sort_order=j) for j, s in enumerate(exercise.sets)],
            )
        )
    if body.schedule is not None:
        _apply_schedule(template, body.schedule)
    session.add(template)
    await session.flush()
    return _template_out(await _load_template(session, user.id, template.id))


@router.get("/templates/{template_id}", response_model=TemplateOut, summary="Get template")
async def get_template(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    template_id: int,
) -> TemplateOut:
    return _template_out(await _load_template(session, user.id, template_id))


@router.delete("/templates/{template_id}", status_code=204, summary="Delete template")
async def delete_template(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    template_id: int,
) -> None:
    """Generated sessions stay; they lose their template link."""
    template = await _load_template(session, user.id, template_id)
    await session.delete(template)
    await session.flush()


@router.put("/templates/{template_id}/schedule", response_model=TemplateOut, summary="Set weekly schedule")
async def put_schedule(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    template_id: int,
    body: ScheduleIn,
) -> TemplateOut:
    template = await _load_template(session, user.id, template_id)
    _apply_schedule(template, body)
    await session.flush()
    return _template_out(template)


@router.post(
    "/templates/{template_id}/generate",
    response_model=GenerateResponse,
    summary="Generate scheduled sessions for the coming weeks",
    responses={
        400: {"description": "weeks out of range"},
        404: {"description": "Template not found"},
        409: {"description": "Template has no active schedule"},
    },
)
async def generate_sessions(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    template_id: int,
    response: Response,
    body: GenerateRequest | None = None,
) -> GenerateResponse:
    """201 with the new sessions when any were created; 200 with an empty list when all already exist."""
    weeks = body.weeks if body else None
    try:
        created = await generate_from_template(session, template_id, actor_id=user.id, weeks_ahead=weeks)
    except EngineError as e:
        raise http_error(e) from e
    if not created:
        return GenerateResponse(message="All sessions already exist", created=[])
    response.status_code = 201
    return GenerateResponse(message=f"Created {len(created)} sessions", created=[session_out(s) for s in created])


@router.post(
    "/templates/{template_id}/create-session",
    response_model=SessionOut,
    status_code=201,
    summary="Copy template into a one-off session",
)
async def create_session(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    template_id: int,
    body: CreateSessionRequest | None = None,
) -> SessionOut:
    body = body or CreateSessionRequest()
    try:
        created = await create_session_from_template(
            session, template_id, actor_id=user.id, on_date=body.on_date, start_time=body.start_time
        )
    except EngineError as e:
        raise http_error(e) from e
    return session_out(created)


@router.get("/sessions", response_model=list[SessionOut], summary="List sessions in a date range")
async def list_sessions(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    from_date: date | None = None,
    to_date: date | None = None,
) -> list[SessionOut]:
    """Sessions whose start falls within [from_date, to_date] in the user's timezone (default: next 14 days)."""
    tz = resolve_timezone(user.timezone)
    from_date = from_date or datetime.now(tz).date()
    to_date = to_date or (from_date + timedelta(days=14))
    from_dt = datetime.combine(from_date, time.min, tzinfo=tz)
    to_dt = datetime.combine(to_date + timedelta(days=1), time.min, tzinfo=tz)
    r = await session.execute(
        select(TrainingSession)
        .where(
            TrainingSession.owner_id == user.id,
            TrainingSession.start_at >= from_dt,
            TrainingSession.start_at < to_dt,
        )
        .options(selectinload(TrainingSession.exercises).selectinload(SessionExercise.sets))
        .order_by(TrainingSession.start_at)
    )
    return [session_out(s) for s in r.scalars().all()]
