"""Tests for recurring template generation, one-off copies and the templates API."""

from datetime import date, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select, update

from app.core.errors import NoActiveScheduleError, NotFoundError, ValidationError
from app.db.session import async_session_maker
from app.models.training_session import SessionSet, TrainingSession
from app.models.training_template import TemplateExercise, TemplateSchedule, TemplateSet, TrainingTemplate
from app.models.user import User
from app.services.template_scheduler import (
    create_session_from_template,
    generate_all_due,
    generate_from_template,
)

# Tuesday
TODAY = date(2024, 6, 4)


async def _template(
    owner_id: int,
    weekdays=(1, 3, 5),
    enabled=True,
    end_date=None,
    schedule=True,
    start_time="06:30",
    duration_minutes=75,
) -> int:
    async with async_session_maker() as session:
        template = TrainingTemplate(
            owner_id=owner_id, name="Lower body", type="lift", duration_minutes=duration_minutes
        )
        template.exercises.append(
            TemplateExercise(
                name="Back squat",
                sort_order=0,
                sets=[TemplateSet(reps=5, weight=100.0, sort_order=0), TemplateSet(reps=5, weight=105.0, sort_order=1)],
            )
        )
        if schedule:
            template.schedule = TemplateSchedule(
                enabled=enabled, weekdays=list(weekdays), start_time=start_time, end_date=end_date
            )
        session.add(template)
        await session.commit()
        return template.id


async def _count_sessions(**filters) -> int:
    async with async_session_maker() as session:
        q = select(func.count(TrainingSession.id))
        for column, value in filters.items():
            attr = getattr(TrainingSession, column)
            q = q.where(attr.is_(None) if value is None else attr == value)
        r = await session.execute(q)
        return r.scalar_one()


@pytest.mark.asyncio
async def test_generate_walks_inclusive_window(coach):
    template_id = await _template(coach.id)
    async with async_session_maker() as session:
        created = await generate_from_template(session, template_id, coach.id, weeks_ahead=2, today=TODAY)

    dates = [s.scheduled_date for s in created]
    for expected in (date(2024, 6, 5), date(2024, 6, 7), date(2024, 6, 10), date(2024, 6, 12), date(2024, 6, 14)):
        assert expected in dates
    # window is today .. today + 14 days inclusive, so Monday the 17th is in it as well
    assert dates == sorted(dates)
    assert len(dates) == 6
    assert dates[-1] == date(2024, 6, 17)

    first = created[0]
    assert first.template_id == template_id
    assert first.title == "Lower body"
    assert first.end_at - first.start_at == timedelta(minutes=75)
    assert (first.start_at.hour, first.start_at.minute) == (6, 30)
    assert [st.reps for st in first.exercises[0].sets] == [5, 5]
    assert all(st.completed is False for st in first.exercises[0].sets)


@pytest.mark.asyncio
async def test_generate_is_idempotent(coach):
    template_id = await _template(coach.id)
    async with async_session_maker() as session:
        first = await generate_from_template(session, template_id, coach.id, weeks_ahead=2, today=TODAY)
    async with async_session_maker() as session:
        second = await generate_from_template(session, template_id, coach.id, weeks_ahead=2, today=TODAY)
    async with async_session_maker() as session:
        third = await generate_from_template(session, template_id, coach.id, weeks_ahead=3, today=TODAY)
    assert len(first) == 6
    assert second == []
    assert [s.scheduled_date for s in third] == [date(2024, 6, 19), date(2024, 6, 21), date(2024, 6, 24)]
    assert await _count_sessions(template_id=template_id) == 9


@pytest.mark.asyncio
async def test_generate_skips_dates_inserted_by_a_concurrent_run(coach):
    template_id = await _template(coach.id)
    async with async_session_maker() as session:
        first = await generate_from_template(session, template_id, coach.id, weeks_ahead=2, today=TODAY)
    assert len(first) == 6

    # the up-front lookup misses rows a parallel run has just committed; the unique key catches them
    with patch("app.services.template_scheduler._existing_dates", AsyncMock(return_value=set())):
        async with async_session_maker() as session:
            created = await generate_from_template(session, template_id, coach.id, weeks_ahead=3, today=TODAY)

    assert [s.scheduled_date for s in created] == [date(2024, 6, 19), date(2024, 6, 21), date(2024, 6, 24)]
    assert await _count_sessions(template_id=template_id) == 9


@pytest.mark.asyncio
async def test_generate_end_time_is_elapsed_across_dst_change(coach):
    async with async_session_maker() as session:
        await session.execute(update(User).where(User.id == coach.id).values(timezone="America/New_York"))
        await session.commit()
    # Sunday 2024-11-03: New York clocks fall back from 02:00 EDT to 01:00 EST
    template_id = await _template(coach.id, weekdays=(0,), start_time="01:30", duration_minutes=60)
    async with async_session_maker() as session:
        created = await generate_from_template(
            session, template_id, coach.id, weeks_ahead=1, today=date(2024, 11, 3)
        )

    fall_back = created[0]
    assert fall_back.scheduled_date == date(2024, 11, 3)
    elapsed = fall_back.end_at.astimezone(timezone.utc) - fall_back.start_at.astimezone(timezone.utc)
    assert elapsed == timedelta(minutes=60)


@pytest.mark.asyncio
async def test_generate_respects_end_date(coach):
    past = await _template(coach.id, end_date=date(2024, 6, 1))
    capped = await _template(coach.id, end_date=date(2024, 6, 10))
    async with async_session_maker() as session:
        assert await generate_from_template(session, past, coach.id, weeks_ahead=2, today=TODAY) == []
    async with async_session_maker() as session:
        created = await generate_from_template(session, capped, coach.id, weeks_ahead=2, today=TODAY)
    assert [s.scheduled_date for s in created] == [date(2024, 6, 5), date(2024, 6, 7), date(2024, 6, 10)]


@pytest.mark.asyncio
async def test_generate_requires_active_schedule(coach):
    no_schedule = await _template(coach.id, schedule=False)
    disabled = await _template(coach.id, enabled=False)
    no_days = await _template(coach.id, weekdays=())
    for template_id in (no_schedule, disabled, no_days):
        async with async_session_maker() as session:
            with pytest.raises(NoActiveScheduleError):
                await generate_from_template(session, template_id, coach.id, today=TODAY)
    assert await _count_sessions() == 0


@pytest.mark.asyncio
async def test_generate_validates_weeks_and_owner(coach):
    template_id = await _template(coach.id)
    for weeks in (0, 13):
        async with async_session_maker() as session:
            with pytest.raises(ValidationError):
                await generate_from_template(session, template_id, coach.id, weeks_ahead=weeks, today=TODAY)
    async with async_session_maker() as session:
        with pytest.raises(NotFoundError):
            await generate_from_template(session, template_id, coach.id + 1000, today=TODAY)
    async with async_session_maker() as session:
        with pytest.raises(NotFoundError):
            await generate_from_template(session, 999999, coach.id, today=TODAY)


@pytest.mark.asyncio
async def test_one_off_copy_does_not_block_generation(coach):
    template_id = await _template(coach.id)
    async with async_session_maker() as session:
        copy = await create_session_from_template(session, template_id, coach.id, on_date=date(2024, 6, 5))
    assert copy.template_id is None
    assert copy.scheduled_date is None
    assert (copy.start_at.hour, copy.start_at.minute) == (6, 30)

    async with async_session_maker() as session:
        created = await generate_from_template(session, template_id, coach.id, weeks_ahead=1, today=TODAY)
    assert date(2024, 6, 5) in [s.scheduled_date for s in created]
    assert await _count_sessions(template_id=None) == 1


@pytest.mark.asyncio
async def test_copies_are_independent_of_template(coach):
    template_id = await _template(coach.id)
    async with async_session_maker() as session:
        copy = await create_session_from_template(session, template_id, coach.id, on_date=TODAY, start_time="18:00")
    async with async_session_maker() as session:
        s = await session.get(SessionSet, copy.exercises[0].sets[0].id)
        s.completed = True
        s.reps = 3
        await session.commit()
    async with async_session_maker() as session:
        r = await session.execute(select(TemplateSet.reps).order_by(TemplateSet.sort_order))
        assert [row[0] for row in r.all()] == [5, 5]
    assert (copy.start_at.hour, copy.start_at.minute) == (18, 0)


@pytest.mark.asyncio
async def test_create_session_rejects_bad_time(coach):
    template_id = await _template(coach.id)
    async with async_session_maker() as session:
        with pytest.raises(ValidationError):
            await create_session_from_template(session, template_id, coach.id, on_date=TODAY, start_time="7pm")


@pytest.mark.asyncio
async def test_generate_all_due_skips_disabled(coach):
    await _template(coach.id, weekdays=(0, 1, 2, 3, 4, 5, 6))
    await _template(coach.id, enabled=False)
    await _template(coach.id, schedule=False)
    total = await generate_all_due(async_session_maker, weeks_ahead=1)
    assert total == 8
    assert await generate_all_due(async_session_maker, weeks_ahead=1) == 0


@pytest.mark.asyncio
async def test_template_api_flow(client: AsyncClient, coach, headers_for):
    h = headers_for(coach)
    resp = await client.post(
        "/api/v1/templates",
        json={
            "name": "Tempo run",
            "type": "run",
            "duration_minutes": 45,
            "exercises": [{"name": "Tempo", "sets": [{"reps": 1}, {"reps": 1}]}],
        },
        headers=h,
    )
    assert resp.status_code == 201
    template = resp.json()
    assert template["schedule"] is None
    assert [s["sort_order"] for s in template["exercises"][0]["sets"]] == [0, 1]
    template_id = template["id"]

    resp = await client.post(f"/api/v1/templates/{template_id}/generate", json={"weeks": 1}, headers=h)
    assert resp.status_code == 409

    resp = await client.put(
        f"/api/v1/templates/{template_id}/schedule",
        json={"weekdays": [6, 0, 1, 2, 3, 4, 5, 5], "start_time": "07:15"},
        headers=h,
    )
    assert resp.status_code == 200
    assert resp.json()["schedule"]["weekdays"] == [0, 1, 2, 3, 4, 5, 6]

    resp = await client.post(f"/api/v1/templates/{template_id}/generate", json={"weeks": 1}, headers=h)
    assert resp.status_code == 201
    body = resp.json()
    assert len(body["created"]) == 8
    assert body["created"][0]["template_id"] == template_id

    resp = await client.post(f"/api/v1/templates/{template_id}/generate", json={"weeks": 1}, headers=h)
    assert resp.json() == {"message": "All sessions already exist", "created": []}

    resp = await client.post(f"/api/v1/templates/{template_id}/generate", json={"weeks": 13}, headers=h)
    assert resp.status_code == 400

    resp = await client.post(
        f"/api/v1/templates/{template_id}/create-session",
        json={"date": "2024-07-01", "start_time": "06:30"},
        headers=h,
    )
    assert resp.status_code == 201
    copy = resp.json()
    assert copy["template_id"] is None
    assert copy["scheduled_date"] is None
    assert copy["start_at"].startswith("2024-07-01T06:30")

    resp = await client.get("/api/v1/sessions?from_date=2024-07-01&to_date=2024-07-01", headers=h)
    assert [s["id"] for s in resp.json()] == [copy["id"]]

    resp = await client.delete(f"/api/v1/templates/{template_id}", headers=h)
    assert resp.status_code == 204
    resp = await client.get(f"/api/v1/templates/{template_id}", headers=h)
    assert resp.status_code == 404
    # generated sessions survive their template
    assert await _count_sessions() == 9
    assert await _count_sessions(template_id=None) == 9


@pytest.mark.asyncio
async def test_schedule_rejects_bad_weekday(client: AsyncClient, coach, headers_for):
    h = headers_for(coach)
    resp = await client.post("/api/v1/templates", json={"name": "Core"}, headers=h)
    template_id = resp.json()["id"]
    resp = await client.put(f"/api/v1/templates/{template_id}/schedule", json={"weekdays": [7]}, headers=h)
    assert resp.status_code == 422
