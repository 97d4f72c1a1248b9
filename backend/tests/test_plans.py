"""Tests for building and publishing weekly plans: date projection, audiences, idempotent assignments."""

import asyncio
from datetime import date
from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select, update
from sqlalchemy.exc import OperationalError

from app.config import settings
from app.core.errors import AlreadyPublishedError, MaterializationError, NotFoundError, ValidationError
from app.db.session import async_session_maker
from app.db.upsert import insert_or_skip
from app.models.assigned_workout import AssignedWorkout
from app.models.audit_log import AuditLog
from app.models.weekly_plan import PlanSession, PlanStatus, WeeklyPlan
from app.schemas.plan import ParsedPlan
from app.services.plan_builder import build_plan
from app.services.plan_publisher import publish_plan

# Sunday
WEEK_START = date(2024, 6, 2)

PARSED = {
    "days": [
        {
            "dayOfWeek": "wednesday",
            "sessions": [
                {
                    "type": "practice",
                    "startTime": "16:45",
                    "endTime": "17:45",
                    "forGroups": None,
                    "exercises": [
                        {"name": "Warmup", "details": None, "forGroups": None},
                        {"name": "Speed Work", "details": "5x200m 84% 5m rest", "forGroups": ["LS"]},
                        {"name": "Shot put", "details": "20 throws", "forGroups": ["throwers"]},
                    ],
                },
                {"type": "lift", "forGroups": ["LS"], "exercises": [{"name": "Cleans"}]},
                {"type": "conditioning", "forGroups": ["jumpers"], "exercises": []},
            ],
        },
        {"dayOfWeek": "sunday", "isOffDay": True, "sessions": []},
    ],
    "detectedGroups": ["LS", "throwers", "jumpers"],
}


async def _count_assignments() -> int:
    async with async_session_maker() as session:
        r = await session.execute(select(func.count(AssignedWorkout.id)))
        return r.scalar_one()


async def _build(coach_id: int) -> int:
    async with async_session_maker() as session:
        plan_id = await build_plan(session, coach_id, WEEK_START, ParsedPlan.model_validate(PARSED))
        await session.commit()
        return plan_id


@pytest.mark.asyncio
async def test_build_plan_resolves_groups(team):
    plan_id = await _build(team["coach"].id)
    async with async_session_maker() as session:
        plan = await session.get(WeeklyPlan, plan_id)
        assert plan.status == PlanStatus.DRAFT.value
        assert plan.name == "Week of 2024-06-02"
        r = await session.execute(select(PlanSession).order_by(PlanSession.sort_order))
        sessions = r.scalars().all()
    assert [s.session_type for s in sessions] == ["practice", "lift", "conditioning"]
    assert [s.for_specific_groups for s in sessions] == [False, True, True]


@pytest.mark.asyncio
async def test_build_plan_requires_week_start(team):
    async with async_session_maker() as session:
        with pytest.raises(ValidationError):
            await build_plan(session, team["coach"].id, None, ParsedPlan.model_validate(PARSED))
        with pytest.raises(ValidationError):
            await build_plan(session, team["coach"].id, WEEK_START, ParsedPlan(days=[]))
        with pytest.raises(ValidationError):
            await build_plan(
                session,
                team["coach"].id,
                WEEK_START,
                ParsedPlan.model_validate({"days": [{"dayOfWeek": "someday"}]}),
            )
        r = await session.execute(select(func.count(WeeklyPlan.id)))
        assert r.scalar_one() == 0


@pytest.mark.asyncio
async def test_publish_projects_dates_and_audiences(team):
    plan_id = await _build(team["coach"].id)
    async with async_session_maker() as session:
        result = await publish_plan(session, plan_id, team["coach"].id)

    # everyone session: 3 athletes; LS lift: alice; jumpers: nobody
    assert result.assignments_created == 4
    assert result.sessions_processed == 3
    assert len(result.unreachable_session_ids) == 1

    async with async_session_maker() as session:
        r = await session.execute(select(AssignedWorkout.athlete_id, AssignedWorkout.workout_date))
        rows = r.all()
        plan = await session.get(WeeklyPlan, plan_id)
        audit = await session.execute(select(AuditLog.action).where(AuditLog.resource == "weekly_plan"))
        actions = sorted(a for (a,) in audit.all())
    assert {d for _, d in rows} == {date(2024, 6, 5)}
    by_athlete = {}
    for athlete_id, _ in rows:
        by_athlete[athlete_id] = by_athlete.get(athlete_id, 0) + 1
    assert by_athlete == {team["alice"].id: 2, team["bob"].id: 1, team["carol"].id: 1}
    assert plan.status == PlanStatus.PUBLISHED.value
    assert plan.published_at is not None
    assert actions == ["build", "publish"]


@pytest.mark.asyncio
async def test_publish_twice_is_rejected(team):
    plan_id = await _build(team["coach"].id)
    async with async_session_maker() as session:
        await publish_plan(session, plan_id, team["coach"].id)
    async with async_session_maker() as session:
        with pytest.raises(AlreadyPublishedError):
            await publish_plan(session, plan_id, team["coach"].id)
    assert await _count_assignments() == 4


@pytest.mark.asyncio
async def test_republishing_a_draft_never_duplicates(team):
    """A publish re-run over existing assignments (e.g. after a partial failure) creates nothing new."""
    plan_id = await _build(team["coach"].id)
    async with async_session_maker() as session:
        first = await publish_plan(session, plan_id, team["coach"].id)
    async with async_session_maker() as session:
        await session.execute(
            update(WeeklyPlan).where(WeeklyPlan.id == plan_id).values(status=PlanStatus.DRAFT.value)
        )
        await session.commit()
    async with async_session_maker() as session:
        second = await publish_plan(session, plan_id, team["coach"].id)
    assert first.assignments_created == 4
    assert second.assignments_created == 0
    assert await _count_assignments() == 4


@pytest.mark.asyncio
async def test_publish_failure_keeps_committed_rows_and_resumes(team):
    plan_id = await _build(team["coach"].id)
    calls = []

    async def failing_third_insert(*args, **kwargs):
        calls.append(args)
        if len(calls) == 3:
            raise OperationalError("INSERT INTO assigned_workouts", {}, Exception("disk I/O error"))
        return await insert_or_skip(*args, **kwargs)

    with patch("app.services.plan_publisher.insert_or_skip", AsyncMock(side_effect=failing_third_insert)):
        async with async_session_maker() as session:
            with pytest.raises(MaterializationError) as exc:
                await publish_plan(session, plan_id, team["coach"].id)

    assert exc.value.created == 2
    assert await _count_assignments() == 2
    async with async_session_maker() as session:
        plan = await session.get(WeeklyPlan, plan_id)
        assert plan.status == PlanStatus.DRAFT.value
        assert plan.published_at is None

    async with async_session_maker() as session:
        resumed = await publish_plan(session, plan_id, team["coach"].id)
    assert resumed.assignments_created == 2
    assert await _count_assignments() == 4


@pytest.mark.asyncio
async def test_publish_other_coaches_plan_is_not_found(team):
    plan_id = await _build(team["coach"].id)
    async with async_session_maker() as session:
        with pytest.raises(NotFoundError):
            await publish_plan(session, plan_id, team["alice"].id)
        with pytest.raises(NotFoundError):
            await publish_plan(session, 999999, team["coach"].id)


@pytest.mark.asyncio
async def test_group_change_after_build_applies_at_publish(team):
    """Targets are fixed at build time, but membership is read at publish time."""
    from app.models.athlete_group import GroupMembership

    plan_id = await _build(team["coach"].id)
    async with async_session_maker() as session:
        session.add(GroupMembership(athlete_id=team["carol"].id, group_id=team["long_sprints_id"]))
        await session.commit()
    async with async_session_maker() as session:
        result = await publish_plan(session, plan_id, team["coach"].id)
    assert result.assignments_created == 5


@pytest.mark.asyncio
async def test_plan_api_flow(client: AsyncClient, team, headers_for):
    coach_h = headers_for(team["coach"])
    resp = await client.post(
        "/api/v1/coach/plans",
        json={"name": "Week 1", "weekStartDate": "2024-06-02", "parsedPlan": PARSED},
        headers=coach_h,
    )
    assert resp.status_code == 201
    plan_id = resp.json()["plan_id"]

    resp = await client.get(f"/api/v1/coach/plans/{plan_id}", headers=coach_h)
    assert resp.status_code == 200
    detail = resp.json()
    assert detail["name"] == "Week 1"
    assert [d["day_of_week"] for d in detail["days"]] == [0, 3]
    wednesday = detail["days"][1]
    assert wednesday["sessions"][1]["groups"][0]["slug"] == "long-sprints"
    assert wednesday["sessions"][2]["groups"] == []
    assert wednesday["sessions"][2]["for_specific_groups"] is True

    resp = await client.get("/api/v1/coach/plans", headers=coach_h)
    assert resp.status_code == 200
    summary = resp.json()[0]
    assert summary["training_days"] == 1
    assert summary["total_sessions"] == 3

    resp = await client.post(f"/api/v1/coach/plans/{plan_id}/publish", headers=coach_h)
    assert resp.status_code == 200
    body = resp.json()
    assert body["assignments_created"] == 4
    assert len(body["unreachable_session_ids"]) == 1

    resp = await client.post(f"/api/v1/coach/plans/{plan_id}/publish", headers=coach_h)
    assert resp.status_code == 409

    resp = await client.get("/api/v1/coach/plans?status=published", headers=coach_h)
    assert [p["id"] for p in resp.json()] == [plan_id]


@pytest.mark.asyncio
async def test_create_plan_validation_errors(client: AsyncClient, team, headers_for):
    coach_h = headers_for(team["coach"])
    resp = await client.post("/api/v1/coach/plans", json={"parsedPlan": PARSED}, headers=coach_h)
    assert resp.status_code == 400
    resp = await client.post(
        "/api/v1/coach/plans",
        json={"weekStartDate": "2024-06-02", "parsedPlan": {"days": [{"dayOfWeek": "someday"}]}},
        headers=coach_h,
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_athlete_cannot_use_coach_endpoints(client: AsyncClient, team, headers_for):
    resp = await client.get("/api/v1/coach/plans", headers=headers_for(team["alice"]))
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_parse_without_gemini_key(client: AsyncClient, team, headers_for):
    resp = await client.post(
        "/api/v1/coach/plans/parse",
        json={"text": "Mon: practice 4:45"},
        headers=headers_for(team["coach"]),
    )
    assert resp.status_code == 503


@pytest.mark.asyncio
async def test_parse_rejects_oversized_text(client: AsyncClient, team, headers_for):
    with patch("app.api.v1.plans.parse_plan_text", AsyncMock()) as parse:
        resp = await client.post(
            "/api/v1/coach/plans/parse",
            json={"text": "x" * (settings.plan_text_max_chars + 1)},
            headers=headers_for(team["coach"]),
        )
    assert resp.status_code == 422
    parse.assert_not_called()


@pytest.mark.asyncio
@pytest.mark.parametrize("error,status", [
    (asyncio.TimeoutError(), 504),
    (RuntimeError("500 Internal error"), 502),
])
async def test_parse_maps_parser_failures(client: AsyncClient, team, headers_for, error, status):
    with patch("app.api.v1.plans.parse_plan_text", AsyncMock(side_effect=error)):
        resp = await client.post(
            "/api/v1/coach/plans/parse",
            json={"text": "Mon: practice 4:45"},
            headers=headers_for(team["coach"]),
        )
    assert resp.status_code == status


@pytest.mark.asyncio
async def test_athlete_workouts_filter_exercises_by_group(client: AsyncClient, team, headers_for):
    plan_id = await _build(team["coach"].id)
    async with async_session_maker() as session:
        await publish_plan(session, plan_id, team["coach"].id)

    resp = await client.get("/api/v1/workouts?on_date=2024-06-05", headers=headers_for(team["alice"]))
    assert resp.status_code == 200
    alice = resp.json()
    assert [w["session_type"] for w in alice] == ["practice", "lift"]
    assert [e["name"] for e in alice[0]["exercises"]] == ["Warmup", "Speed Work"]

    resp = await client.get(
        "/api/v1/workouts?from_date=2024-06-02&to_date=2024-06-08", headers=headers_for(team["bob"])
    )
    bob = resp.json()
    assert len(bob) == 1
    assert [e["name"] for e in bob[0]["exercises"]] == ["Warmup", "Shot put"]

    workout_id = bob[0]["id"]
    resp = await client.patch(
        f"/api/v1/workouts/{workout_id}",
        json={"completed": True, "notes": "felt good", "perceived_effort": 7},
        headers=headers_for(team["bob"]),
    )
    assert resp.status_code == 200
    updated = resp.json()
    assert updated["completed"] is True
    assert updated["completed_at"] is not None
    assert updated["athlete_notes"] == "felt good"
    assert updated["perceived_effort"] == 7

    resp = await client.patch(
        f"/api/v1/workouts/{workout_id}", json={"completed": True}, headers=headers_for(team["alice"])
    )
    assert resp.status_code == 404
