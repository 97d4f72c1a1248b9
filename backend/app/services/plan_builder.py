"""Persist a parsed weekly plan as a draft WeeklyPlan tree with group targets resolved once, at build time."""

from __future__ import annotations

import logging
from datetime import date

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ValidationError
from app.models.athlete_group import AthleteGroup
from app.models.weekly_plan import PlanDay, PlanExercise, PlanSession, PlanStatus, WeeklyPlan
from app.schemas.plan import ParsedPlan
from app.services.alias_resolver import AliasResolver
from app.services.audit import log_action
from app.services.calendar import day_name_to_number
from app.services.group_directory import list_groups

logger = logging.getLogger(__name__)


def _validate(week_start_date: date | None, parsed_plan: ParsedPlan | None) -> list[int]:
    """Check required inputs before anything is written; return day numbers in input order."""
    if week_start_date is None:
        raise ValidationError("weekStartDate is required")
    if parsed_plan is None or not parsed_plan.days:
        raise ValidationError("parsedPlan must contain at least one day")
    numbers = []
    for day in parsed_plan.days:
        try:
            numbers.append(day_name_to_number(day.day_of_week))
        except ValueError as e:
            raise ValidationError(str(e)) from e
    return numbers


async def build_plan(
    session: AsyncSession,
    owner_id: int,
    week_start_date: date | None,
    parsed_plan: ParsedPlan | None,
    name: str | None = None,
    source_text: str | None = None,
) -> int:
    """
    Create a draft plan for owner_id and return its id. Unresolved group references degrade to
    "unresolved" (for_specific_groups stays True, no target rows); they never fail the build.
    """
    day_numbers = _validate(week_start_date, parsed_plan)

    groups = await list_groups(session, owner_id)
    resolver = AliasResolver(groups)
    group_rows: dict[int, AthleteGroup] = {}

    async def _targets(tokens: list[str] | None) -> list[AthleteGroup]:
        ids = resolver.resolve(tokens)
        missing = [i for i in ids if i not in group_rows]
        for gid in missing:
            group_rows[gid] = await session.get(AthleteGroup, gid)
        return [group_rows[i] for i in ids]

    plan = WeeklyPlan(
        coach_id=owner_id,
        name=(name or "").strip() or f"Week of {week_start_date.isoformat()}",
        week_start_date=week_start_date,
        source_text=source_text or None,
        status=PlanStatus.DRAFT.value,
    )
    session.add(plan)

    unresolved_refs = 0
    for parsed_day, day_number in zip(parsed_plan.days, day_numbers):
        day = PlanDay(day_of_week=day_number, is_off_day=parsed_day.is_off_day)
        plan.days.append(day)
        if parsed_day.is_off_day:
            continue
        for s_idx, parsed_session in enumerate(parsed_day.sessions):
            targets = await _targets(parsed_session.for_groups)
            plan_session = PlanSession(
                session_type=parsed_session.type,
                title=parsed_session.title or None,
                start_time=parsed_session.start_time or None,
                end_time=parsed_session.end_time or None,
                location=parsed_session.location or None,
                is_optional=parsed_session.is_optional,
                sort_order=s_idx,
                for_specific_groups=bool(parsed_session.for_groups),
                target_groups=targets,
            )
            if plan_session.for_specific_groups and not targets:
                unresolved_refs += 1
            day.sessions.append(plan_session)
            for e_idx, parsed_exercise in enumerate(parsed_session.exercises):
                plan_session.exercises.append(
                    PlanExercise(
                        name=parsed_exercise.name,
                        details=parsed_exercise.details or None,
                        sort_order=e_idx,
                        for_specific_groups=bool(parsed_exercise.for_groups),
                        target_groups=await _targets(parsed_exercise.for_groups),
                    )
                )

    await session.flush()
    if unresolved_refs:
        logger.warning(
            "Plan build: plan_id=%s has %s group-scoped session(s) with no matching group",
            plan.id,
            unresolved_refs,
        )
    await log_action(
        session,
        actor_id=owner_id,
        action="build",
        resource="weekly_plan",
        resource_id=plan.id,
        details={"days": len(day_numbers), "unresolved_sessions": unresolved_refs},
    )
    logger.info("Plan build: coach_id=%s created plan_id=%s (%s days)", owner_id, plan.id, len(day_numbers))
    return plan.id
