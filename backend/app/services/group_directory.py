"""Read-only queries over a coach's groups, memberships and athlete roster."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.athlete_group import AthleteGroup, GroupMembership
from app.models.coach_athlete import CoachAthlete


@dataclass(frozen=True)
class GroupInfo:
    id: int
    slug: str
    name: str


async def list_groups(session: AsyncSession, owner_id: int) -> list[GroupInfo]:
    r = await session.execute(
        select(AthleteGroup.id, AthleteGroup.slug, AthleteGroup.name)
        .where(AthleteGroup.coach_id == owner_id)
        .order_by(AthleteGroup.id)
    )
    return [GroupInfo(id=row[0], slug=row[1], name=row[2]) for row in r.all()]


async def list_members(session: AsyncSession, group_ids: Iterable[int]) -> set[int]:
    """Union of athlete ids across group_ids."""
    ids = list({int(g) for g in group_ids})
    if not ids:
        return set()
    r = await session.execute(
        select(GroupMembership.athlete_id).where(GroupMembership.group_id.in_(ids)).distinct()
    )
    return {row[0] for row in r.all()}


async def list_linked_athletes(session: AsyncSession, coach_id: int) -> set[int]:
    r = await session.execute(
        select(CoachAthlete.athlete_id).where(CoachAthlete.coach_id == coach_id).distinct()
    )
    return {row[0] for row in r.all()}
