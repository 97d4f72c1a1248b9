"""Coach groups, memberships and athlete roster."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import require_coach
from app.db.session import get_db
from app.db.upsert import insert_or_skip
from app.models.athlete_group import DEFAULT_GROUP_COLOR, AthleteGroup, GroupMembership
from app.models.coach_athlete import CoachAthlete
from app.models.user import User, UserRole
from app.schemas.group import AthleteLink, AthleteOut, GroupCreate, GroupOut, MembersAdd

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/coach", tags=["coach"])


def _group_out(group: AthleteGroup, member_count: int = 0) -> GroupOut:
    return GroupOut(
        id=group.id,
        name=group.name,
        slug=group.slug,
        color=group.color,
        description=group.description,
        created_at=group.created_at,
        member_count=member_count,
    )


async def _own_group(session: AsyncSession, coach_id: int, group_id: int) -> AthleteGroup:
    r = await session.execute(
        select(AthleteGroup).where(AthleteGroup.id == group_id, AthleteGroup.coach_id == coach_id)
    )
    group = r.scalar_one_or_none()
    if not group:
        raise HTTPException(status_code=404, detail="Group not found")
    return group


@router.get("/groups", response_model=list[GroupOut], summary="List groups with member counts")
async def list_groups(
    session: Annotated[AsyncSession, Depends(get_db)],
    coach: Annotated[User, Depends(require_coach)],
) -> list[GroupOut]:
    member_count = (
        select(GroupMembership.group_id, func.count(GroupMembership.id).label("n"))
        .group_by(GroupMembership.group_id)
        .subquery()
    )
    r = await session.execute(
        select(AthleteGroup, func.coalesce(member_count.c.n, 0))
        .outerjoin(member_count, member_count.c.group_id == AthleteGroup.id)
        .where(AthleteGroup.coach_id == coach.id)
        .order_by(AthleteGroup.name)
    )
    return [_group_out(g, n) for g, n in r.all()]


@router.post(
    "/groups",
    response_model=GroupOut,
    status_code=201,
    summary="Create group",
    responses={409: {"description": "A group with this slug already exists"}},
)
async def create_group(
    session: Annotated[AsyncSession, Depends(get_db)],
    coach: Annotated[User, Depends(require_coach)],
    body: GroupCreate,
) -> GroupOut:
    r = await session.execute(
        select(AthleteGroup.id).where(AthleteGroup.coach_id == coach.id, AthleteGroup.slug == body.slug)
    )
    if r.scalar_one_or_none() is not None:
        raise HTTPException(status_code=409, detail="A group with this slug already exists")
    group = AthleteGroup(
        coach_id=coach.id,
        name=body.name.strip(),
        slug=body.slug,
        color=body.color or DEFAULT_GROUP_COLOR,
        description=body.description,
    )
    session.add(group)
    await session.flush()
    return _group_out(group)


@router.delete("/groups/{group_id}", status_code=204, summary="Delete group")
async def delete_group(
    session: Annotated[AsyncSession, Depends(get_db)],
    coach: Annotated[User, Depends(require_coach)],
    group_id: int,
) -> None:
    group = await _own_group(session, coach.id, group_id)
    await session.delete(group)
    await session.flush()


@router.get("/groups/{group_id}/members", response_model=list[AthleteOut], summary="List group members")
async def list_members(
    session: Annotated[AsyncSession, Depends(get_db)],
    coach: Annotated[User, Depends(require_coach)],
    group_id: int,
) -> list[AthleteOut]:
    await _own_group(session, coach.id, group_id)
    r = await session.execute(
        select(User)
        .join(GroupMembership, GroupMembership.athlete_id == User.id)
        .where(GroupMembership.group_id == group_id)
        .order_by(User.name, User.email)
    )
    return [AthleteOut(id=u.id, email=u.email, name=u.name) for u in r.scalars().all()]


@router.post("/groups/{group_id}/members", response_model=dict, summary="Add athletes to group")
async def add_members(
    session: Annotated[AsyncSession, Depends(get_db)],
    coach: Annotated[User, Depends(require_coach)],
    group_id: int,
    body: MembersAdd,
) -> dict:
    """Add athletes; ids that are not athletes are ignored, existing members are left as they are."""
    await _own_group(session, coach.id, group_id)
    r = await session.execute(
        select(User.id).where(User.id.in_(body.athlete_ids), User.role == UserRole.ATHLETE.value)
    )
    valid_ids = [row[0] for row in r.all()]
    if not valid_ids:
        raise HTTPException(status_code=400, detail="No valid athletes found")
    added = 0
    for athlete_id in valid_ids:
        new_id = await insert_or_skip(
            session,
            GroupMembership,
            {"athlete_id": athlete_id, "group_id": group_id, "added_by": coach.id},
            conflict_columns=["athlete_id", "group_id"],
        )
        if new_id is not None:
            added += 1
    return {"added": added, "message": f"Added {added} athlete(s) to group"}


@router.delete("/groups/{group_id}/members/{athlete_id}", status_code=204, summary="Remove athlete from group")
async def remove_member(
    session: Annotated[AsyncSession, Depends(get_db)],
    coach: Annotated[User, Depends(require_coach)],
    group_id: int,
    athlete_id: int,
) -> None:
    await _own_group(session, coach.id, group_id)
    r = await session.execute(
        select(GroupMembership).where(
            GroupMembership.group_id == group_id, GroupMembership.athlete_id == athlete_id
        )
    )
    membership = r.scalar_one_or_none()
    if not membership:
        raise HTTPException(status_code=404, detail="Athlete is not in this group")
    await session.delete(membership)
    await session.flush()


@router.get("/athletes", response_model=list[AthleteOut], summary="List linked athletes")
async def list_athletes(
    session: Annotated[AsyncSession, Depends(get_db)],
    coach: Annotated[User, Depends(require_coach)],
) -> list[AthleteOut]:
    r = await session.execute(
        select(User)
        .join(CoachAthlete, CoachAthlete.athlete_id == User.id)
        .where(CoachAthlete.coach_id == coach.id)
        .order_by(User.name, User.email)
    )
    return [AthleteOut(id=u.id, email=u.email, name=u.name) for u in r.scalars().all()]


@router.post("/athletes", response_model=AthleteOut, status_code=201, summary="Link an athlete by email")
async def link_athlete(
    session: Annotated[AsyncSession, Depends(get_db)],
    coach: Annotated[User, Depends(require_coach)],
    body: AthleteLink,
) -> AthleteOut:
    email = body.email.strip().lower()
    r = await session.execute(select(User).where(User.email == email, User.role == UserRole.ATHLETE.value))
    athlete = r.scalar_one_or_none()
    if not athlete:
        raise HTTPException(status_code=404, detail="Athlete not found")
    await insert_or_skip(
        session,
        CoachAthlete,
        {"coach_id": coach.id, "athlete_id": athlete.id},
        conflict_columns=["coach_id", "athlete_id"],
    )
    logger.info("Coach roster: coach_id=%s linked athlete_id=%s", coach.id, athlete.id)
    return AthleteOut(id=athlete.id, email=athlete.email, name=athlete.name)
