"""Pydantic schemas for coach groups and roster."""

from datetime import datetime

from pydantic import BaseModel, Field

SLUG_PATTERN = r"^[a-z0-9-]+$"


class GroupCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    slug: str = Field(..., min_length=1, max_length=64, pattern=SLUG_PATTERN)
    color: str | None = Field(None, max_length=16)
    description: str | None = None


class GroupOut(BaseModel):
    id: int
    name: str
    slug: str
    color: str
    description: str | None
    created_at: datetime | None
    member_count: int = 0


class MembersAdd(BaseModel):
    athlete_ids: list[int] = Field(..., min_length=1)


class AthleteOut(BaseModel):
    id: int
    email: str
    name: str | None


class AthleteLink(BaseModel):
    email: str = Field(..., min_length=3)
