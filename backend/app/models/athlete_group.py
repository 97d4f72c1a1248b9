from __future__ import annotations

from datetime import datetime
from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.db.base import Base

DEFAULT_GROUP_COLOR = "#6366f1"


class AthleteGroup(Base):
    """Named audience a coach targets plan sessions at (e.g. long-sprints, throws)."""

    __tablename__ = "athlete_groups"
    __table_args__ = (UniqueConstraint("coach_id", "slug", name="uq_athlete_groups_coach_slug"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    coach_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    slug: Mapped[str] = mapped_column(String(64), nullable=False)
    color: Mapped[str] = mapped_column(String(16), nullable=False, default=DEFAULT_GROUP_COLOR)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    coach: Mapped["User"] = relationship("User", back_populates="groups")
    members: Mapped[list["GroupMembership"]] = relationship(
        "GroupMembership", back_populates="group", cascade="all, delete-orphan"
    )


class GroupMembership(Base):
    __tablename__ = "athlete_group_members"
    __table_args__ = (UniqueConstraint("athlete_id", "group_id", name="uq_athlete_group_members_athlete_group"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    athlete_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    group_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("athlete_groups.id", ondelete="CASCADE"), nullable=False, index=True
    )
    added_by: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    added_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    group: Mapped["AthleteGroup"] = relationship("AthleteGroup", back_populates="members")
