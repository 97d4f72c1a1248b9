"""Coach weekly plan tree: WeeklyPlan -> PlanDay -> PlanSession -> PlanExercise.

Days carry a weekday (0=Sunday), not a date; the date is projected from the plan's
week_start_date only when the plan is published.
"""

from __future__ import annotations

import enum
from datetime import date, datetime
from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.db.base import Base


class PlanStatus(str, enum.Enum):
    DRAFT = "draft"
    PUBLISHED = "published"


class SessionType(str, enum.Enum):
    PRACTICE = "practice"
    LIFT = "lift"
    CONDITIONING = "conditioning"
    RECOVERY = "recovery"
    COMPETITION = "competition"
    OPTIONAL = "optional"


plan_session_groups = Table(
    "plan_session_groups",
    Base.metadata,
    Column("plan_session_id", ForeignKey("plan_sessions.id", ondelete="CASCADE"), primary_key=True),
    Column("group_id", ForeignKey("athlete_groups.id", ondelete="CASCADE"), primary_key=True),
)

plan_exercise_groups = Table(
    "plan_exercise_groups",
    Base.metadata,
    Column("plan_exercise_id", ForeignKey("plan_exercises.id", ondelete="CASCADE"), primary_key=True),
    Column("group_id", ForeignKey("athlete_groups.id", ondelete="CASCADE"), primary_key=True),
)


class WeeklyPlan(Base):
    __tablename__ = "weekly_plans"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    coach_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    week_start_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=PlanStatus.DRAFT.value, index=True)
    source_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    coach: Mapped["User"] = relationship("User", back_populates="weekly_plans")
    days: Mapped[list["PlanDay"]] = relationship(
        "PlanDay",
        back_populates="plan",
        cascade="all, delete-orphan",
        order_by="PlanDay.day_of_week",
    )


class PlanDay(Base):
    __tablename__ = "plan_days"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    weekly_plan_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("weekly_plans.id", ondelete="CASCADE"), nullable=False, index=True
    )
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)  # 0=Sunday .. 6=Saturday
    is_off_day: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    plan: Mapped["WeeklyPlan"] = relationship("WeeklyPlan", back_populates="days")
    sessions: Mapped[list["PlanSession"]] = relationship(
        "PlanSession",
        back_populates="day",
        cascade="all, delete-orphan",
        order_by="PlanSession.sort_order",
    )


class PlanSession(Base):
    __tablename__ = "plan_sessions"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    plan_day_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("plan_days.id", ondelete="CASCADE"), nullable=False, index=True
    )
    session_type: Mapped[str] = mapped_column(String(32), nullable=False, default=SessionType.PRACTICE.value)
    title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    start_time: Mapped[str | None] = mapped_column(String(8), nullable=True)  # "16:45"
    end_time: Mapped[str | None] = mapped_column(String(8), nullable=True)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_optional: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # True when the parsed session named target groups, whether or not any of them resolved
    for_specific_groups: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    day: Mapped["PlanDay"] = relationship("PlanDay", back_populates="sessions")
    target_groups: Mapped[list["AthleteGroup"]] = relationship("AthleteGroup", secondary=plan_session_groups)
    exercises: Mapped[list["PlanExercise"]] = relationship(
        "PlanExercise",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="PlanExercise.sort_order",
    )


class PlanExercise(Base):
    __tablename__ = "plan_exercises"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    plan_session_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("plan_sessions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(512), nullable=False)
    details: Mapped[str | None] = mapped_column(Text, nullable=True)  # original notation, e.g. "5x200m 84% 5m rest"
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    for_specific_groups: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    session: Mapped["PlanSession"] = relationship("PlanSession", back_populates="exercises")
    target_groups: Mapped[list["AthleteGroup"]] = relationship("AthleteGroup", secondary=plan_exercise_groups)
