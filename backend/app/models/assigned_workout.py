"""One athlete's copy of one published plan session, dated."""

from __future__ import annotations

from datetime import date, datetime
from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Integer, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.db.base import Base


class AssignedWorkout(Base):
    __tablename__ = "assigned_workouts"
    __table_args__ = (
        UniqueConstraint("athlete_id", "plan_session_id", name="uq_assigned_workouts_athlete_session"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    athlete_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    plan_session_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("plan_sessions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    workout_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    athlete_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    perceived_effort: Mapped[int | None] = mapped_column(Integer, nullable=True)  # RPE 1-10
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    plan_session: Mapped["PlanSession"] = relationship("PlanSession")
