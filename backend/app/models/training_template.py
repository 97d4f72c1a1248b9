"""Reusable workout blueprints and their optional weekly recurrence."""

from __future__ import annotations

from datetime import date, datetime
from sqlalchemy import Boolean, Date, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.types import JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.db.base import Base


class TrainingTemplate(Base):
    __tablename__ = "training_templates"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    owner_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str | None] = mapped_column(String(64), nullable=True)  # e.g. lift, run, mobility
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=60)
    intensity: Mapped[str | None] = mapped_column(String(32), nullable=True)
    focus: Mapped[str | None] = mapped_column(String(255), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    owner: Mapped["User"] = relationship("User", back_populates="training_templates")
    exercises: Mapped[list["TemplateExercise"]] = relationship(
        "TemplateExercise",
        back_populates="template",
        cascade="all, delete-orphan",
        order_by="TemplateExercise.sort_order",
    )
    schedule: Mapped["TemplateSchedule | None"] = relationship(
        "TemplateSchedule", back_populates="template", uselist=False, cascade="all, delete-orphan"
    )


class TemplateExercise(Base):
    __tablename__ = "template_exercises"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    template_id: Mapped[int] = mapped_column(
        ForeignKey("training_templates.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    template: Mapped["TrainingTemplate"] = relationship("TrainingTemplate", back_populates="exercises")
    sets: Mapped[list["TemplateSet"]] = relationship(
        "TemplateSet",
        back_populates="exercise",
        cascade="all, delete-orphan",
        order_by="TemplateSet.sort_order",
    )


class TemplateSet(Base):
    __tablename__ = "template_sets"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    exercise_id: Mapped[int] = mapped_column(
        ForeignKey("template_exercises.id", ondelete="CASCADE"), nullable=False, index=True
    )
    reps: Mapped[int] = mapped_column(Integer, nullable=False)
    weight: Mapped[float | None] = mapped_column(Float, nullable=True)
    rpe: Mapped[float | None] = mapped_column(Float, nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    exercise: Mapped["TemplateExercise"] = relationship("TemplateExercise", back_populates="sets")


class TemplateSchedule(Base):
    __tablename__ = "template_schedules"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    template_id: Mapped[int] = mapped_column(
        ForeignKey("training_templates.id", ondelete="CASCADE"), nullable=False, unique=True, index=True
    )
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    weekdays: Mapped[list] = mapped_column(JSON, nullable=False, default=list)  # 0=Sunday .. 6=Saturday
    start_time: Mapped[str] = mapped_column(String(8), nullable=False, default="09:00")
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)  # inclusive

    template: Mapped["TrainingTemplate"] = relationship("TrainingTemplate", back_populates="schedule")
