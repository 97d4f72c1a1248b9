from __future__ import annotations

import enum
from datetime import datetime
from sqlalchemy import String, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.db.base import Base


class UserRole(str, enum.Enum):
    COACH = "COACH"
    ATHLETE = "ATHLETE"


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    role: Mapped[str] = mapped_column(String(16), nullable=False, default=UserRole.ATHLETE.value)
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    timezone: Mapped[str | None] = mapped_column(String(64), nullable=True)  # IANA name, e.g. America/New_York
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    groups: Mapped[list["AthleteGroup"]] = relationship(
        "AthleteGroup", back_populates="coach", cascade="all, delete-orphan"
    )
    weekly_plans: Mapped[list["WeeklyPlan"]] = relationship(
        "WeeklyPlan", back_populates="coach", cascade="all, delete-orphan"
    )
    training_templates: Mapped[list["TrainingTemplate"]] = relationship(
        "TrainingTemplate", back_populates="owner", cascade="all, delete-orphan"
    )

    @property
    def is_coach(self) -> bool:
        return self.role == UserRole.COACH.value
