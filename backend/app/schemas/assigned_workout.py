"""Pydantic schemas for athletes' assigned workouts."""

from datetime import date, datetime

from pydantic import BaseModel, Field


class AssignedExerciseOut(BaseModel):
    id: int
    name: str
    details: str | None
    sort_order: int


class AssignedWorkoutOut(BaseModel):
    id: int
    workout_date: date
    completed: bool
    completed_at: datetime | None
    athlete_notes: str | None
    perceived_effort: int | None
    session_id: int
    session_type: str
    session_title: str | None
    start_time: str | None
    end_time: str | None
    location: str | None
    is_optional: bool
    plan_name: str
    exercises: list[AssignedExerciseOut]


class AssignedWorkoutUpdate(BaseModel):
    """Athlete-side partial update: completion, notes, RPE."""

    completed: bool | None = None
    notes: str | None = None
    perceived_effort: int | None = Field(None, ge=1, le=10)
