"""Pydantic schemas for training templates, their schedules, and generated sessions."""

from datetime import date, datetime

from pydantic import BaseModel, Field, field_validator

HHMM_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class SetIn(BaseModel):
    reps: int = Field(..., ge=0)
    weight: float | None = Field(None, ge=0)
    rpe: float | None = Field(None, ge=0, le=10)


class ExerciseIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    notes: str | None = None
    sets: list[SetIn] = Field(default_factory=list)


class ScheduleIn(BaseModel):
    enabled: bool = True
    weekdays: list[int] = Field(default_factory=list)  # 0=Sunday .. 6=Saturday
    start_time: str = Field("09:00", pattern=HHMM_PATTERN)
    end_date: date | None = None

    @field_validator("weekdays")
    @classmethod
    def _valid_weekdays(cls, v: list[int]) -> list[int]:
        for d in v:
            if not 0 <= d <= 6:
                raise ValueError("weekdays must be between 0 (Sunday) and 6 (Saturday)")
        return sorted(set(v))


class TemplateCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    type: str | None = Field(None, max_length=64)
    duration_minutes: int = Field(60, ge=1, le=24 * 60)
    intensity: str | None = Field(None, max_length=32)
    focus: str | None = Field(None, max_length=255)
    notes: str | None = None
    exercises: list[ExerciseIn] = Field(default_factory=list)
    schedule: ScheduleIn | None = None


class GenerateRequest(BaseModel):
    weeks: int | None = Field(None, ge=1)


class CreateSessionRequest(BaseModel):
    on_date: date | None = Field(None, alias="date")
    start_time: str | None = Field(None, pattern=HHMM_PATTERN)


class SetOut(BaseModel):
    id: int
    reps: int
    weight: float | None
    rpe: float | None
    sort_order: int


class ExerciseOut(BaseModel):
    id: int
    name: str
    notes: str | None
    sort_order: int
    sets: list[SetOut]


class ScheduleOut(BaseModel):
    enabled: bool
    weekdays: list[int]
    start_time: str
    end_date: date | None


class TemplateOut(BaseModel):
    id: int
    name: str
    type: str | None
    duration_minutes: int
    intensity: str | None
    focus: str | None
    notes: str | None
    created_at: datetime | None
    exercises: list[ExerciseOut]
    schedule: ScheduleOut | None


class SessionSetOut(SetOut):
    completed: bool


class SessionExerciseOut(BaseModel):
    id: int
    name: str
    notes: str | None
    sort_order: int
    sets: list[SessionSetOut]


class SessionOut(BaseModel):
    id: int
    title: str | None
    type: str | None
    start_at: datetime
    end_at: datetime
    intensity: str | None
    focus: str | None
    notes: str | None
    completed: bool
    template_id: int | None
    scheduled_date: date | None
    exercises: list[SessionExerciseOut]


class GenerateResponse(BaseModel):
    message: str
    created: list[SessionOut]
