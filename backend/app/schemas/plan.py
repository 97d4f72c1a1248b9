"""Pydantic schemas for coach weekly plans: the parser's output contract and the plan API."""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.config import settings
from app.models.weekly_plan import SessionType


class ParsedExercise(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    details: str | None = None
    for_groups: list[str] | None = Field(None, alias="forGroups")  # null/empty = everyone


class ParsedSession(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: str = SessionType.PRACTICE.value
    title: str | None = None
    start_time: str | None = Field(None, alias="startTime")
    end_time: str | None = Field(None, alias="endTime")
    location: str | None = None
    is_optional: bool = Field(False, alias="isOptional")
    for_groups: list[str] | None = Field(None, alias="forGroups")
    exercises: list[ParsedExercise] = Field(default_factory=list)

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, v):
        value = str(v or "").strip().lower()
        if value in {t.value for t in SessionType}:
            return value
        return SessionType.PRACTICE.value

    @field_validator("exercises", mode="before")
    @classmethod
    def _none_exercises(cls, v):
        return v or []


class ParsedDay(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    day_of_week: str = Field(..., alias="dayOfWeek")  # "monday"
    is_off_day: bool = Field(False, alias="isOffDay")
    sessions: list[ParsedSession] = Field(default_factory=list)

    @field_validator("sessions", mode="before")
    @classmethod
    def _none_sessions(cls, v):
        return v or []


class ScheduleInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    practice_time: str | None = Field(None, alias="practiceTime")
    lift_time: str | None = Field(None, alias="liftTime")
    location: str | None = None


class ParsedPlan(BaseModel):
    """Structured plan as produced by the text parser."""

    model_config = ConfigDict(populate_by_name=True)

    days: list[ParsedDay] = Field(default_factory=list)
    detected_groups: list[str] = Field(default_factory=list, alias="detectedGroups")
    schedule_info: ScheduleInfo | None = Field(None, alias="scheduleInfo")

    @field_validator("detected_groups", mode="before")
    @classmethod
    def _none_groups(cls, v):
        return v or []


class PlanParseRequest(BaseModel):
    text: str = Field(..., min_length=1, max_length=settings.plan_text_max_chars)


class PlanCreate(BaseModel):
    """Body for creating a draft plan from parsed data."""

    model_config = ConfigDict(populate_by_name=True)

    name: str | None = Field(None, max_length=255)
    week_start_date: date | None = Field(None, alias="weekStartDate")
    source_text: str | None = Field(None, alias="sourceText")
    parsed_plan: ParsedPlan | None = Field(None, alias="parsedPlan")


class GroupRef(BaseModel):
    id: int
    name: str
    slug: str


class PlanExerciseOut(BaseModel):
    id: int
    name: str
    details: str | None
    sort_order: int
    for_specific_groups: bool
    groups: list[GroupRef]


class PlanSessionOut(BaseModel):
    id: int
    session_type: str
    title: str | None
    start_time: str | None
    end_time: str | None
    location: str | None
    is_optional: bool
    sort_order: int
    for_specific_groups: bool
    groups: list[GroupRef]
    exercises: list[PlanExerciseOut]


class PlanDayOut(BaseModel):
    id: int
    day_of_week: int
    is_off_day: bool
    notes: str | None
    sessions: list[PlanSessionOut]


class PlanSummary(BaseModel):
    id: int
    name: str
    week_start_date: date
    status: str
    created_at: datetime | None
    published_at: datetime | None
    training_days: int
    total_sessions: int


class PlanDetail(BaseModel):
    id: int
    name: str
    week_start_date: date
    status: str
    source_text: str | None
    created_at: datetime | None
    published_at: datetime | None
    days: list[PlanDayOut]


class PublishResponse(BaseModel):
    assignments_created: int
    sessions_processed: int
    unreachable_session_ids: list[int]
    message: str
