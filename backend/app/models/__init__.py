from app.models.user import User, UserRole
from app.models.coach_athlete import CoachAthlete
from app.models.athlete_group import AthleteGroup, GroupMembership
from app.models.weekly_plan import (
    PlanDay,
    PlanExercise,
    PlanSession,
    PlanStatus,
    SessionType,
    WeeklyPlan,
)
from app.models.assigned_workout import AssignedWorkout
from app.models.training_template import TemplateExercise, TemplateSchedule, TemplateSet, TrainingTemplate
from app.models.training_session import SessionExercise, SessionSet, TrainingSession
from app.models.audit_log import AuditLog

__all__ = [
    "User",
    "UserRole",
    "CoachAthlete",
    "AthleteGroup",
    "GroupMembership",
    "WeeklyPlan",
    "PlanDay",
    "PlanSession",
    "PlanExercise",
    "PlanStatus",
    "SessionType",
    "AssignedWorkout",
    "TrainingTemplate",
    "TemplateExercise",
    "TemplateSet",
    "TemplateSchedule",
    "TrainingSession",
    "SessionExercise",
    "SessionSet",
    "AuditLog",
]
