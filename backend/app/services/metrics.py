"""Prometheus counters for plan publishing and template generation (served at /metrics)."""

from prometheus_client import Counter

ASSIGNMENTS_CREATED = Counter(
    "plan_assignments_created_total",
    "Assigned workouts created by plan publishing",
)
UNREACHABLE_SESSIONS = Counter(
    "plan_unreachable_sessions_total",
    "Group-scoped plan sessions published to nobody because no group matched",
)
SESSIONS_GENERATED = Counter(
    "template_sessions_generated_total",
    "Sessions created from recurring template schedules",
)
