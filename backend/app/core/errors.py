"""Engine error taxonomy. Routers translate these into HTTP status codes."""

from __future__ import annotations


class EngineError(Exception):
    """Base class for plan/template engine failures."""


class ValidationError(EngineError):
    """Required authoring input is missing or malformed; nothing was persisted."""


class NotFoundError(EngineError):
    """The entity does not exist or belongs to another owner."""


class StateError(EngineError):
    """The entity exists but is in a state that does not allow the operation."""


class AlreadyPublishedError(StateError):
    pass


class NoActiveScheduleError(StateError):
    pass


class MaterializationError(EngineError):
    """
    Storage failed part way through a publish or generate run.
    Items created before the failure stay committed; `created` says how many.
    Re-running the operation is safe.
    """

    def __init__(self, message: str, created: int) -> None:
        super().__init__(message)
        self.created = created
