"""
Error taxonomy for the activity engine.

Every error here is caller-facing and non-retryable: it means the caller
asked for something the catalog or the session state cannot honour.
Content-generation failures are NOT part of this hierarchy; they are caught
inside the engine and replaced by a fallback message.
"""

from __future__ import annotations

from typing import Iterable, List


class ActivityEngineError(Exception):
    """Base class for all activity engine errors."""


class NotRegisteredError(ActivityEngineError):
    """Raised when an activity type is not in the catalog."""

    def __init__(self, activity_type: str):
        self.activity_type = activity_type
        super().__init__(f"Activity type '{activity_type}' is not registered")


class PrerequisiteUnmetError(ActivityEngineError):
    """Raised when the user has not completed a required prior activity."""

    def __init__(self, activity_type: str, missing: Iterable[str]):
        self.activity_type = activity_type
        self.missing: List[str] = list(missing)
        super().__init__(
            f"Missing prerequisites for {activity_type}: {', '.join(self.missing)}"
        )


class ContraindicatedError(ActivityEngineError):
    """Raised when a user's risk factors rule an activity out."""

    def __init__(self, activity_type: str, matched: Iterable[str]):
        self.activity_type = activity_type
        self.matched: List[str] = list(matched)
        super().__init__(
            f"Activity {activity_type} is contraindicated due to: {', '.join(self.matched)}"
        )


class InvalidConfigurationError(ActivityEngineError):
    """Raised when a configuration violates the catalog's constraints."""

    def __init__(self, activity_type: str, errors: Iterable[str]):
        self.activity_type = activity_type
        self.errors: List[str] = list(errors)
        super().__init__(
            f"Invalid configuration for {activity_type}: {'; '.join(self.errors)}"
        )


class SessionNotFoundError(ActivityEngineError):
    """Raised when a session id is unknown to the session store."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session {session_id} not found")


class SessionStateError(ActivityEngineError):
    """Raised on an illegal lifecycle transition."""

    def __init__(self, session_id: str, status: str, action: str):
        self.session_id = session_id
        self.status = status
        self.action = action
        super().__init__(f"Cannot {action} session {session_id} with status {status}")


class SessionBusyError(ActivityEngineError):
    """Raised when a second call arrives for a session already being processed."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session {session_id} is processing another request")
