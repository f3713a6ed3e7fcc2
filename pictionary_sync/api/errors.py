from __future__ import annotations

from enum import StrEnum


class ErrorCategory(StrEnum):
    """How a failed remote call should be recovered from."""

    conflict = "conflict"  # team full, player already in session
    absence = "absence"  # player/session not in the expected state
    transient = "transient"  # timeout, connection reset, network
    fatal = "fatal"


_CONFLICT_MARKERS = ("already in",)
_ABSENCE_MARKERS = ("not in",)
_CAPACITY_MARKERS = ("team is full", "team full")
_TRANSIENT_MARKERS = (
    "connection",
    "timeout",
    "timed out",
    "network",
    "socket",
    "handshake",
)


def classify_error_message(message: str) -> ErrorCategory:
    """Map a backend error string onto an ErrorCategory.

    Backends only report these conditions as free text, so matching is by substring.
    """

    text = message.lower()
    if any(m in text for m in _CONFLICT_MARKERS):
        return ErrorCategory.conflict
    if any(m in text for m in _ABSENCE_MARKERS):
        return ErrorCategory.absence
    if any(m in text for m in _TRANSIENT_MARKERS):
        return ErrorCategory.transient
    return ErrorCategory.fatal


def is_capacity_message(message: str) -> bool:
    """True when the backend refused a join because the team has no free slot."""

    text = message.lower()
    return any(m in text for m in _CAPACITY_MARKERS)


class SessionApiError(Exception):
    def __init__(self, message: str, *, category: ErrorCategory | None = None, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.category = category if category is not None else classify_error_message(message)
        self.status_code = status_code

    @property
    def is_transient(self) -> bool:
        return self.category == ErrorCategory.transient

    def __repr__(self) -> str:
        return f"SessionApiError({self.message!r}, category={self.category.value})"


class TeamFullError(SessionApiError):
    """Destination team already holds the maximum number of players."""

    def __init__(self, team: str, *, occupancy: int | None = None):
        super().__init__("team is full", category=ErrorCategory.conflict)
        self.team = team
        self.occupancy = occupancy


class ChallengeValidationError(ValueError):
    pass
