from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any


class SyncEventType(StrEnum):
    """What a session context tells its subscribers.

    Payload keys per type:
      SESSION_CHANGED      status, players, diff
      STATUS_CHANGED       status, source ("server" or "local")
      PHASE_CHANGED        phase, source
      SCORES_CHANGED       red, blue, reason
      TEAM_CHANGE_FAILED   player_id, color, error
    """

    session_changed = "SESSION_CHANGED"
    status_changed = "STATUS_CHANGED"
    phase_changed = "PHASE_CHANGED"
    scores_changed = "SCORES_CHANGED"
    team_change_failed = "TEAM_CHANGE_FAILED"


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(frozen=True, slots=True)
class SyncEvent:
    type: SyncEventType
    session_id: str
    payload: Mapping[str, Any] = field(default_factory=dict)
    ts: datetime = field(default_factory=_utcnow)

    def __getitem__(self, key: str) -> Any:
        return self.payload[key]

    def is_a(self, *types: SyncEventType) -> bool:
        return self.type in types
