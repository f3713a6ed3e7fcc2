from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from pictionary_sync.api.models import GameSession, TeamColor, TeamScores
from pictionary_sync.core.events import SyncEventType
from pictionary_sync.core.hub import EventHub
from pictionary_sync.rules import (
    CORRECT_GUESS_POINTS,
    INITIAL_TEAM_SCORE,
    REGENERATION_PENALTY,
    WRONG_GUESS_PENALTY,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ScoreChange:
    team: TeamColor
    previous: int
    new: int
    delta: int
    reason: str
    ts: datetime

    def __str__(self) -> str:
        sign = "+" if self.delta > 0 else ""
        return f"[{self.team.value.upper()}] {self.previous} -> {self.new} ({sign}{self.delta}) {self.reason}"


class ScoreTracker:
    """Team scores with optimistic local deltas and server reconciliation.

    `reconcile` is asymmetric: the server only reports non-default scores once it has
    processed a scoring event, so a default 100/100 snapshot never overwrites local values.
    """

    def __init__(self, *, hub: EventHub | None = None, session_id: str = "") -> None:
        self._scores: dict[TeamColor, int] = {c: INITIAL_TEAM_SCORE for c in TeamColor.playable()}
        self._history: list[ScoreChange] = []
        self._hub = hub
        self.session_id = session_id

    @property
    def scores(self) -> dict[TeamColor, int]:
        return dict(self._scores)

    @property
    def history(self) -> list[ScoreChange]:
        return list(self._history)

    def score(self, team: TeamColor) -> int:
        return self._scores[_playable(team)]

    def apply_delta(self, team: TeamColor, delta: int, *, reason: str = "delta") -> int:
        team = _playable(team)
        previous = self._scores[team]
        new = max(0, previous + delta)
        self._scores[team] = new
        change = ScoreChange(team=team, previous=previous, new=new, delta=delta, reason=reason, ts=datetime.now(timezone.utc))
        self._history.append(change)
        logger.info("score %s", change)
        self._notify(reason)
        return new

    def correct_guess(self, team: TeamColor) -> int:
        return self.apply_delta(team, CORRECT_GUESS_POINTS, reason="correct guess")

    def wrong_guess(self, team: TeamColor) -> int:
        return self.apply_delta(team, WRONG_GUESS_PENALTY, reason="wrong guess")

    def image_regenerated(self, team: TeamColor) -> int:
        return self.apply_delta(team, REGENERATION_PENALTY, reason="image regenerated")

    def set_score(self, team: TeamColor, value: int, *, reason: str = "sync") -> None:
        team = _playable(team)
        delta = max(0, value) - self._scores[team]
        if delta:
            self.apply_delta(team, delta, reason=reason)

    def reconcile(self, snapshot: GameSession) -> bool:
        """Adopt server scores unless the snapshot still carries the defaults.

        Returns True when local scores changed.
        """

        server: TeamScores = snapshot.team_scores
        if server.is_default:
            return False
        changed = False
        for team in TeamColor.playable():
            value = server.get(team)
            if self._scores[team] != value:
                self.set_score(team, value, reason="server")
                changed = True
        return changed

    def winner(self) -> TeamColor | None:
        red, blue = self._scores[TeamColor.red], self._scores[TeamColor.blue]
        if red == blue:
            return None
        return TeamColor.red if red > blue else TeamColor.blue

    def reset(self) -> None:
        self._scores = {c: INITIAL_TEAM_SCORE for c in TeamColor.playable()}
        self._history.clear()
        logger.info("scores reset")
        self._notify("reset")

    def _notify(self, reason: str) -> None:
        if self._hub is None:
            return
        self._hub.emit(
            SyncEventType.scores_changed,
            self.session_id,
            red=self._scores[TeamColor.red],
            blue=self._scores[TeamColor.blue],
            reason=reason,
        )


def _playable(team: TeamColor) -> TeamColor:
    team = TeamColor(team)
    if team not in TeamColor.playable():
        raise ValueError(f"No score for team '{team.value}'")
    return team
