from __future__ import annotations

import logging
from datetime import UTC, datetime
from enum import StrEnum

from statemachine import State, StateMachine

from pictionary_sync.api.models import GamePhase, GameSession, GameStatus
from pictionary_sync.core.events import SyncEventType
from pictionary_sync.core.hub import EventHub
from pictionary_sync.lifecycle import ChallengeCounts
from pictionary_sync.rules import CHALLENGES_PER_PLAYER, ROUND_DURATION_SEC, ROUND_WARNING_SEC

logger = logging.getLogger(__name__)


class GameStage(StrEnum):
    """Flattened (status, phase) pair; declaration order is the game order."""

    lobby = "lobby"
    challenge = "challenge"
    drawing = "drawing"
    guessing = "guessing"
    finished = "finished"

    @property
    def rank(self) -> int:
        return list(GameStage).index(self)

    @property
    def status(self) -> GameStatus:
        if self in (GameStage.drawing, GameStage.guessing):
            return GameStatus.playing
        return GameStatus(self.value)

    @property
    def phase(self) -> GamePhase:
        if self == GameStage.drawing:
            return GamePhase.drawing
        if self == GameStage.guessing:
            return GamePhase.guessing
        return GamePhase.none

    @classmethod
    def of(cls, status: GameStatus, phase: GamePhase) -> GameStage:
        if status == GameStatus.playing:
            # A playing session that has not reported a phase yet is drawing.
            return cls.guessing if phase == GamePhase.guessing else cls.drawing
        return cls(status.value)


class GameFSM(StateMachine):
    """Transition table for one game.

    Every event is declared only from earlier stages, so there is no way back:
    lobby -> challenge -> drawing -> guessing -> finished, with forward jumps allowed
    when the server is ahead of us.
    """

    lobby = State("Lobby", value=GameStage.lobby.value, initial=True)
    challenge = State("Challenge creation", value=GameStage.challenge.value)
    drawing = State("Playing / drawing", value=GameStage.drawing.value)
    guessing = State("Playing / guessing", value=GameStage.guessing.value)
    finished = State("Finished", value=GameStage.finished.value, final=True)

    begin_challenge = lobby.to(challenge)
    begin_drawing = lobby.to(drawing) | challenge.to(drawing)
    begin_guessing = lobby.to(guessing) | challenge.to(guessing) | drawing.to(guessing)
    finish = lobby.to(finished) | challenge.to(finished) | drawing.to(finished) | guessing.to(finished)

    def after_transition(self, event: str, source: State, target: State) -> None:
        logger.info("game stage %s -> %s (%s)", source.value, target.value, event)


_EVENT_FOR_STAGE: dict[GameStage, str] = {
    GameStage.challenge: "begin_challenge",
    GameStage.drawing: "begin_drawing",
    GameStage.guessing: "begin_guessing",
    GameStage.finished: "finish",
}


class GameStateMachine:
    """Holds the local {status, phase} and decides transitions from each snapshot.

    Server authority first: a snapshot ahead of the local stage is adopted as-is.
    Only when the server agrees with (or lags behind) the local stage do we infer
    transitions locally from challenge progress and elapsed round time.
    """

    def __init__(self, *, hub: EventHub | None = None, round_duration_sec: float = ROUND_DURATION_SEC) -> None:
        self._fsm = GameFSM()
        self._hub = hub
        self.round_duration_sec = round_duration_sec
        self.session_id: str | None = None

    @property
    def stage(self) -> GameStage:
        return GameStage(self._fsm.current_state.value)

    @property
    def status(self) -> GameStatus:
        return self.stage.status

    @property
    def phase(self) -> GamePhase:
        return self.stage.phase

    @property
    def is_game_active(self) -> bool:
        return self.status in (GameStatus.challenge, GameStatus.playing)

    @property
    def is_game_finished(self) -> bool:
        return self.status == GameStatus.finished

    def evaluate(self, snapshot: GameSession, counts: ChallengeCounts, *, now: datetime | None = None) -> bool:
        """Apply at most one transition for this snapshot. Returns True if the stage changed."""

        if snapshot.id != self.session_id:
            if self.session_id is not None:
                logger.info("session changed %s -> %s, resetting state machine", self.session_id, snapshot.id)
                self._fsm = GameFSM()
            self.session_id = snapshot.id

        current = self.stage
        server = GameStage.of(snapshot.status, snapshot.phase)
        if server != current:
            if server.rank > current.rank:
                self._advance(server, source="server")
                return True
            logger.debug("server stage %s behind local %s; keeping local", server.value, current.value)

        target = self._infer(current, snapshot, counts, now or datetime.now(tz=UTC))
        if target is None:
            return False
        self._advance(target, source="local")
        return True

    def _infer(
        self, current: GameStage, snapshot: GameSession, counts: ChallengeCounts, now: datetime
    ) -> GameStage | None:
        if current == GameStage.challenge:
            players = snapshot.players
            if players and all(p.challenges_sent >= CHALLENGES_PER_PLAYER for p in players):
                return GameStage.drawing
            return None

        if current in (GameStage.drawing, GameStage.guessing):
            if self._round_elapsed(snapshot, now):
                return GameStage.finished
            if current == GameStage.drawing and counts.all_have_images:
                return GameStage.guessing
            if current == GameStage.guessing and counts.all_resolved:
                return GameStage.finished

        return None

    def remaining_time(self, snapshot: GameSession, now: datetime | None = None) -> float | None:
        return remaining_time(snapshot, now, duration=self.round_duration_sec)

    def _round_elapsed(self, snapshot: GameSession, now: datetime) -> bool:
        left = self.remaining_time(snapshot, now)
        return left is not None and left <= 0

    def _advance(self, target: GameStage, *, source: str) -> None:
        before = self.stage
        self._fsm.send(_EVENT_FOR_STAGE[target])
        after = self.stage
        logger.debug("%s transition %s -> %s (session=%s)", source, before.value, after.value, self.session_id)

        if self._hub is None:
            return
        sid = self.session_id or ""
        if after.status != before.status:
            self._hub.emit(SyncEventType.status_changed, sid, status=after.status.value, source=source)
        if after.phase != before.phase:
            self._hub.emit(SyncEventType.phase_changed, sid, phase=after.phase.value, source=source)


def remaining_time(
    snapshot: GameSession, now: datetime | None = None, *, duration: float = ROUND_DURATION_SEC
) -> float | None:
    """Seconds left in the round, never below zero.

    None while the round has no start time. Naive timestamps are read as UTC.
    """

    started = snapshot.started_at
    if started is None:
        return None
    if started.tzinfo is None:
        started = started.replace(tzinfo=UTC)
    now = now or datetime.now(tz=UTC)
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    return max(0.0, duration - (now - started).total_seconds())


def round_almost_over(seconds_left: float | None) -> bool:
    return seconds_left is not None and 0 < seconds_left < ROUND_WARNING_SEC


def format_clock(seconds_left: float | None) -> str:
    """MM:SS, counting whole seconds down."""

    if seconds_left is None:
        return "--:--"
    total = max(0, int(seconds_left))
    return f"{total // 60:02d}:{total % 60:02d}"
