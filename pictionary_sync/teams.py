from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from enum import StrEnum
from typing import TYPE_CHECKING

from pictionary_sync.api.client import SessionApi
from pictionary_sync.api.errors import ErrorCategory, SessionApiError, TeamFullError, is_capacity_message
from pictionary_sync.api.models import GameSession, TeamColor
from pictionary_sync.core.events import SyncEventType
from pictionary_sync.core.hub import EventHub
from pictionary_sync.rules import MAX_PLAYERS_PER_TEAM, TEAM_CHANGE_DEBOUNCE_SEC

if TYPE_CHECKING:
    from pictionary_sync.sync_engine import SessionSyncEngine

logger = logging.getLogger(__name__)


class TransitionOverlay:
    """Client-only record of team moves not yet confirmed by the server.

    At most one entry per player; setting again replaces the previous target.
    """

    def __init__(self) -> None:
        self._targets: dict[str, TeamColor] = {}

    def __len__(self) -> int:
        return len(self._targets)

    def __contains__(self, player_id: object) -> bool:
        return player_id in self._targets

    def set(self, player_id: str, color: TeamColor) -> None:
        self._targets[player_id] = TeamColor(color)

    def get(self, player_id: str) -> TeamColor | None:
        return self._targets.get(player_id)

    def clear(self, player_id: str) -> None:
        self._targets.pop(player_id, None)

    def items(self) -> list[tuple[str, TeamColor]]:
        return list(self._targets.items())

    def confirm(self, snapshot: GameSession) -> list[str]:
        """Drop entries the snapshot shows as done. Returns the confirmed player ids."""

        confirmed: list[str] = []
        for player_id, target in list(self._targets.items()):
            p = snapshot.player(player_id)
            if p is not None and p.color == target:
                del self._targets[player_id]
                confirmed.append(player_id)
        if confirmed:
            logger.debug("team moves confirmed: %s", confirmed)
        return confirmed

    def projected_members(self, snapshot: GameSession, color: TeamColor) -> list[str]:
        """Team roster as the UI should show it: confirmed members with pending moves applied."""

        members = [p.id for p in snapshot.players if p.color == color and self._targets.get(p.id, color) == color]
        for player_id, target in self._targets.items():
            if target == color and player_id not in members:
                members.append(player_id)
        return members


class TeamChangeOutcome(StrEnum):
    completed = "completed"
    suppressed = "suppressed"  # transient failure, left to the next poll
    ignored = "ignored"  # another team operation was in flight
    debounced = "debounced"


class TeamAssignmentCoordinator:
    """Join / leave / change-team with single-flight, debounce and error recovery.

    One instance per session context. Calls that arrive within the debounce window
    return `debounced`; calls that arrive while an operation is in flight return
    `ignored`. Neither is queued or raised.

    Recovery by error category:
      - conflict ("already in"): join directly, falling back to a safe join
      - absence ("not in"): refresh, then safe join
      - transient: suppressed, the next poll reconciles
      - fatal: overlay entry cleared, `TEAM_CHANGE_FAILED` published, error re-raised

    Every operation that reached the server ends with exactly one refresh.
    """

    def __init__(
        self,
        *,
        api: SessionApi,
        engine: SessionSyncEngine,
        player_id: str,
        overlay: TransitionOverlay | None = None,
        hub: EventHub | None = None,
        debounce_sec: float = TEAM_CHANGE_DEBOUNCE_SEC,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.api = api
        self.engine = engine
        self.player_id = player_id
        self.overlay = overlay if overlay is not None else TransitionOverlay()
        self.hub = hub if hub is not None else engine.hub
        self.debounce_sec = debounce_sec
        self._clock = clock
        self._last_call: float | None = None
        self._in_flight = False

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def confirm(self, snapshot: GameSession) -> list[str]:
        return self.overlay.confirm(snapshot)

    @staticmethod
    def available_team_color(snapshot: GameSession | None) -> TeamColor | None:
        """Team with fewer players, ties toward red. None when both are full."""

        if snapshot is None:
            return TeamColor.red
        red = snapshot.team_count(TeamColor.red)
        blue = snapshot.team_count(TeamColor.blue)
        if red <= blue and red < MAX_PLAYERS_PER_TEAM:
            return TeamColor.red
        if blue < MAX_PLAYERS_PER_TEAM:
            return TeamColor.blue
        return None

    async def change_team(self, session_id: str, new_color: TeamColor) -> TeamChangeOutcome:
        color = _playable(new_color)
        if self._debounced():
            logger.debug("team change to %s debounced", color.value)
            return TeamChangeOutcome.debounced
        if not self._claim(f"change to {color.value}"):
            return TeamChangeOutcome.ignored
        try:
            return await self._change_team(session_id, color)
        finally:
            self._in_flight = False

    async def join_team(self, session_id: str, color: TeamColor) -> TeamChangeOutcome:
        color = _playable(color)
        if self._debounced():
            logger.debug("join %s debounced", color.value)
            return TeamChangeOutcome.debounced
        if not self._claim(f"join {color.value}"):
            return TeamChangeOutcome.ignored
        try:
            self._ensure_capacity(session_id, color, self.player_id)
            return await self._run(session_id, self.player_id, color, lambda: self._safe_join(session_id, color))
        finally:
            self._in_flight = False

    async def join_available_team(self, session_id: str, player_id: str | None = None) -> TeamChangeOutcome:
        player_id = player_id or self.player_id
        if not self._claim("automatic join"):
            return TeamChangeOutcome.ignored
        try:
            return await self._join_available(session_id, player_id)
        finally:
            self._in_flight = False

    async def _change_team(self, session_id: str, color: TeamColor) -> TeamChangeOutcome:
        snapshot = self.engine.snapshot
        me = snapshot.player(self.player_id) if snapshot is not None else None
        if me is not None and me.color == color:
            logger.info("player %s already on %s", self.player_id, color.value)
            return TeamChangeOutcome.completed
        self._ensure_capacity(session_id, color, self.player_id)

        async def op() -> None:
            logger.info("team change: leave then join %s (session=%s)", color.value, session_id)
            try:
                await self.api.leave_session(session_id)
                await self.api.join_session(session_id, color)
            except SessionApiError as e:
                await self._recover_change(session_id, color, e)

        return await self._run(session_id, self.player_id, color, op)

    async def _join_available(self, session_id: str, player_id: str) -> TeamChangeOutcome:
        try:
            snapshot = await self.engine.refresh_once(session_id)
        except SessionApiError as e:
            logger.warning("could not refresh before automatic team pick, using last snapshot: %s", e)
            snapshot = self.engine.snapshot

        color = self.available_team_color(snapshot)
        if color is None:
            self._publish_failure(session_id, player_id, TeamColor.unassigned, "team is full")
            raise TeamFullError("both", occupancy=MAX_PLAYERS_PER_TEAM)
        logger.info("automatic team pick for %s: %s", player_id, color.value)

        outcome = await self._run(session_id, player_id, color, lambda: self._safe_join(session_id, color))
        if outcome == TeamChangeOutcome.completed:
            current = self.engine.snapshot
            if current is None or current.player(player_id) is None:
                logger.warning("player %s not yet visible in session %s after join", player_id, session_id)
        return outcome

    async def _run(
        self,
        session_id: str,
        player_id: str,
        color: TeamColor,
        op: Callable[[], Awaitable[None]],
    ) -> TeamChangeOutcome:
        """Run one remote team operation under the overlay. Callers hold the in-flight claim."""

        self.overlay.set(player_id, color)
        try:
            await op()
        except TeamFullError as e:
            self._fail(session_id, player_id, color, e)
            raise
        except SessionApiError as e:
            if e.is_transient:
                logger.warning("transient error during team operation, left to next poll: %s", e)
                return TeamChangeOutcome.suppressed
            if is_capacity_message(e.message):
                full = TeamFullError(color.value)
                self._fail(session_id, player_id, color, full)
                raise full from e
            self._fail(session_id, player_id, color, e)
            raise
        except Exception as e:
            self._fail(session_id, player_id, color, e)
            raise
        finally:
            await self._final_refresh(session_id)
        return TeamChangeOutcome.completed

    async def _recover_change(self, session_id: str, color: TeamColor, error: SessionApiError) -> None:
        if error.category == ErrorCategory.conflict:
            logger.info("already in session, joining %s directly", color.value)
            try:
                await self.api.join_session(session_id, color)
            except SessionApiError as join_error:
                if join_error.is_transient:
                    raise
                logger.warning("direct join failed (%s), falling back to safe join", join_error)
                await self._safe_join(session_id, color)
        elif error.category == ErrorCategory.absence:
            logger.info("not in session, refresh then join %s", color.value)
            await self.engine.refresh_once(session_id)
            await self._safe_join(session_id, color)
        else:
            raise error

    async def _safe_join(self, session_id: str, color: TeamColor) -> None:
        """Join, correcting for a client/server disagreement about membership."""

        try:
            await self.api.join_session(session_id, color)
        except SessionApiError as e:
            if e.category == ErrorCategory.conflict:
                logger.info("safe join: leave then join %s", color.value)
                await self.api.leave_session(session_id)
                await self.api.join_session(session_id, color)
            elif e.category == ErrorCategory.absence:
                logger.info("safe join: refresh then join %s", color.value)
                await self.engine.refresh_once(session_id)
                await self.api.join_session(session_id, color)
            else:
                raise

    async def _final_refresh(self, session_id: str) -> None:
        try:
            await self.engine.refresh_once(session_id)
        except SessionApiError as e:
            logger.warning("refresh after team operation failed: %s", e)
        except Exception:
            logger.exception("refresh after team operation failed (session=%s)", session_id)

    def _claim(self, what: str) -> bool:
        if self._in_flight:
            logger.warning("team operation already in progress, ignoring %s", what)
            return False
        self._in_flight = True
        return True

    def _debounced(self) -> bool:
        now = self._clock()
        if self._last_call is not None and now - self._last_call < self.debounce_sec:
            return True
        self._last_call = now
        return False

    def _ensure_capacity(self, session_id: str, color: TeamColor, player_id: str) -> None:
        snapshot = self.engine.snapshot
        if snapshot is None:
            return
        occupancy = sum(1 for p in snapshot.team_members(color) if p.id != player_id)
        if occupancy >= MAX_PLAYERS_PER_TEAM:
            logger.info("team %s is full (%d players), not joining", color.value, occupancy)
            self._publish_failure(session_id, player_id, color, "team is full")
            raise TeamFullError(color.value, occupancy=occupancy)

    def _fail(self, session_id: str, player_id: str, color: TeamColor, error: Exception) -> None:
        logger.error("team operation to %s failed: %s", color.value, error)
        self.overlay.clear(player_id)
        self._publish_failure(session_id, player_id, color, str(error))

    def _publish_failure(self, session_id: str, player_id: str, color: TeamColor, message: str) -> None:
        if self.hub is None:
            return
        self.hub.emit(SyncEventType.team_change_failed, session_id, player_id=player_id, color=color.value, error=message)


def _playable(color: TeamColor) -> TeamColor:
    color = TeamColor(color)
    if color not in TeamColor.playable():
        raise ValueError(f"Cannot join team '{color.value}'")
    return color
