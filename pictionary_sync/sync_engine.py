from __future__ import annotations

import asyncio
import contextlib
import logging

from pictionary_sync.api.client import SessionApi
from pictionary_sync.api.errors import SessionApiError
from pictionary_sync.api.models import Challenge, GameSession, GameStatus
from pictionary_sync.core.events import SyncEventType
from pictionary_sync.core.hub import EventHub, Subscription
from pictionary_sync.fsm import GameStateMachine
from pictionary_sync.lifecycle import ChallengeCounts, ChallengeLifecycleTracker
from pictionary_sync.rules import DEFAULT_POLL_INTERVAL_SEC
from pictionary_sync.scores import ScoreTracker
from pictionary_sync.session_compare import differences, has_changed
from pictionary_sync.teams import TransitionOverlay

logger = logging.getLogger(__name__)


class SessionSyncEngine:
    """Polls one session and keeps the local view converged with the server.

    Each cycle runs fetch -> reconcile scores -> aggregate challenges -> confirm team
    overlay -> state transition -> notify, in that order. Cycles never overlap: a tick
    that fires while a fetch is in flight is skipped.
    """

    def __init__(
        self,
        *,
        api: SessionApi,
        hub: EventHub | None = None,
        state_machine: GameStateMachine | None = None,
        scores: ScoreTracker | None = None,
        lifecycle: ChallengeLifecycleTracker | None = None,
        overlay: TransitionOverlay | None = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SEC,
    ) -> None:
        self.api = api
        self.hub = hub if hub is not None else EventHub()
        self.state_machine = state_machine
        self.scores = scores
        self.lifecycle = lifecycle if lifecycle is not None else ChallengeLifecycleTracker()
        self.overlay = overlay
        self.poll_interval = poll_interval

        self.snapshot: GameSession | None = None
        self.challenges: list[Challenge] = []

        self._session_id: str | None = None
        self._task: asyncio.Task[None] | None = None
        self._lock = asyncio.Lock()
        # Bumped on stop/restart; a fetch started under an older generation is dropped.
        self._generation = 0

    @property
    def session_id(self) -> str | None:
        return self._session_id

    @property
    def is_polling(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def counts(self) -> ChallengeCounts:
        return self.lifecycle.session

    def subscribe(self, *types: SyncEventType) -> Subscription:
        return self.hub.subscribe(*types)

    def start_polling(self, session_id: str, interval: float | None = None) -> None:
        if self.is_polling:
            if session_id == self._session_id:
                logger.warning("already polling session=%s", session_id)
                return
            self._cancel()

        self._session_id = session_id
        period = interval if interval is not None else self.poll_interval
        logger.info("start polling session=%s every %.2fs", session_id, period)
        self._task = asyncio.create_task(self._run(session_id, period), name=f"session-poll:{session_id}")

    async def stop(self) -> None:
        task = self._cancel()
        if task is None:
            return
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info("stopped polling session=%s", self._session_id)

    async def close(self) -> None:
        await self.stop()
        self.hub.close()

    async def refresh_once(self, session_id: str | None = None) -> GameSession | None:
        """Run one fetch-and-reconcile cycle now. Failures propagate to the caller."""

        sid = session_id or self._session_id
        if not sid:
            raise ValueError("No session to refresh")
        await self._cycle(sid, self._generation)
        return self.snapshot

    def _cancel(self) -> asyncio.Task[None] | None:
        self._generation += 1
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
        return task

    async def _run(self, session_id: str, interval: float) -> None:
        while True:
            await self._tick(session_id)
            await asyncio.sleep(interval)

    async def _tick(self, session_id: str) -> None:
        if self._lock.locked():
            logger.debug("poll skipped, previous cycle still in flight (session=%s)", session_id)
            return
        try:
            await self._cycle(session_id, self._generation)
        except SessionApiError as e:
            if e.is_transient:
                logger.debug("poll failed transiently, retrying next tick: %s", e)
            else:
                logger.warning("poll failed, retrying next tick: %s", e)
        except Exception:
            logger.exception("poll cycle failed (session=%s)", session_id)

    async def _cycle(self, session_id: str, generation: int) -> bool:
        async with self._lock:
            snapshot = await self.api.get_session(session_id)
            challenges: list[Challenge] = []
            if snapshot.status != GameStatus.lobby:
                challenges = await self.api.list_challenges(session_id)

            if generation != self._generation:
                logger.debug("dropping fetch result from a stopped poller (session=%s)", session_id)
                return False
            if snapshot.id and snapshot.id != session_id:
                logger.warning("ignoring snapshot for session=%s while following %s", snapshot.id, session_id)
                return False
            return self._apply(snapshot, challenges)

    def _apply(self, snapshot: GameSession, challenges: list[Challenge]) -> bool:
        previous = self.snapshot

        if self.scores is not None:
            self.scores.session_id = snapshot.id
            self.scores.reconcile(snapshot)
        counts = self.lifecycle.update(challenges)
        if self.overlay is not None:
            self.overlay.confirm(snapshot)

        changed = has_changed(previous, snapshot)
        self.snapshot = snapshot
        self.challenges = list(challenges)

        if self.state_machine is not None:
            self.state_machine.evaluate(snapshot, counts)

        if changed:
            diff = differences(previous, snapshot) if previous is not None else {}
            if diff:
                logger.debug("session %s changed: %s", snapshot.id, diff)
            self.hub.emit(
                SyncEventType.session_changed,
                snapshot.id,
                status=snapshot.status.value,
                players=len(snapshot.players),
                diff=diff,
            )
        return changed
