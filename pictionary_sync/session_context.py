from __future__ import annotations

import logging

from pictionary_sync.actions import ChallengeActions
from pictionary_sync.api.client import SessionApi
from pictionary_sync.api.models import GameSession, PlayerRole
from pictionary_sync.core.hub import EventHub
from pictionary_sync.fsm import GameStateMachine
from pictionary_sync.lifecycle import ChallengeLifecycleTracker
from pictionary_sync.roles import is_my_turn, player_role
from pictionary_sync.rules import DEFAULT_POLL_INTERVAL_SEC, ROUND_DURATION_SEC, TEAM_CHANGE_DEBOUNCE_SEC
from pictionary_sync.scores import ScoreTracker
from pictionary_sync.settings import SyncSettings
from pictionary_sync.sync_engine import SessionSyncEngine
from pictionary_sync.teams import TeamAssignmentCoordinator, TransitionOverlay
from pictionary_sync.validation import validate_ready_to_start

logger = logging.getLogger(__name__)


class GameSessionContext:
    """Everything one screen needs to follow one session.

    Each context owns its own hub, engine, trackers and coordinator; nothing is shared
    between contexts. Use as an async context manager so polling stops on exit:

        async with GameSessionContext(api=api, player_id="p1") as ctx:
            ctx.engine.start_polling(session_id)
            ...
    """

    def __init__(self, *, api: SessionApi, player_id: str, settings: SyncSettings | None = None) -> None:
        self.api = api
        self.player_id = player_id
        self.hub = EventHub()

        poll_interval = settings.poll_interval_sec if settings is not None else DEFAULT_POLL_INTERVAL_SEC
        round_duration = settings.round_duration_sec if settings is not None else ROUND_DURATION_SEC
        debounce = settings.team_debounce_sec if settings is not None else TEAM_CHANGE_DEBOUNCE_SEC

        self.scores = ScoreTracker(hub=self.hub)
        self.lifecycle = ChallengeLifecycleTracker()
        self.overlay = TransitionOverlay()
        self.state_machine = GameStateMachine(hub=self.hub, round_duration_sec=round_duration)

        self.engine = SessionSyncEngine(
            api=api,
            hub=self.hub,
            state_machine=self.state_machine,
            scores=self.scores,
            lifecycle=self.lifecycle,
            overlay=self.overlay,
            poll_interval=poll_interval,
        )

        self.teams = TeamAssignmentCoordinator(
            api=api,
            engine=self.engine,
            player_id=player_id,
            overlay=self.overlay,
            hub=self.hub,
            debounce_sec=debounce,
        )
        self.actions = ChallengeActions(api=api, engine=self.engine, scores=self.scores)

    @property
    def my_role(self) -> PlayerRole:
        return player_role(self.engine.snapshot, self.player_id)

    @property
    def is_my_turn(self) -> bool:
        return is_my_turn(self.engine.snapshot, self.player_id)

    def time_left(self) -> float | None:
        snapshot = self.engine.snapshot
        if snapshot is None:
            return None
        return self.state_machine.remaining_time(snapshot)

    async def __aenter__(self) -> GameSessionContext:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def close(self) -> None:
        await self.engine.close()

    async def create_session(self) -> GameSession:
        session = await self.api.create_session()
        logger.info("created session %s", session.id)
        await self.engine.refresh_once(session.id)
        return self.engine.snapshot or session

    async def start_session(self, session_id: str) -> GameSession | None:
        snapshot = await self.engine.refresh_once(session_id)
        if snapshot is not None:
            validate_ready_to_start(snapshot)
        await self.api.start_session(session_id)
        logger.info("started session %s", session_id)
        return await self.engine.refresh_once(session_id)
