from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import Any

import pytest

from pictionary_sync.api.errors import SessionApiError
from pictionary_sync.api.models import Challenge, ChallengeDraft, GameSession, TeamColor
from pictionary_sync.rules import MAX_PLAYERS_PER_TEAM


@pytest.fixture(scope="session", autouse=True)
def _load_dotenv_for_tests() -> None:
    """Load repo .env for local runs, so PICTIONARY_* settings apply to ad-hoc checks.

    Skipped in CI unless opted in with PICTIONARY_LOAD_DOTENV_FOR_TESTS=1.
    """

    if os.environ.get("CI") and os.environ.get("PICTIONARY_LOAD_DOTENV_FOR_TESTS") != "1":
        return

    env_path = Path(__file__).resolve().parents[1] / ".env"
    if env_path.exists():
        from dotenv import load_dotenv

        load_dotenv(dotenv_path=env_path, override=False)


class FakeSessionApi:
    """In-memory backend for one session, acting on behalf of one player.

    Enforces team capacity and reports membership problems with the same free-text
    messages as the real server, so callers exercise their error classification.

    Test hooks:
      - `fail_next(method, *errors)` queues exceptions raised by the next calls of `method`
      - `gates[method]` is an asyncio.Event awaited before `method` does anything
      - `calls` records every call in order
    """

    def __init__(self, *, session_id: str = "s1", player_id: str = "p1") -> None:
        self.session_id = session_id
        self.player_id = player_id
        self.status = "lobby"
        self.phase = "none"
        self.players: list[dict[str, Any]] = []
        self.team_scores = {"red": 100, "blue": 100}
        self.started_at: str | None = None
        self.challenges: list[dict[str, Any]] = []
        self.calls: list[tuple[Any, ...]] = []
        self.errors: dict[str, list[Exception]] = {}
        self.gates: dict[str, asyncio.Event] = {}

    # -- test helpers -------------------------------------------------------

    def add_player(self, player_id: str, color: str = "red", *, challenges_sent: int = 0) -> None:
        self.players.append(
            {"id": player_id, "name": player_id.upper(), "color": color, "challenges_sent": challenges_sent}
        )

    def color_of(self, player_id: str) -> str | None:
        p = self._find(player_id)
        return p["color"] if p is not None else None

    def fail_next(self, method: str, *errors: Exception) -> None:
        self.errors.setdefault(method, []).extend(errors)

    def count(self, method: str) -> int:
        return sum(1 for c in self.calls if c[0] == method)

    def payload(self) -> dict[str, Any]:
        return {
            "id": self.session_id,
            "status": self.status,
            "phase": self.phase,
            "players": [dict(p) for p in self.players],
            "teamScores": dict(self.team_scores),
            "startedAt": self.started_at,
        }

    def _find(self, player_id: str) -> dict[str, Any] | None:
        return next((p for p in self.players if p["id"] == player_id), None)

    async def _enter(self, method: str, *args: Any) -> None:
        self.calls.append((method, *args))
        gate = self.gates.get(method)
        if gate is not None:
            await gate.wait()
        queued = self.errors.get(method)
        if queued:
            raise queued.pop(0)

    # -- SessionApi ---------------------------------------------------------

    async def create_session(self) -> GameSession:
        await self._enter("create_session")
        return GameSession.model_validate(self.payload())

    async def join_session(self, session_id: str, color: TeamColor) -> None:
        await self._enter("join_session", session_id, TeamColor(color).value)
        if self._find(self.player_id) is not None:
            raise SessionApiError("Error 400: Player already in game session", status_code=400)
        if sum(1 for p in self.players if p["color"] == TeamColor(color).value) >= MAX_PLAYERS_PER_TEAM:
            raise SessionApiError("Error 400: team is full", status_code=400)
        self.add_player(self.player_id, TeamColor(color).value)

    async def leave_session(self, session_id: str) -> None:
        await self._enter("leave_session", session_id)
        me = self._find(self.player_id)
        if me is None:
            raise SessionApiError("Error 400: Player not in game session", status_code=400)
        self.players.remove(me)

    async def get_session(self, session_id: str) -> GameSession:
        await self._enter("get_session", session_id)
        return GameSession.model_validate(self.payload())

    async def start_session(self, session_id: str) -> None:
        await self._enter("start_session", session_id)
        self.status = "challenge"

    async def list_challenges(self, session_id: str) -> list[Challenge]:
        await self._enter("list_challenges", session_id)
        return [Challenge.model_validate(c) for c in self.challenges]

    async def send_challenge(self, session_id: str, draft: ChallengeDraft) -> Challenge:
        await self._enter("send_challenge", session_id, draft)
        raw = {
            "id": f"c{len(self.challenges) + 1}",
            "gameSessionId": session_id,
            "challenger_id": self.player_id,
            **draft.to_payload(),
        }
        self.challenges.append(raw)
        return Challenge.model_validate(raw)

    async def answer_challenge(self, session_id: str, challenge_id: str, answer: str, is_correct: bool) -> None:
        await self._enter("answer_challenge", session_id, challenge_id, answer, is_correct)
        for c in self.challenges:
            if c["id"] == challenge_id and is_correct:
                c["is_resolved"] = True


class FakeClock:
    def __init__(self) -> None:
        self.t = 0.0

    def __call__(self) -> float:
        return self.t

    def advance(self, seconds: float) -> None:
        self.t += seconds


@pytest.fixture()
def fake_api() -> FakeSessionApi:
    return FakeSessionApi()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()
