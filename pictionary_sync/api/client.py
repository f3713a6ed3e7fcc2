from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from pictionary_sync.api.errors import ErrorCategory, SessionApiError
from pictionary_sync.api.models import Challenge, ChallengeDraft, GameSession, TeamColor

logger = logging.getLogger(__name__)


class SessionApi(Protocol):
    """Remote session/challenge operations the sync core depends on.

    Implementations raise `SessionApiError` carrying an `ErrorCategory`; any other
    exception type is treated as fatal by callers.
    """

    async def create_session(self) -> GameSession:  # pragma: no cover
        ...

    async def join_session(self, session_id: str, color: TeamColor) -> None:  # pragma: no cover
        ...

    async def leave_session(self, session_id: str) -> None:  # pragma: no cover
        ...

    async def get_session(self, session_id: str) -> GameSession:  # pragma: no cover
        ...

    async def start_session(self, session_id: str) -> None:  # pragma: no cover
        ...

    async def list_challenges(self, session_id: str) -> list[Challenge]:  # pragma: no cover
        ...

    async def send_challenge(self, session_id: str, draft: ChallengeDraft) -> Challenge:  # pragma: no cover
        ...

    async def answer_challenge(
        self, session_id: str, challenge_id: str, answer: str, is_correct: bool
    ) -> None:  # pragma: no cover
        ...


def _items(data: Any) -> list[Any]:
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        return list(data.get("items") or [])
    return []


class HttpSessionApi:
    """`SessionApi` over the game backend's REST routes.

    Timeouts and transport failures become transient `SessionApiError`s; HTTP errors are
    classified from the response body.
    """

    def __init__(
        self,
        *,
        base_url: str,
        token: str | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, *, json: dict[str, Any] | None = None) -> Any:
        try:
            resp = await self._client.request(method, path, json=json)
        except httpx.TimeoutException as e:
            raise SessionApiError(f"timeout: {method} {path}", category=ErrorCategory.transient) from e
        except httpx.TransportError as e:
            raise SessionApiError(f"network error: {e}", category=ErrorCategory.transient) from e

        if resp.status_code >= 400:
            message = f"Error {resp.status_code}: {resp.text}"
            logger.debug("%s %s failed: %s", method, path, message)
            raise SessionApiError(message, status_code=resp.status_code)

        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError:
            return None

    async def create_session(self) -> GameSession:
        data = await self._request("POST", "/game_sessions")
        return GameSession.model_validate(data)

    async def join_session(self, session_id: str, color: TeamColor) -> None:
        logger.info("join session=%s color=%s", session_id, color.value)
        await self._request("POST", f"/game_sessions/{session_id}/join", json={"color": color.value})

    async def leave_session(self, session_id: str) -> None:
        logger.info("leave session=%s", session_id)
        await self._request("GET", f"/game_sessions/{session_id}/leave")

    async def get_session(self, session_id: str) -> GameSession:
        data = await self._request("GET", f"/game_sessions/{session_id}")
        if not isinstance(data, dict):
            raise SessionApiError(f"Malformed session payload for {session_id}", category=ErrorCategory.fatal)
        return GameSession.model_validate(data)

    async def start_session(self, session_id: str) -> None:
        logger.info("start session=%s", session_id)
        await self._request("POST", f"/game_sessions/{session_id}/start")

    async def list_challenges(self, session_id: str) -> list[Challenge]:
        data = await self._request("GET", f"/game_sessions/{session_id}/challenges")
        return [Challenge.model_validate({"gameSessionId": session_id, **c}) for c in _items(data)]

    async def send_challenge(self, session_id: str, draft: ChallengeDraft) -> Challenge:
        data = await self._request("POST", f"/game_sessions/{session_id}/challenges", json=draft.to_payload())
        return Challenge.model_validate({"gameSessionId": session_id, **(data or {})})

    async def answer_challenge(self, session_id: str, challenge_id: str, answer: str, is_correct: bool) -> None:
        await self._request(
            "POST",
            f"/game_sessions/{session_id}/challenges/{challenge_id}/answer",
            json={"answer": answer, "is_resolved": is_correct},
        )
