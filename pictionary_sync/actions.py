from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pictionary_sync.api.client import SessionApi
from pictionary_sync.api.errors import SessionApiError
from pictionary_sync.api.models import Challenge, ChallengeDraft, TeamColor
from pictionary_sync.scores import ScoreTracker
from pictionary_sync.validation import DEFAULT_DRAFT_PIPELINE, DraftValidatorPipeline, prepare_draft, validate_answer_text

if TYPE_CHECKING:
    from pictionary_sync.sync_engine import SessionSyncEngine

logger = logging.getLogger(__name__)


class ChallengeActions:
    """User-triggered challenge actions with optimistic scoring.

    Transient failures are absorbed (the next poll reconciles); anything else propagates.
    """

    def __init__(
        self,
        *,
        api: SessionApi,
        engine: SessionSyncEngine,
        scores: ScoreTracker,
        pipeline: DraftValidatorPipeline = DEFAULT_DRAFT_PIPELINE,
    ) -> None:
        self.api = api
        self.engine = engine
        self.scores = scores
        self.pipeline = pipeline

    async def send_challenge(self, session_id: str, draft: ChallengeDraft) -> Challenge | None:
        prepared = prepare_draft(draft, self.pipeline)
        try:
            challenge = await self.api.send_challenge(session_id, prepared)
        except SessionApiError as e:
            if e.is_transient:
                logger.warning("send challenge failed transiently: %s", e)
                return None
            raise
        logger.info("challenge %s sent (session=%s)", challenge.id, session_id)
        await self._refresh(session_id)
        return challenge

    async def answer_challenge(self, session_id: str, challenge: Challenge, answer_text: str, team: TeamColor) -> bool:
        """Score the answer locally, then report it. Returns whether it was correct."""

        answer = validate_answer_text(answer_text)
        is_correct = challenge.matches_answer(answer)
        if is_correct:
            self.scores.correct_guess(team)
        else:
            self.scores.wrong_guess(team)

        try:
            await self.api.answer_challenge(session_id, challenge.id, answer, is_correct)
        except SessionApiError as e:
            if e.is_transient:
                logger.warning("answer for challenge %s not delivered, poll will reconcile: %s", challenge.id, e)
                return is_correct
            raise
        await self._refresh(session_id)
        return is_correct

    def regenerate_image(self, team: TeamColor) -> int:
        return self.scores.image_regenerated(team)

    async def _refresh(self, session_id: str) -> None:
        try:
            await self.engine.refresh_once(session_id)
        except SessionApiError as e:
            logger.warning("refresh after action failed: %s", e)
