from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from pictionary_sync.api.errors import ChallengeValidationError
from pictionary_sync.api.models import ChallengeDraft, GameSession, GameStatus, TeamColor, normalize_word
from pictionary_sync.rules import (
    FORBIDDEN_WORDS_PER_CHALLENGE,
    MAX_PLAYERS,
    MAX_PLAYERS_PER_TEAM,
    MIN_WORD_LENGTH,
)


class DraftValidator(ABC):
    """One check over a challenge draft, run after normalisation."""

    @abstractmethod
    def validate(self, *, draft: ChallengeDraft) -> None:
        raise NotImplementedError


@dataclass(frozen=True, slots=True)
class TargetWordsValidator(DraftValidator):
    min_length: int = MIN_WORD_LENGTH

    def validate(self, *, draft: ChallengeDraft) -> None:
        for label, word in (("first", draft.input1), ("second", draft.input2)):
            if not word:
                raise ChallengeValidationError(f"The {label} word to guess is empty")
            if len(word) < self.min_length:
                raise ChallengeValidationError(
                    f"The {label} word to guess must have at least {self.min_length} letters"
                )


@dataclass(frozen=True, slots=True)
class ForbiddenWordsValidator(DraftValidator):
    count: int = FORBIDDEN_WORDS_PER_CHALLENGE

    def validate(self, *, draft: ChallengeDraft) -> None:
        words = [w for w in draft.forbidden_words if w]
        if len(words) != self.count:
            raise ChallengeValidationError(f"Expected {self.count} forbidden words, got {len(words)}")


@dataclass(frozen=True, slots=True)
class DistinctWordsValidator(DraftValidator):
    """Targets and forbidden words must all differ from each other."""

    def validate(self, *, draft: ChallengeDraft) -> None:
        words = [draft.input1, draft.input2, *draft.forbidden_words]
        seen: set[str] = set()
        for w in words:
            if w in seen:
                raise ChallengeValidationError(f"Word '{w}' is used more than once")
            seen.add(w)


@dataclass(frozen=True, slots=True)
class DraftValidatorPipeline:
    validators: tuple[DraftValidator, ...]

    def validate(self, *, draft: ChallengeDraft) -> None:
        for v in self.validators:
            v.validate(draft=draft)


DEFAULT_DRAFT_PIPELINE = DraftValidatorPipeline(
    validators=(
        TargetWordsValidator(),
        ForbiddenWordsValidator(),
        DistinctWordsValidator(),
    )
)


def normalize_draft(draft: ChallengeDraft) -> ChallengeDraft:
    """Lower-case, accent-free, letters-only copy of the draft's words."""

    return draft.model_copy(
        update={
            "article1": draft.article1.strip().lower(),
            "input1": normalize_word(draft.input1),
            "preposition": draft.preposition.strip().lower(),
            "article2": draft.article2.strip().lower(),
            "input2": normalize_word(draft.input2),
            "forbidden_words": [normalize_word(w) for w in draft.forbidden_words],
        }
    )


def prepare_draft(draft: ChallengeDraft, pipeline: DraftValidatorPipeline = DEFAULT_DRAFT_PIPELINE) -> ChallengeDraft:
    normalized = normalize_draft(draft)
    pipeline.validate(draft=normalized)
    return normalized


def validate_answer_text(text: str) -> str:
    cleaned = " ".join(text.split())
    if not cleaned:
        raise ChallengeValidationError("Answer is empty")
    return cleaned


def validate_ready_to_start(snapshot: GameSession) -> None:
    """A game starts from the lobby with two full teams."""

    if snapshot.status != GameStatus.lobby:
        raise ValueError(f"Cannot start a session in status '{snapshot.status.value}'")
    if len(snapshot.players) != MAX_PLAYERS:
        raise ValueError(f"Need {MAX_PLAYERS} players to start, have {len(snapshot.players)}")
    for color in TeamColor.playable():
        n = snapshot.team_count(color)
        if n != MAX_PLAYERS_PER_TEAM:
            raise ValueError(f"Team {color.value} has {n} players, needs {MAX_PLAYERS_PER_TEAM}")
