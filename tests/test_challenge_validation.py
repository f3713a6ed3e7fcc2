from __future__ import annotations

import pytest

from pictionary_sync.api.errors import ChallengeValidationError
from pictionary_sync.api.models import ChallengeDraft, GameSession
from pictionary_sync.validation import (
    DraftValidatorPipeline,
    TargetWordsValidator,
    normalize_draft,
    prepare_draft,
    validate_answer_text,
    validate_ready_to_start,
)


def _draft(input1: str = "chat", input2: str = "table", forbidden: list[str] | None = None) -> ChallengeDraft:
    return ChallengeDraft(input1=input1, input2=input2, forbidden_words=forbidden or ["animal", "meuble", "bois"])


def test_valid_draft_passes_and_is_normalized() -> None:
    out = prepare_draft(_draft(input1="Château", forbidden=["Tour", "Pierre", "Roi"]))
    assert out.input1 == "chateau"
    assert out.forbidden_words == ["tour", "pierre", "roi"]


@pytest.mark.parametrize(
    ("draft", "fragment"),
    [
        (_draft(input1=""), "first word"),
        (_draft(input2="x"), "at least 2"),
        (_draft(forbidden=["a1", "bb"]), "Expected 3"),
        (_draft(forbidden=["animal", "Chat", "bois"]), "more than once"),
        (_draft(input2="CHAT"), "more than once"),
    ],
)
def test_invalid_drafts_are_rejected(draft: ChallengeDraft, fragment: str) -> None:
    with pytest.raises(ChallengeValidationError) as e:
        prepare_draft(draft)
    assert fragment in str(e.value)


def test_custom_pipeline() -> None:
    strict = DraftValidatorPipeline(validators=(TargetWordsValidator(min_length=5),))
    with pytest.raises(ChallengeValidationError):
        prepare_draft(_draft(input1="chat"), strict)


def test_normalize_draft_keeps_original_untouched() -> None:
    original = _draft(input1="Éte")
    normalize_draft(original)
    assert original.input1 == "Éte"


def test_answer_text_is_collapsed_and_required() -> None:
    assert validate_answer_text("  un   chat ") == "un chat"
    with pytest.raises(ChallengeValidationError):
        validate_answer_text("   ")


def test_ready_to_start_checks() -> None:
    players = [{"id": f"p{i}", "color": c} for i, c in enumerate(["red", "red", "blue", "blue"])]
    validate_ready_to_start(GameSession.model_validate({"id": "s1", "players": players}))

    with pytest.raises(ValueError, match="Need 4 players"):
        validate_ready_to_start(GameSession.model_validate({"id": "s1", "players": players[:3]}))
    with pytest.raises(ValueError, match="Cannot start"):
        validate_ready_to_start(GameSession.model_validate({"id": "s1", "status": "challenge", "players": players}))
