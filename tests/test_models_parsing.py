from __future__ import annotations

from pictionary_sync.api.models import (
    Challenge,
    ChallengeDraft,
    GamePhase,
    GameSession,
    GameStatus,
    PlayerRole,
    TeamColor,
    TeamScores,
    normalize_word,
)


def test_session_parses_camel_case_payload() -> None:
    s = GameSession.model_validate(
        {
            "id": "abc",
            "status": "playing",
            "gamePhase": "guessing",
            "players": [
                {"id": "p1", "name": "Ana", "color": "red", "role": "drawer", "isHost": True},
                {"player_id": "p2", "name": "Bo", "color": "purple", "role": "wizard"},
            ],
            "teamScores": {"red": 120},
            "startedAt": "2025-01-01T00:00:00Z",
        }
    )

    assert s.status == GameStatus.playing
    assert s.phase == GamePhase.guessing
    assert [p.id for p in s.players] == ["p1", "p2"]
    assert s.players[0].is_host
    assert s.players[1].color == TeamColor.unassigned
    assert s.players[1].role == PlayerRole.none
    assert s.team_scores == TeamScores(red=120, blue=100)
    assert s.started_at is not None and s.started_at.year == 2025


def test_legacy_status_values_become_playing_phases() -> None:
    drawing = GameSession.model_validate({"id": "s", "status": "drawing"})
    guessing = GameSession.model_validate({"id": "s", "status": "GUESSING"})

    assert (drawing.status, drawing.phase) == (GameStatus.playing, GamePhase.drawing)
    assert (guessing.status, guessing.phase) == (GameStatus.playing, GamePhase.guessing)


def test_phase_is_cleared_outside_playing() -> None:
    s = GameSession.model_validate({"id": "s", "status": "challenge", "phase": "drawing"})
    assert s.phase == GamePhase.none


def test_unknown_status_falls_back_to_lobby() -> None:
    s = GameSession.model_validate({"_id": "s9", "status": "paused"})
    assert s.id == "s9"
    assert s.status == GameStatus.lobby


def test_team_split_format_and_host_flag() -> None:
    s = GameSession.model_validate(
        {
            "gameSessionId": "s1",
            "created_by": "p3",
            "red_team": [{"id": "p1", "name": "A"}, "p2"],
            "blue_team": ["p3"],
        }
    )

    assert s.team_stats() == {TeamColor.red: 2, TeamColor.blue: 1}
    assert s.player("p2") is not None and s.player("p2").color == TeamColor.red
    assert s.player("p3") is not None and s.player("p3").is_host
    assert not s.player("p1").is_host  # type: ignore[union-attr]


def test_embedded_challenges_recompute_challenges_sent() -> None:
    s = GameSession.model_validate(
        {
            "id": "s1",
            "status": "challenge",
            "players": [
                {"id": "p1", "color": "red", "challenges_sent": 0},
                {"id": "p2", "color": "blue", "challenges_sent": 3},
            ],
            "challenges": [{"challenger_id": "p1"}, {"challenger_id": "p1"}, {"challenger_id": "p3"}],
        }
    )

    assert s.player("p1").challenges_sent == 2  # type: ignore[union-attr]
    assert s.player("p2").challenges_sent == 0  # type: ignore[union-attr]


def test_ready_to_start_requires_two_full_teams() -> None:
    players = [{"id": f"p{i}", "color": c} for i, c in enumerate(["red", "red", "blue", "blue"])]
    assert GameSession.model_validate({"id": "s", "players": players}).is_ready_to_start

    lopsided = [{"id": f"p{i}", "color": c} for i, c in enumerate(["red", "red", "red", "blue"])]
    assert not GameSession.model_validate({"id": "s", "players": lopsided}).is_ready_to_start


def test_challenge_from_five_word_shape() -> None:
    c = Challenge.model_validate(
        {
            "id": 7,
            "gameSessionId": "s1",
            "challenger_id": "p2",
            "first_word": "un",
            "second_word": "chat",
            "third_word": "sur",
            "fourth_word": "une",
            "fifth_word": "table",
            "forbidden_words": '["animal", "meuble", "bois"]',
            "image_path": "https://img/1.png",
            "is_resolved": True,
        }
    )

    assert c.id == "7"
    assert c.owner_id == "p2"
    assert c.target_words == ["chat", "table"]
    assert c.forbidden_words == ["animal", "meuble", "bois"]
    assert c.has_image
    assert not c.has_prompt
    assert c.resolved
    assert c.full_phrase == "un chat sur une table"


def test_challenge_blank_image_does_not_count() -> None:
    c = Challenge.model_validate({"id": "c1", "target_words": ["a", "b"], "imageUrl": "   "})
    assert not c.has_image


def test_answer_matching_ignores_case_and_accents() -> None:
    c = Challenge.model_validate({"id": "c1", "target_words": ["éléphant", "Vélo"]})

    assert c.matches_answer("un ELEPHANT sur un velo")
    assert not c.matches_answer("un elephant sur une table")


def test_prompt_forbidden_word_detection() -> None:
    c = Challenge.model_validate({"id": "c1", "target_words": ["chat", "table"], "forbidden_words": ["animal"]})

    assert c.prompt_contains_forbidden_words("A small ANIMAL")
    assert c.prompt_contains_forbidden_words("a chat")
    assert not c.prompt_contains_forbidden_words("a furry pet on furniture")


def test_normalize_word() -> None:
    assert normalize_word("  Éléphant ") == "elephant"
    assert normalize_word("l'arbre-2") == "larbre"


def test_draft_payload_uses_backend_word_keys() -> None:
    draft = ChallengeDraft(article1="Un", input1="chat", preposition="Sur", article2="Une", input2="table",
                           forbidden_words=["a", "b", "c"])

    assert draft.to_payload() == {
        "first_word": "un",
        "second_word": "chat",
        "third_word": "sur",
        "fourth_word": "une",
        "fifth_word": "table",
        "forbidden_words": ["a", "b", "c"],
    }
