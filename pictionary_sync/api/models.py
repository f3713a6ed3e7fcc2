from __future__ import annotations

import json
import unicodedata
from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from pictionary_sync.rules import INITIAL_TEAM_SCORE, MAX_PLAYERS, MAX_PLAYERS_PER_TEAM


class GameStatus(StrEnum):
    lobby = "lobby"
    challenge = "challenge"
    playing = "playing"
    finished = "finished"

    @property
    def rank(self) -> int:
        return _STATUS_ORDER.index(self)


_STATUS_ORDER = (GameStatus.lobby, GameStatus.challenge, GameStatus.playing, GameStatus.finished)


class GamePhase(StrEnum):
    none = "none"
    drawing = "drawing"
    guessing = "guessing"


class TeamColor(StrEnum):
    red = "red"
    blue = "blue"
    unassigned = "unassigned"

    @classmethod
    def playable(cls) -> tuple[TeamColor, TeamColor]:
        return (cls.red, cls.blue)


class PlayerRole(StrEnum):
    drawer = "drawer"
    guesser = "guesser"
    none = "none"

    @property
    def opposite(self) -> PlayerRole:
        if self == PlayerRole.drawer:
            return PlayerRole.guesser
        if self == PlayerRole.guesser:
            return PlayerRole.drawer
        return PlayerRole.none


def _first(raw: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if raw.get(key) is not None:
            return raw[key]
    return None


def _enum_or(enum_cls: type[StrEnum], value: Any, default: StrEnum) -> Any:
    if value is None:
        return default
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        return default


class Player(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    color: TeamColor = TeamColor.unassigned
    role: PlayerRole = PlayerRole.none
    is_host: bool = False
    challenges_sent: int = Field(default=0, ge=0)

    @model_validator(mode="before")
    @classmethod
    def _from_wire(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        return {
            "id": str(_first(data, "id", "_id", "player_id") or ""),
            "name": data.get("name") or "",
            "color": _enum_or(TeamColor, data.get("color"), TeamColor.unassigned),
            "role": _enum_or(PlayerRole, data.get("role"), PlayerRole.none),
            "is_host": bool(_first(data, "is_host", "isHost") or False),
            "challenges_sent": int(_first(data, "challenges_sent", "challengesSent") or 0),
        }


class TeamScores(BaseModel):
    model_config = ConfigDict(frozen=True)

    red: int = Field(default=INITIAL_TEAM_SCORE, ge=0)
    blue: int = Field(default=INITIAL_TEAM_SCORE, ge=0)

    def get(self, team: TeamColor) -> int:
        if team == TeamColor.red:
            return self.red
        if team == TeamColor.blue:
            return self.blue
        raise ValueError(f"No score for team '{team.value}'")

    @property
    def is_default(self) -> bool:
        return self.red == INITIAL_TEAM_SCORE and self.blue == INITIAL_TEAM_SCORE


# Older backends report the in-game phase through `status`.
_LEGACY_PLAYING_STATUSES = {"drawing": GamePhase.drawing, "guessing": GamePhase.guessing}


class GameSession(BaseModel):
    """One `getSession` snapshot; replaced wholesale on every successful poll."""

    model_config = ConfigDict(frozen=True)

    id: str
    status: GameStatus = GameStatus.lobby
    phase: GamePhase = GamePhase.none
    players: list[Player] = Field(default_factory=list)
    team_scores: TeamScores = Field(default_factory=TeamScores)
    started_at: datetime | None = None
    host_id: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _from_wire(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data

        raw_status = str(data.get("status") or GameStatus.lobby.value).strip().lower()
        raw_phase = _first(data, "phase", "gamePhase", "game_phase")
        phase = _enum_or(GamePhase, raw_phase, GamePhase.none)
        if raw_status in _LEGACY_PLAYING_STATUSES:
            status = GameStatus.playing
            phase = _LEGACY_PLAYING_STATUSES[raw_status]
        else:
            status = _enum_or(GameStatus, raw_status, GameStatus.lobby)
        if status != GameStatus.playing:
            phase = GamePhase.none

        host_id = _first(data, "host_id", "hostId", "created_by", "createdBy")
        host_id = str(host_id) if host_id is not None else None

        players = [dict(p) if isinstance(p, dict) else p for p in _raw_players(data)]
        counts = _challenge_counts(data.get("challenges"))
        for p in players:
            if not isinstance(p, dict):
                continue
            pid = str(_first(p, "id", "_id", "player_id") or "")
            if counts is not None:
                p["challenges_sent"] = counts.get(pid, 0)
            if host_id is not None:
                p["is_host"] = pid == host_id

        raw_scores = _first(data, "team_scores", "teamScores")
        scores: Any = {}
        if isinstance(raw_scores, TeamScores):
            scores = raw_scores
        elif isinstance(raw_scores, dict):
            scores = {k: v for k, v in raw_scores.items() if k in ("red", "blue") and v is not None}

        return {
            "id": str(_first(data, "id", "_id", "gameSessionId") or ""),
            "status": status,
            "phase": phase,
            "players": players,
            "team_scores": scores,
            "started_at": _first(data, "started_at", "startedAt", "startTime"),
            "host_id": host_id,
        }

    def player(self, player_id: str) -> Player | None:
        return next((p for p in self.players if p.id == player_id), None)

    def team_members(self, color: TeamColor) -> list[Player]:
        return [p for p in self.players if p.color == color]

    def team_count(self, color: TeamColor) -> int:
        return len(self.team_members(color))

    def team_stats(self) -> dict[TeamColor, int]:
        return {c: self.team_count(c) for c in TeamColor.playable()}

    @property
    def is_ready_to_start(self) -> bool:
        return len(self.players) == MAX_PLAYERS and all(
            self.team_count(c) == MAX_PLAYERS_PER_TEAM for c in TeamColor.playable()
        )

    @property
    def is_active(self) -> bool:
        return self.status in (GameStatus.challenge, GameStatus.playing)

    @property
    def is_finished(self) -> bool:
        return self.status == GameStatus.finished


def _raw_players(data: dict[str, Any]) -> list[Any]:
    if isinstance(data.get("players"), list):
        return list(data["players"])

    # Team-split format: {"red_team": [...], "blue_team": [...]}
    players: list[Any] = []
    for key, color in (("red_team", TeamColor.red), ("blue_team", TeamColor.blue)):
        for member in data.get(key) or []:
            if isinstance(member, dict):
                players.append({**member, "color": color.value})
            else:
                players.append({"id": str(member), "color": color.value})
    return players


def _challenge_counts(challenges: Any) -> dict[str, int] | None:
    if not isinstance(challenges, list):
        return None
    counts: dict[str, int] = {}
    for c in challenges:
        if isinstance(c, dict) and c.get("challenger_id") is not None:
            cid = str(c["challenger_id"])
            counts[cid] = counts.get(cid, 0) + 1
    return counts


def normalize_word(word: str) -> str:
    """Lower-case, strip accents and keep ASCII letters only."""

    decomposed = unicodedata.normalize("NFKD", word.strip().lower())
    return "".join(ch for ch in decomposed if "a" <= ch <= "z")


def _parse_forbidden(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, list):
        return [str(w) for w in value]
    text = str(value)
    try:
        parsed = json.loads(text)
    except ValueError:
        return [text]
    if isinstance(parsed, list):
        return [str(w) for w in parsed]
    return [text]


class Challenge(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    session_id: str = ""
    owner_id: str = ""
    target_words: list[str] = Field(default_factory=list)
    forbidden_words: list[str] = Field(default_factory=list)
    image_url: str | None = None
    prompt: str | None = None
    resolved: bool = False

    # Sentence frame: "<article1> <input1> <preposition> <article2> <input2>"
    article1: str = "un"
    preposition: str = "sur"
    article2: str = "une"

    answer: str | None = None
    drawer_id: str | None = None
    guesser_id: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _from_wire(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data

        targets = data.get("target_words")
        if not isinstance(targets, list):
            targets = [
                _first(data, "input1", "input_1", "second_word") or "",
                _first(data, "input2", "input_2", "fifth_word") or "",
            ]
            targets = [t for t in targets if t]

        def _opt(*keys: str) -> str | None:
            v = _first(data, *keys)
            return str(v) if v not in (None, "") else None

        return {
            "id": str(_first(data, "id", "_id", "challengeId") or ""),
            "session_id": str(_first(data, "session_id", "gameSessionId", "game_session_id") or ""),
            "owner_id": str(_first(data, "owner_id", "challenger_id", "challengerId") or ""),
            "target_words": [str(t) for t in targets],
            "forbidden_words": _parse_forbidden(_first(data, "forbidden_words", "forbiddenWords")),
            "image_url": _opt("image_url", "imageUrl", "image_path"),
            "prompt": _opt("prompt"),
            "resolved": bool(_first(data, "resolved", "is_resolved", "isResolved") or False),
            "article1": _first(data, "article1", "article_1", "first_word") or "un",
            "preposition": _first(data, "preposition", "third_word") or "sur",
            "article2": _first(data, "article2", "article_2", "fourth_word") or "une",
            "answer": _opt("answer"),
            "drawer_id": _opt("drawer_id", "drawerId"),
            "guesser_id": _opt("guesser_id", "guesserId"),
        }

    @property
    def has_image(self) -> bool:
        return bool(self.image_url and self.image_url.strip())

    @property
    def has_prompt(self) -> bool:
        return bool(self.prompt and self.prompt.strip())

    @property
    def full_phrase(self) -> str:
        first, second = (self.target_words + ["", ""])[:2]
        return f"{self.article1} {first} {self.preposition} {self.article2} {second}"

    def prompt_contains_forbidden_words(self, text: str) -> bool:
        lowered = text.lower()
        return any(w.lower() in lowered for w in [*self.target_words, *self.forbidden_words] if w)

    def matches_answer(self, text: str) -> bool:
        """True when every target word appears in the answer (case and accent insensitive)."""

        words = {normalize_word(w) for w in text.split()}
        targets = [normalize_word(t) for t in self.target_words]
        return bool(targets) and all(t in words for t in targets)


class ChallengeDraft(BaseModel):
    """Payload of `sendChallenge`: two words to guess plus three forbidden words."""

    article1: str = "un"
    input1: str
    preposition: str = "sur"
    article2: str = "une"
    input2: str
    forbidden_words: list[str] = Field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        return {
            "first_word": self.article1.lower(),
            "second_word": self.input1,
            "third_word": self.preposition.lower(),
            "fourth_word": self.article2.lower(),
            "fifth_word": self.input2,
            "forbidden_words": list(self.forbidden_words),
        }
