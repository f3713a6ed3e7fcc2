from __future__ import annotations

import logging

from pictionary_sync.api.models import GameSession, Player, PlayerRole, TeamColor
from pictionary_sync.rules import MAX_PLAYERS_PER_TEAM

logger = logging.getLogger(__name__)


def player_role(snapshot: GameSession | None, player_id: str) -> PlayerRole:
    """Role of `player_id` in the snapshot; `none` when unknown."""

    if snapshot is None:
        return PlayerRole.none
    player = snapshot.player(player_id)
    return player.role if player is not None else PlayerRole.none


def is_drawer(snapshot: GameSession | None, player_id: str) -> bool:
    return player_role(snapshot, player_id) == PlayerRole.drawer


def is_guesser(snapshot: GameSession | None, player_id: str) -> bool:
    return player_role(snapshot, player_id) == PlayerRole.guesser


def is_my_turn(snapshot: GameSession | None, player_id: str) -> bool:
    """A player's turn is while a game runs and they hold the pencil."""

    return snapshot is not None and snapshot.is_active and is_drawer(snapshot, player_id)


def teammate(snapshot: GameSession, player_id: str) -> Player | None:
    me = snapshot.player(player_id)
    if me is None or me.color not in TeamColor.playable():
        return None
    return next((p for p in snapshot.team_members(me.color) if p.id != player_id), None)


def all_players_have_roles(snapshot: GameSession) -> bool:
    return bool(snapshot.players) and all(p.role != PlayerRole.none for p in snapshot.players)


def roles_valid(snapshot: GameSession) -> bool:
    """Each team is two players: one drawer and one guesser."""

    for color in TeamColor.playable():
        members = snapshot.team_members(color)
        if len(members) != MAX_PLAYERS_PER_TEAM:
            return False
        roles = sorted(p.role.value for p in members)
        if roles != [PlayerRole.drawer.value, PlayerRole.guesser.value]:
            return False
    return True


def assign_initial_roles(snapshot: GameSession) -> GameSession:
    """First player of each team draws, the second guesses.

    Returns the snapshot unchanged when the teams are not complete yet.
    """

    if not snapshot.is_ready_to_start:
        logger.debug("teams incomplete, not assigning roles (session=%s)", snapshot.id)
        return snapshot

    roles: dict[str, PlayerRole] = {}
    for color in TeamColor.playable():
        drawer, guesser = snapshot.team_members(color)
        roles[drawer.id] = PlayerRole.drawer
        roles[guesser.id] = PlayerRole.guesser
    return _with_roles(snapshot, roles)


def switch_roles(snapshot: GameSession) -> GameSession:
    """Swap drawer and guesser in every team. Players without a role keep none."""

    return _with_roles(snapshot, {p.id: p.role.opposite for p in snapshot.players})


def _with_roles(snapshot: GameSession, roles: dict[str, PlayerRole]) -> GameSession:
    players = [p.model_copy(update={"role": roles.get(p.id, p.role)}) for p in snapshot.players]
    return snapshot.model_copy(update={"players": players})
