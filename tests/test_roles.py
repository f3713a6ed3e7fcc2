from __future__ import annotations

from pictionary_sync.api.models import GameSession, PlayerRole
from pictionary_sync.roles import (
    all_players_have_roles,
    assign_initial_roles,
    is_drawer,
    is_guesser,
    is_my_turn,
    player_role,
    roles_valid,
    switch_roles,
    teammate,
)


def _session(roles: dict[str, str] | None = None, *, status: str = "playing", count: int = 4) -> GameSession:
    roles = roles or {}
    players = [
        {"id": f"p{i}", "color": "red" if i < 2 else "blue", "role": roles.get(f"p{i}")} for i in range(count)
    ]
    return GameSession.model_validate({"id": "s1", "status": status, "phase": "drawing", "players": players})


ASSIGNED = {"p0": "drawer", "p1": "guesser", "p2": "drawer", "p3": "guesser"}


def test_role_queries() -> None:
    s = _session(ASSIGNED)

    assert player_role(s, "p0") == PlayerRole.drawer
    assert player_role(s, "nobody") == PlayerRole.none
    assert player_role(None, "p0") == PlayerRole.none
    assert is_drawer(s, "p2") and not is_guesser(s, "p2")
    assert is_guesser(s, "p3")
    assert teammate(s, "p0").id == "p1"  # type: ignore[union-attr]
    assert teammate(s, "nobody") is None


def test_my_turn_only_while_game_runs() -> None:
    assert is_my_turn(_session(ASSIGNED), "p0")
    assert not is_my_turn(_session(ASSIGNED), "p1")
    assert not is_my_turn(_session(ASSIGNED, status="finished"), "p0")
    assert not is_my_turn(_session(ASSIGNED, status="lobby"), "p0")
    assert not is_my_turn(None, "p0")


def test_roles_valid_needs_one_drawer_and_one_guesser_per_team() -> None:
    assert roles_valid(_session(ASSIGNED))
    assert all_players_have_roles(_session(ASSIGNED))

    two_drawers = dict(ASSIGNED, p1="drawer")
    assert all_players_have_roles(_session(two_drawers))
    assert not roles_valid(_session(two_drawers))

    missing = dict(ASSIGNED, p3=None)
    assert not all_players_have_roles(_session(missing))  # type: ignore[arg-type]
    assert not roles_valid(_session(missing))  # type: ignore[arg-type]

    assert not roles_valid(_session({"p0": "drawer", "p1": "guesser", "p2": "drawer"}, count=3))
    assert not all_players_have_roles(_session(count=0))


def test_initial_assignment_first_player_draws() -> None:
    assigned = assign_initial_roles(_session(status="challenge"))

    assert [p.role for p in assigned.players] == [
        PlayerRole.drawer,
        PlayerRole.guesser,
        PlayerRole.drawer,
        PlayerRole.guesser,
    ]
    assert roles_valid(assigned)


def test_initial_assignment_waits_for_full_teams() -> None:
    partial = _session(status="lobby", count=3)
    assert assign_initial_roles(partial) is partial


def test_switch_roles_swaps_each_team_and_leaves_unassigned() -> None:
    switched = switch_roles(_session(dict(ASSIGNED, p3=None)))  # type: ignore[arg-type]

    assert [p.role for p in switched.players] == [
        PlayerRole.guesser,
        PlayerRole.drawer,
        PlayerRole.guesser,
        PlayerRole.none,
    ]
    twice = switch_roles(switch_roles(_session(ASSIGNED)))
    assert {p.id: p.role.value for p in twice.players} == ASSIGNED
