from __future__ import annotations

from typing import Any

from pictionary_sync.api.models import GameSession, Player


def players_equal(a: Player, b: Player) -> bool:
    return (
        a.id == b.id
        and a.color == b.color
        and a.role == b.role
        and a.name == b.name
        and a.is_host == b.is_host
        and a.challenges_sent == b.challenges_sent
    )


def has_changed(old: GameSession | None, new: GameSession) -> bool:
    """Structural comparison used to suppress redundant change notifications.

    Compares player identity, colour, role, name, host flag, challenge count and status.
    Scores, phase and timestamps are not compared.
    """

    if old is None:
        return True
    if old.id != new.id or old.status != new.status:
        return True
    if len(old.players) != len(new.players):
        return True

    by_id = {p.id: p for p in new.players}
    for p in old.players:
        other = by_id.get(p.id)
        if other is None or not players_equal(p, other):
            return True
    return False


def differences(old: GameSession, new: GameSession) -> dict[str, Any]:
    """Human-readable diff, for debug logs."""

    out: dict[str, Any] = {}
    if len(old.players) != len(new.players):
        out["player_count"] = {"old": len(old.players), "new": len(new.players)}
    if old.status != new.status:
        out["status"] = {"old": old.status.value, "new": new.status.value}
    if old.phase != new.phase:
        out["phase"] = {"old": old.phase.value, "new": new.phase.value}

    new_by_id = {p.id: p for p in new.players}
    players: dict[str, Any] = {}
    for p in old.players:
        q = new_by_id.get(p.id)
        if q is None:
            players[p.id] = "left"
        elif not players_equal(p, q):
            players[p.id] = {
                "old": {"name": p.name, "color": p.color.value, "role": p.role.value},
                "new": {"name": q.name, "color": q.color.value, "role": q.role.value},
            }
    old_ids = {p.id for p in old.players}
    for q in new.players:
        if q.id not in old_ids:
            players[q.id] = "joined"
    if players:
        out["players"] = players
    return out
