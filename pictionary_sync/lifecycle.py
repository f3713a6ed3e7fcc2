from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from pictionary_sync.api.models import Challenge


@dataclass(frozen=True, slots=True)
class ChallengeCounts:
    total: int = 0
    with_image: int = 0
    resolved: int = 0

    @property
    def all_have_images(self) -> bool:
        return self.total > 0 and self.with_image == self.total

    @property
    def all_resolved(self) -> bool:
        return self.total > 0 and self.resolved == self.total

    @property
    def progress(self) -> float:
        return self.resolved / self.total if self.total else 0.0

    def add(self, challenge: Challenge) -> ChallengeCounts:
        return ChallengeCounts(
            total=self.total + 1,
            with_image=self.with_image + (1 if challenge.has_image else 0),
            resolved=self.resolved + (1 if challenge.resolved else 0),
        )


@dataclass(slots=True)
class ChallengeLifecycleTracker:
    """Read-only aggregation over the latest challenge list of a session.

    Recomputed from scratch on every fetch; never mutates challenges.
    """

    session: ChallengeCounts = field(default_factory=ChallengeCounts)
    by_player: dict[str, ChallengeCounts] = field(default_factory=dict)

    def update(self, challenges: Iterable[Challenge]) -> ChallengeCounts:
        session = ChallengeCounts()
        by_player: dict[str, ChallengeCounts] = {}
        for c in challenges:
            session = session.add(c)
            by_player[c.owner_id] = by_player.get(c.owner_id, ChallengeCounts()).add(c)
        self.session = session
        self.by_player = by_player
        return session

    def for_player(self, player_id: str) -> ChallengeCounts:
        return self.by_player.get(player_id, ChallengeCounts())
