from __future__ import annotations

import random
from collections.abc import Sequence
from dataclasses import dataclass

from hungry_games.api.models import Player, Team
from hungry_games.errors import InvariantViolation


@dataclass(frozen=True, slots=True)
class Anchor:
    """The team one side of a multi-party event is drawn from.

    The other side is drawn from everyone else in the pool.
    """

    team_id: int
    attackers_on_anchor: bool


def eligible_counts(teams: Sequence[Team], pool: Sequence[Player]) -> dict[int, int]:
    """Members of each team that are living and still waiting in today's pool."""

    pool_ids = {p.id for p in pool if p.living}
    return {t.id: sum(1 for pid in t.players if pid in pool_ids) for t in teams}


def split_orientation(*, anchor_size: int, pool_size: int, num_victim: int, num_attacker: int) -> bool | None:
    """Whether "anchor vs. the rest" fits the counts.

    Returns True for attackers on the anchor, False for victims on the anchor,
    None if neither orientation fits. Attackers-on-anchor wins ties.
    """

    rest = pool_size - anchor_size
    if num_attacker <= anchor_size and num_victim <= rest:
        return True
    if num_victim <= anchor_size and num_attacker <= rest:
        return False
    return None


def largest_team_size(counts: dict[int, int]) -> int:
    return max(counts.values(), default=0)


def teams_in_pool(counts: dict[int, int]) -> int:
    return sum(1 for c in counts.values() if c > 0)


def find_anchor(
    teams: Sequence[Team],
    counts: dict[int, int],
    *,
    pool_size: int,
    num_victim: int,
    num_attacker: int,
) -> Anchor | None:
    for team in sorted(teams, key=lambda t: t.id):
        orientation = split_orientation(
            anchor_size=counts.get(team.id, 0),
            pool_size=pool_size,
            num_victim=num_victim,
            num_attacker=num_attacker,
        )
        if orientation is not None:
            return Anchor(team_id=team.id, attackers_on_anchor=orientation)
    return None


def _remove_from_pool(pool: list[Player], chosen: Sequence[Player]) -> None:
    chosen_ids = {id(p) for p in chosen}
    pool[:] = [p for p in pool if id(p) not in chosen_ids]


def _sample(candidates: list[Player], k: int, rng: random.Random, *, side: str) -> list[Player]:
    if k > len(candidates):
        raise InvariantViolation(f"Need {k} {side}s but only {len(candidates)} candidates remain")
    return rng.sample(candidates, k)


def choose_participants(
    pool: list[Player],
    *,
    num_victim: int,
    num_attacker: int,
    rng: random.Random,
    teams: Sequence[Team] = (),
    anchor: Anchor | None = None,
) -> tuple[list[Player], list[Player]]:
    """Draw victims and attackers without replacement and remove them from `pool`.

    Without an anchor everyone is drawn from the whole pool. With one, the
    anchor side comes from the anchor team's pool members and the other side
    from the rest of the pool.
    """

    if anchor is None:
        chosen = _sample(pool, num_victim + num_attacker, rng, side="participant")
        victims, attackers = chosen[:num_victim], chosen[num_victim:]
    else:
        team = next((t for t in teams if t.id == anchor.team_id), None)
        if team is None:
            raise InvariantViolation(f"Anchor team {anchor.team_id} does not exist")
        members = set(team.players)
        on_anchor = [p for p in pool if p.id in members]
        off_anchor = [p for p in pool if p.id not in members]

        if anchor.attackers_on_anchor:
            attackers = _sample(on_anchor, num_attacker, rng, side="attacker")
            victims = _sample(off_anchor, num_victim, rng, side="victim")
        else:
            victims = _sample(on_anchor, num_victim, rng, side="victim")
            attackers = _sample(off_anchor, num_attacker, rng, side="attacker")

    _remove_from_pool(pool, [*victims, *attackers])
    return victims, attackers
