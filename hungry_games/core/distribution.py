from __future__ import annotations

import random
from collections.abc import Mapping
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class WeightedDistribution:
    """Discrete distribution over integer values.

    Sampling walks the cumulative weights with a single `rng.random()` draw, so a
    seeded `random.Random` always yields the same sequence.
    """

    values: tuple[int, ...]
    weights: tuple[float, ...]

    @staticmethod
    def from_mapping(table: Mapping[int, float]) -> "WeightedDistribution":
        if not table:
            raise ValueError("distribution needs at least one value")
        if any(w < 0 for w in table.values()):
            raise ValueError("weights must be >= 0")
        total = sum(table.values())
        if abs(total - 1.0) > 1e-9:
            raise ValueError(f"weights must total 1.0 (got {total})")
        items = sorted(table.items())
        return WeightedDistribution(values=tuple(v for v, _ in items), weights=tuple(w for _, w in items))

    def sample(self, rng: random.Random) -> int:
        r = rng.random()
        acc = 0.0
        for value, weight in zip(self.values, self.weights):
            acc += weight
            if r <= acc:
                return value
        # Float rounding can leave r just above the final cumulative sum.
        return self.values[-1]


# Number of participants on a "multi" side, before adding the template's minimum - 1.
MULTI_EVENT_DISTRIBUTION = WeightedDistribution.from_mapping(
    {
        1: 0.66,
        2: 0.27,
        3: 0.03,
        4: 0.02,
        6: 0.015,
        7: 0.005,
    }
)


def extra_participants(rng: random.Random) -> int:
    """Additional participants beyond a template's minimum: one of 0, 1, 2, 3, 5, 6."""

    return MULTI_EVENT_DISTRIBUTION.sample(rng) - 1
