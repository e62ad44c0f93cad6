from __future__ import annotations

import random

import pytest

from hungry_games.api.models import EventKind, Player
from hungry_games.core.distribution import MULTI_EVENT_DISTRIBUTION, WeightedDistribution, extra_participants
from hungry_games.core.narration import format_multi_names, make_final_event, render_message


class _FixedRandom(random.Random):
    def __init__(self, value: float):
        super().__init__(0)
        self._value = value

    def random(self) -> float:
        return self._value


def _p(pid: str, name: str, *, living: bool = True) -> Player:
    return Player(id=pid, name=name, living=living)


def test_weighted_distribution_rejects_bad_tables() -> None:
    with pytest.raises(ValueError):
        WeightedDistribution.from_mapping({})
    with pytest.raises(ValueError):
        WeightedDistribution.from_mapping({1: 0.5, 2: 0.4})
    with pytest.raises(ValueError):
        WeightedDistribution.from_mapping({1: 1.5, 2: -0.5})


def test_multi_event_distribution_walks_cumulative_weights() -> None:
    assert MULTI_EVENT_DISTRIBUTION.sample(_FixedRandom(0.0)) == 1
    assert MULTI_EVENT_DISTRIBUTION.sample(_FixedRandom(0.65)) == 1
    assert MULTI_EVENT_DISTRIBUTION.sample(_FixedRandom(0.7)) == 2
    assert MULTI_EVENT_DISTRIBUTION.sample(_FixedRandom(0.95)) == 3
    assert MULTI_EVENT_DISTRIBUTION.sample(_FixedRandom(0.97)) == 4
    assert MULTI_EVENT_DISTRIBUTION.sample(_FixedRandom(0.99)) == 6
    assert MULTI_EVENT_DISTRIBUTION.sample(_FixedRandom(0.9999)) == 7


def test_extra_participants_is_seeded_and_bounded() -> None:
    a = [extra_participants(random.Random(7)) for _ in range(5)]
    b = [extra_participants(random.Random(7)) for _ in range(5)]
    assert a == b

    rng = random.Random(123)
    draws = {extra_participants(rng) for _ in range(2000)}
    assert draws <= {0, 1, 2, 3, 5, 6}
    assert 0 in draws and 1 in draws


def test_format_multi_names_joins_with_oxford_comma() -> None:
    a, b, c = _p("1", "Ann"), _p("2", "Bo"), _p("3", "Cy")

    assert format_multi_names([]) == ""
    assert format_multi_names([a]) == "Ann"
    assert format_multi_names([a, b]) == "Ann and Bo"
    assert format_multi_names([a, b, c]) == "Ann, Bo, and Cy"
    assert format_multi_names([a, b], mention=True) == "<@1> and <@2>"


def test_render_message_picks_plural_forms_per_side() -> None:
    a, b, c = _p("1", "Ann"), _p("2", "Bo"), _p("3", "Cy")
    msg = "{attacker} corner[As|] {victim}, who [Vis|are] caught off guard."

    single = render_message(msg, victims=[b], attackers=[a])
    assert single == "Ann corners Bo, who is caught off guard."

    plural = render_message(msg, victims=[b, c], attackers=[a])
    assert plural == "Ann corners Bo and Cy, who are caught off guard."


def test_render_message_dead_placeholder() -> None:
    a = _p("1", "Ann")
    dead = [_p("2", "Bo", living=False), _p("3", "Cy", living=False)]

    assert render_message("{victim} mourn[Vs|] {dead}.", victims=[a], attackers=[]) == "Ann mourns an animal."

    out = render_message("{victim} mourn[Vs|] {dead}.", victims=[a], attackers=[], dead_players=dead, rng=_FixedRandom(0.0))
    assert out == "Ann mourns Bo."

    # Fallen players are named, never mentioned.
    out = render_message(
        "{victim} mourn[Vs|] {dead}.",
        victims=[a],
        attackers=[],
        dead_players=dead,
        rng=_FixedRandom(0.8),
        mention=True,
    )
    assert out == "<@1> mourns Bo and Cy."


def test_make_final_event_lists_participants() -> None:
    a, b = _p("1", "Ann"), _p("2", "Bo")

    event = make_final_event("{attacker} kill[As|] {victim}.", victims=[b], attackers=[a])

    assert event.kind == EventKind.player
    assert event.message == "Ann kills Bo."
    assert event.victim_ids == ["2"]
    assert event.attacker_ids == ["1"]
    assert event.participant_ids == ["1", "2"]
