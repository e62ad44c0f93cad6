from __future__ import annotations

import random
import re
from collections.abc import Sequence

from hungry_games.api.models import EventKind, FinalEvent, Player
from hungry_games.core.distribution import MULTI_EVENT_DISTRIBUTION

_VICTIM_PLURAL = re.compile(r"\[V([^|\]]*)\|([^\]]*)\]")
_ATTACKER_PLURAL = re.compile(r"\[A([^|\]]*)\|([^\]]*)\]")

NO_DEAD_STANDIN = "an animal"


def format_name(player: Player, *, mention: bool = False) -> str:
    return f"<@{player.id}>" if mention else player.name


def format_multi_names(players: Sequence[Player], *, mention: bool = False) -> str:
    """Join names for a narrative sentence.

    "A", "A and B", "A, B, and C".
    """

    names = [format_name(p, mention=mention) for p in players]
    if len(names) <= 1:
        return "".join(names)
    if len(names) == 2:
        return f"{names[0]} and {names[1]}"
    return ", ".join(names[:-1]) + ", and " + names[-1]


def _pluralize(pattern: re.Pattern[str], message: str, *, plural: bool) -> str:
    return pattern.sub(lambda m: m.group(2) if plural else m.group(1), message)


def render_message(
    message: str,
    *,
    victims: Sequence[Player],
    attackers: Sequence[Player],
    mention: bool = False,
    dead_players: Sequence[Player] = (),
    rng: random.Random | None = None,
) -> str:
    """Fill a template message.

    `[Vsingular|plural]` and `[Asingular|plural]` pick a form by side size,
    `{victim}` / `{attacker}` become the joined names and `{dead}` names a
    weighted-random number of fallen players.
    """

    out = _pluralize(_VICTIM_PLURAL, message, plural=len(victims) > 1)
    out = _pluralize(_ATTACKER_PLURAL, out, plural=len(attackers) > 1)
    out = out.replace("{victim}", format_multi_names(victims, mention=mention))
    out = out.replace("{attacker}", format_multi_names(attackers, mention=mention))

    if "{dead}" in out:
        picked: Sequence[Player] = ()
        if dead_players:
            n = MULTI_EVENT_DISTRIBUTION.sample(rng or random.Random())
            picked = dead_players[:n]
        # Fallen players are never mentioned.
        out = out.replace("{dead}", format_multi_names(picked) if picked else NO_DEAD_STANDIN)

    return out


def make_final_event(
    message: str,
    *,
    victims: Sequence[Player],
    attackers: Sequence[Player] = (),
    kind: EventKind = EventKind.player,
    mention: bool = False,
    dead_players: Sequence[Player] = (),
    rng: random.Random | None = None,
) -> FinalEvent:
    return FinalEvent(
        kind=kind,
        message=render_message(
            message,
            victims=victims,
            attackers=attackers,
            mention=mention,
            dead_players=dead_players,
            rng=rng,
        ),
        victim_ids=[p.id for p in victims],
        attacker_ids=[p.id for p in attackers],
    )
