from __future__ import annotations

import logging
from collections.abc import Sequence

from hungry_games.api.models import EventTemplate, GameState, Outcome, Player, PlayerStatus, Team
from hungry_games.errors import InvariantViolation, TeamInconsistency

logger = logging.getLogger(__name__)


def teams_alive(game: GameState) -> int:
    return sum(1 for t in game.teams if t.num_alive > 0)


def _owning_team(game: GameState, player: Player, *, teams_enabled: bool) -> Team | None:
    if not teams_enabled:
        return None
    team = game.team_of(player.id)
    if team is None:
        raise TeamInconsistency(f"Player {player.id} is not on any team")
    return team


def touch_player(player: Player, *, kills: int = 0) -> None:
    """Common part of every effect: a second hit on a wounded player starts bleeding."""

    if player.state == PlayerStatus.wounded:
        player.bleeding = True
    player.kills += kills


def kill_player(game: GameState, player: Player, *, kills: int = 0, teams_enabled: bool) -> None:
    if not player.living:
        raise InvariantViolation(f"Player {player.id} is already dead")
    team = _owning_team(game, player, teams_enabled=teams_enabled)

    touch_player(player, kills=kills)
    player.living = False
    player.bleeding = False
    player.state = PlayerStatus.dead
    player.rank = game.num_alive
    game.num_alive -= 1

    if team is not None:
        team.num_alive -= 1
        if team.num_alive == 0:
            team.rank = teams_alive(game) + 1
            logger.debug("Team %s eliminated with rank %d", team.id, team.rank)


def wound_player(player: Player, *, kills: int = 0) -> None:
    touch_player(player, kills=kills)
    player.state = PlayerStatus.wounded


def restore_player(player: Player, *, kills: int = 0) -> None:
    touch_player(player, kills=kills)
    player.state = PlayerStatus.normal
    player.bleeding = False


def apply_outcome(game: GameState, player: Player, outcome: Outcome, *, kills: int, teams_enabled: bool) -> None:
    if outcome == Outcome.dies:
        kill_player(game, player, kills=kills, teams_enabled=teams_enabled)
    elif outcome == Outcome.wounded:
        wound_player(player, kills=kills)
    elif outcome == Outcome.thrives:
        restore_player(player, kills=kills)
    else:
        touch_player(player, kills=kills)


def apply_event(
    game: GameState,
    template: EventTemplate,
    *,
    victims: Sequence[Player],
    attackers: Sequence[Player],
    teams_enabled: bool,
) -> None:
    """Apply one resolved template. Killers are credited one kill per member of the other side."""

    victim_kills = len(attackers) if template.victim.killer else 0
    attacker_kills = len(victims) if template.attacker.killer else 0
    for player in victims:
        apply_outcome(game, player, template.victim.outcome, kills=victim_kills, teams_enabled=teams_enabled)
    for player in attackers:
        apply_outcome(game, player, template.attacker.outcome, kills=attacker_kills, teams_enabled=teams_enabled)


def bleed_out(game: GameState, player: Player, *, teams_enabled: bool) -> None:
    """Death at day end from an untreated wound. Nobody is credited."""

    player.bleeding = False
    kill_player(game, player, teams_enabled=teams_enabled)


def recover(player: Player) -> None:
    player.bleeding = False
    player.state = PlayerStatus.normal


def revive_player(game: GameState, player: Player, *, teams_enabled: bool) -> None:
    """Bring a dead player back as a zombie and keep dead ranks contiguous."""

    if player.living:
        raise InvariantViolation(f"Player {player.id} is not dead")

    team = _owning_team(game, player, teams_enabled=teams_enabled)

    for other in game.included_players:
        if other is not player and not other.living and other.rank < player.rank:
            other.rank += 1

    player.living = True
    player.bleeding = False
    player.state = PlayerStatus.zombie
    player.rank = 1
    game.num_alive += 1

    if team is not None:
        was_eliminated = team.num_alive == 0
        team.num_alive += 1
        if was_eliminated:
            for other_team in game.teams:
                if other_team is not team and other_team.num_alive == 0 and other_team.rank < team.rank:
                    other_team.rank += 1
            team.rank = 1


def check_invariants(game: GameState) -> None:
    living = sum(1 for p in game.included_players if p.living)
    if game.num_alive != living:
        raise InvariantViolation(f"num_alive={game.num_alive} but {living} players are living")

    living_ids = {p.id for p in game.included_players if p.living}
    for team in game.teams:
        expected = sum(1 for pid in team.players if pid in living_ids)
        if team.num_alive != expected:
            raise InvariantViolation(f"Team {team.id} has num_alive={team.num_alive} but {expected} living members")
