from __future__ import annotations

from dataclasses import dataclass

from hungry_games.api.models import GameOptions, GameState, Player, PlayerStatus, Team, VictorKind


@dataclass(frozen=True, slots=True)
class StatusEntry:
    """One line of the between-days status update."""

    player_id: str
    name: str
    status: PlayerStatus
    kills: int
    team_name: str | None = None


def final_standings(game: GameState) -> list[Player]:
    """Players best rank first. Ties (living players) keep roster order."""

    return sorted(game.included_players, key=lambda p: p.rank)


def team_standings(game: GameState) -> list[Team]:
    return sorted(game.teams, key=lambda t: (t.rank, t.id))


def status_update(game: GameState) -> list[StatusEntry]:
    """Everyone's condition, grouped by team when teams exist, else sorted by name."""

    def entry(player: Player, team: Team | None) -> StatusEntry:
        return StatusEntry(
            player_id=player.id,
            name=player.name,
            status=player.state,
            kills=player.kills,
            team_name=team.name if team is not None else None,
        )

    if not game.teams:
        return [entry(p, None) for p in sorted(game.included_players, key=lambda p: p.name)]

    out: list[StatusEntry] = []
    for team in game.teams:
        for pid in team.players:
            player = game.find_player(pid)
            if player is not None:
                out.append(entry(player, team))
    return out


def day_headline(game: GameState) -> str:
    return f"Day {game.day.num} has ended with {game.num_alive} alive!"


def victor_headline(game: GameState) -> str | None:
    victor = game.victor
    if victor is None:
        return None

    if victor.kind == VictorKind.team:
        team = next((t for t in game.teams if t.id == victor.team_id), None)
        team_name = team.name if team is not None else f"Team {victor.team_id}"
        return f"{team_name} has won {game.name}!"

    if victor.kind == VictorKind.player:
        player = game.find_player(victor.player_ids[0])
        name = player.name if player is not None else victor.player_ids[0]
        team = game.team_of(victor.player_ids[0])
        suffix = f" ({team.name})" if team is not None else ""
        return f"{name}{suffix} has won {game.name}!"

    return f"Everyone has died in {game.name}! There are no winners!"


def victor_mentions(game: GameState, options: GameOptions) -> list[str]:
    if game.victor is None or not options.mention_victor:
        return []
    return [f"<@{pid}>" for pid in game.victor.player_ids]
