from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from typing import Any

from pydantic import ValidationError

from hungry_games.api.models import (
    ArenaEvent,
    CustomEvents,
    EventPool,
    EventTemplate,
    GameOptions,
    GameState,
    InstanceState,
    Member,
    Player,
    Team,
)
from hungry_games.errors import AlreadyInProgress, GameNotInProgress, InvalidOption, InvalidRequest
from hungry_games.fsm import DayFSM

logger = logging.getLogger(__name__)

MIN_PLAYERS = 2

RESET_TARGETS = ("all", "events", "current", "options", "teams")


def build_players(members: Sequence[Member], *, excluded: set[str], include_bots: bool) -> list[Player]:
    """Admit every roster member that isn't excluded (and isn't a bot unless bots are allowed)."""

    return [
        Player(id=m.id, name=m.name, avatar_url=m.avatar_url)
        for m in members
        if m.id not in excluded and (include_bots or not m.is_bot)
    ]


def form_teams(game: GameState, *, team_size: int) -> None:
    """Fit players into teams of at most `team_size`.

    Existing teams are kept: players no longer included are dropped, unplaced
    players fill the first team with room, and a new team is appended when all
    are full. Without teams, players are split in roster order.

    Mutates `game` in place.
    """

    if team_size <= 0:
        game.teams = []
        return

    included_ids = [p.id for p in game.included_players]

    if game.teams:
        included = set(included_ids)
        placed: set[str] = set()
        for team in game.teams:
            team.players = [pid for pid in team.players if pid in included and pid not in placed]
            placed.update(team.players)

        for pid in included_ids:
            if pid in placed:
                continue
            team = next((t for t in game.teams if len(t.players) < team_size), None)
            if team is None:
                next_id = max(t.id for t in game.teams) + 1
                team = Team(id=next_id, name=f"Team {next_id + 1}")
                game.teams.append(team)
            team.players.append(pid)
            placed.add(pid)

        game.teams = [t for t in game.teams if t.players]
    else:
        num_teams = math.ceil(len(included_ids) / team_size)
        game.teams = [
            Team(id=i, name=f"Team {i + 1}", players=included_ids[i * team_size : (i + 1) * team_size])
            for i in range(num_teams)
        ]

    living = {p.id for p in game.included_players if p.living}
    for team in game.teams:
        team.num_alive = sum(1 for pid in team.players if pid in living)
        if team.num_alive > 0:
            team.rank = 1


def reset_teams(game: GameState, *, team_size: int) -> None:
    if game.in_progress:
        raise AlreadyInProgress("End the current game before editing teams")
    game.teams = []
    form_teams(game, team_size=team_size)


def swap_team_players(game: GameState, *, player_id_a: str, player_id_b: str) -> None:
    if game.in_progress:
        raise AlreadyInProgress("End the current game before editing teams")

    team_a = game.team_of(player_id_a)
    team_b = game.team_of(player_id_b)
    if team_a is None or team_b is None:
        raise InvalidRequest("Both players must be on a team")

    idx_a = team_a.players.index(player_id_a)
    idx_b = team_b.players.index(player_id_b)
    team_a.players[idx_a], team_b.players[idx_b] = player_id_b, player_id_a

    # Counters are per team; a cross-team swap of living players leaves them as they were.
    for team in (team_a, team_b):
        team.num_alive = sum(1 for pid in team.players if (p := game.find_player(pid)) is not None and p.living)


def rename_team(game: GameState, *, name: str, team_id: int | None = None, player_id: str | None = None) -> Team:
    if game.in_progress:
        raise AlreadyInProgress("End the current game before editing teams")

    if team_id is not None:
        team = next((t for t in game.teams if t.id == team_id), None)
    elif player_id is not None:
        team = game.team_of(player_id)
    else:
        raise InvalidRequest("Specify a team id or a player on the team")

    if team is None:
        raise InvalidRequest("Team not found")

    logger.info("Renaming team %s from %r to %r", team.id, team.name, name)
    team.name = name
    return team


def new_game(instance: InstanceState) -> GameState:
    players = build_players(
        instance.members,
        excluded=set(instance.excluded_players),
        include_bots=instance.options.include_bots,
    )
    return GameState(
        name=f"{instance.name}'s Hungry Games",
        included_players=players,
        num_alive=len(players),
    )


def create_game(instance: InstanceState) -> GameState:
    """Create (or re-create) the instance's game from its roster.

    A previous game's teams are kept as the starting point for team formation.
    """

    current = instance.current_game
    if current is not None and current.in_progress:
        raise AlreadyInProgress("A game is already in progress; end it first")

    game = new_game(instance)
    # Teams formed under a larger team_size are not carried over.
    if current is not None and all(len(t.players) <= instance.options.team_size for t in current.teams):
        game.teams = current.teams
    form_teams(game, team_size=instance.options.team_size)
    instance.current_game = game
    return game


def start_game(instance: InstanceState) -> GameState:
    if instance.current_game is not None and instance.current_game.in_progress:
        raise AlreadyInProgress("A game is already in progress")

    game = create_game(instance)
    if len(game.included_players) < MIN_PLAYERS:
        raise InvalidRequest(f"At least {MIN_PLAYERS} players are required")

    game.in_progress = True
    logger.info("Starting %r with %d players and %d teams", game.name, len(game.included_players), len(game.teams))
    return game


def end_game(instance: InstanceState) -> GameState:
    game = instance.current_game
    if game is None or not game.in_progress:
        raise GameNotInProgress("There isn't a game in progress")

    fsm = DayFSM(game.day)
    if fsm.current_state != fsm.idle:
        fsm.abort()
        fsm.sync_state_to_model()

    game.in_progress = False
    game.ended = True
    return game


def _upsert_member(instance: InstanceState, member: Member) -> None:
    for i, m in enumerate(instance.members):
        if m.id == member.id:
            instance.members[i] = member
            return
    instance.members.append(member)


def include_players(instance: InstanceState, members: Sequence[Member]) -> list[str]:
    """Add members to the roster and, between games, to the current game.

    Returns the ids that could not be added to the game (bots when bots are
    disabled, anyone while a game is in progress).
    """

    game = instance.current_game
    skipped: list[str] = []

    for member in members:
        if member.is_bot and not instance.options.include_bots:
            skipped.append(member.id)
            continue

        _upsert_member(instance, member)
        if member.id in instance.excluded_players:
            instance.excluded_players.remove(member.id)

        if game is None or game.ended:
            continue
        if game.in_progress:
            skipped.append(member.id)
            continue
        if game.find_player(member.id) is None:
            game.included_players.append(Player(id=member.id, name=member.name, avatar_url=member.avatar_url))

    if game is not None and not game.in_progress and not game.ended:
        game.num_alive = len(game.living_players())
        form_teams(game, team_size=instance.options.team_size)

    return skipped


def exclude_players(instance: InstanceState, player_ids: Sequence[str]) -> None:
    """Blacklist players; between games they also leave the current game."""

    game = instance.current_game
    for pid in player_ids:
        if pid not in instance.excluded_players:
            instance.excluded_players.append(pid)

    if game is not None and not game.in_progress and not game.ended:
        excluded = set(instance.excluded_players)
        game.included_players = [p for p in game.included_players if p.id not in excluded]
        game.num_alive = len(game.living_players())
        form_teams(game, team_size=instance.options.team_size)


def set_option(instance: InstanceState, *, name: str, value: Any) -> GameOptions:
    game = instance.current_game
    if game is not None and game.in_progress:
        raise AlreadyInProgress("End the current game before changing options")

    field = GameOptions.model_fields.get(name)
    if field is None:
        raise InvalidOption(f"Unknown option: {name}")
    if field.annotation in (int, float) and isinstance(value, bool):
        raise InvalidOption(f"{name} requires a number")

    try:
        options = GameOptions.model_validate({**instance.options.model_dump(), name: value})
    except ValidationError as e:
        raise InvalidOption(f"Invalid value for {name}: {value!r}") from e

    old = getattr(instance.options, name)
    instance.options = options
    logger.info("Set option %s to %r from %r", name, getattr(options, name), old)

    if name == "team_size" and game is not None:
        reset_teams(game, team_size=options.team_size)
    return options


def reset_instance(instance: InstanceState, *, what: str) -> None:
    if what not in RESET_TARGETS:
        raise InvalidRequest(f"Unknown reset target: {what} (expected one of {', '.join(RESET_TARGETS)})")

    game = instance.current_game
    if what in {"all", "current", "teams"} and game is not None and game.in_progress:
        raise AlreadyInProgress("End the current game before resetting it")

    if what == "all":
        instance.excluded_players = []
        instance.options = GameOptions()
        instance.custom_events = CustomEvents()
        instance.current_game = None
    elif what == "events":
        instance.custom_events = CustomEvents()
    elif what == "current":
        instance.current_game = None
    elif what == "options":
        if game is not None and game.in_progress:
            raise AlreadyInProgress("End the current game before changing options")
        instance.options = GameOptions()
    elif game is not None:
        reset_teams(game, team_size=instance.options.team_size)


def add_custom_event(instance: InstanceState, *, pool: EventPool, event: dict[str, Any]) -> int:
    """Validate and append a custom template. Returns its index in the custom pool."""

    try:
        if pool == EventPool.arena:
            arena = ArenaEvent.model_validate(event)
            if not arena.outcomes:
                raise InvalidRequest("Arena events need at least one outcome")
            instance.custom_events.arena.append(arena)
            return len(instance.custom_events.arena) - 1

        template = EventTemplate.model_validate(event)
    except ValidationError as e:
        raise InvalidRequest(f"Invalid event: {e.error_count()} validation error(s)") from e

    if template.min_participants == 0:
        raise InvalidRequest("Events need at least one victim or attacker")

    target = instance.custom_events.bloodbath if pool == EventPool.bloodbath else instance.custom_events.player
    target.append(template)
    return len(target) - 1


def remove_custom_event(instance: InstanceState, *, pool: EventPool, index: int) -> None:
    target: list[Any]
    if pool == EventPool.bloodbath:
        target = instance.custom_events.bloodbath
    elif pool == EventPool.player:
        target = instance.custom_events.player
    else:
        target = instance.custom_events.arena

    if index < 0 or index >= len(target):
        raise InvalidRequest(f"No custom {pool.value} event at index {index}")
    del target[index]
