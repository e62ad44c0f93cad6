from __future__ import annotations

import logging
import random
from collections.abc import Sequence
from dataclasses import dataclass

from hungry_games.api.models import (
    Day,
    EventKind,
    EventTemplate,
    FinalEvent,
    GameOptions,
    GameState,
    Player,
    Victor,
    VictorKind,
)
from hungry_games.core.narration import make_final_event
from hungry_games.errors import AlreadyInProgress, GameNotInProgress, NoValidEvent, TeamInconsistency
from hungry_games.fsm import DAY_REVEAL_START, DayFSM
from hungry_games.game_setup import form_teams
from hungry_games.simulation.effects import (
    apply_event,
    bleed_out,
    check_invariants,
    recover,
    revive_player,
    teams_alive,
)
from hungry_games.simulation.selector import MAX_ATTEMPTS, SelectionContext, select_event
from hungry_games.simulation.teams import choose_participants, eligible_counts
from hungry_games.templates.registry import TemplateLibrary

logger = logging.getLogger(__name__)

RESURRECTION_MESSAGE = "{victim} has returned from the dead and was put back into the arena!"
BLEED_RECOVERED_MESSAGE = "{victim} manage[Vs|] to patch their wounds."
BLEED_DIED_MESSAGE = "{victim} fail[Vs|] to tend to their wounds and die[Vs|]."


@dataclass(frozen=True, slots=True)
class RevealResult:
    """One reveal step. `event` is None when nothing was left to reveal."""

    event: FinalEvent | None
    index: int | None
    day_ended: bool
    victor: Victor | None = None


def ensure_team_membership(game: GameState, options: GameOptions) -> None:
    """Every included player must be on exactly one team when teams are enabled."""

    if not options.teams_enabled:
        return
    try:
        seen: set[str] = set()
        for team in game.teams:
            for pid in team.players:
                if pid in seen:
                    raise TeamInconsistency(f"Player {pid} is on more than one team")
                seen.add(pid)
        missing = [p.id for p in game.included_players if p.id not in seen]
        if missing:
            raise TeamInconsistency(f"Players without a team: {', '.join(missing)}")
        living = {p.id for p in game.included_players if p.living}
        for team in game.teams:
            if team.num_alive != sum(1 for pid in team.players if pid in living):
                raise TeamInconsistency(f"Team {team.id} has a stale living count")
    except TeamInconsistency as e:
        logger.warning("Re-forming teams before day %d: %s", game.day.num, e)
        form_teams(game, team_size=options.team_size)


def _resurrection_pass(game: GameState, options: GameOptions, rng: random.Random) -> None:
    if not options.resurrection or rng.random() >= options.probability_of_resurrect:
        return
    dead = [p for p in game.included_players if not p.living]
    if not dead:
        return

    player = rng.choice(dead)
    revive_player(game, player, teams_enabled=options.teams_enabled)
    logger.info("Player %s returned on day %d", player.id, game.day.num)
    game.day.events.append(
        make_final_event(
            RESURRECTION_MESSAGE,
            victims=[player],
            kind=EventKind.resurrection,
            mention=options.mention_all,
        )
    )


def _todays_templates(
    game: GameState, options: GameOptions, library: TemplateLibrary, rng: random.Random
) -> Sequence[EventTemplate]:
    if game.day.num == 0:
        return library.bloodbath

    if options.arena_events and library.arena and rng.random() < options.probability_of_arena_event:
        arena = rng.choice(library.arena)
        game.day.events.append(FinalEvent(kind=EventKind.arena, message=arena.message))
        return arena.outcomes

    return library.player


def _event_loop(
    game: GameState,
    options: GameOptions,
    templates: Sequence[EventTemplate],
    rng: random.Random,
    max_attempts: int,
) -> None:
    pool = game.living_players()
    collaborate = options.collaboration_active

    while pool:
        ctx = SelectionContext(
            pool_size=len(pool),
            num_alive=game.num_alive,
            teams=tuple(game.teams) if collaborate else (),
            team_counts=eligible_counts(game.teams, pool) if collaborate else {},
            collaborate=collaborate,
            allow_no_victors=options.allow_no_victors,
        )
        selection = select_event(templates, ctx=ctx, rng=rng, max_attempts=max_attempts)

        victims, attackers = choose_participants(
            pool,
            num_victim=selection.num_victim,
            num_attacker=selection.num_attacker,
            rng=rng,
            teams=game.teams,
            anchor=selection.anchor,
        )
        apply_event(
            game,
            selection.template,
            victims=victims,
            attackers=attackers,
            teams_enabled=options.teams_enabled,
        )

        game.day.events.append(
            make_final_event(
                selection.template.message,
                victims=victims,
                attackers=attackers,
                mention=options.mention_all,
                dead_players=[p for p in game.included_players if not p.living],
                rng=rng,
            )
        )


def _bleed_pass(game: GameState, options: GameOptions, rng: random.Random) -> None:
    recovered: list[Player] = []
    died: list[Player] = []

    for player in game.included_players:
        if not (player.bleeding and player.living):
            continue
        can_die = options.allow_no_victors or game.num_alive > 1
        if can_die and rng.random() < options.probability_of_bleed_to_death:
            bleed_out(game, player, teams_enabled=options.teams_enabled)
            died.append(player)
        else:
            recover(player)
            recovered.append(player)

    if recovered:
        game.day.events.append(
            make_final_event(
                BLEED_RECOVERED_MESSAGE,
                victims=recovered,
                kind=EventKind.bleed_recovered,
                mention=options.mention_all,
            )
        )
    if died:
        game.day.events.append(
            make_final_event(
                BLEED_DIED_MESSAGE,
                victims=died,
                kind=EventKind.bleed_died,
                mention=options.mention_all,
            )
        )


def start_day(
    game: GameState,
    *,
    options: GameOptions,
    library: TemplateLibrary,
    rng: random.Random,
    max_attempts: int = MAX_ATTEMPTS,
) -> Day:
    """Simulate the next day and buffer its events for reveal.

    On NoValidEvent the effects applied so far are kept, the day goes back to
    idle and the error propagates.
    """

    if not game.in_progress:
        raise GameNotInProgress("There isn't a game in progress")

    fsm = DayFSM(game.day)
    if fsm.current_state != fsm.idle:
        raise AlreadyInProgress("This day has already been simulated")

    fsm.begin()
    fsm.sync_state_to_model()

    day = game.day
    day.num += 1
    day.events = []
    logger.info("Simulating day %d with %d players alive", day.num, game.num_alive)

    try:
        ensure_team_membership(game, options)
        _resurrection_pass(game, options, rng)
        templates = _todays_templates(game, options, library, rng)
        _event_loop(game, options, templates, rng, max_attempts)
        _bleed_pass(game, options, rng)
    except NoValidEvent:
        fsm.abort()
        fsm.sync_state_to_model()
        raise

    check_invariants(game)
    fsm.simulated()
    fsm.sync_state_to_model()
    logger.info("Day %d simulated: %d events, %d players alive", day.num, len(day.events), game.num_alive)
    return day


def has_next_event(day: Day) -> bool:
    return day.state >= DAY_REVEAL_START


def check_victor(game: GameState, options: GameOptions) -> Victor | None:
    """Who won, or None if the game continues."""

    living = game.living_players()
    if options.teams_enabled and teams_alive(game) == 1:
        team = next(t for t in game.teams if t.num_alive > 0)
        return Victor(kind=VictorKind.team, team_id=team.id, player_ids=list(team.players))
    if len(living) == 1:
        return Victor(kind=VictorKind.player, player_ids=[living[0].id])
    if not living:
        return Victor(kind=VictorKind.nobody)
    return None


def end_day(game: GameState, options: GameOptions) -> Victor | None:
    victor = check_victor(game, options)
    if victor is not None:
        game.in_progress = False
        game.ended = True
        game.victor = victor
        logger.info("Game %r ended on day %d: %s %s", game.name, game.day.num, victor.kind, victor.player_ids)
    return victor


def advance_reveal(game: GameState, options: GameOptions) -> RevealResult:
    """Reveal the next buffered event.

    The step that reveals the last event (or finds none left) closes the day.
    Outside the revealing phase nothing is mutated.
    """

    day = game.day
    fsm = DayFSM(day)
    if fsm.current_state != fsm.revealing:
        return RevealResult(event=None, index=None, day_ended=False)

    index = day.state - DAY_REVEAL_START
    event = day.events[index] if index < len(day.events) else None

    if event is not None and index + 1 < len(day.events):
        day.state += 1
        return RevealResult(event=event, index=index, day_ended=False)

    victor = end_day(game, options)
    fsm.finish()
    fsm.sync_state_to_model()
    return RevealResult(
        event=event,
        index=index if event is not None else None,
        day_ended=True,
        victor=victor,
    )
