from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Any, Literal, TypeVar, get_args

import redis
from pydantic import BaseModel, ValidationError

from hungry_games.api.models import (
    AddEventRequest,
    EventPool,
    GameState,
    InstanceState,
    OptionRequest,
    PlayerIdsRequest,
    PlayersRequest,
    RenameTeamRequest,
    ResetRequest,
    SwapRequest,
)
from hungry_games.core.events import FeedEvent
from hungry_games.core.standings import day_headline, final_standings, victor_headline, victor_mentions
from hungry_games.errors import GameNotInProgress, InvalidRequest, NoValidEvent
from hungry_games.game_setup import (
    add_custom_event,
    create_game,
    end_game,
    exclude_players,
    include_players,
    remove_custom_event,
    rename_team,
    reset_instance,
    reset_teams,
    set_option,
    start_game,
    swap_team_players,
)
from hungry_games.game_store import require_instance, save_instance
from hungry_games.lock import instance_lock
from hungry_games.simulation.day import RevealResult, advance_reveal, has_next_event, start_day
from hungry_games.streams import publish_many
from hungry_games.templates.singleton import get_templates

logger = logging.getLogger(__name__)

ActionName = Literal[
    "create_game",
    "start",
    "next_day",
    "reveal",
    "end",
    "set_option",
    "reset_teams",
    "swap",
    "rename_team",
    "include",
    "exclude",
    "reset",
    "add_event",
    "remove_event",
]

ACTION_NAMES: frozenset[str] = frozenset(get_args(ActionName))

_Req = TypeVar("_Req", bound=BaseModel)


@dataclass(frozen=True, slots=True)
class ActionResult:
    instance: InstanceState
    feed_entry_ids: list[str] = field(default_factory=list)
    # Same entries as published to the stream, for the websocket mirror.
    feed_events: list[FeedEvent] = field(default_factory=list)
    reveal: RevealResult | None = None
    # Ids `include` could not add to the game.
    skipped: list[str] = field(default_factory=list)


def day_rng(*, seed: int, games_started: int, day_num: int) -> random.Random:
    """Deterministic RNG for one simulated day of one game."""

    return random.Random(f"{seed}:{games_started}:{day_num}")


def _parse(model: type[_Req], payload: dict[str, Any]) -> _Req:
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise InvalidRequest(f"Invalid payload: {e.error_count()} validation error(s)") from e


def _require_game(instance: InstanceState) -> GameState:
    if instance.current_game is None:
        raise GameNotInProgress("There isn't a game yet; create or start one first")
    return instance.current_game


def _game_started_event(instance: InstanceState, game: GameState) -> FeedEvent:
    return FeedEvent.now(
        type="game_started",
        instance_id=instance.instance_id,
        day_num=game.day.num,
        payload={
            "name": game.name,
            "player_ids": [p.id for p in game.included_players],
            "teams": {t.name: list(t.players) for t in game.teams},
            "mention_everyone": instance.options.mention_everyone_at_start,
        },
    )


def _day_started_event(instance: InstanceState, game: GameState) -> FeedEvent:
    return FeedEvent.now(
        type="day_started",
        instance_id=instance.instance_id,
        day_num=game.day.num,
        payload={
            "num_events": len(game.day.events),
            "num_alive": game.num_alive,
            "delay_events_ms": instance.options.delay_events,
        },
    )


def _reveal_events(instance: InstanceState, game: GameState, result: RevealResult) -> list[FeedEvent]:
    out: list[FeedEvent] = []
    if result.event is not None:
        out.append(
            FeedEvent.now(
                type="event_revealed",
                instance_id=instance.instance_id,
                day_num=game.day.num,
                payload={"index": result.index, **result.event.model_dump(mode="json")},
            )
        )

    if result.day_ended:
        out.append(
            FeedEvent.now(
                type="day_ended",
                instance_id=instance.instance_id,
                day_num=game.day.num,
                payload={
                    "headline": day_headline(game),
                    "num_alive": game.num_alive,
                    "delay_days_ms": instance.options.delay_days,
                },
            )
        )

    if result.victor is not None:
        out.append(_game_ended_event(instance, game))
    return out


def _game_ended_event(instance: InstanceState, game: GameState) -> FeedEvent:
    return FeedEvent.now(
        type="game_ended",
        instance_id=instance.instance_id,
        day_num=game.day.num,
        payload={
            "headline": victor_headline(game),
            "victor": game.victor.model_dump(mode="json") if game.victor is not None else None,
            "mentions": victor_mentions(game, instance.options),
            "standings": [{"id": p.id, "rank": p.rank, "kills": p.kills} for p in final_standings(game)],
        },
    )


def _next_day(*, r: redis.Redis, instance: InstanceState) -> list[FeedEvent]:
    game = _require_game(instance)
    rng = day_rng(seed=instance.seed, games_started=instance.games_started, day_num=game.day.num + 1)
    library = get_templates().merged(instance.custom_events)

    try:
        start_day(game, options=instance.options, library=library, rng=rng)
    except NoValidEvent:
        # Effects applied before the selector gave up are part of the game now.
        save_instance(r=r, instance=instance)
        raise
    return [_day_started_event(instance, game)]


def dispatch_action(*, r: redis.Redis, instance_id: str, action: ActionName, payload: dict[str, Any]) -> ActionResult:
    """Entry point for every mutating host request.

    Applies an action by:
    - acquiring the per-instance lock
    - loading the instance
    - running the domain operation
    - persisting the instance (only on success, NoValidEvent excepted)
    - publishing feed entries (Redis Streams)
    """

    with instance_lock(r=r, instance_id=instance_id):
        instance = require_instance(r=r, instance_id=instance_id)

        feed: list[FeedEvent] = []
        reveal: RevealResult | None = None
        skipped: list[str] = []

        if action == "create_game":
            create_game(instance)

        elif action == "start":
            game = start_game(instance)
            instance.games_started += 1
            feed.append(_game_started_event(instance, game))

        elif action == "next_day":
            feed.extend(_next_day(r=r, instance=instance))

        elif action == "reveal":
            game = _require_game(instance)
            reveal = advance_reveal(game, instance.options)
            feed.extend(_reveal_events(instance, game, reveal))

        elif action == "end":
            game = end_game(instance)
            feed.append(_game_ended_event(instance, game))

        elif action == "set_option":
            name = payload.get("name")
            if not isinstance(name, str) or not name:
                raise InvalidRequest("Option name is required")
            req = _parse(OptionRequest, payload)
            set_option(instance, name=name, value=req.value)

        elif action == "reset_teams":
            reset_teams(_require_game(instance), team_size=instance.options.team_size)

        elif action == "swap":
            req = _parse(SwapRequest, payload)
            swap_team_players(_require_game(instance), player_id_a=req.player_id_a, player_id_b=req.player_id_b)

        elif action == "rename_team":
            req = _parse(RenameTeamRequest, payload)
            rename_team(_require_game(instance), name=req.name, team_id=req.team_id, player_id=req.player_id)

        elif action == "include":
            req = _parse(PlayersRequest, payload)
            skipped = include_players(instance, req.members)

        elif action == "exclude":
            req = _parse(PlayerIdsRequest, payload)
            exclude_players(instance, req.player_ids)

        elif action == "reset":
            req = _parse(ResetRequest, payload)
            reset_instance(instance, what=req.what)

        elif action == "add_event":
            req = _parse(AddEventRequest, payload)
            add_custom_event(instance, pool=req.pool, event=req.event)

        elif action == "remove_event":
            try:
                pool = EventPool(payload.get("pool"))
                index = int(payload.get("index"))  # type: ignore[arg-type]
            except (TypeError, ValueError) as e:
                raise InvalidRequest("pool and index are required") from e
            remove_custom_event(instance, pool=pool, index=index)

        else:
            raise InvalidRequest(f"Unknown action: {action}")

        save_instance(r=r, instance=instance)
        ids = publish_many(r=r, events=feed)
        logger.debug("Action %s on %s published %d feed entries", action, instance_id, len(ids))

        return ActionResult(instance=instance, feed_entry_ids=ids, feed_events=feed, reveal=reveal, skipped=skipped)


def pending_reveal(instance: InstanceState) -> bool:
    return instance.current_game is not None and has_next_event(instance.current_game.day)
