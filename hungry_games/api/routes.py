from __future__ import annotations

from typing import Any

import redis
from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect, status

from hungry_games.actions import ACTION_NAMES, ActionName, ActionResult, dispatch_action, pending_reveal
from hungry_games.api.deps import get_redis
from hungry_games.api.models import (
    AddEventRequest,
    EventPool,
    InstanceCreateRequest,
    InstanceListResponse,
    InstanceState,
    OptionRequest,
    PlayerIdsRequest,
    PlayersRequest,
    RenameTeamRequest,
    ResetRequest,
    RevealResponse,
    SwapRequest,
    TemplateStatsResponse,
)
from hungry_games.core.standings import final_standings, status_update, team_standings
from hungry_games.errors import GameError
from hungry_games.game_store import create_instance, delete_instance, list_instances, require_instance
from hungry_games.lock import instance_lock
from hungry_games.streams import Feed, read_feed
from hungry_games.templates.registry import template_stats
from hungry_games.templates.singleton import get_templates
from hungry_games.websocket_hub import hub

router = APIRouter()


def _http_error(e: GameError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=str(e))


async def _run(r: redis.Redis, instance_id: str, action: ActionName, payload: dict[str, Any] | None = None) -> ActionResult:
    try:
        result = dispatch_action(r=r, instance_id=instance_id, action=action, payload=payload or {})
    except GameError as e:
        raise _http_error(e) from e

    await hub.publish_action(instance_id, result.feed_events)
    return result


@router.websocket("/ws/instance/{instance_id}")
async def instance_updates_ws(websocket: WebSocket, instance_id: str) -> None:
    await hub.connect(instance_id, websocket)

    try:
        # Keep the socket open; client can optionally send pings.
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        await hub.disconnect(instance_id, websocket)
    except Exception:
        await hub.disconnect(instance_id, websocket)
        raise


@router.get("/healthcheck")
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.post("/instances", response_model=InstanceState, status_code=status.HTTP_201_CREATED)
async def create_instance_route(payload: InstanceCreateRequest, r: redis.Redis = Depends(get_redis)) -> InstanceState:
    try:
        instance = create_instance(
            r=r,
            instance_id=payload.instance_id,
            name=payload.name,
            members=payload.members,
            seed=payload.seed,
        )
    except GameError as e:
        raise _http_error(e) from e
    return instance


@router.get("/instances", response_model=InstanceListResponse)
async def list_instances_route(r: redis.Redis = Depends(get_redis)) -> InstanceListResponse:
    return InstanceListResponse(instances=list_instances(r=r))


@router.get("/instances/{instance_id}", response_model=InstanceState)
async def get_instance_route(instance_id: str, r: redis.Redis = Depends(get_redis)) -> InstanceState:
    try:
        return require_instance(r=r, instance_id=instance_id)
    except GameError as e:
        raise _http_error(e) from e


@router.delete("/instances/{instance_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_instance_route(instance_id: str, r: redis.Redis = Depends(get_redis)) -> None:
    try:
        with instance_lock(r=r, instance_id=instance_id):
            require_instance(r=r, instance_id=instance_id)
            delete_instance(r=r, instance_id=instance_id)
    except GameError as e:
        raise _http_error(e) from e


@router.post("/instances/{instance_id}/game", response_model=InstanceState)
async def create_game_route(instance_id: str, r: redis.Redis = Depends(get_redis)) -> InstanceState:
    return (await _run(r, instance_id, "create_game")).instance


@router.post("/instances/{instance_id}/start", response_model=InstanceState)
async def start_game_route(instance_id: str, r: redis.Redis = Depends(get_redis)) -> InstanceState:
    return (await _run(r, instance_id, "start")).instance


@router.post("/instances/{instance_id}/next_day", response_model=InstanceState)
async def next_day_route(instance_id: str, r: redis.Redis = Depends(get_redis)) -> InstanceState:
    return (await _run(r, instance_id, "next_day")).instance


@router.post("/instances/{instance_id}/reveal", response_model=RevealResponse)
async def reveal_route(instance_id: str, r: redis.Redis = Depends(get_redis)) -> RevealResponse:
    result = await _run(r, instance_id, "reveal")
    reveal = result.reveal
    return RevealResponse(
        instance=result.instance,
        event=reveal.event if reveal is not None else None,
        day_ended=reveal.day_ended if reveal is not None else False,
        has_next_event=pending_reveal(result.instance),
    )


@router.post("/instances/{instance_id}/end", response_model=InstanceState)
async def end_game_route(instance_id: str, r: redis.Redis = Depends(get_redis)) -> InstanceState:
    return (await _run(r, instance_id, "end")).instance


@router.put("/instances/{instance_id}/options/{name}", response_model=InstanceState)
async def set_option_route(
    instance_id: str,
    name: str,
    payload: OptionRequest,
    r: redis.Redis = Depends(get_redis),
) -> InstanceState:
    return (await _run(r, instance_id, "set_option", {"name": name, "value": payload.value})).instance


@router.post("/instances/{instance_id}/teams/reset", response_model=InstanceState)
async def reset_teams_route(instance_id: str, r: redis.Redis = Depends(get_redis)) -> InstanceState:
    return (await _run(r, instance_id, "reset_teams")).instance


@router.post("/instances/{instance_id}/teams/swap", response_model=InstanceState)
async def swap_players_route(instance_id: str, payload: SwapRequest, r: redis.Redis = Depends(get_redis)) -> InstanceState:
    return (await _run(r, instance_id, "swap", payload.model_dump())).instance


@router.post("/instances/{instance_id}/teams/rename", response_model=InstanceState)
async def rename_team_route(
    instance_id: str,
    payload: RenameTeamRequest,
    r: redis.Redis = Depends(get_redis),
) -> InstanceState:
    return (await _run(r, instance_id, "rename_team", payload.model_dump())).instance


@router.post("/instances/{instance_id}/players/include")
async def include_players_route(
    instance_id: str,
    payload: PlayersRequest,
    r: redis.Redis = Depends(get_redis),
) -> dict[str, object]:
    result = await _run(r, instance_id, "include", payload.model_dump())
    return {"instance": result.instance.model_dump(mode="json"), "skipped": result.skipped}


@router.post("/instances/{instance_id}/players/exclude", response_model=InstanceState)
async def exclude_players_route(
    instance_id: str,
    payload: PlayerIdsRequest,
    r: redis.Redis = Depends(get_redis),
) -> InstanceState:
    return (await _run(r, instance_id, "exclude", payload.model_dump())).instance


@router.post("/instances/{instance_id}/reset", response_model=InstanceState)
async def reset_route(instance_id: str, payload: ResetRequest, r: redis.Redis = Depends(get_redis)) -> InstanceState:
    return (await _run(r, instance_id, "reset", payload.model_dump())).instance


@router.post("/instances/{instance_id}/events", response_model=InstanceState, status_code=status.HTTP_201_CREATED)
async def add_event_route(instance_id: str, payload: AddEventRequest, r: redis.Redis = Depends(get_redis)) -> InstanceState:
    return (await _run(r, instance_id, "add_event", payload.model_dump(mode="json"))).instance


@router.delete("/instances/{instance_id}/events/{pool}/{index}", response_model=InstanceState)
async def remove_event_route(
    instance_id: str,
    pool: EventPool,
    index: int,
    r: redis.Redis = Depends(get_redis),
) -> InstanceState:
    return (await _run(r, instance_id, "remove_event", {"pool": pool.value, "index": index})).instance


@router.get("/instances/{instance_id}/events")
async def list_events_route(instance_id: str, r: redis.Redis = Depends(get_redis)) -> dict[str, object]:
    """Built-in plus custom templates per pool, with kill/wound/thrive shares."""

    try:
        instance = require_instance(r=r, instance_id=instance_id)
    except GameError as e:
        raise _http_error(e) from e

    library = get_templates().merged(instance.custom_events)

    stats: list[TemplateStatsResponse] = []
    for pool in EventPool:
        s = template_stats(library.templates(pool))
        stats.append(
            TemplateStatsResponse(
                pool=pool,
                count=s.count,
                kill_percent=s.percent(s.num_kill),
                wound_percent=s.percent(s.num_wound),
                thrive_percent=s.percent(s.num_thrive),
            )
        )

    return {
        "instance_id": instance_id,
        "custom": instance.custom_events.model_dump(mode="json"),
        "stats": [s.model_dump(mode="json") for s in stats],
    }


@router.get("/instances/{instance_id}/standings")
async def standings_route(instance_id: str, r: redis.Redis = Depends(get_redis)) -> dict[str, object]:
    try:
        instance = require_instance(r=r, instance_id=instance_id)
    except GameError as e:
        raise _http_error(e) from e

    game = instance.current_game
    if game is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No game on this instance")

    return {
        "instance_id": instance_id,
        "players": [p.model_dump(mode="json") for p in final_standings(game)],
        "teams": [t.model_dump(mode="json") for t in team_standings(game)],
        "victor": game.victor.model_dump(mode="json") if game.victor is not None else None,
    }


@router.get("/instances/{instance_id}/status")
async def status_route(instance_id: str, r: redis.Redis = Depends(get_redis)) -> dict[str, object]:
    """Between-days roll call: every player's condition and kill count."""

    try:
        instance = require_instance(r=r, instance_id=instance_id)
    except GameError as e:
        raise _http_error(e) from e

    game = instance.current_game
    if game is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No game on this instance")

    return {
        "instance_id": instance_id,
        "day_num": game.day.num,
        "num_alive": game.num_alive,
        "players": [
            {"id": e.player_id, "name": e.name, "status": e.status.value, "kills": e.kills, "team": e.team_name}
            for e in status_update(game)
        ],
    }


@router.post("/instances/{instance_id}/actions/{action}", response_model=InstanceState)
async def generic_action_route(
    instance_id: str,
    action: str,
    body: dict[str, Any],
    r: redis.Redis = Depends(get_redis),
) -> InstanceState:
    if action not in ACTION_NAMES:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=f"Unknown action: {action}")
    act: ActionName = action  # type: ignore[assignment]
    return (await _run(r, instance_id, act, body)).instance


@router.get("/instances/{instance_id}/feed")
async def get_feed_route(
    instance_id: str,
    count: int = 20,
    start: str = "-",
    end: str = "+",
    r: redis.Redis = Depends(get_redis),
) -> dict[str, object]:
    """Read the instance's feed Redis Stream.

    Intended for presentation layers polling instead of holding a websocket.
    """

    if count < 1 or count > 200:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="count must be between 1 and 200")

    feed = Feed(instance_id=instance_id)
    try:
        messages = read_feed(r=r, feed=feed, start=start, end=end, count=count)
    except redis.ResponseError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e

    return {"instance_id": instance_id, "stream": feed.key, "messages": messages}
