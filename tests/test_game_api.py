from __future__ import annotations

import json
from typing import Any

from fastapi.testclient import TestClient

MEMBERS = [{"id": f"u{i}", "name": f"User{i}"} for i in range(4)]


def _create(client: TestClient, instance_id: str = "guild", **extra: Any) -> dict[str, Any]:
    body = {"instance_id": instance_id, "name": "Guild", "members": MEMBERS, "seed": 7, **extra}
    res = client.post("/instances", json=body)
    assert res.status_code == 201, res.text
    return res.json()


def _reveal_day(client: TestClient, instance_id: str) -> list[dict[str, Any]]:
    revealed: list[dict[str, Any]] = []
    for _ in range(200):
        res = client.post(f"/instances/{instance_id}/reveal")
        assert res.status_code == 200, res.text
        body = res.json()
        if body["event"] is not None:
            revealed.append(body["event"])
        if body["day_ended"]:
            assert body["has_next_event"] is False
            return revealed
    raise AssertionError("day never ended")


def _feed_types(r: Any, instance_id: str) -> list[str]:
    return [fields["type"] for _, fields in r.xrange(f"feed:{instance_id}")]


def test_healthcheck_and_info(client_and_redis) -> None:  # type: ignore[no-untyped-def]
    client, _ = client_and_redis
    assert client.get("/healthcheck").json() == {"status": "ok"}
    assert client.get("/info").json()["name"] == "hungry-games"


def test_instance_crud(client_and_redis) -> None:  # type: ignore[no-untyped-def]
    client, _ = client_and_redis

    created = _create(client)
    assert created["seed"] == 7
    assert [m["id"] for m in created["members"]] == ["u0", "u1", "u2", "u3"]
    assert created["current_game"] is None

    assert client.post("/instances", json={"instance_id": "guild", "name": "Again"}).status_code == 409
    assert client.get("/instances/guild").json()["name"] == "Guild"
    assert [s["instance_id"] for s in client.get("/instances").json()["instances"]] == ["guild"]

    assert client.delete("/instances/guild").status_code == 204
    assert client.get("/instances/guild").status_code == 404
    assert client.delete("/instances/guild").status_code == 404


def test_full_game_through_the_api(client_and_redis) -> None:  # type: ignore[no-untyped-def]
    client, r = client_and_redis
    _create(client)

    res = client.post("/instances/guild/start")
    assert res.status_code == 200, res.text
    state = res.json()
    assert state["games_started"] == 1
    assert state["current_game"]["in_progress"] is True
    assert state["current_game"]["num_alive"] == 4

    days = 0
    num_revealed = 0
    while True:
        res = client.post("/instances/guild/next_day")
        assert res.status_code == 200, res.text
        day = res.json()["current_game"]["day"]
        assert day["num"] == days
        assert day["state"] == 2
        assert day["events"]

        revealed = _reveal_day(client, "guild")
        assert revealed == day["events"]
        num_revealed += len(revealed)
        days += 1

        game = client.get("/instances/guild").json()["current_game"]
        living = sum(1 for p in game["included_players"] if p["living"])
        assert game["num_alive"] == living
        if game["ended"]:
            break
        assert days < 100

    assert game["in_progress"] is False
    assert game["victor"] is not None

    types = _feed_types(r, "guild")
    assert types[0] == "game_started"
    assert types[-1] == "game_ended"
    assert types.count("day_started") == days
    assert types.count("day_ended") == days
    assert types.count("event_revealed") == num_revealed

    standings = client.get("/instances/guild/standings").json()
    ranks = [p["rank"] for p in standings["players"]]
    assert ranks == sorted(ranks)
    assert standings["victor"] == game["victor"]

    # Over: no more days until a new game starts.
    assert client.post("/instances/guild/next_day").status_code == 409
    assert client.post("/instances/guild/start").json()["games_started"] == 2


def test_day_lifecycle_errors(client_and_redis) -> None:  # type: ignore[no-untyped-def]
    client, _ = client_and_redis
    _create(client)

    assert client.post("/instances/nope/start").status_code == 404
    assert client.post("/instances/guild/next_day").status_code == 409
    assert client.post("/instances/guild/end").status_code == 409

    client.post("/instances/guild/start")
    assert client.post("/instances/guild/start").status_code == 409

    assert client.post("/instances/guild/next_day").status_code == 200
    assert client.post("/instances/guild/next_day").status_code == 409

    end = client.post("/instances/guild/end").json()
    assert end["current_game"]["ended"] is True
    assert end["current_game"]["day"]["state"] == 0

    # Nothing left to reveal.
    body = client.post("/instances/guild/reveal").json()
    assert body["event"] is None
    assert body["day_ended"] is False


def test_start_needs_two_players(client_and_redis) -> None:  # type: ignore[no-untyped-def]
    client, _ = client_and_redis
    client.post("/instances", json={"instance_id": "solo", "name": "Solo", "members": MEMBERS[:1]})

    res = client.post("/instances/solo/start")

    assert res.status_code == 422
    assert "2 players" in res.json()["detail"]


def test_busy_instance_is_rejected(client_and_redis) -> None:  # type: ignore[no-untyped-def]
    client, r = client_and_redis
    _create(client)

    r.set("lock:instance:guild", "1")
    assert client.post("/instances/guild/start").status_code == 409

    r.delete("lock:instance:guild")
    assert client.post("/instances/guild/start").status_code == 200


def test_options_and_teams(client_and_redis) -> None:  # type: ignore[no-untyped-def]
    client, _ = client_and_redis
    _create(client)
    client.post("/instances/guild/game")

    assert client.put("/instances/guild/options/no_such_option", json={"value": 1}).status_code == 422
    assert client.put("/instances/guild/options/probability_of_resurrect", json={"value": 7}).status_code == 422

    res = client.put("/instances/guild/options/team_size", json={"value": 2})
    assert res.status_code == 200, res.text
    teams = res.json()["current_game"]["teams"]
    assert [t["players"] for t in teams] == [["u0", "u1"], ["u2", "u3"]]

    res = client.post("/instances/guild/teams/swap", json={"player_id_a": "u1", "player_id_b": "u2"})
    assert [t["players"] for t in res.json()["current_game"]["teams"]] == [["u0", "u2"], ["u1", "u3"]]

    res = client.post("/instances/guild/teams/rename", json={"name": "Careers", "player_id": "u3"})
    assert res.json()["current_game"]["teams"][1]["name"] == "Careers"

    res = client.post("/instances/guild/teams/reset")
    assert [t["name"] for t in res.json()["current_game"]["teams"]] == ["Team 1", "Team 2"]

    client.post("/instances/guild/start")
    assert client.put("/instances/guild/options/team_size", json={"value": 3}).status_code == 409
    assert client.post("/instances/guild/teams/reset").status_code == 409
    assert client.post("/instances/guild/teams/rename", json={"name": "Late", "team_id": 0}).status_code == 409


def test_include_and_exclude_players(client_and_redis) -> None:  # type: ignore[no-untyped-def]
    client, _ = client_and_redis
    _create(client)
    client.post("/instances/guild/game")

    res = client.post(
        "/instances/guild/players/include",
        json={"members": [{"id": "late", "name": "Late"}, {"id": "bot", "name": "Bot", "is_bot": True}]},
    )
    assert res.status_code == 200, res.text
    body = res.json()
    assert body["skipped"] == ["bot"]
    assert "late" in [p["id"] for p in body["instance"]["current_game"]["included_players"]]

    res = client.post("/instances/guild/players/exclude", json={"player_ids": ["u0"]})
    state = res.json()
    assert state["excluded_players"] == ["u0"]
    assert "u0" not in [p["id"] for p in state["current_game"]["included_players"]]

    assert client.post("/instances/guild/players/exclude", json={"player_ids": []}).status_code == 422

    res = client.post("/instances/guild/reset", json={"what": "all"})
    assert res.json()["excluded_players"] == []
    assert client.post("/instances/guild/reset", json={"what": "bogus"}).status_code == 422


def test_custom_events(client_and_redis) -> None:  # type: ignore[no-untyped-def]
    client, _ = client_and_redis
    _create(client)

    event = {"message": "{victim} trip[Vs|] over a root.", "victim": {"count": 1, "outcome": "wounded"}}
    res = client.post("/instances/guild/events", json={"pool": "player", "event": event})
    assert res.status_code == 201, res.text
    assert res.json()["custom_events"]["player"][0]["message"] == event["message"]

    listing = client.get("/instances/guild/events").json()
    stats = {s["pool"]: s for s in listing["stats"]}
    assert stats["player"]["count"] == 5
    assert stats["player"]["wound_percent"] == 40.0
    assert stats["bloodbath"]["kill_percent"] == 50.0
    assert stats["arena"]["count"] == 2

    bad = client.post("/instances/guild/events", json={"pool": "player", "event": {"message": "Nobody."}})
    assert bad.status_code == 422

    assert client.delete("/instances/guild/events/player/3").status_code == 422
    res = client.delete("/instances/guild/events/player/0")
    assert res.status_code == 200
    assert res.json()["custom_events"]["player"] == []


def test_generic_action_endpoint(client_and_redis) -> None:  # type: ignore[no-untyped-def]
    client, _ = client_and_redis
    _create(client)

    assert client.post("/instances/guild/actions/fly", json={}).status_code == 422

    res = client.post("/instances/guild/actions/set_option", json={"name": "resurrection", "value": True})
    assert res.status_code == 200, res.text
    assert res.json()["options"]["resurrection"] is True

    assert client.post("/instances/guild/actions/set_option", json={"value": True}).status_code == 422
    assert client.post("/instances/guild/actions/swap", json={"player_id_a": "u0"}).status_code == 422

    res = client.post("/instances/guild/actions/start", json={})
    assert res.json()["current_game"]["in_progress"] is True


def test_standings_and_feed_routes(client_and_redis) -> None:  # type: ignore[no-untyped-def]
    client, _ = client_and_redis
    _create(client)

    assert client.get("/instances/guild/standings").status_code == 404

    client.post("/instances/guild/start")
    client.post("/instances/guild/next_day")

    standings = client.get("/instances/guild/standings").json()
    assert len(standings["players"]) == 4
    assert standings["victor"] is None

    assert client.get("/instances/guild/feed", params={"count": 0}).status_code == 422
    feed = client.get("/instances/guild/feed", params={"count": 10}).json()
    assert feed["stream"] == "feed:guild"
    types = [m["fields"]["type"] for m in feed["messages"]]
    assert types == ["game_started", "day_started"]

    started = json.loads(feed["messages"][0]["fields"]["payload"])
    assert started["player_ids"] == ["u0", "u1", "u2", "u3"]


def test_status_roll_call(client_and_redis) -> None:  # type: ignore[no-untyped-def]
    client, _ = client_and_redis
    _create(client)

    assert client.get("/instances/guild/status").status_code == 404

    client.post("/instances/guild/game")
    client.put("/instances/guild/options/team_size", json={"value": 2})

    body = client.get("/instances/guild/status").json()
    assert body["day_num"] == -1
    assert body["num_alive"] == 4
    assert [(p["id"], p["team"], p["status"]) for p in body["players"]] == [
        ("u0", "Team 1", "normal"),
        ("u1", "Team 1", "normal"),
        ("u2", "Team 2", "normal"),
        ("u3", "Team 2", "normal"),
    ]
