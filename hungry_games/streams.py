from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Sequence, cast

import redis

from hungry_games.core.events import FeedEvent


@dataclass(frozen=True, slots=True)
class Feed:
    """Per-instance Redis Stream read by the presentation layer."""

    instance_id: str

    @property
    def key(self) -> str:
        return f"feed:{self.instance_id}"


def publish_to_feed(*, r: redis.Redis, event: FeedEvent) -> str:
    stream_id = r.xadd(Feed(instance_id=event.instance_id).key, event.to_fields())
    return cast(str, stream_id)


def publish_many(*, r: redis.Redis, events: Sequence[FeedEvent]) -> list[str]:
    return [publish_to_feed(r=r, event=event) for event in events]


def read_feed(*, r: redis.Redis, feed: Feed, start: str = "-", end: str = "+", count: int = 20) -> list[dict[str, Any]]:
    entries: list[tuple[str, Mapping[str, str]]] = r.xrange(feed.key, min=start, max=end, count=count)
    return [{"id": mid, "fields": dict(fields)} for mid, fields in entries]
