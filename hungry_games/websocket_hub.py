from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from collections.abc import Sequence
from typing import Any

from fastapi import WebSocket

from hungry_games.core.events import FeedEvent

logger = logging.getLogger(__name__)

INSTANCE_UPDATED = "instance_updated"


class InstanceWebSocketHub:
    """Live mirror of the instance feed for connected presentation clients.

    Each mutating action pushes, in order, the feed entries it published
    (`game_started`, `day_started`, `event_revealed`, `day_ended`,
    `game_ended`) followed by one `instance_updated` marker. A client that
    only wants to re-fetch state can ignore everything but the marker.

    Connections live in this process only; the Redis feed stream stays the
    durable record.
    """

    def __init__(self) -> None:
        self._by_instance: dict[str, set[WebSocket]] = defaultdict(set)
        self._lock = asyncio.Lock()

    async def connect(self, instance_id: str, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self._by_instance[instance_id].add(websocket)
        logger.debug("Websocket joined instance %s (%d open)", instance_id, self.connection_count(instance_id))

    async def disconnect(self, instance_id: str, websocket: WebSocket) -> None:
        async with self._lock:
            conns = self._by_instance.get(instance_id)
            if not conns:
                return
            conns.discard(websocket)
            if not conns:
                self._by_instance.pop(instance_id, None)

    def connection_count(self, instance_id: str) -> int:
        return len(self._by_instance.get(instance_id, ()))

    async def publish_action(self, instance_id: str, events: Sequence[FeedEvent]) -> None:
        """Push an action's feed entries, then the `instance_updated` marker."""

        messages = [e.to_message() for e in events]
        messages.append({"type": INSTANCE_UPDATED, "instance_id": instance_id})
        await self._send(instance_id, messages)

    async def _send(self, instance_id: str, messages: list[dict[str, Any]]) -> None:
        async with self._lock:
            conns = list(self._by_instance.get(instance_id, set()))

        if not conns:
            return

        dead: list[WebSocket] = []
        for ws in conns:
            try:
                for message in messages:
                    await ws.send_json(message)
            except Exception:
                # A socket that failed mid-batch is dropped; the client re-syncs from the feed.
                logger.debug("Dropping websocket for instance %s", instance_id, exc_info=True)
                dead.append(ws)

        if dead:
            async with self._lock:
                for ws in dead:
                    self._by_instance.get(instance_id, set()).discard(ws)


hub = InstanceWebSocketHub()
