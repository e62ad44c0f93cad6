from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Literal

FeedEventType = Literal[
    "day_started",
    "event_revealed",
    "day_ended",
    "game_started",
    "game_ended",
]


@dataclass(frozen=True, slots=True)
class FeedEvent:
    """Notification for the presentation layer.

    Published to the instance feed stream; never read back by the engine.
    """

    type: FeedEventType
    instance_id: str
    day_num: int
    payload: dict[str, Any]
    ts: datetime

    @staticmethod
    def now(*, type: FeedEventType, instance_id: str, day_num: int, payload: dict[str, Any]) -> "FeedEvent":
        return FeedEvent(
            type=type,
            instance_id=instance_id,
            day_num=day_num,
            payload=payload,
            ts=datetime.now(timezone.utc),
        )

    def to_fields(self) -> dict[str, str]:
        # Stream fields are flat strings; nested payload goes in as JSON.
        return {
            "type": self.type,
            "instance_id": self.instance_id,
            "day_num": str(self.day_num),
            "payload": json.dumps(self.payload, sort_keys=True),
            "ts": self.ts.isoformat(),
        }

    def to_message(self) -> dict[str, Any]:
        """Websocket form: same content as the stream entry, payload left nested."""

        return {
            "type": self.type,
            "instance_id": self.instance_id,
            "day_num": self.day_num,
            "payload": self.payload,
            "ts": self.ts.isoformat(),
        }
