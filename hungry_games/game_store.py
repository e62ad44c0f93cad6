from __future__ import annotations

import logging
import random
from collections.abc import Sequence
from datetime import UTC, datetime

import redis
from pydantic import ValidationError

from hungry_games.api.models import InstanceState, Member
from hungry_games.errors import InstanceExists, InstanceNotFound

logger = logging.getLogger(__name__)

INSTANCES_SET_KEY = "hungry_games:instances"
INSTANCE_KEY_PREFIX = "hungry_games:instance:"  # + {instance_id}


def _now() -> datetime:
    return datetime.now(tz=UTC)


def _instance_key(instance_id: str) -> str:
    return f"{INSTANCE_KEY_PREFIX}{instance_id}"


def save_instance(*, r: redis.Redis, instance: InstanceState) -> None:
    instance.last_updated_at = _now()
    r.set(_instance_key(instance.instance_id), instance.model_dump_json())
    r.sadd(INSTANCES_SET_KEY, instance.instance_id)


def get_instance(*, r: redis.Redis, instance_id: str) -> InstanceState | None:
    raw = r.get(_instance_key(instance_id))
    if not raw:
        return None
    try:
        return InstanceState.model_validate_json(raw)
    except ValidationError:
        # Treated as absent; the next save overwrites it.
        logger.error("Discarding corrupt instance document %s", instance_id, exc_info=True)
        return None


def require_instance(*, r: redis.Redis, instance_id: str) -> InstanceState:
    instance = get_instance(r=r, instance_id=instance_id)
    if instance is None:
        raise InstanceNotFound(f"Instance {instance_id} not found")
    return instance


def create_instance(
    *,
    r: redis.Redis,
    instance_id: str,
    name: str,
    members: Sequence[Member] = (),
    seed: int | None = None,
) -> InstanceState:
    if get_instance(r=r, instance_id=instance_id) is not None:
        raise InstanceExists(f"Instance {instance_id} already exists")

    if seed is None:
        seed = random.SystemRandom().randint(1, 2**31 - 1)

    now = _now()
    instance = InstanceState(
        instance_id=instance_id,
        name=name,
        created_at=now,
        last_updated_at=now,
        seed=seed,
        members=list(members),
    )
    save_instance(r=r, instance=instance)
    logger.info("Created instance %s (%d members, seed=%d)", instance_id, len(instance.members), seed)
    return instance


def delete_instance(*, r: redis.Redis, instance_id: str) -> None:
    r.delete(_instance_key(instance_id))
    r.srem(INSTANCES_SET_KEY, instance_id)


def list_instances(*, r: redis.Redis) -> list[InstanceState]:
    out: list[InstanceState] = []
    for instance_id in sorted(r.smembers(INSTANCES_SET_KEY)):
        instance = get_instance(r=r, instance_id=instance_id)
        if instance is not None:
            out.append(instance)
    out.sort(key=lambda s: s.created_at, reverse=True)
    return out
