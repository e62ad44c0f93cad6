from __future__ import annotations

import logging
from contextlib import contextmanager
from uuid import uuid4

import redis

from hungry_games.errors import InstanceBusy

logger = logging.getLogger(__name__)


def lock_key(instance_id: str) -> str:
    return f"lock:instance:{instance_id}"


def _release(*, r: redis.Redis, key: str, token: str) -> None:
    # Only delete the key while it still holds our token: once the TTL has
    # lapsed another request may own it.
    with r.pipeline() as pipe:
        try:
            pipe.watch(key)
            if pipe.get(key) not in (token, token.encode()):
                logger.warning("Lock %s expired before release; leaving it to its new holder", key)
                return
            pipe.multi()
            pipe.delete(key)
            pipe.execute()
        except redis.WatchError:
            logger.warning("Lock %s changed hands during release", key)


@contextmanager
def instance_lock(*, r: redis.Redis, instance_id: str, ttl_ms: int = 5_000):
    """Per-instance lock.

    Serializes every mutating action on one instance. The TTL bounds how long a
    crashed holder can block the instance; the holder's token keeps a late
    release from freeing someone else's lock. Not fenced: a holder that
    outlives its TTL can still overlap with the next one.
    """

    key = lock_key(instance_id)
    token = uuid4().hex
    acquired = r.set(key, token, nx=True, px=ttl_ms)
    if not acquired:
        logger.info("Instance %s is busy", instance_id)
        raise InstanceBusy(f"Instance {instance_id} is busy; try again shortly")
    try:
        yield
    finally:
        _release(r=r, key=key, token=token)
