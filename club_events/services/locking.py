import logging
from contextlib import contextmanager

import redis

from club_events.core.config import (
    EVENT_LOCK_BLOCKING_TIMEOUT,
    EVENT_LOCK_TIMEOUT,
    get_redis_url,
)
from club_events.services.errors import EventBusyError, StorageError

logger = logging.getLogger(__name__)


def get_redis_client():
    """Get Redis client for locking and pub/sub."""
    return redis.from_url(get_redis_url(), decode_responses=True)


@contextmanager
def event_lock(
    redis_client,
    event_id: int,
    *,
    timeout: int = EVENT_LOCK_TIMEOUT,
    blocking_timeout: int = EVENT_LOCK_BLOCKING_TIMEOUT,
):
    """
    Hold the per-event Redis lock for the duration of the block.

    Every ledger mutation on an event runs under this lock, so two requests
    can never read the same confirmed total and both write against it.
    A lock that cannot be taken in time raises EventBusyError; an unreachable
    Redis raises StorageError.
    """
    lock_key = f"event_lock:{event_id}"
    lock = redis_client.lock(lock_key, timeout=timeout, blocking_timeout=blocking_timeout)

    try:
        # Acquire the lock - only one request per event can proceed at a time
        if not lock.acquire(blocking=True, blocking_timeout=blocking_timeout):
            raise EventBusyError("Could not acquire event lock, please try again.")
    except redis.exceptions.LockError:  # type: ignore
        raise EventBusyError("Could not acquire event lock, please try again.")
    except redis.exceptions.RedisError as e:  # type: ignore
        logger.error("Lock service unreachable for %s: %s", lock_key, e)
        raise StorageError("Could not reach the lock service") from e

    try:
        yield lock
    finally:
        try:
            lock.release()
        except redis.exceptions.LockError:  # type: ignore
            # the lock expired while we held it; the work already committed
            logger.warning("Event lock %s expired before release", lock_key)
        except redis.exceptions.RedisError:  # type: ignore
            logger.warning("Could not release event lock %s", lock_key, exc_info=True)
