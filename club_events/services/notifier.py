"""
Outbound notifications and live count broadcasts.

Both collaborators are fire-and-forget: a failure to notify or broadcast is
logged and never undoes the ledger mutation that triggered it.
"""

import enum
import json
import logging
from dataclasses import asdict, dataclass
from typing import Iterable, Protocol

from club_events.models.reservations import ReservationPool

logger = logging.getLogger(__name__)


class NotificationKind(str, enum.Enum):
    CONFIRM_WAITING_SLOT = "confirm_waiting_slot"
    REMOVE_CONFIRM_VOTE = "remove_confirm_vote"


@dataclass(frozen=True)
class NotificationEvent:
    kind: str
    amount: int | None = None
    subject: str | None = None
    actor_profile_id: int | None = None


class Notifier(Protocol):
    def publish(self, profile_ids: list[int], event: NotificationEvent) -> None: ...


class LiveCountChannel(Protocol):
    def publish(self, event_id: int, pool: ReservationPool, total: int) -> None: ...


def notification_channel(profile_id: int) -> str:
    return f"notifications:{profile_id}"


def count_channel(event_id: int) -> str:
    return f"event_counts:{event_id}"


class CeleryNotifier:
    """Hands notifications to the Celery worker for delivery."""

    def publish(self, profile_ids: list[int], event: NotificationEvent) -> None:
        if not profile_ids:
            return
        # imported here so the worker module is only loaded by processes that notify
        from club_events.tasks import deliver_notification_task

        deliver_notification_task.delay(list(profile_ids), asdict(event))


class RedisLiveCountChannel:
    def __init__(self, redis_client):
        self.redis_client = redis_client

    def publish(self, event_id: int, pool: ReservationPool, total: int) -> None:
        payload = {"event_id": event_id, "pool": ReservationPool(pool).value, "total": total}
        self.redis_client.publish(count_channel(event_id), json.dumps(payload))


class DeferredNotifier:
    """
    Queues notifications and hands them to ``target`` on ``flush``.

    The mutation service publishes through this while it holds the event
    lock and flushes once the lock is released, so a slow broker never
    stretches the locked section.
    """

    def __init__(self, target: Notifier | None):
        self.target = target
        self.pending: list[tuple[list[int], NotificationEvent]] = []

    def publish(self, profile_ids: list[int], event: NotificationEvent) -> None:
        self.pending.append((list(profile_ids), event))

    def flush(self) -> int:
        pending, self.pending = self.pending, []
        for profile_ids, event in pending:
            notify_safely(self.target, profile_ids, event)
        return len(pending)


def notify_safely(notifier: Notifier | None, profile_ids: Iterable[int], event: NotificationEvent) -> None:
    if notifier is None:
        return
    ids = list(profile_ids)
    if not ids:
        return
    try:
        notifier.publish(ids, event)
    except Exception:
        logger.warning("Failed to publish %s notification to %s", event.kind, ids, exc_info=True)


def broadcast_safely(channel: LiveCountChannel | None, event_id: int, pool: ReservationPool, total: int) -> None:
    if channel is None:
        return
    try:
        channel.publish(event_id, pool, total)
    except Exception:
        logger.warning("Failed to broadcast %s count for event %s", ReservationPool(pool).value, event_id, exc_info=True)
