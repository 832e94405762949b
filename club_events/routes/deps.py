from fastapi import Depends
from sqlalchemy.orm import Session

from club_events.database.db import get_db
from club_events.services.locking import get_redis_client
from club_events.services.notifier import CeleryNotifier, RedisLiveCountChannel
from club_events.services.reservations import EventMutationService


def get_redis():
    return get_redis_client()


def get_notifier():
    return CeleryNotifier()


def get_mutation_service(
    db: Session = Depends(get_db),
    redis_client=Depends(get_redis),
    notifier=Depends(get_notifier),
) -> EventMutationService:
    return EventMutationService(
        db,
        redis_client=redis_client,
        notifier=notifier,
        count_channel=RedisLiveCountChannel(redis_client),
    )
