import json
import logging

from club_events.core.celery_config import celery_app
from club_events.services.locking import get_redis_client
from club_events.services.notifier import notification_channel

logger = logging.getLogger(__name__)


@celery_app.task(bind=True)
def deliver_notification_task(self, profile_ids: list[int], payload: dict):
    """Publish one notification to each profile's Redis channel."""
    redis_client = get_redis_client()
    message = json.dumps(payload)
    for profile_id in profile_ids:
        redis_client.publish(notification_channel(profile_id), message)
    logger.info("Delivered %s notification to %s profile(s)", payload.get("kind"), len(profile_ids))
    return len(profile_ids)
