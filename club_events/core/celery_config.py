from celery import Celery
from celery.signals import setup_logging

from club_events.core.config import get_redis_url
from club_events.core.logging_config import configure_logging


def make_celery(app_name: str = "club_events") -> Celery:
    redis_url = get_redis_url()
    celery = Celery(app_name, broker=redis_url, backend=redis_url, include=["club_events.tasks"])
    celery.conf.task_serializer = "json"
    celery.conf.result_serializer = "json"
    celery.conf.accept_content = ["json"]
    celery.conf.result_persistent = False
    celery.conf.task_track_started = True
    # notifications are fire-and-forget, nobody reads the result
    celery.conf.task_ignore_result = True
    return celery


@setup_logging.connect
def configure_worker_logging(**kwargs):
    configure_logging()


celery_app = make_celery()
