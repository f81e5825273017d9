from celery import Celery
from celery.signals import setup_logging as celery_setup_logging
from callcontrol.core.config import settings
from callcontrol.core.logging import setup_logging

celery_app = Celery(
    "callcontrol",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["callcontrol.tasks"],
)

celery_app.conf.task_always_eager = settings.celery_task_always_eager
celery_app.conf.beat_schedule = {
    "sync-telfin-calls": {
        "task": "callcontrol.tasks.sync_telfin_calls",
        "schedule": float(settings.telfin_sync_interval_seconds),
    }
}


@celery_setup_logging.connect
def configure_worker_logging(**kwargs):
    setup_logging()
