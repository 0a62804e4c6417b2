"""
Celery app shared by the API (enqueue) and the worker (execute).

Maintenance jobs are idempotent, so they are acknowledged late and a worker
crash simply re-runs them.
"""
from celery import Celery
from celery.signals import setup_logging as celery_setup_logging

from celerybeat_schedule import beat_schedule
from core.config import settings
from core.logging import setup_logging

celery_app = Celery(
    "growfit",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    result_expires=24 * 3600,
    timezone="UTC",
    enable_utc=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_time_limit=5 * 60,
    task_soft_time_limit=4 * 60,
    task_routes={"tasks.*": {"queue": "maintenance"}},
    beat_schedule=beat_schedule,
)


@celery_setup_logging.connect
def _configure_worker_logging(**kwargs):
    # Connecting this signal stops Celery from installing its own handlers.
    setup_logging()


from . import maintenance_tasks  # noqa: E402,F401

__all__ = ["celery_app"]
