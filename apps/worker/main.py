"""
Celery worker entry point.

The Celery app, its beat schedule and the maintenance tasks live in the API
package; this module only puts that package on the path.

    celery -A main worker --beat -Q maintenance,celery --loglevel=info
"""
import sys
import os

sys.path.insert(0, os.getenv("API_PATH", os.path.join(os.path.dirname(os.path.abspath(__file__)), "..", "api")))

from tasks import celery_app  # noqa: E402

celery_app.autodiscover_tasks(["tasks"])


@celery_app.task(name="worker.ping")
def ping():
    """Liveness probe for the worker container."""
    return {"status": "ok", "scheduled": sorted(celery_app.conf.beat_schedule)}
