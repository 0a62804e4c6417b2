"""
Scheduled maintenance tasks.

- purge_expired_refresh_tokens: deletes ledger rows past their expiry.
- refresh_coach_kpis: recomputes every coach's KPI cache from sessions.

Runs via Celery Beat scheduler (see celerybeat_schedule.py).
"""

from typing import Dict
import logging

from celery import Task
from sqlalchemy import func

from core.database import session_scope
from models import Client, Coach, CoachingSession
from services import coaches_service, token_ledger
from tasks import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(name="tasks.purge_expired_refresh_tokens", bind=True)
def purge_expired_refresh_tokens_task(self: Task) -> Dict:
    try:
        with session_scope() as db:
            deleted = token_ledger.purge_expired(db)
    except Exception:
        logger.exception("Refresh token purge failed")
        raise
    if deleted:
        logger.info(f"Purged {deleted} expired refresh tokens")
    return {"status": "ok", "deleted": deleted}


def compute_coach_kpis(db, coach_id) -> Dict:
    sessions = db.query(CoachingSession).filter(CoachingSession.coach_id == coach_id)
    completed = sessions.filter(CoachingSession.status == "completed")

    average_rating = (
        db.query(func.avg(CoachingSession.feedback_rating))
        .filter(CoachingSession.coach_id == coach_id, CoachingSession.feedback_rating.isnot(None))
        .scalar()
    )
    earnings = (
        db.query(func.sum(CoachingSession.price))
        .filter(CoachingSession.coach_id == coach_id, CoachingSession.status == "completed")
        .scalar()
    )
    return {
        "total_sessions": completed.count(),
        "total_clients": db.query(Client).filter(Client.assigned_coach_id == coach_id).count(),
        "average_rating": round(float(average_rating or 0), 2),
        "total_earnings": round(float(earnings or 0), 2),
    }


@celery_app.task(name="tasks.refresh_coach_kpis", bind=True)
def refresh_coach_kpis_task(self: Task) -> Dict:
    refreshed = 0
    try:
        with session_scope() as db:
            for (coach_id,) in db.query(Coach.id).all():
                coaches_service.update_kpis_cache(db, coach_id, compute_coach_kpis(db, coach_id))
                refreshed += 1
    except Exception:
        logger.exception("Coach KPI refresh failed")
        raise
    logger.info(f"Refreshed KPI cache for {refreshed} coaches")
    return {"status": "ok", "refreshed": refreshed}
