"""
Tests for the scheduled maintenance tasks and their beat schedule.

Tasks are invoked synchronously; no broker is needed.
"""
from core.database import SessionLocal
from models import Coach, RefreshToken
from services import token_ledger
from api_helpers import create_client_profile, create_user, insert_session, slot


def test_beat_schedule_registers_both_tasks():
    from celerybeat_schedule import beat_schedule
    from tasks import celery_app

    scheduled = {entry["task"] for entry in beat_schedule.values()}
    assert scheduled == {"tasks.purge_expired_refresh_tokens", "tasks.refresh_coach_kpis"}
    for name in scheduled:
        assert name in celery_app.tasks


def test_purge_removes_only_expired_tokens(client_user, frozen_clock):
    from tasks.maintenance_tasks import purge_expired_refresh_tokens_task

    db = SessionLocal()
    try:
        token_ledger.store(db, user_id=client_user.id)
        db.commit()
    finally:
        db.close()

    frozen_clock(days=8)

    db = SessionLocal()
    try:
        token_ledger.store(db, user_id=client_user.id)
        db.commit()
    finally:
        db.close()

    result = purge_expired_refresh_tokens_task()
    assert result == {"status": "ok", "deleted": 1}

    db = SessionLocal()
    try:
        assert db.query(RefreshToken).count() == 1
    finally:
        db.close()


def test_refresh_coach_kpis(coach, client_profile):
    from tasks.maintenance_tasks import refresh_coach_kpis_task

    create_client_profile(create_user("client"), assigned_coach_id=coach.id)
    insert_session(client_profile.id, coach.id, *slot(-48), status="completed", price=50, feedback_rating=4)
    insert_session(client_profile.id, coach.id, *slot(-24), status="completed", price=30, feedback_rating=5)
    insert_session(client_profile.id, coach.id, *slot(-12), status="canceled", price=99)

    result = refresh_coach_kpis_task()
    assert result == {"status": "ok", "refreshed": 1}

    db = SessionLocal()
    try:
        kpis = db.get(Coach, coach.id).kpis_cache
    finally:
        db.close()
    assert kpis["total_sessions"] == 2
    assert kpis["total_clients"] == 1
    assert kpis["average_rating"] == 4.5
    assert kpis["total_earnings"] == 80.0
    assert "last_updated" in kpis
