"""
Celery Beat Schedule Configuration

Defines periodic tasks that run on a schedule.
"""

from celery.schedules import crontab

# Schedule configuration
beat_schedule = {
    # Expired refresh tokens are already unusable; this only reclaims space.
    'purge-expired-refresh-tokens': {
        'task': 'tasks.purge_expired_refresh_tokens',
        'schedule': crontab(minute=5),  # Hourly at :05
    },
    # Coach KPI cache read by /coaches/{id}/stats
    'refresh-coach-kpis': {
        'task': 'tasks.refresh_coach_kpis',
        'schedule': crontab(hour=3, minute=0),  # Daily at 03:00 UTC
    },
}
