from celery import Celery
from celery.schedules import crontab

from app.core.config import settings

celery_app = Celery(
    "commissions",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["app.tasks.commission_tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
)

celery_app.conf.beat_schedule = {
    # Previous month is closed once the new one starts
    "calculate-previous-month-commissions": {
        "task": "app.tasks.commission_tasks.calculate_commissions_task",
        "schedule": crontab(minute=0, hour=2, day_of_month=1),
    },
}
