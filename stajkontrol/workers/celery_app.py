"""Celery application configuration."""

from celery import Celery

from stajkontrol.config import settings

# Create Celery app
celery_app = Celery(
    "stajkontrol",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[
        "stajkontrol.workers.email_tasks",
        "stajkontrol.workers.bulk_import",
    ],
)

# Celery configuration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone=settings.SCHEDULER_TIMEZONE,
    enable_utc=True,
    task_track_started=True,
    task_time_limit=60 * 60,  # large registrar exports
    task_soft_time_limit=55 * 60,
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1000,
)

if __name__ == "__main__":
    celery_app.start()
