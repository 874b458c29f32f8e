"""
Celery application configuration.

Run the worker and the scheduler with:
    celery -A campus_access.worker.celery_app worker -Q audit
    celery -A campus_access.worker.celery_app beat
"""

from celery import Celery

from campus_access.core.config import settings

app = Celery(
    "campus-access-worker",
    broker=settings.queue.broker_url,
    backend=settings.queue.result_backend,
    include=["campus_access.worker.tasks"],
)

app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Task routing
    task_routes={
        "campus_access.worker.tasks.*": {"queue": "audit"},
    },

    # Retry settings
    task_default_retry_delay=300,

    # Result backend settings
    result_expires=3600,

    # Worker settings
    worker_prefetch_multiplier=1,

    # Beat schedule (periodic tasks)
    beat_schedule={
        "audit-retention-cleanup": {
            "task": "campus_access.worker.tasks.audit_retention_cleanup",
            "schedule": settings.queue.retention_schedule_seconds,
        },
    },
)


if __name__ == "__main__":
    app.start()
