"""
Celery application instance.

Configured with Redis broker and backend. Beat runs the hourly
maintenance sweeps.
"""

from celery import Celery
from celery.signals import setup_logging

from parley.core.config import settings

celery_app = Celery(
    "parley",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[
        "parley.workers.email_tasks",
        "parley.workers.maintenance_tasks",
    ],
)

celery_app.conf.update(
    # Serialization
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    # Timezone
    timezone="UTC",
    enable_utc=True,
    # Results
    result_expires=3600,
    # Retry policy
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    # Concurrency
    worker_prefetch_multiplier=1,
    # Routing
    task_default_queue="default",
    task_queues={
        "default": {},
        "email": {},
        "maintenance": {},
    },
    task_routes={
        "parley.workers.email_tasks.*": {"queue": "email"},
        "parley.workers.maintenance_tasks.*": {"queue": "maintenance"},
    },
    # Schedule
    beat_schedule={
        "sweep-expired-sessions": {
            "task": "parley.workers.maintenance_tasks.sweep_expired_sessions",
            "schedule": 3600.0,
        },
        "sweep-expired-invitations": {
            "task": "parley.workers.maintenance_tasks.sweep_expired_invitations",
            "schedule": 3600.0,
        },
    },
)


@setup_logging.connect
def _configure_worker_logging(**kwargs: object) -> None:
    from parley.core.logging_config import configure_logging

    configure_logging()
