from celery import Celery
from celery.schedules import crontab
from celery.signals import worker_process_init

from spinup.common.logging import setup_logging
from spinup.config import settings

app = Celery(
    "spinup",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
)

app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_routes={
        "spinup.tasks.trello_tasks.*": {"queue": "trello"},
    },
    beat_schedule={
        "sync-pending-artifacts": {
            "task": "spinup.tasks.trello_tasks.sync_pending_artifacts",
            "schedule": crontab(minute="*/15"),  # every 15 minutes
        },
    },
)

app.autodiscover_tasks(["spinup.tasks.trello_tasks"])


@worker_process_init.connect
def _init_worker_logging(**_kwargs) -> None:
    setup_logging()
