from __future__ import annotations

from celery import Celery

from examroom.core.config import settings

celery_app = Celery(
    'examroom',
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=['examroom.worker.tasks'],
)

celery_app.conf.update(
    task_default_queue='examroom',
    broker_connection_retry_on_startup=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
)

celery_app.conf.beat_schedule = {
    'expire-overdue-attempts': {
        'task': 'examroom.worker.tasks.expire_overdue_attempts',
        'schedule': settings.ATTEMPT_SWEEP_INTERVAL_SECONDS,
    }
}
