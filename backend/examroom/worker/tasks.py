from __future__ import annotations

from examroom.services.sweep_service import run_sweep
from examroom.worker.celery_app import celery_app


@celery_app.task(name='examroom.worker.tasks.expire_overdue_attempts')
def expire_overdue_attempts() -> int:
    return run_sweep()
