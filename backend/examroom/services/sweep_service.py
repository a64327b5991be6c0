from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session

from examroom.core.config import settings
from examroom.db.session import SessionLocal
from examroom.models.exam import Attempt
from examroom.services import submission_service
from examroom.utils.time import utcnow


logger = logging.getLogger(__name__)


def expire_overdue_attempts(db: Session, *, now: datetime | None = None, batch_size: int | None = None) -> int:
    """
    Force-submit in-progress attempts whose server deadline (plus grace) has passed.

    Each attempt goes through the same claim as a client submit, so a sweep racing a
    late client submit still produces exactly one answer set.
    """
    now = now or utcnow()
    cutoff = now - timedelta(seconds=settings.SUBMISSION_GRACE_SECONDS)
    query = (
        select(Attempt.id)
        .where(Attempt.status == 'in_progress', Attempt.deadline_at < cutoff)
        .order_by(Attempt.deadline_at.asc())
        .limit(batch_size or settings.ATTEMPT_SWEEP_BATCH_SIZE)
    )
    if db.get_bind().dialect.name == 'postgresql':
        query = query.with_for_update(skip_locked=True)

    attempt_ids = db.scalars(query).all()
    finalized = 0
    for attempt_id in attempt_ids:
        _, claimed = submission_service.complete_submission(
            db, attempt_id=attempt_id, answers=None, trigger='deadline_sweep', now=now
        )
        if claimed:
            finalized += 1

    if finalized:
        logger.info('Deadline sweep finalized %s attempt(s)', finalized)
    return finalized


def run_sweep() -> int:
    db = SessionLocal()
    try:
        finalized = expire_overdue_attempts(db)
        db.commit()
        return finalized
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
