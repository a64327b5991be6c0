from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from examroom.core.exceptions import NotFound, Unauthorized
from examroom.models.constants import ATTEMPT_TERMINAL_STATUSES
from examroom.models.exam import Answer, Attempt, Exam
from examroom.models.rbac import User
from examroom.services import exam_service


def list_exam_results(db: Session, *, exam_id: UUID, user: User) -> tuple[list[tuple[Attempt, User]], dict]:
    exam = exam_service.get_exam(db, exam_id)
    exam_service.ensure_can_manage(exam, user)

    rows = db.execute(
        select(Attempt, User)
        .join(User, Attempt.student_id == User.id)
        .where(Attempt.exam_id == exam.id)
        .order_by(Attempt.submitted_at.desc().nulls_last(), Attempt.started_at.desc())
    ).all()
    attempts = [row[0] for row in rows]

    percentages = [attempt.percentage for attempt in attempts if attempt.percentage is not None]
    summary = {
        'exam_id': exam.id,
        'attempt_count': len(attempts),
        'graded_count': len([attempt for attempt in attempts if attempt.status in ATTEMPT_TERMINAL_STATUSES]),
        'pass_count': len([attempt for attempt in attempts if attempt.passed]),
        'average_percentage': round(sum(percentages) / len(percentages), 2) if percentages else None,
    }
    return [(row[0], row[1]) for row in rows], summary


def list_my_attempts(db: Session, *, student_id: UUID) -> list[Attempt]:
    return list(
        db.scalars(select(Attempt).where(Attempt.student_id == student_id).order_by(Attempt.started_at.desc())).all()
    )


def list_pending_grading(db: Session, *, user: User) -> list[Attempt]:
    base = (
        select(Attempt)
        .join(Exam, Attempt.exam_id == Exam.id)
        .where(Attempt.status == 'pending_manual_grading')
    )
    if not exam_service.is_admin(user):
        base = base.where(Exam.created_by == user.id)
    return list(db.scalars(base.order_by(Attempt.submitted_at.asc())).all())


def get_attempt_detail(db: Session, *, attempt_id: UUID, user: User) -> tuple[Attempt, list[Answer]]:
    """
    Attempt plus its answers for the owning student or an instructor of the exam.

    Students only see answers once the attempt is terminal; the answer key is never included.
    """
    attempt = db.scalar(select(Attempt).where(Attempt.id == attempt_id))
    if not attempt:
        raise NotFound('Attempt not found')
    exam = exam_service.get_exam(db, attempt.exam_id)

    is_owner = attempt.student_id == user.id
    is_grader = exam_service.is_instructor_for(exam, user)
    if not is_owner and not is_grader:
        raise Unauthorized('Not allowed to view this attempt')

    if is_owner and not is_grader and attempt.status not in ATTEMPT_TERMINAL_STATUSES:
        return attempt, []

    answers = list(db.scalars(select(Answer).where(Answer.attempt_id == attempt.id)).all())
    return attempt, answers
