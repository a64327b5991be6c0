import logging
from datetime import timedelta
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from examroom.core.config import settings
from examroom.core.exceptions import AlreadyAttempted, InvalidState, NotFound, Unauthorized, ValidationError
from examroom.models.exam import Attempt, ChoiceQuestion, Question
from examroom.services import audit_service, exam_service
from examroom.services.grading import is_valid_option, normalize_option
from examroom.utils.time import as_utc, utcnow


logger = logging.getLogger(__name__)


def get_attempt(db: Session, attempt_id: UUID) -> Attempt:
    attempt = db.scalar(select(Attempt).where(Attempt.id == attempt_id))
    if not attempt:
        raise NotFound('Attempt not found')
    return attempt


def get_owned_attempt(db: Session, *, attempt_id: UUID, student_id: UUID) -> Attempt:
    attempt = get_attempt(db, attempt_id)
    if attempt.student_id != student_id:
        raise Unauthorized('Not allowed to act on this attempt')
    return attempt


def submission_cutoff(attempt: Attempt):
    return as_utc(attempt.deadline_at) + timedelta(seconds=settings.SUBMISSION_GRACE_SECONDS)


def normalize_answers(questions: list[Question], answers: list[dict[str, Any]] | None) -> dict[str, dict[str, Any]]:
    """
    Validate a client answer payload against the exam's question set.

    Returns answers keyed by question id string, in the same shape stored in
    ``Attempt.draft_answers``.
    """
    by_id = {str(question.id): question for question in questions}
    normalized: dict[str, dict[str, Any]] = {}

    for answer in answers or []:
        question_id = str(answer.get('question_id') or '')
        question = by_id.get(question_id)
        if question is None:
            raise ValidationError(f'Question {question_id or "<missing>"} does not belong to this exam')
        if question_id in normalized:
            raise ValidationError(f'Question {question_id} was answered more than once')

        selected_option = answer.get('selected_option')
        response_text = answer.get('response_text')
        if isinstance(question, ChoiceQuestion):
            if response_text not in (None, ''):
                raise ValidationError('Single-choice answers cannot include free text')
            option = normalize_option(selected_option)
            if not is_valid_option(option):
                raise ValidationError('Selected option must be one of A, B, C or D')
            normalized[question_id] = {'selected_option': option, 'response_text': None}
        else:
            if selected_option not in (None, ''):
                raise ValidationError('Free-text answers cannot select an option')
            if response_text is not None and not isinstance(response_text, str):
                raise ValidationError('Free-text responses must be text')
            normalized[question_id] = {'selected_option': None, 'response_text': response_text}

    return normalized


def start_attempt(db: Session, *, exam_id: UUID, student_id: UUID) -> Attempt:
    exam = exam_service.get_exam(db, exam_id)
    if not exam.is_active:
        raise InvalidState('Exam is not active')

    questions = exam_service.list_exam_questions(db, exam.id)
    if not questions:
        raise ValidationError('Exam has no questions')
    if any((question.marks or 0) <= 0 for question in questions):
        raise ValidationError('Every question must be worth at least one mark')

    now = utcnow()
    attempt = Attempt(
        exam_id=exam.id,
        student_id=student_id,
        status='in_progress',
        started_at=now,
        deadline_at=now + timedelta(minutes=exam.duration_minutes),
        tab_switch_count=0,
        draft_answers={},
        requires_manual_grading=False,
        manual_grading_completed=False,
    )
    # The unique (exam_id, student_id) constraint is the check; a pre-read would race.
    try:
        with db.begin_nested():
            db.add(attempt)
            db.flush()
    except IntegrityError as exc:
        raise AlreadyAttempted() from exc

    audit_service.log_action(
        db,
        actor_user_id=student_id,
        action='attempt_started',
        entity_type='attempt',
        entity_id=attempt.id,
        details={'exam_id': exam.id, 'deadline_at': attempt.deadline_at},
    )
    logger.info('Attempt %s started for exam %s by %s', attempt.id, exam.id, student_id)
    return attempt


def save_draft_answers(
    db: Session,
    *,
    attempt_id: UUID,
    student_id: UUID,
    answers: list[dict[str, Any]],
) -> Attempt:
    attempt = get_owned_attempt(db, attempt_id=attempt_id, student_id=student_id)
    if attempt.status != 'in_progress':
        raise InvalidState('Attempt is not editable')
    if utcnow() > submission_cutoff(attempt):
        raise InvalidState('Attempt deadline has passed')

    questions = exam_service.list_exam_questions(db, attempt.exam_id)
    merged = dict(attempt.draft_answers or {})
    merged.update(normalize_answers(questions, answers))

    result = db.execute(
        update(Attempt)
        .where(Attempt.id == attempt.id, Attempt.status == 'in_progress')
        .values(draft_answers=merged, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise InvalidState('Attempt is not editable')
    db.refresh(attempt)
    return attempt


def record_focus_loss(db: Session, *, attempt_id: UUID, student_id: UUID) -> tuple[Attempt, bool]:
    attempt = get_owned_attempt(db, attempt_id=attempt_id, student_id=student_id)

    result = db.execute(
        update(Attempt)
        .where(Attempt.id == attempt.id, Attempt.status == 'in_progress')
        .values(tab_switch_count=Attempt.tab_switch_count + 1)
        .execution_options(synchronize_session=False)
    )
    accepted = result.rowcount == 1
    if not accepted:
        logger.warning('Focus-loss signal ignored for attempt %s in status %s', attempt.id, attempt.status)
    db.refresh(attempt)
    return attempt, accepted
