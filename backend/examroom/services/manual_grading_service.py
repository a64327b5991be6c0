import logging
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session, joinedload

from examroom.core.exceptions import IncompleteGrading, InvalidState, NotFound, ValidationError
from examroom.models.exam import Answer, Attempt, ChoiceQuestion, Exam, FreeTextQuestion
from examroom.models.rbac import User
from examroom.services import attempt_service, audit_service, exam_service
from examroom.services.grading import aggregate_score, grade_choice
from examroom.utils.time import utcnow


logger = logging.getLogger(__name__)


def _load_answers(db: Session, attempt_id: UUID) -> list[Answer]:
    return list(
        db.scalars(
            select(Answer)
            .where(Answer.attempt_id == attempt_id)
            .options(joinedload(Answer.question))
            .execution_options(populate_existing=True)
        )
        .unique()
        .all()
    )


def _ordered(answers: list[Answer]) -> list[Answer]:
    return sorted(answers, key=lambda answer: (answer.question.order_index, answer.question.created_at))


def get_attempt_for_grader(db: Session, *, attempt_id: UUID, grader: User) -> tuple[Attempt, Exam]:
    attempt = attempt_service.get_attempt(db, attempt_id)
    exam = exam_service.get_exam(db, attempt.exam_id)
    exam_service.ensure_can_manage(exam, grader)
    return attempt, exam


def list_answers_for_grading(db: Session, *, attempt_id: UUID, grader: User) -> tuple[Attempt, Exam, list[Answer]]:
    attempt, exam = get_attempt_for_grader(db, attempt_id=attempt_id, grader=grader)
    answers = [answer for answer in _load_answers(db, attempt.id) if isinstance(answer.question, FreeTextQuestion)]
    return attempt, exam, _ordered(answers)


def grade_answer(db: Session, *, answer_id: UUID, awarded_marks: int, grader: User) -> Answer:
    answer = db.scalar(select(Answer).where(Answer.id == answer_id).options(joinedload(Answer.question)))
    if not answer:
        raise NotFound('Answer not found')

    # FOR SHARE: graders of sibling answers proceed together; finalize's claim waits for them.
    attempt = db.scalar(
        select(Attempt)
        .where(Attempt.id == answer.attempt_id)
        .with_for_update(read=True)
        .execution_options(populate_existing=True)
    )
    exam = exam_service.get_exam(db, attempt.exam_id)
    exam_service.ensure_can_manage(exam, grader)

    if not isinstance(answer.question, FreeTextQuestion):
        raise InvalidState('Only free-text answers are graded manually')
    if attempt.status != 'pending_manual_grading':
        raise InvalidState('Attempt is not awaiting manual grading')
    if awarded_marks < 0 or awarded_marks > answer.question.marks:
        raise ValidationError(f'Awarded marks must be between 0 and {answer.question.marks}')

    answer.awarded_marks = awarded_marks
    answer.is_graded = True
    answer.graded_by = grader.id
    answer.graded_at = utcnow()
    db.flush()

    audit_service.log_action(
        db,
        actor_user_id=grader.id,
        action='answer_graded',
        entity_type='answer',
        entity_id=answer.id,
        details={'attempt_id': attempt.id, 'awarded_marks': awarded_marks},
    )
    return answer


def finalize_grading(db: Session, *, attempt_id: UUID, grader: User) -> Attempt:
    attempt, exam = get_attempt_for_grader(db, attempt_id=attempt_id, grader=grader)
    db.refresh(attempt)
    if attempt.status == 'grading_completed':
        return attempt
    if attempt.status != 'pending_manual_grading':
        raise InvalidState('Attempt is not awaiting manual grading')

    answers = _load_answers(db, attempt.id)
    ungraded = [
        answer for answer in answers if isinstance(answer.question, FreeTextQuestion) and not answer.is_graded
    ]
    if ungraded:
        raise IncompleteGrading(f'{len(ungraded)} free-text answer(s) still need a grade')

    result = db.execute(
        update(Attempt)
        .where(Attempt.id == attempt.id, Attempt.status == 'pending_manual_grading')
        .values(status='grading_completed', updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    db.refresh(attempt)
    if result.rowcount != 1:
        logger.warning('Duplicate finalize for attempt %s ignored', attempt.id)
        return attempt

    # Graders committing after the first read were waited out by the claim; read their marks.
    answers = _load_answers(db, attempt.id)
    questions = exam_service.list_exam_questions(db, exam.id)
    summary = aggregate_score(
        (answer.awarded_marks for answer in answers),
        (question.marks for question in questions),
        exam.passing_marks,
    )
    attempt.score = summary.score
    attempt.total_marks = summary.total_marks
    attempt.percentage = summary.percentage
    attempt.passed = summary.passed
    attempt.manual_grading_completed = True
    db.flush()

    audit_service.log_action(
        db,
        actor_user_id=grader.id,
        action='attempt_grading_finalized',
        entity_type='attempt',
        entity_id=attempt.id,
        details={'score': summary.score, 'total_marks': summary.total_marks, 'passed': summary.passed},
    )
    logger.info('Grading finalized for attempt %s: %s/%s', attempt.id, summary.score, summary.total_marks)
    return attempt


def regrade_attempt(db: Session, *, attempt_id: UUID, grader: User) -> dict[str, Any]:
    """Re-run the auto-grader over stored choice answers and report disagreements. Read-only."""
    attempt, _ = get_attempt_for_grader(db, attempt_id=attempt_id, grader=grader)
    checked = 0
    mismatches = []
    for answer in _load_answers(db, attempt.id):
        if not isinstance(answer.question, ChoiceQuestion):
            continue
        checked += 1
        grade = grade_choice(answer.question, answer.selected_option)
        if grade.is_correct != answer.is_correct or grade.awarded_marks != answer.awarded_marks:
            mismatches.append(
                {
                    'answer_id': answer.id,
                    'question_id': answer.question_id,
                    'stored_is_correct': answer.is_correct,
                    'recomputed_is_correct': grade.is_correct,
                    'stored_marks': answer.awarded_marks,
                    'recomputed_marks': grade.awarded_marks,
                }
            )
    return {'attempt_id': attempt.id, 'checked': checked, 'mismatches': mismatches}
