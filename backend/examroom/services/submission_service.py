from __future__ import annotations

import logging
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.orm import Session

from examroom.core.exceptions import Unauthorized
from examroom.models.exam import Answer, Attempt, ChoiceQuestion, Question
from examroom.services import attempt_service, audit_service, exam_service
from examroom.services.grading import aggregate_score, grade_choice, normalize_option
from examroom.utils.time import utcnow


logger = logging.getLogger(__name__)


def claim_submission(db: Session, *, attempt_id: UUID, trigger: str, now: datetime) -> bool:
    """
    Move an attempt from in_progress to submitting.

    This conditional UPDATE is the only way into the answer write path; exactly one
    caller sees rowcount 1 no matter how many submits race.
    """
    result = db.execute(
        update(Attempt)
        .where(Attempt.id == attempt_id, Attempt.status == 'in_progress')
        .values(status='submitting', submitted_at=now, submission_trigger=trigger, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def _coerce_drafts(questions: list[Question], drafts: dict[str, Any] | None) -> dict[str, dict[str, Any]]:
    known = {str(question.id) for question in questions}
    return {question_id: value for question_id, value in (drafts or {}).items() if question_id in known}


def _build_answers(
    attempt: Attempt, questions: list[Question], responses: dict[str, dict[str, Any]]
) -> list[Answer]:
    answers = []
    for question in questions:
        response = responses.get(str(question.id)) or {}
        if isinstance(question, ChoiceQuestion):
            grade = grade_choice(question, response.get('selected_option'))
            answers.append(
                Answer(
                    attempt=attempt,
                    question=question,
                    selected_option=normalize_option(response.get('selected_option')),
                    is_correct=grade.is_correct,
                    awarded_marks=grade.awarded_marks,
                    is_graded=True,
                )
            )
        else:
            answers.append(
                Answer(
                    attempt=attempt,
                    question=question,
                    response_text=response.get('response_text'),
                    is_graded=False,
                    awarded_marks=None,
                )
            )
    return answers


def complete_submission(
    db: Session,
    *,
    attempt_id: UUID,
    answers: list[dict[str, Any]] | None,
    trigger: str,
    now: datetime | None = None,
) -> tuple[Attempt, bool]:
    """
    Run the submission state machine for one attempt.

    Returns the attempt and whether this call performed the transition. A caller that
    loses the claim gets the attempt's current state back and writes nothing.
    """
    now = now or utcnow()
    attempt = attempt_service.get_attempt(db, attempt_id)
    if attempt.status != 'in_progress':
        db.refresh(attempt)
        return attempt, False

    exam = exam_service.get_exam(db, attempt.exam_id)
    questions = exam_service.list_exam_questions(db, exam.id)

    if now > attempt_service.submission_cutoff(attempt):
        # Late or abandoned: the last autosave is authoritative, not the late payload.
        responses = _coerce_drafts(questions, attempt.draft_answers)
        trigger = 'deadline_sweep'
    else:
        responses = attempt_service.normalize_answers(questions, answers)

    if not claim_submission(db, attempt_id=attempt.id, trigger=trigger, now=now):
        db.refresh(attempt)
        logger.warning('Duplicate submit for attempt %s ignored (status %s)', attempt.id, attempt.status)
        return attempt, False
    db.refresh(attempt)

    new_answers = _build_answers(attempt, questions, responses)
    db.add_all(new_answers)

    total_marks = sum(question.marks for question in questions)
    requires_manual = any(not isinstance(question, ChoiceQuestion) for question in questions)

    attempt.total_marks = total_marks
    attempt.draft_answers = {}
    if requires_manual:
        attempt.requires_manual_grading = True
        attempt.manual_grading_completed = False
        attempt.score = None
        attempt.percentage = None
        attempt.passed = None
        attempt.status = 'pending_manual_grading'
    else:
        summary = aggregate_score(
            (answer.awarded_marks for answer in new_answers),
            (question.marks for question in questions),
            exam.passing_marks,
        )
        attempt.requires_manual_grading = False
        attempt.score = summary.score
        attempt.percentage = summary.percentage
        attempt.passed = summary.passed
        attempt.status = 'auto_graded'
    db.flush()

    audit_service.log_action(
        db,
        actor_user_id=attempt.student_id if trigger != 'deadline_sweep' else None,
        action='attempt_submitted',
        entity_type='attempt',
        entity_id=attempt.id,
        details={
            'exam_id': exam.id,
            'trigger': trigger,
            'status': attempt.status,
            'score': attempt.score,
            'total_marks': total_marks,
            'tab_switch_count': attempt.tab_switch_count,
        },
    )
    logger.info('Attempt %s submitted via %s -> %s', attempt.id, trigger, attempt.status)
    return attempt, True


def submit_attempt(
    db: Session,
    *,
    attempt_id: UUID,
    student_id: UUID,
    answers: list[dict[str, Any]] | None,
    trigger: str = 'manual',
    now: datetime | None = None,
) -> Attempt:
    attempt = attempt_service.get_attempt(db, attempt_id)
    if attempt.student_id != student_id:
        raise Unauthorized('Not allowed to submit this attempt')
    attempt, _ = complete_submission(db, attempt_id=attempt_id, answers=answers, trigger=trigger, now=now)
    return attempt
