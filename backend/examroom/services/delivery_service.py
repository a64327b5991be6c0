from datetime import timedelta
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from examroom.core.config import settings
from examroom.core.exceptions import NotFound
from examroom.models.constants import CHOICE_OPTION_KEYS
from examroom.models.exam import Attempt, ChoiceQuestion, Exam, Question
from examroom.schemas.attempt import FreeTextQuestionView, OptionView, SingleChoiceQuestionView
from examroom.services import exam_service
from examroom.utils.time import as_utc, utcnow


def to_question_view(question: Question) -> SingleChoiceQuestionView | FreeTextQuestionView:
    # Fields are copied one by one; the answer key has no slot in either view.
    if isinstance(question, ChoiceQuestion):
        return SingleChoiceQuestionView(
            id=question.id,
            prompt=question.prompt,
            marks=question.marks,
            order_index=question.order_index,
            options=[
                OptionView(key=key, text=text)
                for key, text in zip(CHOICE_OPTION_KEYS, question.options or [], strict=False)
            ],
        )
    return FreeTextQuestionView(
        id=question.id,
        prompt=question.prompt,
        marks=question.marks,
        order_index=question.order_index,
    )


def get_open_attempt(db: Session, *, exam_id: UUID, student_id: UUID) -> Attempt:
    attempt = db.scalar(
        select(Attempt).where(
            Attempt.exam_id == exam_id,
            Attempt.student_id == student_id,
            Attempt.status == 'in_progress',
        )
    )
    if not attempt:
        raise NotFound('No active attempt for this exam')
    cutoff = as_utc(attempt.deadline_at) + timedelta(seconds=settings.SUBMISSION_GRACE_SECONDS)
    if utcnow() > cutoff:
        raise NotFound('The attempt window for this exam has closed')
    return attempt


def deliver_questions(
    db: Session, *, exam_id: UUID, student_id: UUID
) -> tuple[Exam, Attempt, list[SingleChoiceQuestionView | FreeTextQuestionView]]:
    exam = db.scalar(select(Exam).where(Exam.id == exam_id))
    if not exam:
        raise NotFound('No active attempt for this exam')
    attempt = get_open_attempt(db, exam_id=exam.id, student_id=student_id)
    questions = exam_service.list_exam_questions(db, exam.id)
    return exam, attempt, [to_question_view(question) for question in questions]
