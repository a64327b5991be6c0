from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from examroom.api.deps import get_current_active_user, require_roles
from examroom.core.exceptions import NotFound
from examroom.db.session import get_db
from examroom.models.rbac import User
from examroom.schemas.attempt import AttemptOut, AttemptStartOut, ExamPaperOut
from examroom.schemas.common import PaginationMeta
from examroom.schemas.exam import (
    ExamActivationUpdate,
    ExamCreate,
    ExamDetailOut,
    ExamListResponse,
    ExamOut,
    ExamUpdate,
    QuestionAuthoringOut,
    QuestionCreateRequest,
    QuestionUpdate,
)
from examroom.schemas.grading import AttemptResultOut, ExamResultListResponse, ExamResultSummary
from examroom.services import attempt_service, delivery_service, exam_service, results_service


router = APIRouter(prefix='/exams', tags=['exams'])
question_router = APIRouter(prefix='/questions', tags=['exams'])


def _exam_detail(exam, questions) -> ExamDetailOut:
    return ExamDetailOut(
        **ExamOut.model_validate(exam).model_dump(),
        questions=[QuestionAuthoringOut.model_validate(question) for question in questions],
    )


@router.post('', response_model=ExamOut, status_code=status.HTTP_201_CREATED)
def create_exam(
    payload: ExamCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles('instructor')),
) -> ExamOut:
    exam = exam_service.create_exam(db, payload=payload.model_dump(), actor_user_id=current_user.id)
    db.commit()
    return ExamOut.model_validate(exam)


@router.get('', response_model=ExamListResponse)
def list_exams(
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> ExamListResponse:
    items, total = exam_service.list_exams(db, user=current_user, page=page, page_size=page_size)
    return ExamListResponse(
        items=[ExamOut.model_validate(item) for item in items],
        meta=PaginationMeta(page=page, page_size=page_size, total=total),
    )


@router.get('/{exam_id}', response_model=ExamDetailOut)
def get_exam(
    exam_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> ExamDetailOut:
    exam = exam_service.get_exam(db, exam_id)
    if exam_service.is_instructor_for(exam, current_user):
        return _exam_detail(exam, exam_service.list_exam_questions(db, exam.id))
    if not exam.is_active:
        raise NotFound('Exam not found')
    # Header only; students read questions through the delivery route.
    return _exam_detail(exam, [])


@router.patch('/{exam_id}', response_model=ExamOut)
def update_exam(
    exam_id: UUID,
    payload: ExamUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles('instructor')),
) -> ExamOut:
    exam_service.ensure_can_manage(exam_service.get_exam(db, exam_id), current_user)
    exam = exam_service.update_exam(
        db, exam_id=exam_id, payload=payload.model_dump(exclude_unset=True), actor_user_id=current_user.id
    )
    db.commit()
    return ExamOut.model_validate(exam)


@router.post('/{exam_id}/activation', response_model=ExamOut)
def set_exam_activation(
    exam_id: UUID,
    payload: ExamActivationUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles('instructor')),
) -> ExamOut:
    exam_service.ensure_can_manage(exam_service.get_exam(db, exam_id), current_user)
    exam = exam_service.set_exam_active(
        db, exam_id=exam_id, is_active=payload.is_active, actor_user_id=current_user.id
    )
    db.commit()
    return ExamOut.model_validate(exam)


@router.post('/{exam_id}/questions', response_model=QuestionAuthoringOut, status_code=status.HTTP_201_CREATED)
def add_question(
    exam_id: UUID,
    payload: QuestionCreateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles('instructor')),
) -> QuestionAuthoringOut:
    exam_service.ensure_can_manage(exam_service.get_exam(db, exam_id), current_user)
    question = exam_service.add_question(
        db, exam_id=exam_id, payload=payload.root.model_dump(), actor_user_id=current_user.id
    )
    db.commit()
    return QuestionAuthoringOut.model_validate(question)


@question_router.patch('/{question_id}', response_model=QuestionAuthoringOut)
def update_question(
    question_id: UUID,
    payload: QuestionUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles('instructor')),
) -> QuestionAuthoringOut:
    question = exam_service.get_question(db, question_id)
    exam_service.ensure_can_manage(exam_service.get_exam(db, question.exam_id), current_user)
    question = exam_service.update_question(
        db, question_id=question_id, payload=payload.model_dump(exclude_unset=True), actor_user_id=current_user.id
    )
    db.commit()
    return QuestionAuthoringOut.model_validate(question)


@question_router.delete('/{question_id}', response_model=ExamDetailOut)
def delete_question(
    question_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles('instructor')),
) -> ExamDetailOut:
    question = exam_service.get_question(db, question_id)
    exam_service.ensure_can_manage(exam_service.get_exam(db, question.exam_id), current_user)
    exam = exam_service.delete_question(db, question_id=question_id, actor_user_id=current_user.id)
    db.commit()
    return _exam_detail(exam, exam_service.list_exam_questions(db, exam.id))


@router.post('/{exam_id}/attempts', response_model=AttemptStartOut, status_code=status.HTTP_201_CREATED)
def start_attempt(
    exam_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles('student')),
) -> AttemptStartOut:
    attempt = attempt_service.start_attempt(db, exam_id=exam_id, student_id=current_user.id)
    db.commit()
    return AttemptStartOut(attempt=AttemptOut.model_validate(attempt), deadline_at=attempt.deadline_at)


@router.get('/{exam_id}/questions', response_model=ExamPaperOut)
def get_exam_paper(
    exam_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles('student')),
) -> ExamPaperOut:
    exam, attempt, questions = delivery_service.deliver_questions(db, exam_id=exam_id, student_id=current_user.id)
    return ExamPaperOut(
        exam_id=exam.id,
        title=exam.title,
        duration_minutes=exam.duration_minutes,
        attempt_id=attempt.id,
        deadline_at=attempt.deadline_at,
        questions=questions,
    )


@router.get('/{exam_id}/results', response_model=ExamResultListResponse)
def list_exam_results(
    exam_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles('instructor')),
) -> ExamResultListResponse:
    rows, summary = results_service.list_exam_results(db, exam_id=exam_id, user=current_user)
    items = [
        AttemptResultOut(
            **AttemptOut.model_validate(attempt).model_dump(),
            student_name=student.full_name,
            student_email=student.email,
        )
        for attempt, student in rows
    ]
    return ExamResultListResponse(items=items, summary=ExamResultSummary(**summary))
