from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from examroom.api.deps import require_roles
from examroom.db.session import get_db
from examroom.models.rbac import User
from examroom.schemas.attempt import AttemptListResponse, AttemptOut
from examroom.schemas.grading import AttemptGradingOut, GradeIn, GradingAnswerOut, RegradeAuditOut
from examroom.services import manual_grading_service, results_service


router = APIRouter(tags=['grading'])


def _grading_answer(answer) -> GradingAnswerOut:
    return GradingAnswerOut(
        answer_id=answer.id,
        question_id=answer.question_id,
        prompt=answer.question.prompt,
        max_marks=answer.question.marks,
        response_text=answer.response_text,
        awarded_marks=answer.awarded_marks,
        is_graded=answer.is_graded,
        graded_by=answer.graded_by,
        graded_at=answer.graded_at,
    )


@router.get('/grading/pending', response_model=AttemptListResponse)
def list_pending_grading(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles('instructor')),
) -> AttemptListResponse:
    attempts = results_service.list_pending_grading(db, user=current_user)
    return AttemptListResponse(items=[AttemptOut.model_validate(attempt) for attempt in attempts])


@router.get('/attempts/{attempt_id}/grading', response_model=AttemptGradingOut)
def get_grading_view(
    attempt_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles('instructor')),
) -> AttemptGradingOut:
    attempt, exam, answers = manual_grading_service.list_answers_for_grading(
        db, attempt_id=attempt_id, grader=current_user
    )
    return AttemptGradingOut(
        attempt=AttemptOut.model_validate(attempt),
        exam_title=exam.title,
        answers=[_grading_answer(answer) for answer in answers],
    )


@router.put('/answers/{answer_id}/grade', response_model=GradingAnswerOut)
def grade_answer(
    answer_id: UUID,
    payload: GradeIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles('instructor')),
) -> GradingAnswerOut:
    answer = manual_grading_service.grade_answer(
        db, answer_id=answer_id, awarded_marks=payload.awarded_marks, grader=current_user
    )
    db.commit()
    return _grading_answer(answer)


@router.post('/attempts/{attempt_id}/finalize', response_model=AttemptOut)
def finalize_grading(
    attempt_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles('instructor')),
) -> AttemptOut:
    attempt = manual_grading_service.finalize_grading(db, attempt_id=attempt_id, grader=current_user)
    db.commit()
    return AttemptOut.model_validate(attempt)


@router.get('/attempts/{attempt_id}/regrade-audit', response_model=RegradeAuditOut)
def regrade_audit(
    attempt_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles('instructor')),
) -> RegradeAuditOut:
    report = manual_grading_service.regrade_attempt(db, attempt_id=attempt_id, grader=current_user)
    return RegradeAuditOut(**report)
