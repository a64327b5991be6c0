from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from examroom.api.deps import get_current_active_user, require_roles
from examroom.db.session import get_db
from examroom.models.rbac import User
from examroom.schemas.attempt import (
    AnswerOut,
    AttemptDetailOut,
    AttemptListResponse,
    AttemptOut,
    AttemptSubmitIn,
    DraftAnswersIn,
    FocusLossOut,
)
from examroom.services import attempt_service, results_service, submission_service


router = APIRouter(prefix='/attempts', tags=['attempts'])
me_router = APIRouter(prefix='/me', tags=['attempts'])


@router.put('/{attempt_id}/draft', response_model=AttemptOut)
def save_draft(
    attempt_id: UUID,
    payload: DraftAnswersIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles('student')),
) -> AttemptOut:
    attempt = attempt_service.save_draft_answers(
        db,
        attempt_id=attempt_id,
        student_id=current_user.id,
        answers=[answer.model_dump() for answer in payload.answers],
    )
    db.commit()
    return AttemptOut.model_validate(attempt)


@router.post('/{attempt_id}/focus-loss', response_model=FocusLossOut)
def record_focus_loss(
    attempt_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles('student')),
) -> FocusLossOut:
    attempt, accepted = attempt_service.record_focus_loss(db, attempt_id=attempt_id, student_id=current_user.id)
    db.commit()
    return FocusLossOut(attempt_id=attempt.id, tab_switch_count=attempt.tab_switch_count, accepted=accepted)


@router.post('/{attempt_id}/submit', response_model=AttemptOut)
def submit_attempt(
    attempt_id: UUID,
    payload: AttemptSubmitIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles('student')),
) -> AttemptOut:
    attempt = submission_service.submit_attempt(
        db,
        attempt_id=attempt_id,
        student_id=current_user.id,
        answers=[answer.model_dump() for answer in payload.answers],
        trigger=payload.trigger,
    )
    db.commit()
    return AttemptOut.model_validate(attempt)


@router.get('/{attempt_id}', response_model=AttemptDetailOut)
def get_attempt(
    attempt_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> AttemptDetailOut:
    attempt, answers = results_service.get_attempt_detail(db, attempt_id=attempt_id, user=current_user)
    return AttemptDetailOut(
        **AttemptOut.model_validate(attempt).model_dump(),
        answers=[AnswerOut.model_validate(answer) for answer in answers],
    )


@me_router.get('/attempts', response_model=AttemptListResponse)
def list_my_attempts(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> AttemptListResponse:
    attempts = results_service.list_my_attempts(db, student_id=current_user.id)
    return AttemptListResponse(items=[AttemptOut.model_validate(attempt) for attempt in attempts])
