from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from examroom.api.deps import require_roles
from examroom.db.session import get_db
from examroom.models.rbac import User
from examroom.schemas.grading import SweepOut
from examroom.services import sweep_service


router = APIRouter(prefix='/admin', tags=['admin'])


@router.post('/sweep-overdue-attempts', response_model=SweepOut)
def sweep_overdue_attempts(
    db: Session = Depends(get_db),
    _: User = Depends(require_roles('admin')),
) -> SweepOut:
    finalized = sweep_service.expire_overdue_attempts(db)
    db.commit()
    return SweepOut(finalized=finalized)
