from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from examroom.core.config import settings
from examroom.db.session import get_db


router = APIRouter(tags=['health'])


@router.get('/health')
def health(db: Session = Depends(get_db)) -> dict[str, str]:
    db.execute(text('select 1'))
    return {
        'status': 'ok',
        'environment': settings.APP_ENV,
        'database': db.get_bind().dialect.name,
    }
