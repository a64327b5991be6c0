from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from examroom.models.audit import AuditLog


def log_action(
    db: Session,
    *,
    actor_user_id: UUID | None,
    action: str,
    entity_type: str,
    entity_id: UUID | None = None,
    status: str = 'success',
    details: dict[str, Any] | None = None,
) -> AuditLog:
    audit = AuditLog(
        actor_user_id=actor_user_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        status=status,
        details_json=_json_safe(details or {}),
    )
    db.add(audit)
    db.flush()
    return audit


def _json_safe(value: Any) -> Any:
    """
    Convert UUID and datetime values into JSON-serializable representations.
    """
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    return value
