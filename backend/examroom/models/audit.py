import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, CheckConstraint, DateTime, ForeignKey, Index, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from examroom.db.base_class import Base
from examroom.models.mixins import UUIDPrimaryKeyMixin


class AuditLog(UUIDPrimaryKeyMixin, Base):
    """Append-only trail of attempt lifecycle and grading events."""

    __tablename__ = 'audit_log'
    __table_args__ = (
        CheckConstraint("entity_type in ('exam', 'question', 'attempt', 'answer')", name='audit_entity_type_values'),
        CheckConstraint("status in ('success', 'ignored', 'failed')", name='audit_status_values'),
    )

    # Null for system actors such as the deadline sweep.
    actor_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey('users.id', ondelete='SET NULL'), nullable=True
    )
    action: Mapped[str] = mapped_column(String(80), nullable=False, index=True)
    entity_type: Mapped[str] = mapped_column(String(20), nullable=False)
    entity_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default='success')
    details_json: Mapped[dict[str, Any]] = mapped_column('details', JSON, nullable=False, default=dict)
    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


Index('ix_audit_log_entity', AuditLog.entity_type, AuditLog.entity_id)
Index('ix_audit_log_actor_user_id', AuditLog.actor_user_id)
