import uuid
from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Index, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from examroom.db.base_class import Base
from examroom.models.constants import ROLE_VALUES, sql_in
from examroom.models.mixins import TimestampMixin, UUIDPrimaryKeyMixin


class User(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = 'users'

    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_seen_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    user_roles: Mapped[list['UserRole']] = relationship(back_populates='user', cascade='all, delete-orphan')

    @property
    def role_names(self) -> set[str]:
        return {user_role.role.name for user_role in self.user_roles}


class Role(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = 'roles'
    __table_args__ = (
        CheckConstraint(
            sql_in('name', ROLE_VALUES),
            name='role_name_values',
        ),
    )

    name: Mapped[str] = mapped_column(String(50), nullable=False, unique=True, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)

    user_roles: Mapped[list['UserRole']] = relationship(back_populates='role', cascade='all, delete-orphan')


class UserRole(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = 'user_roles'
    __table_args__ = (UniqueConstraint('user_id', 'role_id', name='uq_user_roles_user_role'),)

    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    role_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey('roles.id', ondelete='CASCADE'), nullable=False)

    user: Mapped['User'] = relationship(back_populates='user_roles')
    role: Mapped['Role'] = relationship(back_populates='user_roles')


Index('ix_user_roles_user_id', UserRole.user_id)
Index('ix_user_roles_role_id', UserRole.role_id)
