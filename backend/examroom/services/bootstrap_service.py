from sqlalchemy import select
from sqlalchemy.orm import Session

from examroom.core.config import settings
from examroom.models.rbac import Role, User, UserRole


ROLE_DESCRIPTIONS = {
    'admin': 'Full system access, including the deadline sweep.',
    'instructor': 'Authors exams and grades free-text answers for their own exams.',
    'student': 'Takes exams.',
}


def ensure_reference_data(db: Session) -> None:
    existing_roles = {role.name: role for role in db.scalars(select(Role)).all()}

    for role_name, description in ROLE_DESCRIPTIONS.items():
        if role_name not in existing_roles:
            db.add(Role(name=role_name, description=description))

    db.flush()

    if not settings.FIRST_ADMIN_EMAIL:
        return

    admin = db.scalar(select(User).where(User.email == str(settings.FIRST_ADMIN_EMAIL).lower()))
    if not admin:
        admin = User(
            email=str(settings.FIRST_ADMIN_EMAIL).lower(),
            full_name='Initial Admin',
            is_active=True,
        )
        db.add(admin)
        db.flush()

    admin_role = db.scalar(select(Role).where(Role.name == 'admin'))
    role_ids = {row.role_id for row in db.scalars(select(UserRole).where(UserRole.user_id == admin.id)).all()}
    if admin_role and admin_role.id not in role_ids:
        db.add(UserRole(user_id=admin.id, role_id=admin_role.id))

    db.flush()
