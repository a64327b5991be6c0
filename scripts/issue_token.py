#!/usr/bin/env python3
import argparse
import sys
from datetime import timedelta
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / 'backend'))

from sqlalchemy import select  # noqa: E402

from examroom.core.security import create_access_token  # noqa: E402
from examroom.db.session import SessionLocal  # noqa: E402
from examroom.models.constants import ROLE_VALUES  # noqa: E402
from examroom.models.rbac import Role, User, UserRole  # noqa: E402
from examroom.services.bootstrap_service import ensure_reference_data  # noqa: E402


def main() -> int:
    parser = argparse.ArgumentParser(description='Create (or reuse) a local user and print a bearer token for it.')
    parser.add_argument('email')
    parser.add_argument('--name', default=None, help='Full name for a newly created user.')
    parser.add_argument('--role', choices=sorted(ROLE_VALUES), default='student')
    parser.add_argument('--minutes', type=int, default=60, help='Token lifetime in minutes.')
    args = parser.parse_args()

    db = SessionLocal()
    try:
        ensure_reference_data(db)
        email = args.email.strip().lower()
        user = db.scalar(select(User).where(User.email == email))
        if not user:
            user = User(email=email, full_name=args.name or email, is_active=True)
            db.add(user)
            db.flush()

        role = db.scalar(select(Role).where(Role.name == args.role))
        has_role = db.scalar(select(UserRole).where(UserRole.user_id == user.id, UserRole.role_id == role.id))
        if not has_role:
            db.add(UserRole(user_id=user.id, role_id=role.id))
        db.commit()
        user_id = str(user.id)
    finally:
        db.close()

    print(create_access_token(user_id, expires_delta=timedelta(minutes=args.minutes)))
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
