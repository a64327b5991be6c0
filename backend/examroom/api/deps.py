from collections.abc import Callable
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from examroom.core.exceptions import Unauthorized
from examroom.core.security import TokenDecodeError, decode_access_token
from examroom.db.session import get_db
from examroom.models.rbac import User, UserRole


# Tokens are minted by the identity provider; there is no login route here.
bearer_scheme = HTTPBearer(auto_error=False)


def _credentials_error(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={'WWW-Authenticate': 'Bearer'},
    )


def get_current_user(
    db: Session = Depends(get_db),
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> User:
    if credentials is None:
        raise _credentials_error('Not authenticated')

    try:
        subject = decode_access_token(credentials.credentials).get('sub')
        user_id = UUID(str(subject))
    except (TokenDecodeError, ValueError) as exc:
        raise _credentials_error('Invalid access token') from exc

    # Roles come from the database only; nothing in the token is trusted beyond the subject.
    user = db.scalar(
        select(User)
        .where(User.id == user_id)
        .options(joinedload(User.user_roles).joinedload(UserRole.role))
    )
    if not user:
        raise _credentials_error('User not found')
    return user


def get_current_active_user(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_active:
        raise Unauthorized('Inactive user')
    return current_user


def require_roles(*required_roles: str) -> Callable:
    """Gate a route on any of ``required_roles``; admins pass every gate."""
    required_set = set(required_roles)

    def role_checker(current_user: User = Depends(get_current_active_user)) -> User:
        user_roles = current_user.role_names
        if 'admin' in user_roles or required_set & user_roles:
            return current_user
        raise Unauthorized(f"Requires role: {', '.join(sorted(required_set))}")

    return role_checker
