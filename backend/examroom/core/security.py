from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from examroom.core.config import settings


class TokenDecodeError(Exception):
    pass


def create_access_token(subject: str, expires_delta: timedelta | None = None) -> str:
    """Issue an access token.

    Tokens are normally minted by the external identity provider sharing JWT_SECRET_KEY;
    this helper exists for local tooling and tests.
    """
    data: dict[str, Any] = {'sub': subject, 'token_type': 'access'}
    expire = datetime.now(UTC) + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    data.update({'exp': expire})
    return jwt.encode(data, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict[str, Any]:
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as exc:
        raise TokenDecodeError('Invalid access token') from exc

    if payload.get('token_type') != 'access':
        raise TokenDecodeError('Unexpected token type for access token')
    return payload
