"""Verification of identity provider bearer tokens.

Users sign in with the external identity provider; this service only checks the
token signature and reads the subject as the user id.
"""
from __future__ import annotations

from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt  # type: ignore[import-untyped]
from pydantic import BaseModel, ValidationError

from street_payments.core.config import Settings, get_settings

security_scheme = HTTPBearer(auto_error=True)
optional_security_scheme = HTTPBearer(auto_error=False)


class TokenPayload(BaseModel):
    sub: str
    email: str | None = None


@dataclass(frozen=True)
class AuthenticatedUser:
    user_id: str
    email: str | None = None


def _decode_token(*, token: str, settings: Settings) -> TokenPayload:
    try:
        payload = jwt.decode(
            token,
            settings.identity_jwt_key,
            algorithms=[settings.identity_jwt_algorithm],
            audience=settings.identity_jwt_audience,
            options={"verify_aud": settings.identity_jwt_audience is not None},
        )
    except JWTError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        ) from exc
    try:
        return TokenPayload(**payload)
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        ) from exc


def _authenticate(request: Request, token: str) -> AuthenticatedUser:
    payload = _decode_token(token=token, settings=get_settings())
    request.state.user_id = payload.sub
    return AuthenticatedUser(user_id=payload.sub, email=payload.email)


def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(security_scheme),
) -> AuthenticatedUser:
    return _authenticate(request, credentials.credentials)


def get_optional_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(optional_security_scheme),
) -> AuthenticatedUser | None:
    """Like :func:`get_current_user`, but anonymous callers are allowed through."""
    if credentials is None:
        return None
    return _authenticate(request, credentials.credentials)


__all__ = ["AuthenticatedUser", "get_current_user", "get_optional_user"]
