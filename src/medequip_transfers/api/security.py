"""Session token decoding for API routes."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel, Field, ValidationError

from medequip_transfers.api.dependencies import get_settings
from medequip_transfers.config import Settings
from medequip_transfers.domain.actors import ActorContext, parse_role

bearer_scheme = HTTPBearer(auto_error=False)


class SessionClaims(BaseModel):
    """Claims carried by the session token."""

    sub: str
    role: str
    facility_id: int | None = None
    department: str | None = None
    allowed_facility_ids: list[int] = Field(default_factory=list)


def create_session_token(
    claims: dict[str, Any],
    settings: Settings,
    expires_delta: timedelta | None = None,
) -> str:
    to_encode = claims.copy()
    expire = datetime.now(UTC) + (expires_delta or timedelta(hours=8))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.session_secret, algorithm=settings.session_algorithm)


def decode_session_token(token: str, settings: Settings) -> SessionClaims:
    payload = jwt.decode(token, settings.session_secret, algorithms=[settings.session_algorithm])
    return SessionClaims(**payload)


def actor_from_claims(claims: SessionClaims) -> ActorContext:
    user_id = int(claims.sub) if claims.sub.isdigit() else None
    return ActorContext(
        user_id=user_id,
        role=parse_role(claims.role),
        department=claims.department,
        facility_id=claims.facility_id,
        allowed_facility_ids=tuple(sorted(set(claims.allowed_facility_ids))),
    )


def get_current_actor(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings),
) -> ActorContext:
    """Resolve the acting user from the bearer session token."""

    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        claims = decode_session_token(credentials.credentials, settings)
    except (JWTError, ValidationError, TypeError) as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc
    return actor_from_claims(claims)


__all__ = [
    "SessionClaims",
    "actor_from_claims",
    "create_session_token",
    "decode_session_token",
    "get_current_actor",
]
