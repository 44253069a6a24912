"""Bearer token handling and the per-request caller context."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt

from app.core.config import settings


@dataclass(frozen=True)
class RequestContext:
    """Everything a handler needs to know about the caller.

    Built once at the HTTP boundary and passed explicitly to services.
    """

    user_id: int
    roles: frozenset[str] = frozenset()
    method: str = "GET"
    form: dict[str, Any] = field(default_factory=dict)

    @property
    def can_manage(self) -> bool:
        """True when the caller holds a role that may act on any instance."""
        return bool(self.roles & set(settings.manage_roles))

    def with_form(self, method: str, form: dict[str, Any]) -> "RequestContext":
        return RequestContext(
            user_id=self.user_id, roles=self.roles, method=method, form=form
        )


def create_access_token(
    subject: str,
    token_type: str = "access",
    expires_delta: timedelta | None = None,
    additional_claims: dict | None = None,
) -> str:
    """Create a JWT access token.

    Args:
        subject: The subject of the token (the platform user ID)
        token_type: Type of token (access, refresh, etc.)
        expires_delta: Optional custom expiration time
        additional_claims: Optional additional claims to include

    Returns:
        Encoded JWT token string
    """
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.access_token_expire_minutes)

    expire = datetime.now(timezone.utc) + expires_delta

    to_encode = {
        "sub": subject,
        "type": token_type,
        "exp": expire,
        "iat": datetime.now(timezone.utc),
    }

    if additional_claims:
        to_encode.update(additional_claims)

    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> dict | None:
    """Decode and validate a JWT access token.

    Args:
        token: The JWT token string

    Returns:
        Decoded token payload or None if invalid
    """
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
        return payload
    except JWTError:
        return None


def context_from_claims(payload: dict) -> RequestContext | None:
    """Turn decoded token claims into a RequestContext.

    Returns None when the subject is not a numeric user id.
    """
    try:
        user_id = int(payload.get("sub", ""))
    except (TypeError, ValueError):
        return None

    roles = payload.get("roles") or []
    if isinstance(roles, str):
        roles = [roles]
    return RequestContext(user_id=user_id, roles=frozenset(roles))
