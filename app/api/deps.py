"""FastAPI dependency injection utilities."""

from typing import Annotated

from fastapi import Cookie, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import RequestContext, context_from_claims, decode_access_token
from app.db.session import get_db

# Security scheme
security = HTTPBearer(auto_error=False)


async def get_current_token(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    access_token: Annotated[str | None, Cookie()] = None,
) -> dict | None:
    """Decode the bearer token, or the ``access_token`` cookie set by the host platform.

    Returns:
        Decoded token payload or None
    """
    token = credentials.credentials if credentials else access_token
    if not token:
        return None
    return decode_access_token(token)


async def get_request_context(
    token: Annotated[dict | None, Depends(get_current_token)],
) -> RequestContext:
    """Build the caller context for this request.

    Raises:
        HTTPException: If the token is missing or invalid
    """
    ctx = context_from_claims(token) if token else None
    if ctx is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return ctx


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db)]
CurrentContext = Annotated[RequestContext, Depends(get_request_context)]
