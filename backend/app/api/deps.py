"""FastAPI dependencies: current actor from JWT, coach-only guard, engine error translation."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import decode_token
from app.core.errors import EngineError, MaterializationError, NotFoundError, StateError, ValidationError
from app.db.session import get_db
from app.models.user import User


async def get_current_user(
    request: Request,
    session: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Not authenticated")
    token = auth_header[7:].strip()
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        payload = decode_token(token)
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    try:
        user_id = int(payload.get("sub") or "")
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid token")
    r = await session.execute(select(User).where(User.id == user_id))
    user = r.scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return user


async def require_coach(
    user: Annotated[User, Depends(get_current_user)],
) -> User:
    """Coach-only endpoints. Raises 403 for athletes."""
    if not user.is_coach:
        raise HTTPException(status_code=403, detail="Only coaches can do this")
    return user


def http_error(exc: EngineError) -> HTTPException:
    """Map an engine error onto the HTTP status the API documents."""
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, StateError):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, MaterializationError):
        return HTTPException(
            status_code=500,
            detail={"error": str(exc), "created": exc.created, "retry_safe": True},
        )
    return HTTPException(status_code=500, detail=str(exc))
