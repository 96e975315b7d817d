"""Shared API dependencies."""

from typing import AsyncGenerator, Callable, Optional

from fastapi import Cookie, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.db.session import async_session_maker
from app.models.dashboard_user import PERMISSION_FIELDS, DashboardUser
from app.schemas.auth import TokenData
from app.services.users import UserDirectory

settings = get_settings()

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get async database session."""
    async with async_session_maker() as session:
        try:
            yield session
        finally:
            await session.close()


def _decode_token(token: str) -> TokenData:
    """Decode and validate JWT token."""
    payload = jwt.decode(
        token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM]
    )
    username: Optional[str] = payload.get("sub")
    if username is None:
        raise JWTError("No subject in token")
    return TokenData(username=username)


async def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    access_token: Optional[str] = Cookie(default=None),
    db: AsyncSession = Depends(get_db),
) -> DashboardUser:
    """Get current authenticated user from Bearer token or cookie."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    raw_token = token or access_token
    if not raw_token:
        raise credentials_exception

    try:
        token_data = _decode_token(raw_token)
    except JWTError:
        raise credentials_exception

    user = await UserDirectory(db).get_by_username(token_data.username)
    if user is None or not user.is_active:
        raise credentials_exception
    return user


def require_permission(permission: str) -> Callable:
    """Dependency factory rejecting users without ``permission``."""
    if permission not in PERMISSION_FIELDS:
        raise ValueError(f"Unknown permission: {permission}")

    async def _check(user: DashboardUser = Depends(get_current_user)) -> DashboardUser:
        if not user.has_permission(permission):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing permission: {permission}",
            )
        return user

    return _check
