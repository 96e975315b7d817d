"""Dashboard user management endpoints."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user, get_db
from app.models.dashboard_user import DashboardUser
from app.schemas.user import UserCreate, UserRead, UserUpdate
from app.services.users import (
    PermissionDeniedError,
    ProtectedUserError,
    UserDirectory,
    UserDirectoryError,
    UserExistsError,
    UserNotFoundError,
)

router = APIRouter()


def _to_http(error: UserDirectoryError) -> HTTPException:
    if isinstance(error, UserNotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(error, UserExistsError):
        code = status.HTTP_409_CONFLICT
    elif isinstance(error, (PermissionDeniedError, ProtectedUserError)):
        code = status.HTTP_403_FORBIDDEN
    else:
        code = status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=code, detail=str(error))


@router.get("", response_model=list[UserRead])
async def list_users(
    db: AsyncSession = Depends(get_db),
    actor: DashboardUser = Depends(get_current_user),
) -> list[UserRead]:
    """List dashboard users."""
    try:
        users = await UserDirectory(db).list_users(actor)
    except UserDirectoryError as e:
        raise _to_http(e)
    return [UserRead.model_validate(user) for user in users]


@router.post("", response_model=UserRead, status_code=status.HTTP_201_CREATED)
async def create_user(
    data: UserCreate,
    db: AsyncSession = Depends(get_db),
    actor: DashboardUser = Depends(get_current_user),
) -> UserRead:
    """Create a dashboard user."""
    try:
        user = await UserDirectory(db).create_user(actor, data)
    except UserDirectoryError as e:
        raise _to_http(e)
    return UserRead.model_validate(user)


@router.patch("/{user_id}", response_model=UserRead)
async def update_user(
    user_id: int,
    data: UserUpdate,
    db: AsyncSession = Depends(get_db),
    actor: DashboardUser = Depends(get_current_user),
) -> UserRead:
    """Update role, permissions, password or active flag of a user."""
    try:
        user = await UserDirectory(db).update_user(actor, user_id, data)
    except UserDirectoryError as e:
        raise _to_http(e)
    return UserRead.model_validate(user)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    actor: DashboardUser = Depends(get_current_user),
) -> None:
    """Delete a dashboard user."""
    try:
        await UserDirectory(db).delete_user(actor, user_id)
    except UserDirectoryError as e:
        raise _to_http(e)
