"""Dashboard user directory with permission-gated management."""

from datetime import datetime, timezone
from typing import Optional
import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import get_password_hash, verify_password
from app.models.dashboard_user import PERMISSION_FIELDS, DashboardUser, UserRole
from app.schemas.user import Permissions, UserCreate, UserUpdate

logger = logging.getLogger(__name__)

ROLE_DEFAULT_PERMISSIONS: dict[UserRole, Permissions] = {
    UserRole.MASTER: Permissions(**{name: True for name in PERMISSION_FIELDS}),
    UserRole.ADMIN: Permissions(**{name: True for name in PERMISSION_FIELDS}),
    UserRole.USER: Permissions(view_dashboard=True, view_analytics=True),
}


class UserDirectoryError(Exception):
    """Base error for user directory operations."""


class PermissionDeniedError(UserDirectoryError):
    """Actor lacks the permission required for the operation."""


class UserExistsError(UserDirectoryError):
    """Username is already taken."""


class UserNotFoundError(UserDirectoryError):
    """User id does not exist."""


class ProtectedUserError(UserDirectoryError):
    """Operation not allowed on a master user."""


def _apply_permissions(user: DashboardUser, permissions: Permissions) -> None:
    for name, value in permissions.model_dump().items():
        setattr(user, name, value)


class UserDirectory:
    """Store of dashboard users bound to one database session.

    Every management call takes the acting user and checks its
    ``manage_users`` flag; a master user can only be changed by a master
    and can never be deleted.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def _require_manager(actor: DashboardUser) -> None:
        if not actor.is_active or not actor.has_permission("manage_users"):
            raise PermissionDeniedError("manage_users permission required")

    async def get_by_username(self, username: str) -> Optional[DashboardUser]:
        result = await self.db.execute(
            select(DashboardUser).where(DashboardUser.username == username)
        )
        return result.scalar_one_or_none()

    async def _get(self, user_id: int) -> DashboardUser:
        user = await self.db.get(DashboardUser, user_id)
        if user is None:
            raise UserNotFoundError(f"User {user_id} not found")
        return user

    async def authenticate(self, username: str, password: str) -> Optional[DashboardUser]:
        """Return the active user matching the credentials, or None."""
        user = await self.get_by_username(username)
        if user is None or not verify_password(password, user.password_hash):
            logger.info(f"Failed login attempt for {username!r}")
            return None
        if not user.is_active:
            return None

        user.last_login = datetime.now(timezone.utc)
        await self.db.commit()
        return user

    async def ensure_master_user(self, username: str, password: str) -> bool:
        """Create the master user when the directory is empty.

        Returns:
            True if a master user was created
        """
        count = (await self.db.execute(select(func.count(DashboardUser.id)))).scalar() or 0
        if count:
            return False

        master = DashboardUser(
            username=username,
            password_hash=get_password_hash(password),
            role=UserRole.MASTER,
            is_active=True,
        )
        _apply_permissions(master, ROLE_DEFAULT_PERMISSIONS[UserRole.MASTER])
        self.db.add(master)
        await self.db.commit()
        logger.info(f"Created master user {username!r}")
        return True

    async def list_users(self, actor: DashboardUser) -> list[DashboardUser]:
        self._require_manager(actor)
        result = await self.db.execute(select(DashboardUser).order_by(DashboardUser.id))
        return list(result.scalars())

    async def create_user(self, actor: DashboardUser, data: UserCreate) -> DashboardUser:
        """Create a user; permissions default to the role's preset."""
        self._require_manager(actor)

        if data.role == UserRole.MASTER and actor.role != UserRole.MASTER:
            raise ProtectedUserError("Only a master user can create master users")

        if await self.get_by_username(data.username) is not None:
            raise UserExistsError(f"Username {data.username!r} already exists")

        user = DashboardUser(
            username=data.username,
            password_hash=get_password_hash(data.password),
            role=data.role,
            is_active=True,
            created_by=actor.id,
        )
        _apply_permissions(user, data.permissions or ROLE_DEFAULT_PERMISSIONS[data.role])
        self.db.add(user)
        await self.db.commit()
        await self.db.refresh(user)

        logger.info(f"User {actor.username!r} created user {user.username!r}")
        return user

    async def update_user(
        self,
        actor: DashboardUser,
        user_id: int,
        data: UserUpdate,
    ) -> DashboardUser:
        self._require_manager(actor)
        user = await self._get(user_id)

        if user.role == UserRole.MASTER and actor.role != UserRole.MASTER:
            raise ProtectedUserError("Only a master user can modify a master user")
        if data.role == UserRole.MASTER and actor.role != UserRole.MASTER:
            raise ProtectedUserError("Only a master user can grant the master role")

        if data.password is not None:
            user.password_hash = get_password_hash(data.password)
        if data.role is not None:
            user.role = data.role
        if data.permissions is not None:
            _apply_permissions(user, data.permissions)
        if data.is_active is not None:
            user.is_active = data.is_active

        await self.db.commit()
        await self.db.refresh(user)
        return user

    async def delete_user(self, actor: DashboardUser, user_id: int) -> None:
        self._require_manager(actor)
        user = await self._get(user_id)

        if user.role == UserRole.MASTER:
            raise ProtectedUserError("The master user cannot be deleted")

        await self.db.delete(user)
        await self.db.commit()
        logger.info(f"User {actor.username!r} deleted user {user.username!r}")
