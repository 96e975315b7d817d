"""Dashboard user model with per-feature permissions."""

import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, TimestampMixin

PERMISSION_FIELDS = (
    "view_dashboard",
    "manage_accounts",
    "manage_products",
    "manage_sync",
    "view_analytics",
    "manage_users",
)


class UserRole(str, enum.Enum):
    """Dashboard user roles."""

    MASTER = "master"
    ADMIN = "admin"
    USER = "user"


class DashboardUser(Base, TimestampMixin):
    """Internal user allowed to log into the dashboard."""

    __tablename__ = "dashboard_users"

    id: Mapped[int] = mapped_column(primary_key=True)
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, values_callable=lambda x: [e.value for e in x]),
        default=UserRole.USER,
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_login: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_by: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("dashboard_users.id", ondelete="SET NULL"), nullable=True
    )

    # Permissions
    view_dashboard: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    manage_accounts: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    manage_products: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    manage_sync: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    view_analytics: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    manage_users: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    @property
    def permissions(self) -> dict[str, bool]:
        """Permission flags keyed by feature name."""
        return {name: bool(getattr(self, name)) for name in PERMISSION_FIELDS}

    def has_permission(self, permission: str) -> bool:
        """Check a single permission flag."""
        if permission not in PERMISSION_FIELDS:
            return False
        return bool(getattr(self, permission))
