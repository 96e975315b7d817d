"""Dashboard user schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.dashboard_user import UserRole


class Permissions(BaseModel):
    """Per-feature permission flags."""

    model_config = ConfigDict(from_attributes=True)

    view_dashboard: bool = False
    manage_accounts: bool = False
    manage_products: bool = False
    manage_sync: bool = False
    view_analytics: bool = False
    manage_users: bool = False


class UserCreate(BaseModel):
    """New dashboard user."""

    username: str = Field(..., min_length=3, max_length=100)
    password: str = Field(..., min_length=8)
    role: UserRole = UserRole.USER
    permissions: Optional[Permissions] = None


class UserUpdate(BaseModel):
    """Partial dashboard user update."""

    password: Optional[str] = Field(None, min_length=8)
    role: Optional[UserRole] = None
    permissions: Optional[Permissions] = None
    is_active: Optional[bool] = None


class UserRead(BaseModel):
    """Dashboard user as returned by the API."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    role: UserRole
    permissions: Permissions
    is_active: bool
    created_by: Optional[int] = None
    created_at: datetime
