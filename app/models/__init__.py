"""Database models package."""

from app.models.base import Base
from app.models.dashboard_user import DashboardUser, UserRole, PERMISSION_FIELDS
from app.models.marketplace_account import MarketplaceAccount
from app.models.product import Product

__all__ = [
    "Base",
    "DashboardUser",
    "UserRole",
    "PERMISSION_FIELDS",
    "MarketplaceAccount",
    "Product",
]
