"""Metrics and dashboard endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_db, require_permission
from app.schemas.metrics import DashboardMetrics
from app.services.accounts import AccountRepository
from app.services.metrics import calculate_metrics

router = APIRouter()


@router.get("/dashboard", response_model=DashboardMetrics)
async def get_dashboard_metrics(
    db: AsyncSession = Depends(get_db),
    _: object = Depends(require_permission("view_analytics")),
) -> DashboardMetrics:
    """Get aggregated sales metrics across all linked accounts."""
    repository = AccountRepository(db)
    accounts = await repository.list_accounts()
    products = await repository.list_products()
    return calculate_metrics(accounts, products)
