"""Metrics schemas."""

from pydantic import BaseModel


class DashboardMetrics(BaseModel):
    """Aggregated sales metrics across all linked accounts."""

    total_sales: int
    total_products: int
    total_views: int
    total_revenue: float
    average_ticket: float
    conversion_rate: float
    active_accounts: int
    out_of_stock_products: int
