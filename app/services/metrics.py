"""Aggregated dashboard metrics."""

from typing import Sequence

from app.schemas.account import Account, Product
from app.schemas.metrics import DashboardMetrics


def calculate_metrics(
    accounts: Sequence[Account],
    products: Sequence[Product],
) -> DashboardMetrics:
    """Aggregate marketplace-reported numbers across accounts.

    Revenue is estimated as price x units sold per listing, so the average
    ticket is revenue per sale and the conversion rate is sales per view.
    """
    total_sales = sum(account.sales_count for account in accounts)
    total_products = sum(account.product_count for account in accounts)
    total_views = sum(product.views for product in products)
    total_revenue = sum(product.price * product.sales for product in products)

    return DashboardMetrics(
        total_sales=total_sales,
        total_products=total_products,
        total_views=total_views,
        total_revenue=round(total_revenue, 2),
        average_ticket=round(total_revenue / total_sales, 2) if total_sales else 0.0,
        conversion_rate=round(total_sales / total_views * 100, 2) if total_views else 0.0,
        active_accounts=sum(1 for account in accounts if account.status == "active"),
        out_of_stock_products=sum(1 for product in products if product.stock == 0),
    )
