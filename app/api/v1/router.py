"""API v1 router aggregator."""

from fastapi import APIRouter

from app.api.v1 import accounts, auth, health, mercadolivre, metrics, products, users

api_router = APIRouter()

# Health check
api_router.include_router(health.router, prefix="/health", tags=["health"])

# Authentication
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])

# Dashboard users
api_router.include_router(users.router, prefix="/users", tags=["users"])

# Mercado Livre OAuth
api_router.include_router(mercadolivre.router, prefix="/mercadolivre", tags=["mercadolivre"])

# Accounts
api_router.include_router(accounts.router, prefix="/accounts", tags=["accounts"])

# Products
api_router.include_router(products.router, prefix="/products", tags=["products"])

# Metrics
api_router.include_router(metrics.router, prefix="/metrics", tags=["metrics"])
