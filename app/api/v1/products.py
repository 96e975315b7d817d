"""Product endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_db, require_permission
from app.schemas.account import Product, ProductCreate
from app.services.accounts import (
    AccountNotFoundError,
    AccountRepository,
    ProductNotFoundError,
)

router = APIRouter()


@router.get("", response_model=list[Product])
async def list_products(
    account: Optional[str] = Query(None, description="Filter by account nickname"),
    db: AsyncSession = Depends(get_db),
    _: object = Depends(require_permission("view_dashboard")),
) -> list[Product]:
    """List products of all accounts, or of one account."""
    return await AccountRepository(db).list_products(account=account)


@router.post("", response_model=Product, status_code=status.HTTP_201_CREATED)
async def create_product(
    data: ProductCreate,
    db: AsyncSession = Depends(get_db),
    _: object = Depends(require_permission("manage_products")),
) -> Product:
    """Register a product by hand under an existing account."""
    try:
        return await AccountRepository(db).create_product(data)
    except AccountNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"No account with nickname {data.account!r}",
        )


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_product(
    product_id: str,
    db: AsyncSession = Depends(get_db),
    _: object = Depends(require_permission("manage_products")),
) -> None:
    """Delete a product."""
    try:
        await AccountRepository(db).delete_product(product_id)
    except ProductNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
