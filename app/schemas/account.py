"""Marketplace account and product schemas."""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

AccountStatus = Literal["active", "inactive", "suspended"]
ProductStatus = Literal["active", "paused", "ended"]

NEVER_SYNCED = "Nunca"


class Account(BaseModel):
    """One linked Mercado Livre seller identity."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: Optional[str] = None
    nickname: str
    email: str = ""
    status: AccountStatus = "inactive"
    reputation: int = Field(default=0, ge=0, le=100)
    sales_count: int = 0
    product_count: int = 0
    last_sync: str = NEVER_SYNCED
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None


class AccountCreate(BaseModel):
    """Operator-registered account credentials."""

    nickname: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., min_length=3, max_length=255)
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    sync_now: bool = True


class AccountUpdate(BaseModel):
    """Editable account fields."""

    nickname: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[str] = None
    status: Optional[AccountStatus] = None
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None


class AccountRead(BaseModel):
    """Account as returned by the API, without credentials."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: Optional[str]
    nickname: str
    email: str
    status: AccountStatus
    reputation: int
    sales_count: int
    product_count: int
    last_sync: str
    has_access_token: bool = False
    has_refresh_token: bool = False

    @classmethod
    def from_account(cls, account: Account) -> "AccountRead":
        return cls(
            **account.model_dump(exclude={"access_token", "refresh_token"}),
            has_access_token=bool(account.access_token),
            has_refresh_token=bool(account.refresh_token),
        )


class Product(BaseModel):
    """One marketplace listing."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    ml_id: Optional[str] = None
    title: str
    price: float = 0.0
    stock: int = 0
    status: ProductStatus = "active"
    account: str
    views: int = 0
    sales: int = 0
    category: Optional[str] = None
    images: list[str] = Field(default_factory=list)
    description: Optional[str] = None


class ProductCreate(BaseModel):
    """Manually registered product."""

    title: str = Field(..., min_length=1, max_length=255)
    price: float = Field(..., ge=0)
    stock: int = Field(0, ge=0)
    account: str = Field(..., min_length=1)
    category: Optional[str] = None
