"""Persistence of linked accounts and their products."""

import logging
import uuid
from typing import Optional

from sqlalchemy import delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.marketplace_account import MarketplaceAccount
from app.models.product import Product as ProductModel
from app.schemas.account import Account, AccountCreate, AccountUpdate, Product, ProductCreate
from app.services.reconciliation import find_account_index, stale_nicknames

logger = logging.getLogger(__name__)

_ACCOUNT_FIELDS = (
    "user_id",
    "nickname",
    "email",
    "status",
    "reputation",
    "sales_count",
    "product_count",
    "last_sync",
    "access_token",
    "refresh_token",
)


class AccountNotFoundError(Exception):
    """Raised when an account id does not exist."""

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"Account {account_id} not found")


class AccountExistsError(Exception):
    """Raised when a nickname is already used by another account."""

    def __init__(self, nickname: str):
        self.nickname = nickname
        super().__init__(f"Account {nickname!r} already exists")


class ProductNotFoundError(Exception):
    """Raised when a product id does not exist."""

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product {product_id} not found")


class AccountRepository:
    """Account/product store backed by an async database session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_accounts(self, status: Optional[str] = None) -> list[Account]:
        query = select(MarketplaceAccount).order_by(MarketplaceAccount.created_at)
        if status:
            query = query.where(MarketplaceAccount.status == status)
        result = await self.db.execute(query)
        return [Account.model_validate(row) for row in result.scalars()]

    async def _get_model(self, account_id: str) -> MarketplaceAccount:
        account = await self.db.get(MarketplaceAccount, account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        return account

    async def get_account(self, account_id: str) -> Account:
        return Account.model_validate(await self._get_model(account_id))

    async def create_account(self, data: AccountCreate) -> Account:
        """Register an inactive account with zero metrics."""
        account = MarketplaceAccount(
            id=str(uuid.uuid4()),
            nickname=data.nickname.strip(),
            email=data.email.strip(),
            status="inactive",
            reputation=0,
            sales_count=0,
            product_count=0,
            last_sync="Nunca",
            access_token=(data.access_token or "").strip() or None,
            refresh_token=(data.refresh_token or "").strip() or None,
        )
        self.db.add(account)
        await self.db.commit()
        await self.db.refresh(account)
        logger.info(f"Registered account {account.nickname} ({account.id})")
        return Account.model_validate(account)

    async def update_account(self, account_id: str, data: AccountUpdate) -> Account:
        """Edit an account; a new nickname carries its products along.

        Raises:
            AccountNotFoundError: If the account does not exist
            AccountExistsError: If another account already uses the nickname
        """
        account = await self._get_model(account_id)
        changes = data.model_dump(exclude_unset=True)

        nickname = (changes.get("nickname") or "").strip()
        if nickname and nickname != account.nickname:
            taken = await self.db.execute(
                select(MarketplaceAccount.id).where(
                    MarketplaceAccount.nickname == nickname,
                    MarketplaceAccount.id != account_id,
                )
            )
            if taken.first() is not None:
                raise AccountExistsError(nickname)
            await self._rename_products(account.nickname, nickname)
            changes["nickname"] = nickname
        else:
            changes.pop("nickname", None)

        for key, value in changes.items():
            setattr(account, key, value)
        await self.db.commit()
        await self.db.refresh(account)
        return Account.model_validate(account)

    async def save_tokens(
        self,
        account_id: str,
        access_token: str,
        refresh_token: Optional[str],
    ) -> Account:
        """Store a refreshed token pair."""
        account = await self._get_model(account_id)
        account.access_token = access_token
        if refresh_token:
            account.refresh_token = refresh_token
        await self.db.commit()
        await self.db.refresh(account)
        return Account.model_validate(account)

    async def delete_account(self, account_id: str) -> None:
        """Delete an account together with the products stored under it."""
        account = await self._get_model(account_id)
        await self.db.execute(
            delete(ProductModel).where(ProductModel.account == account.nickname)
        )
        await self.db.delete(account)
        await self.db.commit()
        logger.info(f"Deleted account {account.nickname} ({account_id})")

    async def _rename_products(self, old_nickname: str, new_nickname: str) -> None:
        if old_nickname != new_nickname:
            await self.db.execute(
                update(ProductModel)
                .where(ProductModel.account == old_nickname)
                .values(account=new_nickname)
            )

    async def import_account(
        self,
        synced: Account,
        fetched_products: Optional[list[Product]],
    ) -> Account:
        """Store a synchronized account and replace all of its products.

        Applies the same matching rules as ``reconcile_account``: an account
        with the same nickname or external id is updated in place, keeping
        its local id; otherwise ``synced`` is inserted. With
        ``fetched_products=None`` the stored products are kept and only
        follow a nickname change.
        """
        stored = await self.list_accounts()
        index = find_account_index(stored, synced)
        previous = stored[index] if index is not None else None

        if previous is not None:
            model = await self._get_model(previous.id)
        else:
            model = MarketplaceAccount(id=synced.id or str(uuid.uuid4()))
            self.db.add(model)

        for key in _ACCOUNT_FIELDS:
            setattr(model, key, getattr(synced, key))

        if fetched_products is None:
            if previous is not None:
                await self._rename_products(previous.nickname, synced.nickname)
            await self.db.commit()
            await self.db.refresh(model)
            logger.info(f"Imported account {model.nickname} ({model.id}), products kept")
            return Account.model_validate(model)

        incoming_ids = [product.id for product in fetched_products]
        await self.db.execute(
            delete(ProductModel).where(
                or_(
                    ProductModel.account.in_(stale_nicknames(previous, synced)),
                    ProductModel.id.in_(incoming_ids),
                )
            )
        )
        for product in fetched_products:
            self.db.add(
                ProductModel(
                    **product.model_dump(exclude={"account"}),
                    account=synced.nickname,
                )
            )

        await self.db.commit()
        await self.db.refresh(model)
        logger.info(
            f"Imported account {model.nickname} ({model.id}) "
            f"with {len(fetched_products)} products"
        )
        return Account.model_validate(model)

    async def list_products(self, account: Optional[str] = None) -> list[Product]:
        query = select(ProductModel).order_by(ProductModel.title)
        if account:
            query = query.where(ProductModel.account == account)
        result = await self.db.execute(query)
        return [Product.model_validate(row) for row in result.scalars()]

    async def create_product(self, data: ProductCreate) -> Product:
        """Register a product manually (not mirrored from the marketplace)."""
        owner = await self.db.execute(
            select(MarketplaceAccount.id).where(MarketplaceAccount.nickname == data.account)
        )
        if owner.first() is None:
            raise AccountNotFoundError(data.account)

        product = ProductModel(
            id=str(uuid.uuid4()),
            title=data.title.strip(),
            price=data.price,
            stock=data.stock,
            status="active",
            account=data.account,
            views=0,
            sales=0,
            category=data.category,
            images=[],
        )
        self.db.add(product)
        await self.db.commit()
        await self.db.refresh(product)
        return Product.model_validate(product)

    async def delete_product(self, product_id: str) -> None:
        product = await self.db.get(ProductModel, product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        await self.db.delete(product)
        await self.db.commit()
