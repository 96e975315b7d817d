import pytest

from app.schemas.account import Account, AccountCreate, AccountUpdate, Product, ProductCreate
from app.services.accounts import (
    AccountExistsError,
    AccountNotFoundError,
    AccountRepository,
    ProductNotFoundError,
)


def _product(product_id: str, account: str) -> Product:
    return Product(id=product_id, ml_id=product_id, title=f"Produto {product_id}", account=account)


@pytest.mark.asyncio
async def test_create_account_starts_inactive(db):
    repository = AccountRepository(db)

    account = await repository.create_account(
        AccountCreate(nickname=" loja_a ", email="a@example.com", access_token="  ")
    )

    assert account.nickname == "loja_a"
    assert account.status == "inactive"
    assert account.reputation == 0
    assert account.sales_count == 0
    assert account.product_count == 0
    assert account.last_sync == "Nunca"
    assert account.access_token is None


@pytest.mark.asyncio
async def test_update_and_save_tokens(db):
    repository = AccountRepository(db)
    account = await repository.create_account(AccountCreate(nickname="loja_a", email="a@example.com"))

    updated = await repository.update_account(account.id, AccountUpdate(status="suspended"))
    assert updated.status == "suspended"
    assert updated.email == "a@example.com"

    stored = await repository.save_tokens(account.id, "APP_USR-new", None)
    assert stored.access_token == "APP_USR-new"
    assert stored.refresh_token is None


@pytest.mark.asyncio
async def test_import_matches_by_user_id(db):
    repository = AccountRepository(db)
    await repository.import_account(
        Account(id="1", user_id="555", nickname="old_name", status="active"),
        [_product("MLB1", "old_name"), _product("MLB2", "old_name")],
    )

    stored = await repository.import_account(
        Account(id="tmp", user_id="555", nickname="new_name", status="active"),
        [_product("MLB2", "new_name")],
    )

    assert stored.id == "1"
    assert stored.nickname == "new_name"
    assert [account.id for account in await repository.list_accounts()] == ["1"]
    products = await repository.list_products()
    assert [(product.id, product.account) for product in products] == [("MLB2", "new_name")]


@pytest.mark.asyncio
async def test_delete_account_removes_its_products(db):
    repository = AccountRepository(db)
    await repository.import_account(
        Account(id="1", nickname="loja_a"), [_product("MLB1", "loja_a")]
    )
    await repository.import_account(
        Account(id="2", nickname="loja_b"), [_product("MLB2", "loja_b")]
    )

    await repository.delete_account("1")

    assert [account.id for account in await repository.list_accounts()] == ["2"]
    assert [product.id for product in await repository.list_products()] == ["MLB2"]

    with pytest.raises(AccountNotFoundError):
        await repository.delete_account("1")


@pytest.mark.asyncio
async def test_manual_products(db):
    repository = AccountRepository(db)
    await repository.create_account(AccountCreate(nickname="loja_a", email="a@example.com"))

    product = await repository.create_product(
        ProductCreate(title="Caneca", price=19.9, stock=3, account="loja_a")
    )
    assert product.status == "active"
    assert product.sales == 0
    assert [p.id for p in await repository.list_products(account="loja_a")] == [product.id]

    with pytest.raises(AccountNotFoundError):
        await repository.create_product(ProductCreate(title="X", price=1, account="ghost"))

    await repository.delete_product(product.id)
    assert await repository.list_products() == []

    with pytest.raises(ProductNotFoundError):
        await repository.delete_product(product.id)


@pytest.mark.asyncio
async def test_rename_carries_products_along(db):
    repository = AccountRepository(db)
    account = await repository.import_account(
        Account(id="1", nickname="loja_a"), [_product("MLB1", "loja_a"), _product("MLB2", "loja_a")]
    )

    renamed = await repository.update_account(account.id, AccountUpdate(nickname=" loja_b "))

    assert renamed.nickname == "loja_b"
    assert await repository.list_products(account="loja_a") == []
    assert sorted(p.id for p in await repository.list_products(account="loja_b")) == ["MLB1", "MLB2"]


@pytest.mark.asyncio
async def test_rename_to_taken_nickname_is_rejected(db):
    repository = AccountRepository(db)
    first = await repository.import_account(Account(id="1", nickname="loja_a"), [_product("MLB1", "loja_a")])
    await repository.import_account(Account(id="2", nickname="loja_b"), [_product("MLB2", "loja_b")])

    with pytest.raises(AccountExistsError):
        await repository.update_account(first.id, AccountUpdate(nickname="loja_b"))

    assert (await repository.get_account(first.id)).nickname == "loja_a"
    assert [p.id for p in await repository.list_products(account="loja_a")] == ["MLB1"]
    assert [p.id for p in await repository.list_products(account="loja_b")] == ["MLB2"]


@pytest.mark.asyncio
async def test_import_without_fetched_products_keeps_catalogue(db):
    """None means the product fetch failed, so nothing stored is dropped."""
    repository = AccountRepository(db)
    await repository.import_account(
        Account(id="1", user_id="555", nickname="old_name", product_count=2),
        [_product("MLB1", "old_name"), _product("MLB2", "old_name")],
    )

    stored = await repository.import_account(
        Account(id="tmp", user_id="555", nickname="new_name", product_count=2), None
    )

    assert stored.id == "1"
    products = await repository.list_products()
    assert sorted((p.id, p.account) for p in products) == [("MLB1", "new_name"), ("MLB2", "new_name")]
