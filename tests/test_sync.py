import asyncio

import httpx
import pytest

from app.schemas.account import Account, AccountCreate
from app.schemas.outcome import ErrorCategory, FieldStatus
from app.services.accounts import AccountNotFoundError, AccountRepository
from app.services.sync import (
    MISSING_TOKEN_MESSAGE,
    SUPERSEDED_MESSAGE,
    AccountSyncService,
    SyncCoordinator,
)

from .conftest import NICKNAME, SELLER_ID, VALID_TOKEN


def _gated_transport(fake_ml, gate: asyncio.Event) -> httpx.MockTransport:
    """Transport whose first profile request blocks until ``gate`` is set."""
    state = {"first": True}

    async def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/users/me" and state["first"]:
            state["first"] = False
            await gate.wait()
        return fake_ml.handler(request)

    return httpx.MockTransport(handler)


@pytest.mark.asyncio
async def test_newer_sync_supersedes_in_flight_sync(fake_ml, stored_account):
    fake_ml.add_seller()
    coordinator = SyncCoordinator(transport=_gated_transport(fake_ml, asyncio.Event()))

    first = asyncio.ensure_future(coordinator.sync(stored_account))
    await asyncio.sleep(0.05)
    assert coordinator.in_flight(stored_account.id)

    second = await coordinator.sync(stored_account)
    superseded = await first

    assert superseded.success is False
    assert superseded.category == ErrorCategory.SUPERSEDED
    assert superseded.error == SUPERSEDED_MESSAGE
    assert superseded.data == stored_account

    assert second.success is True
    assert second.data.status == "active"
    assert not coordinator.in_flight(stored_account.id)


@pytest.mark.asyncio
async def test_only_latest_generation_is_current(fake_ml, stored_account):
    fake_ml.add_seller()
    coordinator = SyncCoordinator(transport=fake_ml.transport)
    assert not coordinator.is_current(stored_account.id, 1)

    await coordinator.sync(stored_account)
    await coordinator.sync(stored_account)

    assert coordinator.is_current(stored_account.id, 2)
    assert not coordinator.is_current(stored_account.id, 1)
    assert not coordinator.is_current("other", 2)


@pytest.mark.asyncio
async def test_syncs_of_different_accounts_do_not_interfere(fake_ml, stored_account):
    fake_ml.add_seller()
    gate = asyncio.Event()
    coordinator = SyncCoordinator(transport=_gated_transport(fake_ml, gate))
    other = stored_account.model_copy(update={"id": "2"})

    first = asyncio.ensure_future(coordinator.sync(stored_account))
    await asyncio.sleep(0.05)

    second = await coordinator.sync(other)
    gate.set()
    first_outcome = await first

    assert second.success
    assert first_outcome.success


@pytest.mark.asyncio
async def test_sync_times_out(fake_ml, stored_account):
    coordinator = SyncCoordinator(
        timeout_seconds=0.05,
        transport=_gated_transport(fake_ml, asyncio.Event()),
    )

    outcome = await coordinator.sync(stored_account)

    assert outcome.success is False
    assert outcome.category == ErrorCategory.TIMEOUT
    assert outcome.data == stored_account
    assert outcome.report.profile.status == FieldStatus.FAILED


@pytest.mark.asyncio
async def test_sync_without_token(fake_ml):
    coordinator = SyncCoordinator(transport=fake_ml.transport)
    account = Account(id="1", nickname="loja_a")

    outcome = await coordinator.sync(account)

    assert outcome.error == MISSING_TOKEN_MESSAGE
    assert outcome.category == ErrorCategory.VALIDATION
    assert fake_ml.requests == []


@pytest.mark.asyncio
async def test_sync_service_persists_result(db, fake_ml):
    fake_ml.add_seller(item_ids=("MLB1", "MLB2", "MLB3"))
    repository = AccountRepository(db)
    account = await repository.create_account(
        AccountCreate(nickname=NICKNAME, email="x@example.com", access_token=VALID_TOKEN)
    )
    service = AccountSyncService(db, coordinator=SyncCoordinator(transport=fake_ml.transport))

    outcome = await service.sync_account(account.id)

    assert outcome.success
    stored = await repository.get_account(account.id)
    assert stored.status == "active"
    assert stored.user_id == str(SELLER_ID)
    assert stored.product_count == 3
    assert len(await repository.list_products(account=NICKNAME)) == 3

    # A listing removed on the marketplace disappears on the next sync
    fake_ml.add("GET", f"/users/{SELLER_ID}/items/search", json={"results": ["MLB1"]})
    await service.sync_account(account.id)

    assert [product.id for product in await repository.list_products()] == ["MLB1"]
    assert len(await repository.list_accounts()) == 1


@pytest.mark.asyncio
async def test_failed_product_fetch_keeps_stored_products(db, fake_ml):
    """A degraded product fetch must not wipe the catalogue it failed to read."""
    fake_ml.add_seller(item_ids=("MLB1", "MLB2", "MLB3"))
    repository = AccountRepository(db)
    account = await repository.create_account(
        AccountCreate(nickname=NICKNAME, email="x@example.com", access_token=VALID_TOKEN)
    )
    service = AccountSyncService(db, coordinator=SyncCoordinator(transport=fake_ml.transport))
    await service.sync_account(account.id)

    fake_ml.add("GET", f"/users/{SELLER_ID}/items/search", status_code=500, json={})
    outcome = await service.sync_account(account.id)

    assert outcome.success
    assert outcome.report.products.status == FieldStatus.DEGRADED
    stored = await repository.get_account(account.id)
    assert stored.product_count == 3
    assert len(await repository.list_products(account=NICKNAME)) == 3


@pytest.mark.asyncio
async def test_empty_listing_clears_stored_products(db, fake_ml):
    fake_ml.add_seller(item_ids=("MLB1", "MLB2"))
    repository = AccountRepository(db)
    account = await repository.create_account(
        AccountCreate(nickname=NICKNAME, email="x@example.com", access_token=VALID_TOKEN)
    )
    service = AccountSyncService(db, coordinator=SyncCoordinator(transport=fake_ml.transport))
    await service.sync_account(account.id)

    fake_ml.add("GET", f"/users/{SELLER_ID}/items/search", json={"results": []})
    outcome = await service.sync_account(account.id)

    assert outcome.report.products.status == FieldStatus.OK
    assert outcome.data.product_count == 0
    assert await repository.list_products() == []


@pytest.mark.asyncio
async def test_sync_service_failure_leaves_account_untouched(db, fake_ml):
    fake_ml.add("GET", "/users/me", status_code=403, json={})
    repository = AccountRepository(db)
    account = await repository.create_account(
        AccountCreate(nickname=NICKNAME, email="x@example.com", access_token=VALID_TOKEN)
    )
    service = AccountSyncService(db, coordinator=SyncCoordinator(transport=fake_ml.transport))

    outcome = await service.sync_account(account.id)

    assert outcome.category == ErrorCategory.SCOPE
    assert await repository.get_account(account.id) == account


@pytest.mark.asyncio
async def test_sync_service_unknown_account(db, fake_ml):
    service = AccountSyncService(db, coordinator=SyncCoordinator(transport=fake_ml.transport))
    with pytest.raises(AccountNotFoundError):
        await service.sync_account("missing")


@pytest.mark.asyncio
async def test_sync_all_only_touches_active_accounts_with_token(db, fake_ml):
    fake_ml.add_seller()
    repository = AccountRepository(db)
    synced = await repository.create_account(
        AccountCreate(nickname=NICKNAME, email="x@example.com", access_token=VALID_TOKEN)
    )
    await repository.create_account(AccountCreate(nickname="sem_token", email="y@example.com"))
    service = AccountSyncService(db, coordinator=SyncCoordinator(transport=fake_ml.transport))

    # Newly registered accounts are inactive until their first sync
    assert await service.sync_all_accounts(delay_seconds=0) == {}

    await service.sync_account(synced.id)
    outcomes = await service.sync_all_accounts(delay_seconds=0)

    assert list(outcomes) == [synced.id]
    assert outcomes[synced.id].success
