"""Linked account endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_db, require_permission
from app.config import get_settings
from app.schemas.account import AccountCreate, AccountRead, AccountUpdate
from app.schemas.outcome import ErrorCategory, SyncReport
from app.services.accounts import AccountExistsError, AccountNotFoundError, AccountRepository
from app.services.mercadolivre import MercadoLivreClient
from app.services.sync import AccountSyncService

router = APIRouter()
settings = get_settings()


# Response schemas


class SyncResponse(BaseModel):
    """Outcome of syncing one account."""

    success: bool
    error: Optional[str] = None
    category: Optional[ErrorCategory] = None
    account: AccountRead
    report: Optional[SyncReport] = None


class SyncAllResponse(BaseModel):
    """Outcome of syncing all active accounts."""

    message: str
    results: list[SyncResponse]


class TokenRefreshResponse(BaseModel):
    """Outcome of refreshing an account's access token."""

    success: bool
    error: Optional[str] = None
    account: AccountRead


def _not_found(error: AccountNotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))


# Endpoints


@router.get("", response_model=list[AccountRead])
async def list_accounts(
    db: AsyncSession = Depends(get_db),
    _: object = Depends(require_permission("view_dashboard")),
) -> list[AccountRead]:
    """List linked accounts (credentials are never returned)."""
    accounts = await AccountRepository(db).list_accounts()
    return [AccountRead.from_account(account) for account in accounts]


@router.post("", response_model=SyncResponse, status_code=status.HTTP_201_CREATED)
async def create_account(
    data: AccountCreate,
    db: AsyncSession = Depends(get_db),
    _: object = Depends(require_permission("manage_accounts")),
) -> SyncResponse:
    """Register an account; with an access token it is synced right away."""
    account = await AccountRepository(db).create_account(data)

    if not (data.sync_now and account.access_token):
        return SyncResponse(success=True, account=AccountRead.from_account(account))

    outcome = await AccountSyncService(db).sync_account(account.id)
    return SyncResponse(
        success=outcome.success,
        error=outcome.error,
        category=outcome.category,
        account=AccountRead.from_account(outcome.data),
        report=outcome.report,
    )


@router.patch("/{account_id}", response_model=AccountRead)
async def update_account(
    account_id: str,
    data: AccountUpdate,
    db: AsyncSession = Depends(get_db),
    _: object = Depends(require_permission("manage_accounts")),
) -> AccountRead:
    """Edit an account's local fields or credentials."""
    try:
        account = await AccountRepository(db).update_account(account_id, data)
    except AccountNotFoundError as e:
        raise _not_found(e)
    except AccountExistsError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return AccountRead.from_account(account)


@router.delete("/{account_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_account(
    account_id: str,
    db: AsyncSession = Depends(get_db),
    _: object = Depends(require_permission("manage_accounts")),
) -> None:
    """Delete an account and its products."""
    try:
        await AccountRepository(db).delete_account(account_id)
    except AccountNotFoundError as e:
        raise _not_found(e)


@router.post("/sync-all", response_model=SyncAllResponse)
async def sync_all_accounts(
    db: AsyncSession = Depends(get_db),
    _: object = Depends(require_permission("manage_sync")),
) -> SyncAllResponse:
    """Sync every active account that has an access token."""
    outcomes = await AccountSyncService(db).sync_all_accounts()
    results = [
        SyncResponse(
            success=outcome.success,
            error=outcome.error,
            category=outcome.category,
            account=AccountRead.from_account(outcome.data),
            report=outcome.report,
        )
        for outcome in outcomes.values()
    ]
    succeeded = sum(1 for result in results if result.success)
    return SyncAllResponse(
        message=f"Synced {succeeded} of {len(results)} accounts",
        results=results,
    )


@router.post("/{account_id}/sync", response_model=SyncResponse)
async def sync_account(
    account_id: str,
    db: AsyncSession = Depends(get_db),
    _: object = Depends(require_permission("manage_sync")),
) -> SyncResponse:
    """Sync one account from Mercado Livre."""
    try:
        outcome = await AccountSyncService(db).sync_account(account_id)
    except AccountNotFoundError as e:
        raise _not_found(e)

    return SyncResponse(
        success=outcome.success,
        error=outcome.error,
        category=outcome.category,
        account=AccountRead.from_account(outcome.data),
        report=outcome.report,
    )


@router.post("/{account_id}/refresh-token", response_model=TokenRefreshResponse)
async def refresh_account_token(
    account_id: str,
    db: AsyncSession = Depends(get_db),
    _: object = Depends(require_permission("manage_accounts")),
) -> TokenRefreshResponse:
    """Refresh an account's access token with the configured application."""
    repository = AccountRepository(db)
    try:
        account = await repository.get_account(account_id)
    except AccountNotFoundError as e:
        raise _not_found(e)

    client = MercadoLivreClient(account.access_token, account.refresh_token)
    outcome = await client.refresh_access_token(
        settings.ML_CLIENT_ID, settings.ML_CLIENT_SECRET
    )

    if outcome.success:
        account = await repository.save_tokens(
            account_id, client.access_token, client.refresh_token
        )

    return TokenRefreshResponse(
        success=outcome.success,
        error=outcome.error,
        account=AccountRead.from_account(account),
    )
