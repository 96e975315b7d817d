"""Account sync orchestration: supersession, timeouts and persistence."""

import asyncio
import logging
from typing import Optional

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.schemas.account import Account
from app.schemas.outcome import (
    ErrorCategory,
    FieldProvenance,
    FieldStatus,
    SyncOutcome,
    SyncReport,
)
from app.services.accounts import AccountRepository
from app.services.mercadolivre import MercadoLivreClient

logger = logging.getLogger(__name__)
settings = get_settings()

SUPERSEDED_MESSAGE = "Sync cancelled: a newer sync of this account was started"
TIMEOUT_MESSAGE = "Sync timed out after {seconds:.0f}s. Try again later."
MISSING_TOKEN_MESSAGE = "Access token not configured for this account"


def _failed(account: Account, category: ErrorCategory, message: str) -> SyncOutcome:
    return SyncOutcome(
        data=account,
        success=False,
        error=message,
        category=category,
        report=SyncReport(
            profile=FieldProvenance(status=FieldStatus.FAILED, reason=message)
        ),
    )


class SyncCoordinator:
    """Runs account syncs so that a newer sync supersedes an older one.

    Each account id has a generation counter. Starting a sync bumps it and
    cancels the previous in-flight task for that account; the cancelled
    caller receives a ``superseded`` outcome instead of stale data.
    """

    def __init__(
        self,
        timeout_seconds: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self.transport = transport
        self._generations: dict[str, int] = {}
        self._tasks: dict[str, asyncio.Task] = {}

    def in_flight(self, account_id: str) -> bool:
        """Check whether a sync of the account is running."""
        task = self._tasks.get(account_id)
        return task is not None and not task.done()

    def is_current(self, account_id: str, generation: int) -> bool:
        """Check whether ``generation`` is the latest sync started for the account."""
        return self._generations.get(account_id) == generation

    async def _run(self, account: Account) -> SyncOutcome:
        timeout = self.timeout_seconds or settings.SYNC_TIMEOUT_SECONDS
        client = MercadoLivreClient(
            account.access_token,
            account.refresh_token,
            transport=self.transport,
        )
        try:
            return await asyncio.wait_for(client.sync_account(account), timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Sync of {account.nickname} timed out after {timeout}s")
            return _failed(
                account, ErrorCategory.TIMEOUT, TIMEOUT_MESSAGE.format(seconds=timeout)
            )

    async def sync(self, account: Account) -> SyncOutcome:
        """Sync one account, superseding any in-flight sync of the same account."""
        if not account.access_token:
            return _failed(account, ErrorCategory.VALIDATION, MISSING_TOKEN_MESSAGE)

        previous = self._tasks.get(account.id)
        if previous is not None and not previous.done():
            logger.info(f"Superseding in-flight sync of {account.nickname}")
            previous.cancel()

        generation = self._generations.get(account.id, 0) + 1
        self._generations[account.id] = generation
        task = asyncio.ensure_future(self._run(account))
        self._tasks[account.id] = task

        try:
            return await task
        except asyncio.CancelledError:
            if not self.is_current(account.id, generation):
                return _failed(account, ErrorCategory.SUPERSEDED, SUPERSEDED_MESSAGE)
            raise
        finally:
            if self._tasks.get(account.id) is task:
                del self._tasks[account.id]


# Singleton instance
sync_coordinator = SyncCoordinator()


class AccountSyncService:
    """Sync stored accounts and persist the results."""

    def __init__(
        self,
        db: AsyncSession,
        coordinator: Optional[SyncCoordinator] = None,
    ):
        """Initialize service with database session.

        Args:
            db: Async database session
            coordinator: Sync coordinator, defaults to the shared instance
        """
        self.db = db
        self.repository = AccountRepository(db)
        self.coordinator = coordinator or sync_coordinator

    async def sync_account(self, account_id: str) -> SyncOutcome:
        """Sync a stored account and reconcile the result into the database.

        Raises:
            AccountNotFoundError: If the account does not exist
        """
        account = await self.repository.get_account(account_id)
        outcome = await self.coordinator.sync(account)

        if not outcome.success:
            logger.warning(f"Sync of {account.nickname} failed: {outcome.category}")
            return outcome

        stored = await self.repository.import_account(
            outcome.data, outcome.replacement_products
        )
        return outcome.model_copy(update={"data": stored})

    async def sync_all_accounts(self, delay_seconds: Optional[float] = None) -> dict[str, SyncOutcome]:
        """Sync every active account with a token, one at a time.

        Args:
            delay_seconds: Pause between accounts to stay clear of rate limits

        Returns:
            Outcomes keyed by account id
        """
        delay = (
            settings.AUTO_SYNC_ACCOUNT_DELAY_SECONDS
            if delay_seconds is None
            else delay_seconds
        )
        accounts = [
            account
            for account in await self.repository.list_accounts(status="active")
            if account.access_token
        ]

        if not accounts:
            logger.info("No active accounts with a token to sync")
            return {}

        logger.info(f"Starting sync of {len(accounts)} accounts")

        outcomes: dict[str, SyncOutcome] = {}
        for index, account in enumerate(accounts):
            if index and delay:
                await asyncio.sleep(delay)
            outcomes[account.id] = await self.sync_account(account.id)

        succeeded = sum(1 for outcome in outcomes.values() if outcome.success)
        logger.info(f"Synced {succeeded}/{len(outcomes)} accounts")
        return outcomes
