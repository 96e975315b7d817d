"""APScheduler integration for periodic account sync."""

from typing import Optional
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app.config import get_settings
from app.db.session import async_session_maker
from app.services.sync import AccountSyncService

logger = logging.getLogger(__name__)
settings = get_settings()

# Global scheduler instance
_scheduler: Optional[AsyncIOScheduler] = None


async def auto_sync_accounts() -> None:
    """Background job syncing every active account."""
    logger.info("Running automatic account sync job")

    async with async_session_maker() as db:
        try:
            outcomes = await AccountSyncService(db).sync_all_accounts()
            failed = [
                account_id
                for account_id, outcome in outcomes.items()
                if not outcome.success
            ]
            if failed:
                logger.warning(f"Auto sync failed for {len(failed)} accounts: {failed}")
        except Exception as e:
            logger.error(f"Automatic account sync failed: {e}", exc_info=True)


def get_scheduler() -> AsyncIOScheduler:
    """Get or create the scheduler instance."""
    global _scheduler
    if _scheduler is None:
        _scheduler = AsyncIOScheduler()
    return _scheduler


def start_scheduler(interval_minutes: Optional[int] = None) -> None:
    """Start the background scheduler with the account sync job.

    Args:
        interval_minutes: Minutes between runs, defaults to
            AUTO_SYNC_INTERVAL_MINUTES
    """
    scheduler = get_scheduler()

    if scheduler.running:
        logger.warning("Scheduler already running")
        return

    interval = interval_minutes or settings.AUTO_SYNC_INTERVAL_MINUTES
    scheduler.add_job(
        auto_sync_accounts,
        trigger=IntervalTrigger(minutes=interval),
        id="account_auto_sync",
        name="Sync all active Mercado Livre accounts",
        replace_existing=True,
        max_instances=1,
    )

    scheduler.start()
    logger.info(f"Started account sync scheduler (interval: {interval} min)")


def stop_scheduler() -> None:
    """Stop the background scheduler gracefully."""
    global _scheduler
    if _scheduler and _scheduler.running:
        _scheduler.shutdown(wait=False)
        logger.info("Stopped account sync scheduler")
    _scheduler = None


def is_scheduler_running() -> bool:
    """Check if the scheduler is currently running."""
    return _scheduler is not None and _scheduler.running
