"""Health check endpoint."""

from fastapi import APIRouter

from app.services.scheduler import is_scheduler_running

router = APIRouter()


@router.get("")
async def health() -> dict:
    """Report liveness and whether automatic sync is scheduled."""
    return {"status": "ok", "auto_sync": is_scheduler_running()}
