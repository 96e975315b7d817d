"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import get_settings

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown events."""
    from app.db.session import async_session_maker, close_db, init_db
    from app.services.scheduler import start_scheduler, stop_scheduler
    from app.services.users import UserDirectory

    # Startup
    await init_db()

    # Make sure somebody can log in on a fresh database
    async with async_session_maker() as db:
        await UserDirectory(db).ensure_master_user(
            settings.MASTER_USERNAME, settings.MASTER_PASSWORD
        )

    # Start background scheduler for automatic account sync
    if settings.AUTO_SYNC_ENABLED:
        start_scheduler()

    yield

    # Shutdown
    stop_scheduler()
    await close_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app = FastAPI(
        title=settings.APP_NAME,
        version="0.1.0",
        description="Multi-account Mercado Livre seller dashboard",
        lifespan=lifespan,
        docs_url="/api/docs" if settings.DEBUG else None,
        redoc_url="/api/redoc" if settings.DEBUG else None,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.DEBUG else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register API routers
    from app.api.v1.router import api_router

    app.include_router(api_router, prefix="/api/v1")

    return app


# Create the application instance
app = create_app()
