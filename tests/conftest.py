"""Shared fixtures: environment, fake Mercado Livre API and databases."""

import asyncio
import os
import tempfile
from pathlib import Path
from typing import Any, Optional

# Settings are read at import time, so configure them before importing app.
_TEST_DIR = Path(tempfile.mkdtemp(prefix="seller-dashboard-tests-"))
API_DATABASE_URL = f"sqlite+aiosqlite:///{_TEST_DIR / 'api.db'}"

os.environ["DATABASE_URL"] = API_DATABASE_URL
os.environ["ENVIRONMENT"] = "testing"
os.environ["AUTO_SYNC_ENABLED"] = "false"
os.environ["AUTO_SYNC_ACCOUNT_DELAY_SECONDS"] = "0"
os.environ["MASTER_USERNAME"] = "master"
os.environ["MASTER_PASSWORD"] = "master-password"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["ML_CLIENT_ID"] = "1234567890"
os.environ["ML_CLIENT_SECRET"] = "test-client-secret"

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.models import Base
from app.schemas.account import Account

VALID_TOKEN = "APP_USR-1234567890123456-101712-0a1b2c3d4e5f60718293a4b5c6d7e8f9-123456789"
SELLER_ID = 999
NICKNAME = "loja_x"


class FakeMercadoLivre:
    """In-memory stand-in for the Mercado Livre REST API.

    Routes are keyed by (method, path). Every request is recorded so tests
    can assert how many calls reached the provider and what they carried.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], dict[str, Any]] = {}
        self.requests: list[httpx.Request] = []

    def add(
        self,
        method: str,
        path: str,
        status_code: int = 200,
        json: Any = None,
        exc: Optional[type[Exception]] = None,
    ) -> None:
        self.routes[(method.upper(), path)] = {
            "status_code": status_code,
            "json": json,
            "exc": exc,
        }

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"message": "not_found", "status": 404})
        if route["exc"] is not None:
            raise route["exc"]("simulated failure", request=request)
        return httpx.Response(route["status_code"], json=route["json"])

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [
            request
            for request in self.requests
            if request.method == method.upper() and request.url.path == path
        ]

    def add_seller(
        self,
        seller_id: int = SELLER_ID,
        nickname: str = NICKNAME,
        item_ids: tuple[str, ...] = ("MLB1", "MLB2", "MLB3"),
        seller_reputation: Optional[dict] = None,
        metrics: Optional[dict] = None,
    ) -> None:
        """Register a healthy seller with profile, items and metrics."""
        self.add(
            "GET",
            "/users/me",
            json={
                "id": seller_id,
                "nickname": nickname,
                "email": f"{nickname}@example.com",
                "status": "active",
                "site_id": "MLB",
                "seller_reputation": seller_reputation or {"level_id": "5_green"},
            },
        )
        self.add(
            "GET",
            f"/users/{seller_id}/items/search",
            json={"results": list(item_ids), "paging": {"total": len(item_ids)}},
        )
        for index, item_id in enumerate(item_ids, start=1):
            self.add(
                "GET",
                f"/items/{item_id}",
                json={
                    "id": item_id,
                    "title": f"Produto {index}",
                    "price": 10.0 * index,
                    "available_quantity": index,
                    "sold_quantity": index * 2,
                    "status": "active",
                    "category_id": "MLB1055",
                    "pictures": [{"url": f"http://img.example.com/{item_id}.jpg"}],
                },
            )
        self.add(
            "GET",
            f"/users/{seller_id}/metrics",
            json=metrics if metrics is not None else {"period_sales": 42, "total_sales": 120},
        )


@pytest.fixture
def fake_ml() -> FakeMercadoLivre:
    return FakeMercadoLivre()


@pytest.fixture
def stored_account() -> Account:
    return Account(
        id="1",
        nickname=NICKNAME,
        email="old@example.com",
        status="inactive",
        reputation=0,
        sales_count=7,
        product_count=4,
        access_token=VALID_TOKEN,
    )


@pytest_asyncio.fixture
async def db(tmp_path):
    """Session on a fresh SQLite database with all tables created."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_maker = async_sessionmaker(engine, expire_on_commit=False)
    async with session_maker() as session:
        yield session

    await engine.dispose()


async def _reset_api_database() -> None:
    engine = create_async_engine(API_DATABASE_URL, poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def client():
    """TestClient running the app lifespan on a database reset after each test."""
    from fastapi.testclient import TestClient

    from app.main import app

    with TestClient(app) as test_client:
        yield test_client

    asyncio.run(_reset_api_database())


@pytest.fixture
def master_headers(client) -> dict[str, str]:
    response = client.post(
        "/api/v1/auth/login",
        data={"username": "master", "password": "master-password"},
    )
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['access_token']}"}
