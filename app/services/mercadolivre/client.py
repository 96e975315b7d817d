"""Async HTTP client for the Mercado Livre REST API."""

import asyncio
import logging
from datetime import datetime
from typing import Any, Optional, Union
from urllib.parse import quote

import httpx

from app.config import get_settings
from app.schemas.account import Account, Product
from app.schemas.outcome import (
    ErrorCategory,
    FieldProvenance,
    FieldStatus,
    Outcome,
    SyncOutcome,
    SyncReport,
)
from app.services.mercadolivre.errors import (
    MercadoLivreAPIError,
    classify_http_error,
    network_error,
    token_format_error,
    unexpected_error,
)
from app.services.mercadolivre.oauth import post_token_request
from app.services.mercadolivre.reputation import score_reputation
from app.services.mercadolivre.validators import is_valid_token_format

logger = logging.getLogger(__name__)
settings = get_settings()

UNTITLED_PRODUCT = "Produto sem título"
UNCATEGORIZED = "Sem categoria"
LAST_SYNC_FORMAT = "%d/%m/%Y, %H:%M:%S"

EMPTY_SALES_STATS = {"period_sales": 0, "total_sales": 0}

_ITEM_STATUS = {"active": "active", "closed": "ended"}


def format_last_sync(moment: Optional[datetime] = None) -> str:
    """Format a sync timestamp the way the dashboard displays it."""
    return (moment or datetime.now()).strftime(LAST_SYNC_FORMAT)


def map_item_to_product(item: dict[str, Any], account: str) -> Product:
    """Map an ``/items/{id}`` payload to a Product, filling missing fields."""
    return Product(
        id=str(item["id"]),
        ml_id=str(item["id"]),
        title=item.get("title") or UNTITLED_PRODUCT,
        price=item.get("price") or 0,
        stock=item.get("available_quantity") or 0,
        status=_ITEM_STATUS.get(item.get("status"), "paused"),
        account=account,
        views=0,
        sales=item.get("sold_quantity") or 0,
        category=item.get("category_id") or UNCATEGORIZED,
        images=[pic["url"] for pic in item.get("pictures") or [] if pic.get("url")],
        description=item.get("description") or "",
    )


class MercadoLivreClient:
    """Client bound to one seller's access token (and optional refresh token).

    Only ``refresh_access_token`` mutates the token fields; every other
    operation is read-only with respect to the instance. Public methods
    never raise: failures come back as Outcome values.
    """

    def __init__(
        self,
        access_token: Optional[str],
        refresh_token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize client with seller credentials.

        Args:
            access_token: Bearer token used on every request
            refresh_token: Token for ``refresh_access_token``, if granted
            transport: Optional httpx transport (tests)
        """
        self.access_token = (access_token or "").strip()
        self.refresh_token = refresh_token.strip() if refresh_token else None
        self._transport = transport

    def _http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=settings.ML_API_BASE,
            timeout=settings.ML_HTTP_TIMEOUT_SECONDS,
            transport=self._transport,
            headers={
                "Authorization": f"Bearer {self.access_token}",
                "Accept": "application/json",
            },
        )

    async def _get(
        self,
        client: httpx.AsyncClient,
        endpoint: str,
        params: Optional[dict] = None,
    ) -> Any:
        """Make authenticated GET request.

        Raises:
            MercadoLivreAPIError: If the request fails or returns non-2xx
        """
        try:
            response = await client.get(endpoint, params=params)
        except httpx.TransportError as e:
            raise network_error(e) from e

        try:
            payload = response.json()
        except ValueError:
            payload = response.text

        if not response.is_success:
            logger.error(
                f"Mercado Livre API error on {endpoint}: "
                f"{response.status_code} - {response.text}"
            )
            raise classify_http_error(response.status_code, payload)

        return payload

    async def get_user_info(self) -> Outcome[dict]:
        """Fetch the authenticated seller's profile (``/users/me``).

        Returns:
            Outcome with the raw profile (id, nickname, email,
            seller_reputation, status, site_id)
        """
        if not self.access_token:
            return Outcome(
                success=False,
                error="Access token not provided",
                category=ErrorCategory.VALIDATION,
            )

        if not is_valid_token_format(self.access_token):
            return token_format_error(self.access_token).to_outcome()

        logger.info(f"Fetching profile with token {self.access_token[:20]}...")

        try:
            async with self._http_client() as client:
                profile = await self._get(client, "/users/me")
            if not isinstance(profile, dict):
                raise MercadoLivreAPIError(
                    ErrorCategory.UNEXPECTED,
                    "Profile endpoint answered with an unexpected payload",
                    response_body=profile,
                )
        except MercadoLivreAPIError as e:
            return e.to_outcome()
        except Exception as e:
            logger.exception("Unexpected error fetching profile")
            return unexpected_error(e).to_outcome()

        logger.info(f"Connected as {profile.get('nickname')} ({profile.get('id')})")
        return Outcome(data=profile, success=True)

    async def _fetch_item(
        self,
        client: httpx.AsyncClient,
        item_id: str,
        account: str,
    ) -> Optional[Product]:
        """Fetch one listing; any failure drops the item."""
        try:
            item = await self._get(client, f"/items/{quote(item_id, safe='')}")
            return map_item_to_product(item, account)
        except Exception as e:
            logger.debug(f"Skipping item {item_id}: {e}")
            return None

    async def get_products(
        self,
        seller_id: Union[str, int],
        account_nickname: Optional[str] = None,
    ) -> Outcome[list[Product]]:
        """List the seller's products with item details.

        Details are fetched concurrently for the first ML_PRODUCT_DETAIL_LIMIT
        results; items whose fetch fails are left out of the result.

        Args:
            seller_id: Mercado Livre user id of the seller
            account_nickname: Value for Product.account, defaults to seller_id

        Returns:
            Outcome with the list of resolved products
        """
        seller_id = str(seller_id or "").strip()
        if not self.access_token or not seller_id:
            return Outcome(
                data=[],
                success=False,
                error="Access token and seller ID are required",
                category=ErrorCategory.VALIDATION,
            )

        account = account_nickname or seller_id

        try:
            async with self._http_client() as client:
                search = await self._get(
                    client, f"/users/{quote(seller_id, safe='')}/items/search"
                )
                results = (search or {}).get("results") or []
                item_ids = [
                    str(item_id).strip()
                    for item_id in results[: settings.ML_PRODUCT_DETAIL_LIMIT]
                    if str(item_id or "").strip()
                ]
                if not item_ids:
                    return Outcome(data=[], success=True)

                fetched = await asyncio.gather(
                    *(self._fetch_item(client, item_id, account) for item_id in item_ids)
                )
        except MercadoLivreAPIError as e:
            return e.to_outcome(data=[])
        except Exception as e:
            logger.exception(f"Unexpected error listing products for {seller_id}")
            return unexpected_error(e).to_outcome(data=[])

        products = [product for product in fetched if product is not None]
        logger.info(
            f"Fetched {len(products)}/{len(item_ids)} products for seller {seller_id}"
        )
        return Outcome(data=products, success=True)

    async def _fetch_sales_stats(self, seller_id: str) -> tuple[dict, Optional[str]]:
        """Fetch sales metrics, returning zeroed counters and a reason on failure."""
        seller_id = str(seller_id or "").strip()
        if not self.access_token or not seller_id:
            return dict(EMPTY_SALES_STATS), "Access token and seller ID are required"

        try:
            async with self._http_client() as client:
                stats = await self._get(
                    client, f"/users/{quote(seller_id, safe='')}/metrics"
                )
        except Exception as e:
            logger.warning(f"Sales stats unavailable for seller {seller_id}: {e}")
            return dict(EMPTY_SALES_STATS), str(e)

        if not isinstance(stats, dict):
            return dict(EMPTY_SALES_STATS), "Unexpected metrics payload"

        try:
            counters = {key: int(stats.get(key) or 0) for key in EMPTY_SALES_STATS}
        except (TypeError, ValueError) as e:
            logger.warning(f"Malformed sales stats for seller {seller_id}: {e}")
            return dict(EMPTY_SALES_STATS), f"Unexpected metrics payload: {e}"
        return {**stats, **counters}, None

    async def get_sales_stats(self, seller_id: Union[str, int]) -> Outcome[dict]:
        """Fetch sales statistics; failures degrade to zeroed counters."""
        stats, _ = await self._fetch_sales_stats(str(seller_id or ""))
        return Outcome(data=stats, success=True)

    async def sync_account(self, account: Account) -> SyncOutcome:
        """Refresh an account from the marketplace.

        The profile fetch is mandatory: if it fails the original account is
        returned unchanged with the classified error. Products and sales
        stats are best-effort and keep the previous counters when they fail;
        ``report`` records which parts degraded.

        Args:
            account: Stored account to refresh

        Returns:
            SyncOutcome with an updated copy of the account and its products
        """
        try:
            profile_outcome = await self.get_user_info()
            if not profile_outcome.success:
                logger.warning(
                    f"Sync of {account.nickname} aborted: {profile_outcome.category}"
                )
                return SyncOutcome(
                    data=account,
                    success=False,
                    error=profile_outcome.error,
                    category=profile_outcome.category,
                    report=SyncReport(
                        profile=FieldProvenance(
                            status=FieldStatus.FAILED, reason=profile_outcome.error
                        )
                    ),
                )

            profile = profile_outcome.data or {}
            seller_id = str(profile.get("id") or "")
            nickname = profile.get("nickname") or account.nickname

            product_count = account.product_count
            products: list[Product] = []
            products_outcome = await self.get_products(seller_id, account_nickname=nickname)
            if products_outcome.success:
                products = products_outcome.data or []
                product_count = len(products)
                products_status = FieldProvenance(status=FieldStatus.OK)
            else:
                products_status = FieldProvenance(
                    status=FieldStatus.DEGRADED, reason=products_outcome.error
                )

            stats, stats_reason = await self._fetch_sales_stats(seller_id)
            sales_count = (
                stats.get("period_sales") or stats.get("total_sales") or account.sales_count
            )
            stats_status = FieldProvenance(
                status=FieldStatus.DEGRADED if stats_reason else FieldStatus.OK,
                reason=stats_reason,
            )

            updated = account.model_copy(
                update={
                    "user_id": seller_id or account.user_id,
                    "nickname": nickname,
                    "email": profile.get("email") or account.email,
                    "status": "active",
                    "reputation": score_reputation(profile),
                    "product_count": product_count,
                    "sales_count": sales_count,
                    "last_sync": format_last_sync(),
                }
            )
        except Exception as e:
            logger.exception(f"Unexpected error syncing {account.nickname}")
            error = unexpected_error(e)
            return SyncOutcome(
                data=account,
                success=False,
                error=error.message,
                category=error.category,
                report=SyncReport(
                    profile=FieldProvenance(status=FieldStatus.FAILED, reason=error.message)
                ),
            )

        logger.info(
            f"Synced {nickname}: {product_count} products, {updated.sales_count} sales"
        )
        return SyncOutcome(
            data=updated,
            success=True,
            products=products,
            report=SyncReport(
                profile=FieldProvenance(status=FieldStatus.OK),
                products=products_status,
                stats=stats_status,
            ),
        )

    async def refresh_access_token(
        self,
        client_id: str,
        client_secret: str,
    ) -> Outcome[dict]:
        """Obtain a new access token with the refresh token.

        On success the client's access token (and refresh token, when the
        provider rotates it) are replaced; on failure nothing changes.
        """
        if not self.refresh_token:
            return Outcome(
                success=False,
                error="No refresh token available. Authorize the account again.",
                category=ErrorCategory.VALIDATION,
            )
        if not (client_id or "").strip() or not (client_secret or "").strip():
            return Outcome(
                success=False,
                error="Client ID and Client Secret are required to refresh the token",
                category=ErrorCategory.VALIDATION,
            )

        logger.info("Refreshing Mercado Livre access token")

        try:
            token_data = await post_token_request(
                {
                    "grant_type": "refresh_token",
                    "client_id": client_id.strip(),
                    "client_secret": client_secret.strip(),
                    "refresh_token": self.refresh_token,
                },
                transport=self._transport,
            )
        except MercadoLivreAPIError as e:
            return e.to_outcome()
        except Exception as e:
            logger.exception("Unexpected error refreshing token")
            return unexpected_error(e).to_outcome()

        self.access_token = token_data["access_token"]
        if token_data.get("refresh_token"):
            self.refresh_token = token_data["refresh_token"]

        logger.info("Successfully refreshed Mercado Livre access token")
        return Outcome(data=token_data, success=True)


async def test_api_connection(
    access_token: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Outcome[dict]:
    """Check that an access token works by fetching the seller profile."""
    if not (access_token or "").strip():
        return Outcome(
            success=False,
            error="Access token is required",
            category=ErrorCategory.VALIDATION,
        )
    return await MercadoLivreClient(access_token, transport=transport).get_user_info()
