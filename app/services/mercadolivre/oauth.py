"""Mercado Livre OAuth 2.0 authorization-code flow."""

import logging
import re
from typing import Any, Optional
from urllib.parse import urlencode

import httpx

from app.config import get_settings
from app.schemas.outcome import ErrorCategory, Outcome
from app.services.mercadolivre.errors import (
    MercadoLivreAPIError,
    classify_http_error,
    network_error,
    unexpected_error,
)

logger = logging.getLogger(__name__)
settings = get_settings()

TOKEN_ENDPOINT = "/oauth/token"


def generate_authorization_url(
    client_id: str,
    redirect_uri: str,
    state: Optional[str] = None,
    scopes: Optional[str] = None,
) -> str:
    """Build the browser URL where the seller grants access to the app.

    Args:
        client_id: Application ID
        redirect_uri: Registered redirect URI that receives ``?code=``
        state: Opaque CSRF value echoed back on the redirect
        scopes: Space separated scopes, defaults to ML_SCOPES

    Returns:
        Authorization URL
    """
    params = {
        "response_type": "code",
        "client_id": client_id.strip(),
        "redirect_uri": redirect_uri.strip(),
        "scope": scopes if scopes is not None else settings.ML_SCOPES,
    }
    if state:
        params["state"] = state

    url = f"{settings.ML_AUTH_URL}?{urlencode(params)}"
    logger.info(f"Generated authorization URL for client {params['client_id']}")
    return url


def clean_authorization_code(code: str) -> str:
    """Remove all whitespace, including copy-paste artifacts inside the code."""
    return re.sub(r"\s+", "", code or "")


def inspect_authorization_code(code: str) -> Optional[str]:
    """Return a warning if the pasted code is probably not a bare code."""
    cleaned = (code or "").strip()
    if "?code=" in cleaned or "&code=" in cleaned:
        return "Copy only the value after ?code=, not the whole URL"
    if len(cleaned) < 10:
        return "Code is too short - check that it was copied completely"
    if re.search(r"\s", cleaned):
        return "Code contains spaces - they will be removed before the exchange"
    return None


async def post_token_request(
    form: dict[str, str],
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> dict[str, Any]:
    """POST a form-encoded grant to the token endpoint.

    Raises:
        MercadoLivreAPIError: If the request fails or the provider rejects it
    """
    grant_type = form.get("grant_type")

    async with httpx.AsyncClient(
        base_url=settings.ML_API_BASE,
        timeout=settings.ML_HTTP_TIMEOUT_SECONDS,
        transport=transport,
    ) as client:
        try:
            response = await client.post(
                TOKEN_ENDPOINT,
                data=form,
                headers={"Accept": "application/json"},
            )
        except httpx.TransportError as e:
            logger.error(f"Token request ({grant_type}) failed to reach provider: {e!r}")
            raise network_error(e) from e

    try:
        payload = response.json()
    except ValueError:
        payload = response.text

    if not response.is_success:
        logger.error(
            f"Token request ({grant_type}) failed: {response.status_code} - {response.text}"
        )
        raise classify_http_error(response.status_code, payload, grant_type=grant_type)

    if not isinstance(payload, dict) or not payload.get("access_token"):
        raise MercadoLivreAPIError(
            ErrorCategory.UNEXPECTED,
            "Token endpoint answered without an access_token",
            response.status_code,
            payload,
        )

    return payload


async def exchange_code_for_token(
    code: str,
    client_id: str,
    client_secret: str,
    redirect_uri: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Outcome[dict]:
    """Exchange an authorization code for an access/refresh token pair.

    Codes are single use and expire after 10 minutes, so nothing here
    retries: a rejected code means the authorization step must be redone.

    Args:
        code: Authorization code from the redirect URL
        client_id: Application ID
        client_secret: Application secret key
        redirect_uri: Redirect URI used to obtain the code
        transport: Optional httpx transport (tests)

    Returns:
        Outcome with the raw token payload (access_token, refresh_token,
        expires_in, ...) on success
    """
    required = (
        (code, "Authorization code is required"),
        (client_id, "Client ID is required"),
        (client_secret, "Client Secret is required"),
        (redirect_uri, "Redirect URI is required"),
    )
    for value, message in required:
        if not value or not value.strip():
            return Outcome(success=False, error=message, category=ErrorCategory.VALIDATION)

    form = {
        "grant_type": "authorization_code",
        "client_id": client_id.strip(),
        "client_secret": client_secret.strip(),
        "code": clean_authorization_code(code),
        "redirect_uri": redirect_uri.strip(),
    }

    logger.info("Exchanging authorization code for access token")

    try:
        token_data = await post_token_request(form, transport=transport)
    except MercadoLivreAPIError as e:
        return e.to_outcome()
    except Exception as e:
        logger.exception("Unexpected error during code exchange")
        return unexpected_error(e).to_outcome()

    logger.info(
        f"Obtained access token {token_data['access_token'][:12]}... "
        f"(expires in {token_data.get('expires_in')}s)"
    )
    return Outcome(data=token_data, success=True)
