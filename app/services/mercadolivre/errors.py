"""Classification of Mercado Livre failures into operator guidance."""

import json
import logging
from typing import Any, Optional

import httpx

from app.schemas.outcome import ErrorCategory, Outcome
from app.services.mercadolivre.validators import ACCESS_TOKEN_PREFIX

logger = logging.getLogger(__name__)

SCOPE_ERROR_MESSAGE = """PERMISSION ERROR - REQUIRED SCOPES MISSING

Your application needs the following scopes:
  - read
  - write
  - offline_access

How to fix it (3 steps):

1. Configure the scopes
   - Open https://developers.mercadolibre.com.br/
   - Go to "My applications" and select your application
   - Enable read, write and offline_access, then save

2. Get a NEW authorization code
   - Open the authorization URL again
   - Approve access for the seller account
   - Copy the code from the redirect URL

3. Generate a NEW access token
   - Exchange the new code for a token
   - Test the connection with the new token

Tokens issued before the scope change keep their old permissions and cannot be upgraded."""

INVALID_CODE_MESSAGE = (
    "Authorization code is invalid, already used or expired. "
    "Codes are single use and valid for 10 minutes: restart the authorization "
    "step to obtain a new code."
)

INVALID_REFRESH_TOKEN_MESSAGE = (
    "Refresh token is invalid, revoked or expired. "
    "Authorize the account again to obtain new tokens."
)

INVALID_GRANT_MESSAGE = "Grant is invalid or expired. Restart the authorization step."

INVALID_CLIENT_MESSAGE = (
    "Client ID or Client Secret is invalid. Verify the credentials of the "
    "application registered in the Mercado Livre developer portal."
)

INVALID_REQUEST_MESSAGE = (
    "Invalid token request. Check that every field is filled in correctly "
    "and that the redirect URI matches the registered one exactly."
)

NETWORK_ERROR_MESSAGE = """Could not reach the Mercado Livre API.

Details: {details}

Possible causes:
  - No internet connection
  - A firewall or proxy is blocking the request
  - The Mercado Livre API is temporarily unavailable

Check the connection and try again in a few minutes."""

UNEXPECTED_ERROR_MESSAGE = "Unexpected error while talking to the API: {details}"

_SCOPE_MARKERS = ("scope", "read", "write", "offline_access")
_AUTHORIZATION_MARKERS = ("scope", "unauthorized", "policy", "permissão")


class MercadoLivreAPIError(Exception):
    """Classified failure of a Mercado Livre request."""

    def __init__(
        self,
        category: ErrorCategory,
        message: str,
        status_code: Optional[int] = None,
        response_body: Any = None,
    ):
        self.category = category
        self.message = message
        self.status_code = status_code
        self.response_body = response_body
        super().__init__(message)

    def to_outcome(self, data: Any = None) -> Outcome:
        """Convert into a failed Outcome carrying ``data`` unchanged."""
        return Outcome(
            data=data,
            success=False,
            error=self.message,
            category=self.category,
        )


def _payload_text(payload: Any) -> str:
    if isinstance(payload, str):
        return payload
    try:
        return json.dumps(payload, ensure_ascii=False)
    except (TypeError, ValueError):
        return str(payload)


def is_scope_error(payload: Any) -> bool:
    """Check whether a provider payload mentions scopes or permissions."""
    if not payload:
        return False
    text = _payload_text(payload).lower()
    return any(marker in text for marker in _SCOPE_MARKERS)


def _provider_message(payload: Any) -> str:
    if isinstance(payload, dict):
        message = (
            payload.get("message")
            or payload.get("error_description")
            or payload.get("error")
        )
        if message:
            return str(message)
    return _payload_text(payload) if payload else "no response body"


def classify_http_error(
    status_code: int,
    payload: Any,
    grant_type: Optional[str] = None,
) -> MercadoLivreAPIError:
    """Map a non-2xx response to a classified error.

    Args:
        status_code: HTTP status returned by the provider
        payload: Parsed response body (dict, or raw text if not JSON)
        grant_type: OAuth grant of a token-endpoint request, if any

    Returns:
        MercadoLivreAPIError with category and operator-facing message
    """
    error_code = payload.get("error") if isinstance(payload, dict) else None

    if status_code == 403:
        return MercadoLivreAPIError(
            ErrorCategory.SCOPE, SCOPE_ERROR_MESSAGE, status_code, payload
        )

    if error_code == "invalid_grant":
        if grant_type == "authorization_code":
            message = INVALID_CODE_MESSAGE
        elif grant_type == "refresh_token":
            message = INVALID_REFRESH_TOKEN_MESSAGE
        else:
            message = INVALID_GRANT_MESSAGE
        return MercadoLivreAPIError(
            ErrorCategory.INVALID_GRANT, message, status_code, payload
        )

    if error_code == "invalid_client":
        return MercadoLivreAPIError(
            ErrorCategory.INVALID_CLIENT, INVALID_CLIENT_MESSAGE, status_code, payload
        )

    if error_code == "invalid_scope" or is_scope_error(payload):
        return MercadoLivreAPIError(
            ErrorCategory.SCOPE, SCOPE_ERROR_MESSAGE, status_code, payload
        )

    if grant_type and error_code == "invalid_request":
        return MercadoLivreAPIError(
            ErrorCategory.HTTP_ERROR, INVALID_REQUEST_MESSAGE, status_code, payload
        )

    message = f"HTTP error {status_code}: {_provider_message(payload)}"
    if status_code == 401:
        message += (
            "\n\nThe access token is invalid or expired. Tokens are valid for a few "
            "hours; refresh it or obtain a new one. Make sure an access token, not "
            "an authorization code, was provided."
        )
    return MercadoLivreAPIError(ErrorCategory.HTTP_ERROR, message, status_code, payload)


def network_error(exc: httpx.TransportError) -> MercadoLivreAPIError:
    """Wrap a transport-level failure (DNS, connect, timeout)."""
    category = (
        ErrorCategory.TIMEOUT
        if isinstance(exc, httpx.TimeoutException)
        else ErrorCategory.NETWORK
    )
    details = str(exc) or exc.__class__.__name__
    return MercadoLivreAPIError(category, NETWORK_ERROR_MESSAGE.format(details=details))


def unexpected_error(exc: Exception) -> MercadoLivreAPIError:
    """Wrap an exception nothing else classified."""
    details = str(exc) or exc.__class__.__name__
    return MercadoLivreAPIError(
        ErrorCategory.UNEXPECTED, UNEXPECTED_ERROR_MESSAGE.format(details=details)
    )


def token_format_error(token: str) -> MercadoLivreAPIError:
    """Explain why a token was rejected by the format heuristic."""
    message = (
        "Invalid token format.\n\n"
        "The value provided does not look like a Mercado Livre access token.\n"
        f"Expected format: {ACCESS_TOKEN_PREFIX}1234567890-123456-abcdef...\n"
        f"Received: {token.strip()[:30]}...\n\n"
        "Make sure you are using the ACCESS TOKEN, not the authorization code."
    )
    return MercadoLivreAPIError(ErrorCategory.TOKEN_FORMAT, message)


def diagnose_authorization_error(error: str) -> str:
    """Turn a raw authorization error into guidance when it is scope related."""
    lowered = (error or "").lower()
    if any(marker in lowered for marker in _AUTHORIZATION_MARKERS):
        return SCOPE_ERROR_MESSAGE
    return error


def is_code_expired_error(error: str) -> bool:
    """Check whether an error means the authorization code must be renewed."""
    lowered = (error or "").lower()
    return (
        ("authorization code" in lowered and "invalid" in lowered)
        or ("grant" in lowered and "invalid" in lowered)
        or "expired" in lowered
        or "already used" in lowered
        or "inválido" in lowered
        or "expirado" in lowered
    )
