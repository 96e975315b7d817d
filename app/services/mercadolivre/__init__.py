"""Mercado Livre integration services.

This package provides:
- OAuth 2.0 authorization-code exchange and token refresh
- Token format and credential checks
- Error classification into operator guidance
- API client with account synchronization
"""

from app.services.mercadolivre.client import (
    MercadoLivreClient,
    format_last_sync,
    map_item_to_product,
)
from app.services.mercadolivre.errors import (
    MercadoLivreAPIError,
    SCOPE_ERROR_MESSAGE,
    classify_http_error,
    diagnose_authorization_error,
    is_code_expired_error,
    is_scope_error,
)
from app.services.mercadolivre.oauth import (
    exchange_code_for_token,
    generate_authorization_url,
    inspect_authorization_code,
)
from app.services.mercadolivre.reputation import (
    REPUTATION_RULES,
    score_reputation,
)
from app.services.mercadolivre.validators import (
    CredentialsCheck,
    is_valid_token_format,
    validate_credentials,
)

__all__ = [
    # Client
    "MercadoLivreClient",
    "format_last_sync",
    "map_item_to_product",
    # Errors
    "MercadoLivreAPIError",
    "SCOPE_ERROR_MESSAGE",
    "classify_http_error",
    "diagnose_authorization_error",
    "is_code_expired_error",
    "is_scope_error",
    # OAuth
    "exchange_code_for_token",
    "generate_authorization_url",
    "inspect_authorization_code",
    # Reputation
    "REPUTATION_RULES",
    "score_reputation",
    # Validators
    "CredentialsCheck",
    "is_valid_token_format",
    "validate_credentials",
]
