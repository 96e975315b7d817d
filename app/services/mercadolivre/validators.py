"""Input checks that run before any request reaches Mercado Livre.

These are UX heuristics: they catch copy-paste mistakes (an authorization
code pasted where an access token belongs, a stray space in a client id)
early and with a clear message. They never prove a credential is valid;
the provider's response remains authoritative.
"""

import re
from dataclasses import dataclass, field
from urllib.parse import urlparse

MIN_TOKEN_LENGTH = 20
ACCESS_TOKEN_PREFIX = "APP_USR-"

_TOKEN_PATTERNS = (
    re.compile(r"^APP_USR-[\w-]+$", re.IGNORECASE),
    re.compile(r"^[A-Za-z0-9_-]{30,}$"),
)

_LOCAL_HOSTS = {"localhost", "127.0.0.1"}


def is_valid_token_format(token: object) -> bool:
    """Return True if ``token`` looks like a Mercado Livre access token."""
    if not isinstance(token, str):
        return False

    trimmed = token.strip()
    if len(trimmed) < MIN_TOKEN_LENGTH:
        return False

    return any(pattern.match(trimmed) for pattern in _TOKEN_PATTERNS)


@dataclass
class CredentialsCheck:
    """Result of ``validate_credentials``."""

    valid: bool
    errors: list[str] = field(default_factory=list)


def validate_credentials(
    client_id: str,
    client_secret: str,
    redirect_uri: str,
) -> CredentialsCheck:
    """Check application credentials before starting the OAuth flow.

    Args:
        client_id: Application ID from the Mercado Livre developer portal
        client_secret: Application secret key
        redirect_uri: Redirect URI registered for the application

    Returns:
        CredentialsCheck with one message per problem found
    """
    errors: list[str] = []

    client_id = (client_id or "").strip()
    client_secret = (client_secret or "").strip()
    redirect_uri = (redirect_uri or "").strip()

    if not client_id:
        errors.append("Client ID is required")
    elif not client_id.isdigit():
        errors.append("Client ID must contain only digits")

    if not client_secret:
        errors.append("Client Secret is required")
    elif re.search(r"\s", client_secret):
        errors.append("Client Secret must not contain spaces")

    if not redirect_uri:
        errors.append("Redirect URI is required")
    else:
        parsed = urlparse(redirect_uri)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            errors.append("Redirect URI must be an absolute http(s) URL")
        elif parsed.scheme == "http" and parsed.hostname not in _LOCAL_HOSTS:
            errors.append("Redirect URI must use https (http is only accepted for localhost)")

    return CredentialsCheck(valid=not errors, errors=errors)
