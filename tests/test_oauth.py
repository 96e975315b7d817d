from urllib.parse import parse_qs, urlparse

import pytest

from app.schemas.outcome import ErrorCategory
from app.services.mercadolivre import client as ml_client
from app.services.mercadolivre.errors import INVALID_CLIENT_MESSAGE, INVALID_CODE_MESSAGE
from app.services.mercadolivre.oauth import (
    TOKEN_ENDPOINT,
    clean_authorization_code,
    exchange_code_for_token,
    generate_authorization_url,
    inspect_authorization_code,
)

from .conftest import VALID_TOKEN

CODE = "TG-65a1b2c3d4e5f6-123456789"
CLIENT_ID = "1234567890"
CLIENT_SECRET = "client-secret"
REDIRECT_URI = "https://myapp.example.com/callback"


def _form(request) -> dict[str, str]:
    return {key: values[0] for key, values in parse_qs(request.content.decode()).items()}


def test_authorization_url():
    url = generate_authorization_url(CLIENT_ID, REDIRECT_URI, state="xyz")
    parsed = urlparse(url)
    query = parse_qs(parsed.query)

    assert parsed.netloc == "auth.mercadolivre.com.br"
    assert query["response_type"] == ["code"]
    assert query["client_id"] == [CLIENT_ID]
    assert query["redirect_uri"] == [REDIRECT_URI]
    assert query["scope"] == ["offline_access read write"]
    assert query["state"] == ["xyz"]


def test_clean_authorization_code_removes_inner_whitespace():
    assert clean_authorization_code("  TG-65a1 b2c3\nd4e5\t ") == "TG-65a1b2c3d4e5"


@pytest.mark.parametrize("code, warning", [
    (CODE, None),
    ("https://myapp.example.com/callback?code=TG-123", "not the whole URL"),
    ("TG-1", "too short"),
    ("TG-65a1b2c3 d4e5f6", "spaces"),
])
def test_inspect_authorization_code(code, warning):
    result = inspect_authorization_code(code)
    if warning is None:
        assert result is None
    else:
        assert warning in result


@pytest.mark.asyncio
@pytest.mark.parametrize("field, expected", [
    ("code", "Authorization code is required"),
    ("client_id", "Client ID is required"),
    ("client_secret", "Client Secret is required"),
    ("redirect_uri", "Redirect URI is required"),
])
async def test_missing_field_fails_without_request(fake_ml, field, expected):
    args = {
        "code": CODE,
        "client_id": CLIENT_ID,
        "client_secret": CLIENT_SECRET,
        "redirect_uri": REDIRECT_URI,
    }
    args[field] = "   "

    outcome = await exchange_code_for_token(**args, transport=fake_ml.transport)

    assert outcome.success is False
    assert outcome.error == expected
    assert outcome.category == ErrorCategory.VALIDATION
    assert fake_ml.requests == []


@pytest.mark.asyncio
async def test_exchange_sends_cleaned_form(fake_ml):
    fake_ml.add(
        "POST",
        TOKEN_ENDPOINT,
        json={
            "access_token": VALID_TOKEN,
            "token_type": "bearer",
            "expires_in": 21600,
            "scope": "offline_access read write",
            "user_id": 999,
            "refresh_token": "TG-refresh-123",
        },
    )

    outcome = await exchange_code_for_token(
        f"  {CODE[:10]} {CODE[10:]}\n",
        f" {CLIENT_ID} ",
        CLIENT_SECRET,
        REDIRECT_URI,
        transport=fake_ml.transport,
    )

    assert outcome.success is True
    assert outcome.data["access_token"] == VALID_TOKEN
    assert outcome.data["refresh_token"] == "TG-refresh-123"

    (request,) = fake_ml.calls("POST", TOKEN_ENDPOINT)
    assert request.headers["content-type"] == "application/x-www-form-urlencoded"
    assert _form(request) == {
        "grant_type": "authorization_code",
        "client_id": CLIENT_ID,
        "client_secret": CLIENT_SECRET,
        "code": CODE,
        "redirect_uri": REDIRECT_URI,
    }


@pytest.mark.asyncio
async def test_rejected_code_asks_for_new_authorization(fake_ml):
    fake_ml.add(
        "POST",
        TOKEN_ENDPOINT,
        status_code=400,
        json={"error": "invalid_grant", "error_description": "Error validating grant"},
    )

    outcome = await exchange_code_for_token(
        CODE, CLIENT_ID, CLIENT_SECRET, REDIRECT_URI, transport=fake_ml.transport
    )

    assert outcome.success is False
    assert outcome.category == ErrorCategory.INVALID_GRANT
    assert outcome.error == INVALID_CODE_MESSAGE
    # Codes are single use: exactly one attempt, never retried
    assert len(fake_ml.requests) == 1


@pytest.mark.asyncio
async def test_wrong_client_secret(fake_ml):
    fake_ml.add("POST", TOKEN_ENDPOINT, status_code=401, json={"error": "invalid_client"})

    outcome = await exchange_code_for_token(
        CODE, CLIENT_ID, "wrong", REDIRECT_URI, transport=fake_ml.transport
    )

    assert outcome.category == ErrorCategory.INVALID_CLIENT
    assert outcome.error == INVALID_CLIENT_MESSAGE


@pytest.mark.asyncio
async def test_token_response_without_access_token(fake_ml):
    fake_ml.add("POST", TOKEN_ENDPOINT, json={"token_type": "bearer"})

    outcome = await exchange_code_for_token(
        CODE, CLIENT_ID, CLIENT_SECRET, REDIRECT_URI, transport=fake_ml.transport
    )

    assert outcome.success is False
    assert outcome.category == ErrorCategory.UNEXPECTED


@pytest.mark.asyncio
async def test_exchange_then_connection_test(fake_ml):
    """A freshly exchanged token is accepted by the profile endpoint."""
    fake_ml.add("POST", TOKEN_ENDPOINT, json={"access_token": VALID_TOKEN})
    fake_ml.add("GET", "/users/me", json={"id": 999, "nickname": "loja_x"})

    exchanged = await exchange_code_for_token(
        CODE, CLIENT_ID, CLIENT_SECRET, REDIRECT_URI, transport=fake_ml.transport
    )
    assert exchanged.success

    connection = await ml_client.test_api_connection(
        exchanged.data["access_token"], transport=fake_ml.transport
    )

    assert connection.success is True
    assert connection.data == {"id": 999, "nickname": "loja_x"}
    (profile_request,) = fake_ml.calls("GET", "/users/me")
    assert profile_request.headers["authorization"] == f"Bearer {VALID_TOKEN}"


@pytest.mark.asyncio
async def test_short_token_rejected_before_network(fake_ml):
    fake_ml.add("GET", "/users/me", json={"id": 999})

    outcome = await ml_client.test_api_connection(
        "APP_USR-123-456-abc", transport=fake_ml.transport
    )

    assert outcome.success is False
    assert outcome.category == ErrorCategory.TOKEN_FORMAT
    assert "ACCESS TOKEN" in outcome.error
    assert fake_ml.requests == []


@pytest.mark.asyncio
async def test_connection_test_requires_token(fake_ml):
    outcome = await ml_client.test_api_connection("  ", transport=fake_ml.transport)
    assert outcome.error == "Access token is required"
    assert fake_ml.requests == []
