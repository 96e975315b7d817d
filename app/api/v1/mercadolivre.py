"""Mercado Livre OAuth and connection endpoints."""

import secrets
import uuid
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_db, require_permission
from app.config import get_settings
from app.schemas.account import Account, AccountRead, Product
from app.schemas.outcome import Outcome, SyncReport
from app.services.accounts import AccountRepository
from app.services.mercadolivre import (
    diagnose_authorization_error,
    exchange_code_for_token,
    generate_authorization_url,
    inspect_authorization_code,
    is_code_expired_error,
    validate_credentials,
)
from app.services.mercadolivre import client as ml_client
from app.services.sync import sync_coordinator

router = APIRouter()
settings = get_settings()


# Request/response schemas


class AuthURLResponse(BaseModel):
    """OAuth authorization URL response."""

    authorization_url: str
    state: str


class ExchangeRequest(BaseModel):
    """Authorization code exchange request."""

    code: str = ""
    client_id: str = ""
    client_secret: str = ""
    redirect_uri: str = ""


class ExchangeResponse(Outcome[dict]):
    """Token exchange outcome with hints for the operator."""

    code_warning: Optional[str] = None
    restart_authorization: bool = False


class AccessTokenRequest(BaseModel):
    """Request carrying a seller access token."""

    access_token: str = ""
    refresh_token: Optional[str] = None


class DiagnoseRequest(BaseModel):
    """Raw authorization error text."""

    error: str


class DiagnoseResponse(BaseModel):
    """Guidance for an authorization error."""

    message: str
    restart_authorization: bool


class CredentialsRequest(BaseModel):
    """Application credentials to check."""

    client_id: str = ""
    client_secret: str = ""
    redirect_uri: str = ""


class CredentialsResponse(BaseModel):
    """Credential check result."""

    valid: bool
    errors: list[str]


class ImportResponse(BaseModel):
    """Result of importing an account into the dashboard."""

    success: bool
    error: Optional[str] = None
    account: Optional[AccountRead] = None
    products: list[Product] = []
    report: Optional[SyncReport] = None


# Endpoints


@router.get("/auth/url", response_model=AuthURLResponse)
async def get_auth_url(
    client_id: Optional[str] = None,
    redirect_uri: Optional[str] = None,
    _: object = Depends(require_permission("manage_accounts")),
) -> AuthURLResponse:
    """Get the Mercado Livre authorization URL.

    Falls back to the configured application when no credentials are given.
    The state parameter should be compared with the one on the redirect.
    """
    state = secrets.token_urlsafe(32)
    url = generate_authorization_url(
        client_id or settings.ML_CLIENT_ID,
        redirect_uri or settings.ML_REDIRECT_URI,
        state=state,
    )
    return AuthURLResponse(authorization_url=url, state=state)


@router.post("/auth/exchange", response_model=ExchangeResponse)
async def exchange_code(
    request: ExchangeRequest,
    _: object = Depends(require_permission("manage_accounts")),
) -> ExchangeResponse:
    """Exchange an authorization code for access and refresh tokens."""
    outcome = await exchange_code_for_token(
        request.code,
        request.client_id,
        request.client_secret,
        request.redirect_uri,
    )
    return ExchangeResponse(
        **outcome.model_dump(),
        code_warning=inspect_authorization_code(request.code) if request.code else None,
        restart_authorization=bool(outcome.error) and is_code_expired_error(outcome.error),
    )


@router.post("/auth/test", response_model=Outcome[dict])
async def test_connection(
    request: AccessTokenRequest,
    _: object = Depends(require_permission("manage_accounts")),
) -> Outcome[dict]:
    """Check an access token by fetching the seller profile."""
    return await ml_client.test_api_connection(request.access_token)


@router.post("/auth/diagnose", response_model=DiagnoseResponse)
async def diagnose(
    request: DiagnoseRequest,
    _: object = Depends(require_permission("manage_accounts")),
) -> DiagnoseResponse:
    """Translate an authorization error into operator guidance."""
    return DiagnoseResponse(
        message=diagnose_authorization_error(request.error),
        restart_authorization=is_code_expired_error(request.error),
    )


@router.post("/auth/validate-credentials", response_model=CredentialsResponse)
async def check_credentials(
    request: CredentialsRequest,
    _: object = Depends(require_permission("manage_accounts")),
) -> CredentialsResponse:
    """Check application credentials before starting the OAuth flow."""
    result = validate_credentials(
        request.client_id, request.client_secret, request.redirect_uri
    )
    return CredentialsResponse(valid=result.valid, errors=result.errors)


@router.post("/import", response_model=ImportResponse)
async def import_account(
    request: AccessTokenRequest,
    db: AsyncSession = Depends(get_db),
    _: object = Depends(require_permission("manage_accounts")),
) -> ImportResponse:
    """Import the seller behind an access token, with all of its products.

    An account already stored under the same nickname or Mercado Livre user
    id is updated in place; otherwise a new account is created.
    """
    candidate = Account(
        id=str(uuid.uuid4()),
        nickname="",
        access_token=request.access_token,
        refresh_token=request.refresh_token,
    )
    outcome = await sync_coordinator.sync(candidate)

    if not outcome.success:
        return ImportResponse(success=False, error=outcome.error, report=outcome.report)

    stored = await AccountRepository(db).import_account(
        outcome.data, outcome.replacement_products
    )
    return ImportResponse(
        success=True,
        account=AccountRead.from_account(stored),
        products=outcome.products,
        report=outcome.report,
    )
