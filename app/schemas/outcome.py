"""Result envelopes returned by Mercado Livre operations."""

import enum
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, Field

from app.schemas.account import Account, Product

DataT = TypeVar("DataT")


class ErrorCategory(str, enum.Enum):
    """Failure categories produced by the error classifier."""

    VALIDATION = "validation"
    TOKEN_FORMAT = "token_format"
    SCOPE = "scope"
    INVALID_GRANT = "invalid_grant"
    INVALID_CLIENT = "invalid_client"
    HTTP_ERROR = "http_error"
    NETWORK = "network"
    TIMEOUT = "timeout"
    SUPERSEDED = "superseded"
    UNEXPECTED = "unexpected"


class Outcome(BaseModel, Generic[DataT]):
    """Envelope returned by every network-facing operation.

    ``success=False`` means ``data`` is empty or an unmodified echo of the
    input; ``error`` then holds the diagnostic text to show the operator.
    """

    data: Optional[DataT] = None
    success: bool
    error: Optional[str] = None
    category: Optional[ErrorCategory] = None


class FieldStatus(str, enum.Enum):
    """Provenance of one part of a synchronized account."""

    OK = "ok"
    DEGRADED = "degraded"
    FAILED = "failed"
    SKIPPED = "skipped"


class FieldProvenance(BaseModel):
    """Status of one sync step and why it did not fully succeed."""

    status: FieldStatus
    reason: Optional[str] = None


class SyncReport(BaseModel):
    """Per-step provenance of a sync attempt."""

    profile: FieldProvenance
    products: FieldProvenance = Field(
        default_factory=lambda: FieldProvenance(status=FieldStatus.SKIPPED)
    )
    stats: FieldProvenance = Field(
        default_factory=lambda: FieldProvenance(status=FieldStatus.SKIPPED)
    )

    @property
    def degraded(self) -> bool:
        """True when the profile synced but enrichment did not."""
        return self.profile.status == FieldStatus.OK and (
            self.products.status != FieldStatus.OK
            or self.stats.status != FieldStatus.OK
        )


class SyncOutcome(Outcome[Account]):
    """Result of ``sync_account``: the updated account plus fetched products."""

    products: list[Product] = Field(default_factory=list)
    report: Optional[SyncReport] = None

    @property
    def replacement_products(self) -> Optional[list[Product]]:
        """Products that replace the stored ones, or None to keep them.

        Only a successful product fetch is authoritative; an empty list then
        means the seller has no listings left.
        """
        if self.report is None or self.report.products.status != FieldStatus.OK:
            return None
        return self.products
