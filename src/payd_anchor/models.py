"""Wire models for anchor and ledger API payloads."""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

CongestionLevel = Literal["low", "moderate", "high"]


class AnchorModel(BaseModel):
    """Base model with common configuration."""

    model_config = ConfigDict(
        populate_by_name=True,
        use_enum_values=True,
        extra="ignore",
    )

    def to_dict(self) -> dict[str, Any]:
        """Convert model to dictionary."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AnchorModel":
        """Create model from dictionary."""
        return cls.model_validate(data)


class EndpointInfo(AnchorModel):
    """Service endpoints an anchor publishes in its stellar.toml."""

    model_config = ConfigDict(frozen=True)

    domain: str
    auth_endpoint: Optional[str] = None
    settlement_endpoint: Optional[str] = None
    transfer_server: Optional[str] = None
    network_passphrase: Optional[str] = None
    signing_key: Optional[str] = None
    token: Optional[str] = None
    resolved_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def with_token(self, token: str) -> "EndpointInfo":
        """Copy of this entry carrying a bearer token."""
        return self.model_copy(update={"token": token})


class SettlementStatus(str, Enum):
    """
    Status values documented by SEP-31.

    Anchors may report anything; SettlementRecord.status keeps the anchor's
    text as sent (None when omitted) and is never coerced into this enum.
    """
    PENDING_SENDER = "pending_sender"
    PENDING_STELLAR = "pending_stellar"
    PENDING_RECEIVER = "pending_receiver"
    PENDING_EXTERNAL = "pending_external"
    PENDING_CUSTOMER_INFO_UPDATE = "pending_customer_info_update"
    PENDING_TRANSACTION_INFO_UPDATE = "pending_transaction_info_update"
    COMPLETED = "completed"
    REFUNDED = "refunded"
    EXPIRED = "expired"
    ERROR = "error"


TERMINAL_STATUSES = frozenset({
    SettlementStatus.COMPLETED.value,
    SettlementStatus.REFUNDED.value,
    SettlementStatus.EXPIRED.value,
    SettlementStatus.ERROR.value,
})


class SettlementPayload(AnchorModel):
    """Body of a SEP-31 POST /transactions request."""

    model_config = ConfigDict(extra="allow")

    amount: str
    asset_code: str
    receiver_id: str
    memo: Optional[str] = None
    asset_issuer: Optional[str] = None
    sender_id: Optional[str] = None
    memo_type: Optional[str] = None


class SettlementRequest(AnchorModel):
    """A settlement the caller wants sent to an anchor, passed through as-is."""

    domain: str
    token: str
    payload: SettlementPayload


class SettlementRecord(AnchorModel):
    """A SEP-31 transaction as reported by the anchor."""

    model_config = ConfigDict(extra="allow")

    id: str
    status: Optional[str] = None
    amount_in: Optional[str] = None
    amount_out: Optional[str] = None
    amount_fee: Optional[str] = None
    asset_in: Optional[str] = None
    asset_out: Optional[str] = None
    stellar_account_id: Optional[str] = None
    stellar_memo: Optional[str] = None
    stellar_memo_type: Optional[str] = None
    stellar_transaction_id: Optional[str] = None
    started_at: Optional[str] = None
    completed_at: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        """True for statuses after which the anchor will not move the record."""
        return self.status in TERMINAL_STATUSES

    @classmethod
    def from_response(cls, body: dict[str, Any]) -> "SettlementRecord":
        """Accept both the bare record and the {"transaction": {...}} envelope."""
        if isinstance(body.get("transaction"), dict):
            body = body["transaction"]
        return cls.model_validate(body)


class FeePercentiles(AnchorModel):
    """Percentile bucket of the /fee_stats body. Horizon sends strings."""

    min: int
    mode: int
    p10: int
    p20: int
    p30: int
    p40: int
    p50: int
    p60: int
    p70: int
    p80: int
    p90: int
    p95: int
    p99: int
    max: int


class FeeStats(AnchorModel):
    """Body of Horizon's GET /fee_stats."""

    last_ledger: int
    last_ledger_base_fee: int
    ledger_capacity_usage: float
    fee_charged: FeePercentiles
    max_fee: Optional[FeePercentiles] = None


class FeeRecommendation(AnchorModel):
    """Fee advice derived from the latest fee statistics."""

    base_fee: int
    recommended_fee: int
    max_fee: int
    congestion_level: CongestionLevel
    should_bump_fee: bool
    ledger_capacity_usage: float = Field(ge=0.0, le=1.0)
    last_ledger: int
    recommended_fee_xlm: str
    max_fee_xlm: str
    base_fee_xlm: str


class BatchBudgetEstimate(AnchorModel):
    """Fee budget for a batch of payroll transactions."""

    transaction_count: int
    fee_per_transaction: int
    total_budget: int
    total_budget_xlm: str
    fee_per_transaction_xlm: str
    safety_margin: float
    congestion_level: CongestionLevel
