"""Error types for payd-anchor."""
from __future__ import annotations

from typing import Any, Optional


class PaydAnchorError(Exception):
    """Base exception for payd-anchor."""

    default_code = "PAYD_ANCHOR_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
            }
        }


class DiscoveryError(PaydAnchorError):
    """The anchor's stellar.toml could not be fetched or read."""

    default_code = "DISCOVERY_FAILED"

    def __init__(self, domain: str, reason: str):
        super().__init__(
            f"Anchor discovery failed for {domain}: {reason}",
            details={"domain": domain, "reason": reason},
        )
        self.domain = domain
        self.reason = reason


class UnsupportedAnchorError(PaydAnchorError):
    """The anchor does not publish an endpoint we need."""

    default_code = "ANCHOR_UNSUPPORTED"

    def __init__(self, domain: str, capability: str):
        super().__init__(
            f"Anchor {domain} does not support {capability}",
            details={"domain": domain, "capability": capability},
        )
        self.domain = domain
        self.capability = capability


class AuthenticationError(PaydAnchorError):
    """The SEP-10 challenge/sign/submit flow failed."""

    default_code = "AUTHENTICATION_FAILED"

    def __init__(
        self,
        domain: str,
        message: str,
        step: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(
            message,
            details={"domain": domain, "step": step, "status_code": status_code},
        )
        self.domain = domain
        self.step = step
        self.status_code = status_code


class SettlementError(PaydAnchorError):
    """A SEP-31 call was rejected by the anchor or could not be made."""

    default_code = "SETTLEMENT_FAILED"

    def __init__(
        self,
        message: str,
        domain: Optional[str] = None,
        status_code: Optional[int] = None,
        detail: Optional[Any] = None,
    ):
        super().__init__(
            message,
            details={"domain": domain, "status_code": status_code, "detail": detail},
        )
        self.domain = domain
        self.status_code = status_code
        self.detail = detail

    @property
    def token_rejected(self) -> bool:
        """True when the anchor refused the bearer token."""
        return self.status_code in (401, 403)

    @classmethod
    def from_response(
        cls,
        domain: str,
        status_code: int,
        body: Any,
    ) -> "SettlementError":
        """Create SettlementError from an anchor error response."""
        detail: Any = body
        if isinstance(body, dict):
            for key in ("error", "detail", "message"):
                if body.get(key):
                    detail = body[key]
                    break
        reason = detail if isinstance(detail, str) else str(detail)
        return cls(
            f"Anchor {domain} rejected the request ({status_code}): {reason}",
            domain=domain,
            status_code=status_code,
            detail=detail,
        )


class FeeStatsError(PaydAnchorError):
    """Fee statistics could not be fetched or read."""

    default_code = "FEE_STATS_UNAVAILABLE"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message, details={"status_code": status_code})
        self.status_code = status_code
