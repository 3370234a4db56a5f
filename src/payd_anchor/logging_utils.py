"""
Logging utilities for anchor and ledger operations.

Features:
- Timed operation context with success/failure logging
- Masking of account ids, bearer tokens and URL query strings
- Process-wide logging setup
"""
from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, AsyncIterator, Dict, Optional

from .config import LoggingConfig, get_config

logger = logging.getLogger(__name__)


class OperationType(str, Enum):
    """Types of anchor and ledger operations."""
    DISCOVERY = "discovery"
    AUTHENTICATION = "authentication"
    SETTLEMENT_INFO = "settlement_info"
    SETTLEMENT_INITIATE = "settlement_initiate"
    SETTLEMENT_STATUS = "settlement_status"
    FEE_STATS = "fee_stats"
    SIMULATION = "simulation"


@dataclass
class OperationContext:
    """Context for a single operation."""
    operation_id: str
    operation_type: OperationType
    target: str
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    duration_ms: Optional[float] = None
    success: bool = False
    error: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def complete(self, started: float, success: bool = True, error: Optional[str] = None) -> None:
        """Mark operation as complete."""
        self.duration_ms = (time.monotonic() - started) * 1000
        self.success = success
        self.error = error

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "operation_id": self.operation_id,
            "operation_type": self.operation_type.value,
            "target": self.target,
            "started_at": self.started_at.isoformat(),
            "duration_ms": self.duration_ms,
            "success": self.success,
            "error": self.error,
            "metadata": self.metadata,
        }


def mask_account(account: str) -> str:
    """Mask middle portion of an account id."""
    if len(account) < 12:
        return account
    return f"{account[:4]}...{account[-4:]}"


def mask_token(token: Optional[str]) -> str:
    """Show only the tail of a bearer token."""
    if not token:
        return "<none>"
    if len(token) <= 8:
        return "***"
    return f"***{token[-6:]}"


def mask_url(url: str) -> str:
    """Mask query parameters, which may carry account ids or keys."""
    if "?" in url:
        base = url.split("?")[0]
        return f"{base}?<params_masked>"
    return url


class OperationLogger:
    """Structured logger for timed operations."""

    def __init__(
        self,
        name: str = "payd_anchor",
        config: Optional[LoggingConfig] = None,
    ):
        self._logger = logging.getLogger(name)
        self._config = config or get_config().logging
        self._operation_counter = 0

    def _generate_operation_id(self) -> str:
        self._operation_counter += 1
        timestamp = int(time.time() * 1000)
        return f"op_{timestamp}_{self._operation_counter}"

    @staticmethod
    def _get_level(level_str: str) -> int:
        return getattr(logging, level_str.upper(), logging.INFO)

    @property
    def config(self) -> LoggingConfig:
        return self._config

    @asynccontextmanager
    async def operation_context(
        self,
        operation_type: OperationType,
        target: str,
        **metadata: Any,
    ) -> AsyncIterator[OperationContext]:
        """
        Context manager for tracking an operation.

        Usage:
            async with op_logger.operation_context(OperationType.DISCOVERY, domain) as ctx:
                ctx.metadata["has_auth"] = True
        """
        ctx = OperationContext(
            operation_id=self._generate_operation_id(),
            operation_type=operation_type,
            target=target,
            metadata=metadata,
        )
        started = time.monotonic()

        self._logger.debug(
            f"Starting {operation_type.value} for {target}",
            extra={"operation": ctx.to_dict()},
        )

        try:
            yield ctx
            ctx.complete(started, success=True)

        except Exception as e:
            ctx.complete(started, success=False, error=str(e))
            raise

        finally:
            if ctx.duration_ms is None:
                ctx.complete(started, success=False, error="cancelled")
            level = (
                self._get_level(self._config.operation_level)
                if ctx.success
                else self._get_level(self._config.error_level)
            )
            self._logger.log(
                level,
                f"Completed {operation_type.value} for {target} in {ctx.duration_ms:.0f}ms "
                f"(success={ctx.success})",
                extra={"operation": ctx.to_dict()},
            )


def setup_logging(
    level: str = "INFO",
    format_string: Optional[str] = None,
    json_format: bool = False,
) -> None:
    """
    Set up logging configuration.

    Args:
        level: Log level
        format_string: Custom format string
        json_format: Use JSON formatting
    """
    if format_string is None:
        if json_format:
            format_string = '{"timestamp": "%(asctime)s", "level": "%(levelname)s", "name": "%(name)s", "message": "%(message)s"}'
        else:
            format_string = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format=format_string,
    )

    logging.getLogger("payd_anchor").setLevel(getattr(logging, level.upper()))
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
