"""
Tests for operation logging helpers.
"""
import logging

import pytest

from payd_anchor.config import LoggingConfig
from payd_anchor.logging_utils import (
    OperationLogger,
    OperationType,
    mask_account,
    mask_token,
    mask_url,
)


class TestMasking:
    def test_mask_account(self):
        assert mask_account("GBZXN7PIRZGNMHGA7MUUUF4GWPY5AYPV6LY4UV2GL6VJGIQRXFDNMADI") == "GBZX...MADI"
        assert mask_account("GSHORT") == "GSHORT"

    def test_mask_token(self):
        assert mask_token(None) == "<none>"
        assert mask_token("abc") == "***"
        assert mask_token("eyJhbGciOiJIUzI1NiJ9.payload.signature") == "***nature"

    def test_mask_url(self):
        assert mask_url("https://a.example/auth?account=GABC") == "https://a.example/auth?<params_masked>"
        assert mask_url("https://a.example/auth") == "https://a.example/auth"


class TestOperationContext:
    async def test_success_is_logged(self, caplog):
        op_logger = OperationLogger("payd_anchor.test", LoggingConfig(operation_level="INFO"))

        with caplog.at_level(logging.DEBUG, logger="payd_anchor.test"):
            async with op_logger.operation_context(OperationType.DISCOVERY, "anchor.example.com") as ctx:
                ctx.metadata["has_auth"] = True

        assert ctx.success is True
        assert ctx.duration_ms is not None
        completed = [r for r in caplog.records if r.getMessage().startswith("Completed discovery")]
        assert completed[0].levelno == logging.INFO
        assert completed[0].operation["metadata"] == {"has_auth": True}

    async def test_failure_is_logged_and_reraised(self, caplog):
        op_logger = OperationLogger("payd_anchor.test", LoggingConfig())

        with caplog.at_level(logging.DEBUG, logger="payd_anchor.test"):
            with pytest.raises(RuntimeError):
                async with op_logger.operation_context(OperationType.FEE_STATS, "horizon") as ctx:
                    raise RuntimeError("boom")

        assert ctx.success is False
        assert ctx.error == "boom"
        warning = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert "success=False" in warning[0].getMessage()

    async def test_operation_ids_are_unique(self):
        op_logger = OperationLogger("payd_anchor.test", LoggingConfig())
        ids = set()
        for _ in range(3):
            async with op_logger.operation_context(OperationType.SIMULATION, "rpc") as ctx:
                ids.add(ctx.operation_id)
        assert len(ids) == 3
