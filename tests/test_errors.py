"""Tests for payd_anchor.errors and the wire models they describe."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from payd_anchor.errors import (
    AuthenticationError,
    DiscoveryError,
    PaydAnchorError,
    SettlementError,
    UnsupportedAnchorError,
)
from payd_anchor.models import EndpointInfo, SettlementRecord


class TestPaydAnchorError:
    def test_defaults(self):
        err = PaydAnchorError("boom")
        assert err.message == "boom"
        assert err.code == "PAYD_ANCHOR_ERROR"
        assert err.details == {}
        assert str(err) == "[PAYD_ANCHOR_ERROR] boom"

    def test_to_dict_shape(self):
        err = UnsupportedAnchorError("anchor.example.com", "SEP-10 authentication")
        as_dict = err.to_dict()
        assert as_dict["error"]["code"] == "ANCHOR_UNSUPPORTED"
        assert as_dict["error"]["details"] == {
            "domain": "anchor.example.com",
            "capability": "SEP-10 authentication",
        }

    def test_subclass_codes(self):
        assert DiscoveryError("a.example", "gone").code == "DISCOVERY_FAILED"
        assert AuthenticationError("a.example", "no", step="sign").details["step"] == "sign"


class TestSettlementError:
    def test_from_response_prefers_error_field(self):
        err = SettlementError.from_response(
            "a.example", 400, {"error": "invalid receiver", "message": "ignored"},
        )
        assert err.detail == "invalid receiver"
        assert err.message == "Anchor a.example rejected the request (400): invalid receiver"

    def test_from_response_keeps_structured_body(self):
        body = {"type": "customer_info_needed", "fields": {"receiver_routing_number": {}}}
        err = SettlementError.from_response("a.example", 400, body)
        assert err.detail == body

    @pytest.mark.parametrize("status,rejected", [(401, True), (403, True), (400, False), (None, False)])
    def test_token_rejected(self, status, rejected):
        assert SettlementError("m", status_code=status).token_rejected is rejected


class TestModels:
    def test_endpoint_info_is_frozen(self):
        info = EndpointInfo(domain="a.example")
        with pytest.raises(ValidationError):
            info.token = "jwt"
        assert info.with_token("jwt").token == "jwt"

    def test_record_from_envelope_and_bare_body(self):
        wrapped = SettlementRecord.from_response({"transaction": {"id": "t1", "status": "completed"}})
        bare = SettlementRecord.from_response({"id": "t1", "status": "completed"})
        assert wrapped == bare
        assert wrapped.is_terminal is True

    def test_record_keeps_unknown_fields(self):
        record = SettlementRecord.from_response({"id": "t1", "refunds": {"amount_refunded": "10"}})
        assert record.to_dict()["refunds"] == {"amount_refunded": "10"}

    def test_record_without_status_keeps_it_unset(self):
        record = SettlementRecord.from_response({"id": "t1"})
        assert record.status is None
        assert record.is_terminal is False
