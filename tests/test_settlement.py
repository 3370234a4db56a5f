"""
Tests for the SEP-31 settlement client.
"""
import json

import httpx
import pytest

from payd_anchor.errors import AuthenticationError, SettlementError, UnsupportedAnchorError
from payd_anchor.models import SettlementPayload
from payd_anchor.settlement import SettlementClient

SEP31_URL = "https://anchor.example.com/sep31"

PENDING_RECORD = {
    "id": "82fhs729f63dh0v4",
    "status": "pending_receiver",
    "amount_in": "100.00",
    "amount_out": "98.50",
    "amount_fee": "1.50",
    "stellar_account_id": "GACW7NONV43MZIFHCOKCQJAKSJSISSICFVUJ2C6EZIW5773OU3HD64VI",
    "stellar_memo_type": "hash",
    "stellar_memo": "YWJjZGVmZ2hpamtsbW5vcA==",
    "started_at": "2026-10-17T09:00:00Z",
    "required_info_message": None,
}


@pytest.fixture
def settlements(directory, http_client):
    return SettlementClient(directory, http_client=http_client)


@pytest.fixture
def payload():
    return SettlementPayload(
        amount="100.00",
        asset_code="USDC",
        asset_issuer="GBBD47IF6LWK7P7MDEVSCWR7DPUWV3NY3DTQEVFL4NAT4AQH3ZLLFLA5",
        receiver_id="391fb415-c223-4608-b2f5-dd1e91e3a986",
        sender_id="d2bd1412-e2f6-4047-ad70-a1a2f133b25c",
    )


class TestCapabilities:
    async def test_get_capabilities(self, settlements, mock_stellar_toml, httpx_mock):
        mock_stellar_toml()
        httpx_mock.add_response(
            url=f"{SEP31_URL}/info",
            method="GET",
            json={"receive": {"USDC": {"enabled": True, "min_amount": 1, "max_amount": 1000}}},
        )

        info = await settlements.get_capabilities("anchor.example.com")

        assert info["receive"]["USDC"]["max_amount"] == 1000

    async def test_anchor_without_sep31(self, settlements, mock_stellar_toml, httpx_mock):
        mock_stellar_toml('WEB_AUTH_ENDPOINT = "https://anchor.example.com/auth"\n')

        with pytest.raises(UnsupportedAnchorError) as exc_info:
            await settlements.get_capabilities("anchor.example.com")

        assert exc_info.value.capability == "SEP-31 settlement"
        assert len(httpx_mock.get_requests()) == 1

    async def test_malformed_info(self, settlements, mock_stellar_toml, httpx_mock):
        mock_stellar_toml()
        httpx_mock.add_response(url=f"{SEP31_URL}/info", method="GET", json=["USDC"])

        with pytest.raises(SettlementError, match="malformed"):
            await settlements.get_capabilities("anchor.example.com")


class TestInitiate:
    """Tests for POST /transactions."""

    async def test_initiate(self, settlements, payload, mock_stellar_toml, httpx_mock):
        mock_stellar_toml()
        httpx_mock.add_response(
            url=f"{SEP31_URL}/transactions",
            method="POST",
            status_code=201,
            json={
                "id": "82fhs729f63dh0v4",
                "stellar_account_id": "GACW7NONV43MZIFHCOKCQJAKSJSISSICFVUJ2C6EZIW5773OU3HD64VI",
                "stellar_memo_type": "hash",
                "stellar_memo": "YWJjZGVmZ2hpamtsbW5vcA==",
            },
        )

        record = await settlements.initiate("anchor.example.com", "jwt-token-1", payload)

        assert record.id == "82fhs729f63dh0v4"
        assert record.status is None
        assert record.stellar_memo_type == "hash"

        request = httpx_mock.get_requests()[-1]
        assert request.headers["Authorization"] == "Bearer jwt-token-1"
        body = json.loads(request.content)
        assert body["asset_code"] == "USDC"
        assert body["amount"] == "100.00"
        assert "memo" not in body

    async def test_initiate_passes_mapping_through(self, settlements, mock_stellar_toml, httpx_mock):
        mock_stellar_toml()
        httpx_mock.add_response(
            url=f"{SEP31_URL}/transactions",
            method="POST",
            json={"id": "tx-2"},
        )
        payload = {
            "amount": "10",
            "asset_code": "USDC",
            "receiver_id": "r-1",
            "fields": {"transaction": {"receiver_routing_number": "121000358"}},
        }

        await settlements.initiate("anchor.example.com", "jwt", payload)

        body = json.loads(httpx_mock.get_requests()[-1].content)
        assert body == payload

    async def test_initiate_requires_token(self, settlements, payload, mock_stellar_toml, httpx_mock):
        mock_stellar_toml()

        with pytest.raises(AuthenticationError):
            await settlements.initiate("anchor.example.com", "", payload)

        assert all(r.method == "GET" for r in httpx_mock.get_requests())

    async def test_rejected_token(self, settlements, payload, mock_stellar_toml, httpx_mock):
        mock_stellar_toml()
        httpx_mock.add_response(
            url=f"{SEP31_URL}/transactions",
            method="POST",
            status_code=403,
            json={"type": "authentication_required"},
        )

        with pytest.raises(SettlementError) as exc_info:
            await settlements.initiate("anchor.example.com", "expired", payload)

        assert exc_info.value.token_rejected is True
        assert exc_info.value.status_code == 403

    async def test_rejected_payload_carries_anchor_detail(
        self, settlements, payload, mock_stellar_toml, httpx_mock,
    ):
        mock_stellar_toml()
        httpx_mock.add_response(
            url=f"{SEP31_URL}/transactions",
            method="POST",
            status_code=400,
            json={"error": "customer_info_needed"},
        )

        with pytest.raises(SettlementError) as exc_info:
            await settlements.initiate("anchor.example.com", "jwt", payload)

        error = exc_info.value
        assert error.token_rejected is False
        assert error.detail == "customer_info_needed"
        assert error.message == (
            "Anchor anchor.example.com rejected the request (400): customer_info_needed"
        )

    async def test_server_error_with_text_body(self, settlements, payload, mock_stellar_toml, httpx_mock):
        mock_stellar_toml()
        httpx_mock.add_response(
            url=f"{SEP31_URL}/transactions",
            method="POST",
            status_code=502,
            text="Bad Gateway",
        )

        with pytest.raises(SettlementError) as exc_info:
            await settlements.initiate("anchor.example.com", "jwt", payload)

        assert exc_info.value.status_code == 502
        assert exc_info.value.detail == "Bad Gateway"

    async def test_transport_error(self, settlements, payload, mock_stellar_toml, httpx_mock):
        mock_stellar_toml()
        httpx_mock.add_exception(httpx.ReadTimeout("read timed out"), url=f"{SEP31_URL}/transactions")

        with pytest.raises(SettlementError) as exc_info:
            await settlements.initiate("anchor.example.com", "jwt", payload)

        assert exc_info.value.status_code is None


class TestStatus:
    """Tests for GET /transactions/<id>."""

    async def test_get_status_is_repeatable(self, settlements, mock_stellar_toml, httpx_mock):
        mock_stellar_toml()
        for _ in range(2):
            httpx_mock.add_response(
                url=f"{SEP31_URL}/transactions/82fhs729f63dh0v4",
                method="GET",
                json={"transaction": PENDING_RECORD},
            )

        first = await settlements.get_status("anchor.example.com", "jwt", "82fhs729f63dh0v4")
        second = await settlements.get_status("anchor.example.com", "jwt", "82fhs729f63dh0v4")

        assert first == second
        assert first.status == "pending_receiver"
        assert first.amount_fee == "1.50"
        assert first.is_terminal is False

    async def test_unknown_status_is_kept(self, settlements, mock_stellar_toml, httpx_mock):
        mock_stellar_toml()
        httpx_mock.add_response(
            url=f"{SEP31_URL}/transactions/tx-9",
            method="GET",
            json={"transaction": {"id": "tx-9", "status": "pending_compliance_review"}},
        )

        record = await settlements.get_status("anchor.example.com", "jwt", "tx-9")

        assert record.status == "pending_compliance_review"

    async def test_record_without_id(self, settlements, mock_stellar_toml, httpx_mock):
        mock_stellar_toml()
        httpx_mock.add_response(
            url=f"{SEP31_URL}/transactions/tx-9",
            method="GET",
            json={"transaction": {"status": "completed"}},
        )

        with pytest.raises(SettlementError, match="malformed"):
            await settlements.get_status("anchor.example.com", "jwt", "tx-9")

    async def test_not_found(self, settlements, mock_stellar_toml, httpx_mock):
        mock_stellar_toml()
        httpx_mock.add_response(
            url=f"{SEP31_URL}/transactions/missing",
            method="GET",
            status_code=404,
            json={"error": "transaction not found"},
        )

        with pytest.raises(SettlementError) as exc_info:
            await settlements.get_status("anchor.example.com", "jwt", "missing")

        assert exc_info.value.status_code == 404
        assert exc_info.value.detail == "transaction not found"


class TestWaitForStatus:
    async def test_polls_until_terminal(self, settlements, mock_stellar_toml, httpx_mock):
        mock_stellar_toml()
        for status in ("pending_receiver", "pending_external", "completed"):
            httpx_mock.add_response(
                url=f"{SEP31_URL}/transactions/tx-1",
                method="GET",
                json={"transaction": {"id": "tx-1", "status": status}},
            )

        record = await settlements.wait_for_status(
            "anchor.example.com", "jwt", "tx-1", interval_seconds=0,
        )

        assert record.status == "completed"
        assert record.is_terminal is True
        assert len(httpx_mock.get_requests()) == 4

    async def test_gives_up_after_max_polls(self, settlements, mock_stellar_toml, httpx_mock):
        mock_stellar_toml()
        for _ in range(2):
            httpx_mock.add_response(
                url=f"{SEP31_URL}/transactions/tx-1",
                method="GET",
                json={"transaction": {"id": "tx-1", "status": "pending_receiver"}},
            )

        with pytest.raises(SettlementError, match="still pending_receiver"):
            await settlements.wait_for_status(
                "anchor.example.com", "jwt", "tx-1", interval_seconds=0, max_polls=2,
            )

    async def test_custom_terminal_statuses(self, settlements, mock_stellar_toml, httpx_mock):
        mock_stellar_toml()
        httpx_mock.add_response(
            url=f"{SEP31_URL}/transactions/tx-1",
            method="GET",
            json={"transaction": {"id": "tx-1", "status": "pending_customer_info_update"}},
        )

        record = await settlements.wait_for_status(
            "anchor.example.com",
            "jwt",
            "tx-1",
            terminal={"pending_customer_info_update"},
            interval_seconds=0,
        )

        assert record.status == "pending_customer_info_update"
