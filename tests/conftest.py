"""
Pytest configuration and fixtures for payd-anchor tests.
"""
from __future__ import annotations

from typing import Any

import httpx
import pytest

from payd_anchor.cache import EndpointCache
from payd_anchor.config import PaydAnchorConfig, reset_config, set_config
from payd_anchor.directory import EndpointDirectory

ACCOUNT = "GBZXN7PIRZGNMHGA7MUUUF4GWPY5AYPV6LY4UV2GL6VJGIQRXFDNMADI"

STELLAR_TOML = """\
# Anchor metadata
VERSION = "2.0.0"
NETWORK_PASSPHRASE = "Test SDF Network ; September 2015"
SIGNING_KEY = "GCKFBEIYV2U22IO2BJ4KVJOIP7XPWQGQFKKWXR6DOSJBV7STMAQSMTGG"
WEB_AUTH_ENDPOINT = "https://anchor.example.com/auth"
TRANSFER_SERVER = "https://anchor.example.com/sep6/"
TRANSFER_SERVER_SEP0031 = "https://anchor.example.com/sep31/"

[[CURRENCIES]]
code = "USDC"
issuer = "GBBD47IF6LWK7P7MDEVSCWR7DPUWV3NY3DTQEVFL4NAT4AQH3ZLLFLA5"
"""

# Same anchor without a SEP-10 endpoint
STELLAR_TOML_NO_AUTH = """\
NETWORK_PASSPHRASE = "Test SDF Network ; September 2015"
TRANSFER_SERVER_SEP0031 = "https://anchor.example.com/sep31"
"""

FEE_STATS = {
    "last_ledger": "51234567",
    "last_ledger_base_fee": "100",
    "ledger_capacity_usage": "0.10",
    "fee_charged": {
        "max": "10000",
        "min": "100",
        "mode": "100",
        "p10": "100",
        "p20": "100",
        "p30": "100",
        "p40": "110",
        "p50": "150",
        "p60": "175",
        "p70": "200",
        "p80": "250",
        "p90": "300",
        "p95": "400",
        "p99": "800",
    },
    "max_fee": {
        "max": "100000",
        "min": "100",
        "mode": "100",
        "p10": "100",
        "p20": "100",
        "p30": "100",
        "p40": "100",
        "p50": "100",
        "p60": "1000",
        "p70": "1000",
        "p80": "2000",
        "p90": "5000",
        "p95": "10000",
        "p99": "50000",
    },
}


class FakeSigner:
    """SigningIdentity that records what it was asked to sign."""

    def __init__(self, public_key: str = ACCOUNT, error: Exception | None = None):
        self._public_key = public_key
        self._error = error
        self.calls: list[tuple[str, str]] = []

    @property
    def public_key(self) -> str:
        return self._public_key

    def sign_challenge(self, envelope_xdr: str, network_passphrase: str) -> str:
        self.calls.append((envelope_xdr, network_passphrase))
        if self._error is not None:
            raise self._error
        return f"signed:{envelope_xdr}"


@pytest.fixture(autouse=True)
def config() -> PaydAnchorConfig:
    """Isolated global configuration with built-in defaults."""
    cfg = PaydAnchorConfig()
    set_config(cfg)
    yield cfg
    reset_config()


@pytest.fixture
async def http_client() -> httpx.AsyncClient:
    """Shared client, as the orchestrator would pass to each component."""
    async with httpx.AsyncClient() as client:
        yield client


@pytest.fixture
def directory(config, http_client) -> EndpointDirectory:
    return EndpointDirectory(
        cache=EndpointCache(),
        config=config.discovery,
        http_client=http_client,
        http_config=config.http,
    )


@pytest.fixture
def signer() -> FakeSigner:
    return FakeSigner()


@pytest.fixture
def fee_stats() -> dict[str, Any]:
    """Fresh copy of a Horizon /fee_stats body."""
    body = dict(FEE_STATS)
    body["fee_charged"] = dict(FEE_STATS["fee_charged"])
    return body


@pytest.fixture
def mock_stellar_toml(httpx_mock):
    """Register the anchor's stellar.toml once."""
    def register(text: str = STELLAR_TOML, domain: str = "anchor.example.com", status_code: int = 200):
        httpx_mock.add_response(
            url=f"https://{domain}/.well-known/stellar.toml",
            method="GET",
            text=text,
            status_code=status_code,
        )
    return register


@pytest.fixture
def account() -> str:
    return ACCOUNT


@pytest.fixture
def make_signer():
    """Factory for signers with a given key or signing failure."""
    return FakeSigner


@pytest.fixture
def toml_without_auth() -> str:
    return STELLAR_TOML_NO_AUTH
