"""
Configuration management for payd-anchor.

Provides centralized configuration for:
- Ledger network selection and passphrases
- Horizon (ledger API) and contract-simulation RPC URLs
- HTTP timeouts
- Anchor discovery caching
- Fee advisor safety margins
- Transaction simulation behaviour
- Logging levels

Values can be overridden with environment variables prefixed
``PAYD_ANCHOR_``. The unprefixed ``STELLAR_*`` names are also honoured.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

ENV_PREFIX = "PAYD_ANCHOR_"


class StellarNetwork(str, Enum):
    """Supported ledger networks."""
    PUBLIC = "public"
    TESTNET = "testnet"
    FUTURENET = "futurenet"


NETWORK_PASSPHRASES: Dict[StellarNetwork, str] = {
    StellarNetwork.PUBLIC: "Public Global Stellar Network ; September 2015",
    StellarNetwork.TESTNET: "Test SDF Network ; September 2015",
    StellarNetwork.FUTURENET: "Test SDF Future Network ; October 2022",
}

DEFAULT_HORIZON_URLS: Dict[StellarNetwork, str] = {
    StellarNetwork.PUBLIC: "https://horizon.stellar.org",
    StellarNetwork.TESTNET: "https://horizon-testnet.stellar.org",
    StellarNetwork.FUTURENET: "https://horizon-futurenet.stellar.org",
}

DEFAULT_RPC_URLS: Dict[StellarNetwork, str] = {
    StellarNetwork.PUBLIC: "https://mainnet.sorobanrpc.com",
    StellarNetwork.TESTNET: "https://soroban-testnet.stellar.org",
    StellarNetwork.FUTURENET: "https://rpc-futurenet.stellar.org",
}

# 1 XLM = 10,000,000 stroops
STROOPS_PER_XLM = 10_000_000


@dataclass
class HttpConfig:
    """Configuration for outbound HTTP calls."""
    timeout_seconds: float = 30.0
    connect_timeout_seconds: float = 10.0
    user_agent: str = "payd-anchor/0.1.0"


@dataclass
class DiscoveryConfig:
    """Configuration for anchor endpoint discovery."""
    well_known_path: str = "/.well-known/stellar.toml"
    scheme: str = "https"

    # None = entries live until invalidated or the process exits
    cache_ttl_seconds: Optional[float] = None


@dataclass
class FeeAdvisorConfig:
    """Configuration for fee recommendations."""
    low_congestion_threshold: float = 0.25
    high_congestion_threshold: float = 0.75

    # Safety margin multipliers applied to batch budgets
    low_margin: Decimal = Decimal("1.0")
    moderate_margin: Decimal = Decimal("1.2")
    high_margin: Decimal = Decimal("1.5")


@dataclass
class SimulationConfig:
    """Configuration for pre-submission transaction simulation."""
    rpc_enabled: bool = True

    # The ledger fallback really submits; a 2xx there means the tx went live
    allow_live_submission: bool = True

    # 0 = simulate every envelope of a batch at once
    max_concurrent_simulations: int = 0


@dataclass
class LoggingConfig:
    """Configuration for operation logging."""
    operation_level: str = "DEBUG"
    error_level: str = "WARNING"
    mask_accounts: bool = True


@dataclass
class PaydAnchorConfig:
    """
    Master configuration for payd-anchor.

    Supports loading from environment variables with prefix PAYD_ANCHOR_.
    """
    network: StellarNetwork = StellarNetwork.TESTNET
    horizon_url: str = DEFAULT_HORIZON_URLS[StellarNetwork.TESTNET]
    rpc_url: str = DEFAULT_RPC_URLS[StellarNetwork.TESTNET]

    http: HttpConfig = field(default_factory=HttpConfig)
    discovery: DiscoveryConfig = field(default_factory=DiscoveryConfig)
    fees: FeeAdvisorConfig = field(default_factory=FeeAdvisorConfig)
    simulation: SimulationConfig = field(default_factory=SimulationConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def network_passphrase(self) -> str:
        """Passphrase of the configured network."""
        return NETWORK_PASSPHRASES[self.network]

    def to_dict(self) -> Dict[str, Any]:
        """Summary used by the CLI status output."""
        return {
            "network": self.network.value,
            "network_passphrase": self.network_passphrase,
            "horizon_url": self.horizon_url,
            "rpc_url": self.rpc_url,
            "http_timeout_seconds": self.http.timeout_seconds,
            "discovery_cache_ttl_seconds": self.discovery.cache_ttl_seconds,
            "rpc_enabled": self.simulation.rpc_enabled,
            "allow_live_submission": self.simulation.allow_live_submission,
        }


def _get_env(key: str, default: Any = None, prefix: str = ENV_PREFIX) -> Any:
    """Get environment variable with prefix, then the unprefixed STELLAR_ name."""
    value = os.getenv(f"{prefix}{key}")
    if value is None:
        value = os.getenv(f"STELLAR_{key}")
    return value if value is not None else default


def _get_env_bool(key: str, default: bool) -> bool:
    value = _get_env(key)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _get_env_float(key: str, default: Optional[float]) -> Optional[float]:
    value = _get_env(key)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning(f"Ignoring non-numeric {ENV_PREFIX}{key}={value!r}")
        return default


def _parse_network(value: Optional[str]) -> StellarNetwork:
    if not value:
        return StellarNetwork.TESTNET
    try:
        return StellarNetwork(value.strip().lower())
    except ValueError:
        logger.warning(f"Unknown network {value!r}, falling back to testnet")
        return StellarNetwork.TESTNET


def build_default_config() -> PaydAnchorConfig:
    """Build configuration from defaults and environment overrides."""
    network = _parse_network(_get_env("NETWORK"))

    horizon_url = _get_env("HORIZON_URL") or DEFAULT_HORIZON_URLS[network]
    rpc_url = _get_env("RPC_URL") or DEFAULT_RPC_URLS[network]

    http = HttpConfig(
        timeout_seconds=_get_env_float("HTTP_TIMEOUT_SECONDS", 30.0) or 30.0,
    )
    discovery = DiscoveryConfig(
        cache_ttl_seconds=_get_env_float("DISCOVERY_CACHE_TTL_SECONDS", None),
    )
    simulation = SimulationConfig(
        rpc_enabled=_get_env_bool("SIMULATION_RPC_ENABLED", True),
        allow_live_submission=_get_env_bool("ALLOW_LIVE_SUBMISSION", True),
        max_concurrent_simulations=int(
            _get_env_float("MAX_CONCURRENT_SIMULATIONS", 0) or 0
        ),
    )

    return PaydAnchorConfig(
        network=network,
        horizon_url=horizon_url.rstrip("/"),
        rpc_url=rpc_url.rstrip("/"),
        http=http,
        discovery=discovery,
        simulation=simulation,
    )


# Global configuration instance
_global_config: Optional[PaydAnchorConfig] = None


def get_config() -> PaydAnchorConfig:
    """Get the global configuration instance."""
    global _global_config
    if _global_config is None:
        _global_config = build_default_config()
    return _global_config


def set_config(config: PaydAnchorConfig) -> None:
    """Set the global configuration instance."""
    global _global_config
    _global_config = config


def reset_config() -> None:
    """Drop the global configuration so the next call rebuilds it."""
    global _global_config
    _global_config = None
