"""Anchor settlement orchestration and transaction preflight exports."""

from .auth import (
    AlwaysReauthenticate,
    ChallengeAuthenticator,
    ReuseCachedToken,
    TokenPolicy,
)
from .cache import EndpointCache, NoExpiry, TimeToLive
from .config import (
    PaydAnchorConfig,
    StellarNetwork,
    get_config,
    set_config,
)
from .directory import EndpointDirectory, parse_stellar_toml
from .errors import (
    AuthenticationError,
    DiscoveryError,
    FeeStatsError,
    PaydAnchorError,
    SettlementError,
    UnsupportedAnchorError,
)
from .fees import FeeAdvisor, stroops_to_xlm
from .models import (
    BatchBudgetEstimate,
    EndpointInfo,
    FeeRecommendation,
    SettlementPayload,
    SettlementRecord,
    SettlementRequest,
    SettlementStatus,
)
from .orchestrator import PaymentOrchestrator, PreflightReport
from .settlement import SettlementClient
from .signing import SigningIdentity
from .simulation import (
    BatchSummary,
    FallbackOutcome,
    RpcOutcome,
    SimulationError,
    SimulationResult,
    TransactionSimulator,
    summarize_batch,
)

__version__ = "0.1.0"

__all__ = [
    "AlwaysReauthenticate",
    "ChallengeAuthenticator",
    "ReuseCachedToken",
    "TokenPolicy",
    "EndpointCache",
    "NoExpiry",
    "TimeToLive",
    "PaydAnchorConfig",
    "StellarNetwork",
    "get_config",
    "set_config",
    "EndpointDirectory",
    "parse_stellar_toml",
    "AuthenticationError",
    "DiscoveryError",
    "FeeStatsError",
    "PaydAnchorError",
    "SettlementError",
    "UnsupportedAnchorError",
    "FeeAdvisor",
    "stroops_to_xlm",
    "BatchBudgetEstimate",
    "EndpointInfo",
    "FeeRecommendation",
    "SettlementPayload",
    "SettlementRecord",
    "SettlementRequest",
    "SettlementStatus",
    "PaymentOrchestrator",
    "PreflightReport",
    "SettlementClient",
    "SigningIdentity",
    "BatchSummary",
    "FallbackOutcome",
    "RpcOutcome",
    "SimulationError",
    "SimulationResult",
    "TransactionSimulator",
    "summarize_batch",
]
