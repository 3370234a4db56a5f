"""
Payment orchestration across anchors.

Wires the directory, authenticator, settlement client, fee advisor and
simulator into the flows the payroll app calls:

- ``get_anchor_info``: SEP-31 capabilities of an anchor
- ``send_payment``: authenticate (or reuse a token) and initiate a settlement
- ``check_status``: authenticate (or reuse a token) and fetch a settlement
- ``preflight``: budget the fees of ledger envelopes, then simulate them

Components are constructed once and shared; there is no module-level state
besides the optional global configuration.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

import httpx

from .auth import ChallengeAuthenticator, TokenPolicy
from .cache import EndpointCache, policy_from_ttl
from .config import PaydAnchorConfig, get_config
from .directory import EndpointDirectory
from .fees import FeeAdvisor
from .models import BatchBudgetEstimate, SettlementRecord
from .settlement import PayloadLike, SettlementClient
from .signing import SigningIdentity
from .simulation import BatchSummary, SimulationResult, TransactionSimulator, summarize_batch

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PreflightReport:
    """Simulation verdicts and fee budget for a batch of envelopes."""
    summary: BatchSummary
    budget: BatchBudgetEstimate

    @property
    def results(self) -> tuple[SimulationResult, ...]:
        return self.summary.results

    @property
    def ready(self) -> bool:
        """True when every envelope passed simulation."""
        return self.summary.all_passed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ready": self.ready,
            "summary": self.summary.to_dict(),
            "results": [r.to_dict() for r in self.summary.results],
            "budget": self.budget.to_dict(),
        }


class PaymentOrchestrator:
    """
    Entry point for cross-anchor payroll payments.

    Args:
        config: Settings; defaults to the global configuration.
        http_client: Shared httpx client for all components. When omitted,
            one is created and closed by ``aclose()``.
        token_policy: When to reuse cached anchor tokens.
        cache: Endpoint cache to share with other orchestrators.
    """

    def __init__(
        self,
        config: Optional[PaydAnchorConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        token_policy: Optional[TokenPolicy] = None,
        cache: Optional[EndpointCache] = None,
    ):
        self._config = config or get_config()
        self._owns_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(
                self._config.http.timeout_seconds,
                connect=self._config.http.connect_timeout_seconds,
            ),
            headers={"User-Agent": self._config.http.user_agent},
            follow_redirects=True,
        )

        cache = cache or EndpointCache(policy_from_ttl(self._config.discovery.cache_ttl_seconds))
        self.directory = EndpointDirectory(
            cache=cache,
            config=self._config.discovery,
            http_client=self._http_client,
            http_config=self._config.http,
        )
        self.authenticator = ChallengeAuthenticator(
            self.directory,
            token_policy=token_policy,
            config=self._config,
            http_client=self._http_client,
        )
        self.settlements = SettlementClient(
            self.directory,
            http_client=self._http_client,
            http_config=self._config.http,
        )
        self.fees = FeeAdvisor(
            horizon_url=self._config.horizon_url,
            config=self._config.fees,
            http_client=self._http_client,
            http_config=self._config.http,
        )
        self.simulator = TransactionSimulator(
            rpc_url=self._config.rpc_url,
            horizon_url=self._config.horizon_url,
            config=self._config.simulation,
            http_client=self._http_client,
            http_config=self._config.http,
        )

    async def get_anchor_info(self, domain: str) -> Dict[str, Any]:
        """SEP-31 /info for ``domain``."""
        return await self.settlements.get_capabilities(domain)

    async def send_payment(
        self,
        domain: str,
        identity: SigningIdentity,
        payload: PayloadLike,
    ) -> SettlementRecord:
        """
        Authenticate with the anchor and initiate a settlement.

        A token rejected by the anchor is raised as SettlementError with
        ``token_rejected`` set. The settlement is not retried, since a
        second POST could create a duplicate.
        """
        token = await self.authenticator.get_token(domain, identity)
        return await self.settlements.initiate(domain, token, payload)

    async def check_status(
        self,
        domain: str,
        identity: SigningIdentity,
        settlement_id: str,
    ) -> SettlementRecord:
        """Fetch the current record of a settlement."""
        token = await self.authenticator.get_token(domain, identity)
        return await self.settlements.get_status(domain, token, settlement_id)

    async def preflight(self, envelopes: Sequence[str]) -> PreflightReport:
        """
        Estimate the fee budget for ``envelopes``, then simulate them.

        The budget comes first: the simulator's ledger fallback may submit
        live, so nothing is simulated when the fee statistics are unavailable.

        Raises:
            FeeStatsError: If fee statistics cannot be fetched. No envelope
                has been sent anywhere at that point.
        """
        budget = await self.fees.estimate_batch(len(envelopes))
        results = await self.simulator.simulate_batch(envelopes)
        summary = summarize_batch(results)
        if not summary.all_passed:
            logger.info(
                f"Preflight: {summary.failed_count}/{len(envelopes)} envelopes "
                f"would fail ({summary.total_errors} errors)"
            )
        return PreflightReport(summary=summary, budget=budget)

    async def aclose(self) -> None:
        if self._owns_client and not self._http_client.is_closed:
            await self._http_client.aclose()

    async def __aenter__(self) -> "PaymentOrchestrator":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()
