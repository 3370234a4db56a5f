"""
Fee advisor for payroll transactions.

Reads Horizon's ``/fee_stats`` and turns it into:
- a congestion classification from ledger capacity usage
- a recommended fee picked from the charged-fee percentiles
- a maximum fee ceiling
- batch budgets with a congestion-dependent safety margin

Fees are integer stroops; XLM renderings use a fixed 10,000,000 divisor
and seven decimals.
"""
from __future__ import annotations

import logging
from decimal import ROUND_CEILING, Decimal
from typing import Optional

import httpx
from pydantic import ValidationError

from .config import STROOPS_PER_XLM, FeeAdvisorConfig, HttpConfig, get_config
from .errors import FeeStatsError
from .http import HttpClientOwner
from .logging_utils import OperationLogger, OperationType
from .models import BatchBudgetEstimate, CongestionLevel, FeeRecommendation, FeeStats

logger = logging.getLogger(__name__)

# Charged-fee percentile used for the recommendation at each congestion level
RECOMMENDED_PERCENTILE: dict[str, str] = {
    "low": "p50",
    "moderate": "p70",
    "high": "p95",
}


def stroops_to_xlm(stroops: int) -> str:
    """Render a stroop amount as XLM with seven decimals."""
    value = Decimal(stroops) / Decimal(STROOPS_PER_XLM)
    return f"{value:.7f}"


def classify_congestion(
    usage: float,
    config: Optional[FeeAdvisorConfig] = None,
) -> CongestionLevel:
    """
    Derive a congestion level from ledger capacity usage.

    - < 0.25 -> low
    - < 0.75 -> moderate
    - otherwise high
    """
    config = config or FeeAdvisorConfig()
    if usage < config.low_congestion_threshold:
        return "low"
    if usage < config.high_congestion_threshold:
        return "moderate"
    return "high"


def safety_margin(level: CongestionLevel, config: Optional[FeeAdvisorConfig] = None) -> Decimal:
    config = config or FeeAdvisorConfig()
    return {
        "low": config.low_margin,
        "moderate": config.moderate_margin,
        "high": config.high_margin,
    }[level]


def build_recommendation(
    stats: FeeStats,
    config: Optional[FeeAdvisorConfig] = None,
) -> FeeRecommendation:
    """Turn raw fee statistics into a FeeRecommendation."""
    base_fee = stats.last_ledger_base_fee
    congestion = classify_congestion(stats.ledger_capacity_usage, config)

    percentile = RECOMMENDED_PERCENTILE[congestion]
    # Never recommend below the network's base fee
    recommended = max(getattr(stats.fee_charged, percentile), base_fee)
    max_fee = max(stats.fee_charged.p99, recommended)

    return FeeRecommendation(
        base_fee=base_fee,
        recommended_fee=recommended,
        max_fee=max_fee,
        congestion_level=congestion,
        should_bump_fee=congestion == "high",
        ledger_capacity_usage=min(max(stats.ledger_capacity_usage, 0.0), 1.0),
        last_ledger=stats.last_ledger,
        recommended_fee_xlm=stroops_to_xlm(recommended),
        max_fee_xlm=stroops_to_xlm(max_fee),
        base_fee_xlm=stroops_to_xlm(base_fee),
    )


def build_batch_estimate(
    recommendation: FeeRecommendation,
    transaction_count: int,
    config: Optional[FeeAdvisorConfig] = None,
) -> BatchBudgetEstimate:
    """Budget ``transaction_count`` transactions at the recommended fee plus margin."""
    if transaction_count < 0:
        raise ValueError("transaction_count must not be negative")

    margin = safety_margin(recommendation.congestion_level, config)
    fee_per_tx = int(
        (Decimal(recommendation.recommended_fee) * margin).to_integral_value(rounding=ROUND_CEILING)
    )
    total = fee_per_tx * transaction_count

    return BatchBudgetEstimate(
        transaction_count=transaction_count,
        fee_per_transaction=fee_per_tx,
        total_budget=total,
        total_budget_xlm=stroops_to_xlm(total),
        fee_per_transaction_xlm=stroops_to_xlm(fee_per_tx),
        safety_margin=float(margin),
        congestion_level=recommendation.congestion_level,
    )


class FeeAdvisor(HttpClientOwner):
    """
    Fee recommendations from live ledger statistics.

    Every call fetches fresh statistics. Failures surface as FeeStatsError;
    no default fees are substituted.
    """

    def __init__(
        self,
        horizon_url: Optional[str] = None,
        config: Optional[FeeAdvisorConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        http_config: Optional[HttpConfig] = None,
        op_logger: Optional[OperationLogger] = None,
    ):
        super().__init__(http_client, http_config)
        self._horizon_url = (horizon_url or get_config().horizon_url).rstrip("/")
        self._config = config or get_config().fees
        self._op_logger = op_logger or OperationLogger(__name__)

    @property
    def fee_stats_url(self) -> str:
        return f"{self._horizon_url}/fee_stats"

    async def fetch_fee_stats(self) -> FeeStats:
        """Fetch and validate the raw /fee_stats body."""
        url = self.fee_stats_url
        async with self._op_logger.operation_context(OperationType.FEE_STATS, self._horizon_url):
            client = await self._get_client()
            try:
                response = await client.get(url)
            except httpx.HTTPError as e:
                raise FeeStatsError(f"Horizon fee_stats request failed: {e}") from e

            if response.status_code >= 400:
                raise FeeStatsError(
                    f"Horizon fee_stats request failed: {response.status_code} "
                    f"{response.reason_phrase}",
                    status_code=response.status_code,
                )

            try:
                return FeeStats.model_validate(response.json())
            except (ValueError, ValidationError) as e:
                raise FeeStatsError(
                    f"Horizon fee_stats response could not be read: {e}",
                    status_code=response.status_code,
                ) from e

    async def get_recommendation(self) -> FeeRecommendation:
        """Fetch fee stats and return a processed recommendation."""
        stats = await self.fetch_fee_stats()
        recommendation = build_recommendation(stats, self._config)
        logger.debug(
            f"Fee recommendation at ledger {recommendation.last_ledger}: "
            f"{recommendation.recommended_fee} stroops ({recommendation.congestion_level})"
        )
        return recommendation

    async def estimate_batch(self, transaction_count: int) -> BatchBudgetEstimate:
        """Estimate the total fee budget for a batch of transactions."""
        if transaction_count < 0:
            raise ValueError("transaction_count must not be negative")
        recommendation = await self.get_recommendation()
        return build_batch_estimate(recommendation, transaction_count, self._config)
