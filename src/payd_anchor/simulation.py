"""
Pre-submission transaction simulation.

Two steps, run in order for each envelope:

1. Contract-simulation RPC: JSON-RPC ``simulateTransaction``. A true dry run.
   Any answer it gives is final. If the RPC cannot be reached, step 2 runs.
2. Ledger submission: form-encoded ``tx=<xdr>`` to Horizon ``/transactions``.
   Horizon has no dry-run mode for classic transactions, so a 2xx here means
   the transaction was really submitted; that is reported as a warning.

Each step returns a tagged outcome (RpcOutcome / FallbackOutcome) wrapping
the SimulationResult, so callers can tell which path produced a verdict.
Results always carry a readable title and description, including for
result codes we have no translation for.
"""
from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional, Sequence, Union

import httpx

from .config import HttpConfig, SimulationConfig, get_config
from .error_codes import SUCCESS_CODES, humanize_error_code, match_error_code
from .http import HttpClientOwner
from .logging_utils import OperationLogger, OperationType

logger = logging.getLogger(__name__)

Severity = Literal["success", "warning", "error"]

DEFAULT_UNKNOWN_MESSAGE = "An unknown error occurred during simulation. Please try again."


@dataclass(frozen=True)
class SimulationError:
    """A single problem found by a simulation."""
    code: str
    message: str
    operation_index: Optional[int] = None
    severity: Severity = "error"

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "code": self.code,
            "message": self.message,
            "severity": self.severity,
        }
        if self.operation_index is not None:
            data["operation_index"] = self.operation_index
        return data


@dataclass(frozen=True)
class SimulationResult:
    """Verdict of simulating one transaction envelope."""
    success: bool
    severity: Severity
    title: str
    description: str
    envelope_xdr: str
    errors: tuple[SimulationError, ...] = ()
    simulated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    hash: Optional[str] = None
    fee: Optional[int] = None

    def __post_init__(self) -> None:
        if not isinstance(self.errors, tuple):
            object.__setattr__(self, "errors", tuple(self.errors))
        if self.success != (len(self.errors) == 0):
            raise ValueError("success must be True exactly when there are no errors")

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "success": self.success,
            "severity": self.severity,
            "title": self.title,
            "description": self.description,
            "errors": [e.to_dict() for e in self.errors],
            "envelope_xdr": self.envelope_xdr,
            "simulated_at": self.simulated_at.isoformat(),
        }
        if self.hash is not None:
            data["hash"] = self.hash
        if self.fee is not None:
            data["fee"] = self.fee
        return data


@dataclass(frozen=True)
class RpcOutcome:
    """Verdict produced by the contract-simulation RPC."""
    result: SimulationResult
    source: Literal["rpc"] = "rpc"


@dataclass(frozen=True)
class FallbackOutcome:
    """Verdict produced by the ledger submission fallback."""
    result: SimulationResult
    rpc_failure: Optional[str] = None
    source: Literal["ledger"] = "ledger"


SimulationOutcome = Union[RpcOutcome, FallbackOutcome]


@dataclass(frozen=True)
class BatchSummary:
    """Aggregate of a batch of simulation results."""
    all_passed: bool
    passed_count: int
    failed_count: int
    total_errors: int
    results: tuple[SimulationResult, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "all_passed": self.all_passed,
            "passed_count": self.passed_count,
            "failed_count": self.failed_count,
            "total_errors": self.total_errors,
        }


# =====================================================================
# Response interpretation (pure functions, no I/O)
# =====================================================================


def _failed(
    envelope_xdr: str,
    simulated_at: datetime,
    title: str,
    description: str,
    errors: Sequence[SimulationError],
) -> SimulationResult:
    return SimulationResult(
        success=False,
        severity="error",
        title=title,
        description=description,
        envelope_xdr=envelope_xdr,
        errors=tuple(errors),
        simulated_at=simulated_at,
    )


def interpret_rpc_response(
    body: Dict[str, Any],
    envelope_xdr: str,
    simulated_at: datetime,
) -> SimulationResult:
    """
    Turn a ``simulateTransaction`` JSON-RPC response into a verdict.

    Handles:
        - JSON-RPC errors (``error`` member) -> rpc_error_<code>
        - Simulation errors (``result.error``) -> humanized or simulation_error
        - Anything else -> success
    """
    # Any error member counts, even an empty or falsy one
    rpc_error = body.get("error")
    if rpc_error is not None:
        if isinstance(rpc_error, dict):
            code = rpc_error.get("code", "unknown")
            message = str(rpc_error.get("message") or "RPC request failed")
        else:
            code, message = "unknown", str(rpc_error) or "RPC request failed"
        return _failed(
            envelope_xdr,
            simulated_at,
            "Simulation Failed",
            message,
            [SimulationError(code=f"rpc_error_{code}", message=message)],
        )

    result = body.get("result")
    sim_error = result.get("error") if isinstance(result, dict) else None
    if sim_error:
        raw = str(sim_error)
        matched = match_error_code(raw)
        message = humanize_error_code(matched) if matched else raw
        return _failed(
            envelope_xdr,
            simulated_at,
            "Transaction Would Fail",
            message,
            [SimulationError(code=matched or "simulation_error", message=message)],
        )

    return SimulationResult(
        success=True,
        severity="success",
        title="Simulation Passed",
        description=(
            "The transaction was simulated successfully. "
            "It is safe to submit to the network."
        ),
        envelope_xdr=envelope_xdr,
        simulated_at=simulated_at,
    )


def parse_ledger_error(body: Any) -> List[SimulationError]:
    """
    Extract result codes from a Horizon transaction-failure body.

    Order: the transaction-level code first, then one entry per failing
    operation in operation order (``op_success`` entries skipped). Without
    any codes, a single ``unknown_error`` built from ``detail``/``title``.
    """
    errors: List[SimulationError] = []
    body = body if isinstance(body, dict) else {}

    extras = body.get("extras")
    result_codes = extras.get("result_codes") if isinstance(extras, dict) else None
    if isinstance(result_codes, dict):
        tx_code = result_codes.get("transaction")
        if tx_code and tx_code not in SUCCESS_CODES:
            errors.append(SimulationError(code=tx_code, message=humanize_error_code(tx_code)))

        operations = result_codes.get("operations") or []
        for index, op_code in enumerate(operations):
            if not op_code or op_code in SUCCESS_CODES:
                continue
            errors.append(
                SimulationError(
                    code=op_code,
                    message=humanize_error_code(op_code),
                    operation_index=index,
                )
            )

    if not errors:
        errors.append(
            SimulationError(
                code="unknown_error",
                message=str(body.get("detail") or body.get("title") or DEFAULT_UNKNOWN_MESSAGE),
            )
        )
    return errors


def interpret_ledger_response(
    status_code: int,
    body: Any,
    envelope_xdr: str,
    simulated_at: datetime,
) -> SimulationResult:
    """Turn a Horizon POST /transactions response into a verdict."""
    if 200 <= status_code < 300:
        fee_charged = body.get("fee_charged") if isinstance(body, dict) else None
        return SimulationResult(
            success=True,
            severity="warning",
            title="Transaction Submitted",
            description=(
                "The transaction was submitted and accepted by the network. "
                "Note: this was a live submission, not just a simulation."
            ),
            envelope_xdr=envelope_xdr,
            simulated_at=simulated_at,
            hash=body.get("hash") if isinstance(body, dict) else None,
            fee=int(fee_charged) if fee_charged not in (None, "") else None,
        )

    errors = parse_ledger_error(body)
    if len(errors) == 1:
        description = errors[0].message
    else:
        description = (
            f"{len(errors)} issues were detected that would cause this "
            "transaction to fail on-chain."
        )
    return _failed(envelope_xdr, simulated_at, "Transaction Would Fail", description, errors)


def network_error_result(
    message: str,
    envelope_xdr: str,
    simulated_at: datetime,
) -> SimulationResult:
    return _failed(
        envelope_xdr,
        simulated_at,
        "Simulation Unavailable",
        f"Could not reach the Stellar network to simulate this transaction: {message}",
        [SimulationError(code="network_error", message=message)],
    )


def summarize_batch(results: Sequence[SimulationResult]) -> BatchSummary:
    """Count passes, failures and errors across a batch. No I/O."""
    passed = sum(1 for r in results if r.success)
    failed = len(results) - passed
    return BatchSummary(
        all_passed=failed == 0,
        passed_count=passed,
        failed_count=failed,
        total_errors=sum(len(r.errors) for r in results),
        results=tuple(results),
    )


# =====================================================================
# Simulator
# =====================================================================


class TransactionSimulator(HttpClientOwner):
    """
    Dry-runs signed transaction envelopes before they are broadcast.

    Args:
        rpc_url: Contract-simulation JSON-RPC endpoint.
        horizon_url: Ledger API base URL for the submission fallback.
        config: Simulation settings. Defaults to the global config.
    """

    def __init__(
        self,
        rpc_url: Optional[str] = None,
        horizon_url: Optional[str] = None,
        config: Optional[SimulationConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        http_config: Optional[HttpConfig] = None,
        op_logger: Optional[OperationLogger] = None,
    ):
        super().__init__(http_client, http_config)
        global_config = get_config()
        self._rpc_url = (rpc_url or global_config.rpc_url).rstrip("/")
        self._horizon_url = (horizon_url or global_config.horizon_url).rstrip("/")
        self._config = config or global_config.simulation
        self._op_logger = op_logger or OperationLogger(__name__)
        self._request_ids = itertools.count(1)

    @property
    def rpc_url(self) -> str:
        return self._rpc_url

    @property
    def submission_url(self) -> str:
        return f"{self._horizon_url}/transactions"

    async def simulate_via_rpc(
        self,
        envelope_xdr: str,
        simulated_at: Optional[datetime] = None,
    ) -> Optional[RpcOutcome]:
        """
        Step 1: ask the contract-simulation RPC.

        Returns None when the RPC could not give an answer (unreachable,
        non-2xx, or a body that is not JSON); the caller falls back.
        """
        simulated_at = simulated_at or datetime.now(timezone.utc)
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._request_ids),
            "method": "simulateTransaction",
            "params": {"transaction": envelope_xdr},
        }

        client = await self._get_client()
        try:
            response = await client.post(self._rpc_url, json=payload)
        except httpx.HTTPError as e:
            logger.info(f"Simulation RPC unreachable, falling back to ledger: {e}")
            return None

        if not response.is_success:
            logger.info(
                f"Simulation RPC returned HTTP {response.status_code}, falling back to ledger"
            )
            return None

        try:
            body = response.json()
        except ValueError as e:
            logger.info(f"Simulation RPC returned a non-JSON body, falling back to ledger: {e}")
            return None
        if not isinstance(body, dict):
            logger.info("Simulation RPC returned a non-object body, falling back to ledger")
            return None

        return RpcOutcome(result=interpret_rpc_response(body, envelope_xdr, simulated_at))

    async def validate_via_ledger(
        self,
        envelope_xdr: str,
        simulated_at: Optional[datetime] = None,
        rpc_failure: Optional[str] = None,
    ) -> FallbackOutcome:
        """
        Step 2: submit the envelope to Horizon and read the verdict.

        Transport and parse failures become a ``network_error`` result.
        """
        simulated_at = simulated_at or datetime.now(timezone.utc)

        if not self._config.allow_live_submission:
            message = (
                "The simulation RPC was unavailable and live submission to the "
                "ledger is disabled."
            )
            return FallbackOutcome(
                result=_failed(
                    envelope_xdr,
                    simulated_at,
                    "Simulation Unavailable",
                    message,
                    [SimulationError(code="simulation_unavailable", message=message)],
                ),
                rpc_failure=rpc_failure,
            )

        client = await self._get_client()
        try:
            response = await client.post(self.submission_url, data={"tx": envelope_xdr})
            body = response.json()
            result = interpret_ledger_response(
                response.status_code, body, envelope_xdr, simulated_at,
            )
        except (httpx.HTTPError, ValueError) as e:
            result = network_error_result(
                str(e) or "Network error during simulation", envelope_xdr, simulated_at,
            )

        if result.severity == "warning":
            logger.warning(f"Ledger fallback submitted transaction {result.hash} live")
        return FallbackOutcome(result=result, rpc_failure=rpc_failure)

    async def simulate_outcome(self, envelope_xdr: str) -> SimulationOutcome:
        """Run the two-step pipeline and return the tagged outcome."""
        simulated_at = datetime.now(timezone.utc)
        async with self._op_logger.operation_context(
            OperationType.SIMULATION, self._rpc_url,
        ) as ctx:
            outcome: Optional[SimulationOutcome] = None
            rpc_failure: Optional[str] = "rpc disabled"
            if self._config.rpc_enabled:
                outcome = await self.simulate_via_rpc(envelope_xdr, simulated_at)
                rpc_failure = None if outcome is not None else "rpc unavailable"
            if outcome is None:
                outcome = await self.validate_via_ledger(envelope_xdr, simulated_at, rpc_failure)
            ctx.metadata["source"] = outcome.source
            ctx.metadata["severity"] = outcome.result.severity
        return outcome

    async def simulate(self, envelope_xdr: str) -> SimulationResult:
        """Simulate one envelope and return the verdict."""
        outcome = await self.simulate_outcome(envelope_xdr)
        return outcome.result

    async def simulate_batch(self, envelopes: Sequence[str]) -> List[SimulationResult]:
        """
        Simulate every envelope concurrently.

        Results are in input order regardless of completion order.
        """
        limit = self._config.max_concurrent_simulations
        if limit and limit > 0:
            semaphore = asyncio.Semaphore(limit)

            async def bounded(xdr: str) -> SimulationResult:
                async with semaphore:
                    return await self.simulate(xdr)

            return list(await asyncio.gather(*(bounded(x) for x in envelopes)))

        return list(await asyncio.gather(*(self.simulate(x) for x in envelopes)))

    @staticmethod
    def summarize_batch(results: Sequence[SimulationResult]) -> BatchSummary:
        return summarize_batch(results)
