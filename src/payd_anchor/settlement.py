"""
SEP-31 settlement client.

Uses the endpoint directory to find TRANSFER_SERVER_SEP0031 and calls:
- GET  <server>/info
- POST <server>/transactions
- GET  <server>/transactions/<id>

Token freshness is not managed here. A rejected token comes back as a
SettlementError with ``token_rejected`` set; re-authenticating is up to the
caller. ``initiate`` sends no idempotency key, so retrying it may create a
second settlement at anchors that do not deduplicate.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Collection, Mapping, Optional, Union

import httpx

from .config import HttpConfig
from .directory import EndpointDirectory
from .errors import AuthenticationError, SettlementError, UnsupportedAnchorError
from .http import HttpClientOwner
from .logging_utils import OperationLogger, OperationType
from .models import TERMINAL_STATUSES, EndpointInfo, SettlementPayload, SettlementRecord

logger = logging.getLogger(__name__)

PayloadLike = Union[SettlementPayload, Mapping[str, Any]]


class SettlementClient(HttpClientOwner):
    """Client for an anchor's SEP-31 transfer server."""

    def __init__(
        self,
        directory: EndpointDirectory,
        http_client: Optional[httpx.AsyncClient] = None,
        http_config: Optional[HttpConfig] = None,
        op_logger: Optional[OperationLogger] = None,
    ):
        super().__init__(http_client, http_config)
        self._directory = directory
        self._op_logger = op_logger or OperationLogger(__name__)

    async def _settlement_endpoint(self, domain: str) -> tuple[EndpointInfo, str]:
        info = await self._directory.resolve(domain)
        if not info.settlement_endpoint:
            raise UnsupportedAnchorError(info.domain, "SEP-31 settlement")
        return info, info.settlement_endpoint

    @staticmethod
    def _auth_headers(domain: str, token: str) -> dict[str, str]:
        if not token:
            raise AuthenticationError(domain, "A bearer token is required", step="token")
        return {"Authorization": f"Bearer {token}"}

    async def get_capabilities(self, domain: str) -> dict[str, Any]:
        """
        Fetch the anchor's SEP-31 /info document.

        Raises:
            UnsupportedAnchorError: If the anchor has no SEP-31 endpoint.
            SettlementError: If the anchor rejects the request.
        """
        info, endpoint = await self._settlement_endpoint(domain)
        async with self._op_logger.operation_context(OperationType.SETTLEMENT_INFO, info.domain):
            body = await self._request(info.domain, "GET", f"{endpoint}/info")
        if not isinstance(body, dict):
            raise SettlementError(
                f"Anchor {info.domain} returned a malformed /info document",
                domain=info.domain,
                detail=body,
            )
        return body

    async def initiate(
        self,
        domain: str,
        token: str,
        payload: PayloadLike,
    ) -> SettlementRecord:
        """
        Create a SEP-31 transaction.

        The payload is sent as given; pydantic payloads are dumped by alias
        with unset optional fields dropped.
        """
        info, endpoint = await self._settlement_endpoint(domain)
        headers = self._auth_headers(info.domain, token)
        body_out = payload.to_dict() if isinstance(payload, SettlementPayload) else dict(payload)

        async with self._op_logger.operation_context(
            OperationType.SETTLEMENT_INITIATE,
            info.domain,
            asset_code=body_out.get("asset_code"),
        ) as ctx:
            body = await self._request(
                info.domain, "POST", f"{endpoint}/transactions", headers=headers, json=body_out,
            )
            record = self._parse_record(info.domain, body)
            ctx.metadata["settlement_id"] = record.id

        logger.info(f"Initiated settlement {record.id} with {info.domain} (status={record.status})")
        return record

    async def get_status(self, domain: str, token: str, settlement_id: str) -> SettlementRecord:
        """Fetch a SEP-31 transaction by id."""
        info, endpoint = await self._settlement_endpoint(domain)
        headers = self._auth_headers(info.domain, token)
        if not settlement_id:
            raise ValueError("settlement_id is required")

        async with self._op_logger.operation_context(
            OperationType.SETTLEMENT_STATUS, info.domain, settlement_id=settlement_id,
        ):
            body = await self._request(
                info.domain, "GET", f"{endpoint}/transactions/{settlement_id}", headers=headers,
            )
            return self._parse_record(info.domain, body)

    async def wait_for_status(
        self,
        domain: str,
        token: str,
        settlement_id: str,
        *,
        terminal: Collection[str] = TERMINAL_STATUSES,
        interval_seconds: float = 3.0,
        max_polls: int = 30,
    ) -> SettlementRecord:
        """
        Poll ``get_status`` until the record reaches a status in ``terminal``.

        Errors from any poll propagate immediately.

        Raises:
            SettlementError: If ``max_polls`` polls pass without a terminal status.
        """
        if max_polls < 1:
            raise ValueError("max_polls must be at least 1")

        record: Optional[SettlementRecord] = None
        for attempt in range(max_polls):
            record = await self.get_status(domain, token, settlement_id)
            if record.status in terminal:
                return record
            logger.debug(
                f"Settlement {settlement_id} is {record.status} "
                f"(poll {attempt + 1}/{max_polls})"
            )
            if attempt < max_polls - 1:
                await asyncio.sleep(interval_seconds)

        raise SettlementError(
            f"Settlement {settlement_id} still {record.status} after {max_polls} polls",
            domain=domain,
            detail={"last_status": record.status},
        )

    async def _request(
        self,
        domain: str,
        method: str,
        url: str,
        headers: Optional[dict[str, str]] = None,
        json: Optional[dict[str, Any]] = None,
    ) -> Any:
        client = await self._get_client()
        try:
            response = await client.request(method, url, headers=headers, json=json)
        except httpx.HTTPError as e:
            raise SettlementError(
                f"Request to {domain} failed: {e}", domain=domain,
            ) from e

        try:
            body = response.json()
        except ValueError:
            body = response.text

        if response.status_code >= 400:
            raise SettlementError.from_response(domain, response.status_code, body)
        return body

    @staticmethod
    def _parse_record(domain: str, body: Any) -> SettlementRecord:
        if not isinstance(body, dict):
            raise SettlementError(
                f"Anchor {domain} returned a malformed transaction record",
                domain=domain,
                detail=body,
            )
        try:
            return SettlementRecord.from_response(body)
        except ValueError as e:
            raise SettlementError(
                f"Anchor {domain} returned a malformed transaction record: {e}",
                domain=domain,
                detail=body,
            ) from e
