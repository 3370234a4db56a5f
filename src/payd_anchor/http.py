"""Shared httpx client ownership for the network-facing components."""
from __future__ import annotations

from typing import Optional

import httpx

from .config import HttpConfig, get_config


class HttpClientOwner:
    """
    Holds an httpx.AsyncClient for a component.

    A client passed in is shared and never closed here; one created lazily
    is owned and closed by ``aclose()``.
    """

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        http_config: Optional[HttpConfig] = None,
    ):
        self._http_config = http_config or get_config().http
        self._http_client = http_client
        self._owns_client = http_client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(
                    self._http_config.timeout_seconds,
                    connect=self._http_config.connect_timeout_seconds,
                ),
                headers={"User-Agent": self._http_config.user_agent},
                follow_redirects=True,
            )
            self._owns_client = True
        return self._http_client

    async def aclose(self) -> None:
        """Close the HTTP client if this component created it."""
        if self._owns_client and self._http_client is not None and not self._http_client.is_closed:
            await self._http_client.aclose()
        if self._owns_client:
            self._http_client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()
