"""
Anchor endpoint discovery (SEP-1).

Fetches ``https://<domain>/.well-known/stellar.toml`` and pulls out the
handful of keys the settlement flow needs by pattern match. This is not a
TOML parser; anything beyond top-level ``KEY = "value"`` lines is ignored.
"""
from __future__ import annotations

import logging
import re
from typing import Dict, Optional

import httpx

from .cache import EndpointCache, policy_from_ttl
from .config import DiscoveryConfig, HttpConfig, get_config
from .errors import DiscoveryError
from .http import HttpClientOwner
from .logging_utils import OperationLogger, OperationType
from .models import EndpointInfo

logger = logging.getLogger(__name__)

# stellar.toml key -> EndpointInfo field
TOML_KEYS: Dict[str, str] = {
    "WEB_AUTH_ENDPOINT": "auth_endpoint",
    "TRANSFER_SERVER_SEP0031": "settlement_endpoint",
    "DIRECT_PAYMENT_SERVER": "settlement_endpoint",
    "TRANSFER_SERVER": "transfer_server",
    "NETWORK_PASSPHRASE": "network_passphrase",
    "SIGNING_KEY": "signing_key",
}

_TOML_VALUE = r'^[ \t]*{key}[ \t]*=[ \t]*(?:"([^"\n]*)"|\'([^\'\n]*)\')'


def parse_stellar_toml(text: str) -> Dict[str, str]:
    """
    Extract the known keys from a stellar.toml document.

    Returns a dict keyed by EndpointInfo field name. URL values lose their
    trailing slash. When both TRANSFER_SERVER_SEP0031 and the older
    DIRECT_PAYMENT_SERVER are present, the former wins.
    """
    found: Dict[str, str] = {}
    for key, field_name in TOML_KEYS.items():
        if field_name in found:
            continue
        match = re.search(_TOML_VALUE.format(key=re.escape(key)), text, re.MULTILINE)
        if match is None:
            continue
        value = (match.group(1) if match.group(1) is not None else match.group(2)).strip()
        if not value:
            continue
        if value.startswith(("http://", "https://")):
            value = value.rstrip("/")
        found[field_name] = value
    return found


def normalize_domain(domain: str) -> str:
    """Lowercase host without scheme, path or trailing slash."""
    value = domain.strip().lower()
    for prefix in ("https://", "http://"):
        if value.startswith(prefix):
            value = value[len(prefix):]
    return value.split("/", 1)[0]


class EndpointDirectory(HttpClientOwner):
    """
    Resolves anchor domains to their service endpoints.

    A domain resolved with only part of the endpoints is still cached;
    callers that need a missing endpoint raise instead of refetching.
    """

    def __init__(
        self,
        cache: Optional[EndpointCache] = None,
        config: Optional[DiscoveryConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        http_config: Optional[HttpConfig] = None,
        op_logger: Optional[OperationLogger] = None,
    ):
        super().__init__(http_client, http_config)
        self._config = config or get_config().discovery
        self._cache = cache or EndpointCache(policy_from_ttl(self._config.cache_ttl_seconds))
        self._op_logger = op_logger or OperationLogger(__name__)

    @property
    def cache(self) -> EndpointCache:
        return self._cache

    def metadata_url(self, domain: str) -> str:
        return f"{self._config.scheme}://{domain}{self._config.well_known_path}"

    async def resolve(self, domain: str) -> EndpointInfo:
        """
        Return the endpoints for ``domain``, fetching stellar.toml on a miss.

        Raises:
            DiscoveryError: If the document cannot be fetched or read.
        """
        normalized = normalize_domain(domain)
        if not normalized:
            raise DiscoveryError(domain, "empty domain")
        return await self._cache.get_or_load(normalized, self._fetch)

    async def _fetch(self, domain: str) -> EndpointInfo:
        url = self.metadata_url(domain)
        async with self._op_logger.operation_context(OperationType.DISCOVERY, domain) as ctx:
            client = await self._get_client()
            try:
                response = await client.get(url, headers={"Accept": "text/plain, application/toml, */*"})
            except httpx.HTTPError as e:
                raise DiscoveryError(domain, f"request to {url} failed: {e}") from e

            if response.status_code >= 400:
                raise DiscoveryError(domain, f"{url} returned HTTP {response.status_code}")

            try:
                text = response.text
            except (UnicodeDecodeError, LookupError) as e:
                raise DiscoveryError(domain, f"{url} is not a text document") from e

            if not text.strip():
                raise DiscoveryError(domain, f"{url} is empty")

            fields = parse_stellar_toml(text)
            if not fields:
                raise DiscoveryError(domain, f"{url} has none of the expected keys")
            info = EndpointInfo(domain=domain, **fields)
            ctx.metadata["has_auth"] = info.auth_endpoint is not None
            ctx.metadata["has_settlement"] = info.settlement_endpoint is not None

        if info.auth_endpoint is None or info.settlement_endpoint is None:
            logger.info(
                f"stellar.toml for {domain} is partial "
                f"(auth={info.auth_endpoint is not None}, "
                f"sep31={info.settlement_endpoint is not None})"
            )
        return info

    def store_token(
        self,
        domain: str,
        token: str,
        info: Optional[EndpointInfo] = None,
    ) -> EndpointInfo:
        """
        Attach a bearer token to the cached entry for ``domain``.

        Pass the resolved ``info`` to re-cache it if the entry is gone.
        """
        return self._cache.set_token(normalize_domain(domain), token, info)

    def cached(self, domain: str) -> Optional[EndpointInfo]:
        return self._cache.get(normalize_domain(domain))

    def cached_token(self, domain: str) -> Optional[str]:
        info = self.cached(domain)
        return info.token if info else None

    def invalidate(self, domain: str) -> None:
        self._cache.invalidate(normalize_domain(domain))
