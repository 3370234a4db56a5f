"""
SEP-10 challenge authentication.

Flow for one ``authenticate()`` call:
1. Resolve the anchor's WEB_AUTH_ENDPOINT through the directory
2. GET the endpoint with the account id to receive a challenge transaction
3. Sign the challenge locally with the SigningIdentity
4. POST the signed challenge back and receive a bearer token
5. Store the token on the directory's cached entry

Each call is a single attempt. Retrying is the caller's decision.
"""
from __future__ import annotations

import logging
from typing import Any, Optional, Protocol, runtime_checkable

import httpx

from .config import HttpConfig, PaydAnchorConfig, get_config
from .directory import EndpointDirectory
from .errors import AuthenticationError, UnsupportedAnchorError
from .http import HttpClientOwner
from .logging_utils import OperationLogger, OperationType, mask_account, mask_token
from .models import EndpointInfo
from .signing import SigningIdentity

logger = logging.getLogger(__name__)


@runtime_checkable
class TokenPolicy(Protocol):
    """Decides whether a cached bearer token may be used again."""

    def should_reuse(self, info: EndpointInfo) -> bool:
        ...


class ReuseCachedToken:
    """Use the cached token until re-authentication replaces it."""

    def should_reuse(self, info: EndpointInfo) -> bool:
        return info.token is not None


class AlwaysReauthenticate:
    """Run the challenge flow for every request."""

    def should_reuse(self, info: EndpointInfo) -> bool:
        return False


class ChallengeAuthenticator(HttpClientOwner):
    """Obtains SEP-10 bearer tokens from anchors."""

    def __init__(
        self,
        directory: EndpointDirectory,
        token_policy: Optional[TokenPolicy] = None,
        config: Optional[PaydAnchorConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        http_config: Optional[HttpConfig] = None,
        op_logger: Optional[OperationLogger] = None,
    ):
        self._config = config or get_config()
        super().__init__(http_client, http_config or self._config.http)
        self._directory = directory
        self._token_policy = token_policy or ReuseCachedToken()
        self._op_logger = op_logger or OperationLogger(__name__)

    @property
    def token_policy(self) -> TokenPolicy:
        return self._token_policy

    async def get_token(self, domain: str, identity: SigningIdentity) -> str:
        """Return a token for ``domain``, reusing the cached one if the policy allows."""
        info = await self._directory.resolve(domain)
        if info.token is not None and self._token_policy.should_reuse(info):
            logger.debug(f"Reusing cached token for {info.domain}")
            return info.token
        return await self.authenticate(domain, identity)

    async def authenticate(self, domain: str, identity: SigningIdentity) -> str:
        """
        Run the challenge/sign/submit flow and return the bearer token.

        Raises:
            DiscoveryError: If the anchor's stellar.toml cannot be read.
            UnsupportedAnchorError: If the anchor has no WEB_AUTH_ENDPOINT.
            AuthenticationError: If any step of the flow fails.
        """
        info = await self._directory.resolve(domain)
        if not info.auth_endpoint:
            raise UnsupportedAnchorError(info.domain, "SEP-10 authentication")

        account = identity.public_key
        async with self._op_logger.operation_context(
            OperationType.AUTHENTICATION,
            info.domain,
            account=mask_account(account),
        ):
            challenge = await self._fetch_challenge(info, account)
            passphrase = (
                challenge.get("network_passphrase")
                or info.network_passphrase
                or self._config.network_passphrase
            )

            try:
                signed = identity.sign_challenge(challenge["transaction"], passphrase)
            except Exception as e:
                raise AuthenticationError(
                    info.domain, f"Signing the challenge failed: {e}", step="sign",
                ) from e

            token = await self._submit_challenge(info, signed)

        self._directory.store_token(info.domain, token, info)
        logger.info(f"Authenticated with {info.domain} (token {mask_token(token)})")
        return token

    async def _fetch_challenge(self, info: EndpointInfo, account: str) -> dict[str, Any]:
        client = await self._get_client()
        try:
            response = await client.get(info.auth_endpoint, params={"account": account})
        except httpx.HTTPError as e:
            raise AuthenticationError(
                info.domain, f"Challenge request failed: {e}", step="challenge",
            ) from e

        body = self._read_body(info, response, "challenge")
        if not isinstance(body.get("transaction"), str) or not body["transaction"]:
            raise AuthenticationError(
                info.domain,
                "Challenge response has no transaction",
                step="challenge",
                status_code=response.status_code,
            )
        return body

    async def _submit_challenge(self, info: EndpointInfo, signed_xdr: str) -> str:
        client = await self._get_client()
        try:
            response = await client.post(info.auth_endpoint, json={"transaction": signed_xdr})
        except httpx.HTTPError as e:
            raise AuthenticationError(
                info.domain, f"Token request failed: {e}", step="token",
            ) from e

        body = self._read_body(info, response, "token")
        token = body.get("token")
        if not isinstance(token, str) or not token:
            raise AuthenticationError(
                info.domain,
                "Token response has no token",
                step="token",
                status_code=response.status_code,
            )
        return token

    @staticmethod
    def _read_body(info: EndpointInfo, response: httpx.Response, step: str) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            body = None

        if response.status_code >= 400:
            reason = body.get("error") if isinstance(body, dict) else None
            raise AuthenticationError(
                info.domain,
                f"Anchor rejected the {step} request ({response.status_code})"
                + (f": {reason}" if reason else ""),
                step=step,
                status_code=response.status_code,
            )
        if not isinstance(body, dict):
            raise AuthenticationError(
                info.domain,
                f"Anchor returned a non-JSON {step} response",
                step=step,
                status_code=response.status_code,
            )
        return body
