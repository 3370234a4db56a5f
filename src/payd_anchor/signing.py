"""
Signing seam for SEP-10 challenges.

Key custody and envelope signing belong to the ledger client the payroll
app already uses. This module only describes what the authenticator needs
from it.
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class SigningIdentity(Protocol):
    """An account able to sign challenge transactions locally."""

    @property
    def public_key(self) -> str:
        """The account id (G...) presented to the anchor."""
        ...

    def sign_challenge(self, envelope_xdr: str, network_passphrase: str) -> str:
        """
        Sign a challenge transaction.

        Args:
            envelope_xdr: Base64 transaction envelope received from the anchor.
            network_passphrase: Passphrase the signature must commit to.

        Returns:
            The signed envelope, base64 encoded.
        """
        ...
