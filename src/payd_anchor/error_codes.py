"""
Human-readable messages for ledger transaction and operation result codes.

DOCUMENTED_CODES is the list of codes we translate; ERROR_CODE_MESSAGES must
cover exactly that list, checked when the module is imported.
"""
from __future__ import annotations

from types import MappingProxyType
from typing import Mapping, Optional

DOCUMENTED_CODES: tuple[str, ...] = (
    # Transaction-level
    "tx_insufficient_balance",
    "tx_bad_seq",
    "tx_bad_auth",
    "tx_insufficient_fee",
    "tx_no_source_account",
    "tx_too_early",
    "tx_too_late",
    "tx_missing_operation",
    "tx_bad_auth_extra",
    "tx_internal_error",
    "tx_failed",
    # Operation-level
    "op_underfunded",
    "op_src_not_authorized",
    "op_no_destination",
    "op_no_trust",
    "op_line_full",
    "op_no_issuer",
    "op_low_reserve",
    "op_not_authorized",
    "op_malformed",
)

ERROR_CODE_MESSAGES: Mapping[str, str] = MappingProxyType({
    "tx_insufficient_balance": (
        "Insufficient balance: your account does not have enough XLM to cover "
        "this transaction and its fees."
    ),
    "tx_bad_seq": (
        "Invalid sequence number: your account's sequence number is out of sync. "
        "Please refresh and try again."
    ),
    "tx_bad_auth": (
        "Authorization failed: the transaction signature is invalid or missing "
        "required signers."
    ),
    "tx_insufficient_fee": (
        "Insufficient fee: the fee provided is below the network minimum. "
        "Consider increasing your fee."
    ),
    "tx_no_source_account": (
        "Source account not found: the sending account does not exist on the network."
    ),
    "tx_too_early": (
        "Transaction submitted too early: the transaction's time bounds have not started yet."
    ),
    "tx_too_late": (
        "Transaction submitted too late: the transaction's time bounds have expired."
    ),
    "tx_missing_operation": (
        "Missing operation: the transaction contains no operations to execute."
    ),
    "tx_bad_auth_extra": (
        "Extra signatures: the transaction has unnecessary signatures attached."
    ),
    "tx_internal_error": (
        "Internal error: an unexpected error occurred within the Stellar network."
    ),
    "tx_failed": (
        "One or more operations failed: see the operation errors for details."
    ),
    "op_underfunded": (
        "Underfunded operation: the source account does not have enough balance "
        "to complete this payment."
    ),
    "op_src_not_authorized": (
        "Source not authorized: the source account is not authorized to perform "
        "this operation."
    ),
    "op_no_destination": (
        "Destination not found: the recipient account does not exist on the network. "
        "It may need to be created first."
    ),
    "op_no_trust": (
        "Missing trustline: the destination account has not established a trustline "
        "for this asset."
    ),
    "op_line_full": (
        "Trustline limit reached: the destination account's trustline limit for this "
        "asset has been exceeded."
    ),
    "op_no_issuer": (
        "Asset issuer not found: the specified asset issuer does not exist on the network."
    ),
    "op_low_reserve": (
        "Below minimum reserve: this operation would bring the account below the "
        "minimum reserve balance."
    ),
    "op_not_authorized": (
        "Not authorized: the asset issuer has not authorized the destination to hold "
        "this asset."
    ),
    "op_malformed": (
        "Malformed operation: one of the operation's parameters is invalid."
    ),
})

SUCCESS_CODES = frozenset({"op_success", "tx_success"})

FALLBACK_TEMPLATE = (
    "Transaction failed with code: {code}. Please review your transaction parameters."
)


def _verify_table() -> None:
    documented = set(DOCUMENTED_CODES)
    translated = set(ERROR_CODE_MESSAGES)
    if len(documented) != len(DOCUMENTED_CODES):
        raise RuntimeError("DOCUMENTED_CODES contains duplicates")
    if documented != translated:
        missing = sorted(documented - translated)
        extra = sorted(translated - documented)
        raise RuntimeError(
            f"Error code table out of sync: missing={missing} undocumented={extra}"
        )


_verify_table()

# Longest first so tx_bad_auth_extra is found before tx_bad_auth
_MATCH_ORDER: tuple[str, ...] = tuple(sorted(DOCUMENTED_CODES, key=len, reverse=True))


def humanize_error_code(code: str) -> str:
    """Translate a result code, falling back to a generic message."""
    return ERROR_CODE_MESSAGES.get(code) or FALLBACK_TEMPLATE.format(code=code)


def match_error_code(text: str) -> Optional[str]:
    """Find a documented code mentioned anywhere in ``text`` (case-insensitive)."""
    lowered = text.lower()
    for code in _MATCH_ORDER:
        if code in lowered:
            return code
    return None
