"""
Tests for result code humanization.
"""
import pytest

from payd_anchor.error_codes import (
    DOCUMENTED_CODES,
    ERROR_CODE_MESSAGES,
    humanize_error_code,
    match_error_code,
)


class TestHumanize:
    def test_every_documented_code_has_a_message(self):
        for code in DOCUMENTED_CODES:
            assert humanize_error_code(code) == ERROR_CODE_MESSAGES[code]

    def test_known_code(self):
        assert humanize_error_code("op_underfunded").startswith("Underfunded operation")

    @pytest.mark.parametrize("code", ["op_cross_self", "tx_soroban_invalid", ""])
    def test_unknown_code_uses_fallback(self, code):
        assert humanize_error_code(code) == (
            f"Transaction failed with code: {code}. Please review your transaction parameters."
        )

    def test_table_is_read_only(self):
        with pytest.raises(TypeError):
            ERROR_CODE_MESSAGES["op_underfunded"] = "changed"


class TestMatch:
    def test_finds_code_in_text(self):
        assert match_error_code("HostError: op_no_trust for asset USDC") == "op_no_trust"

    def test_case_insensitive(self):
        assert match_error_code("TX_BAD_SEQ") == "tx_bad_seq"

    def test_prefers_longest_code(self):
        assert match_error_code("failed with tx_bad_auth_extra") == "tx_bad_auth_extra"

    def test_no_match(self):
        assert match_error_code("Error(Contract, #3)") is None
