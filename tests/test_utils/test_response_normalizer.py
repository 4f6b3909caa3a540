"""
Tests for downstream failure normalization.
"""
import pytest

from textchain.models.outcomes import DownstreamOutcome
from textchain.utils.response_normalizer import (
    Action,
    ResponseNormalizer,
    Rule,
)


def failure(message=None, error_class=None) -> DownstreamOutcome:
    return DownstreamOutcome(success=False, message=message, error_class=error_class)


def normalize(outcome, action, success_reply=None) -> str:
    return ResponseNormalizer().normalize(outcome, action, success_reply)


class TestNormalize:
    """Test the default rule set."""

    def test_success_uses_success_reply(self):
        outcome = DownstreamOutcome(success=True, payload={"success": True})
        assert normalize(outcome, Action.SEND, success_reply="Sent!") == "Sent!"

    @pytest.mark.parametrize("error_class", ["timeout", "unavailable"])
    def test_transport_failure_is_network_error(self, error_class):
        """Test transport failures win over any message text."""
        outcome = failure("insufficient balance", error_class=error_class)
        assert normalize(outcome, Action.SEND) == "Network error. Try later."

    @pytest.mark.parametrize(
        "message",
        ["Voucher already redeemed", "execution reverted: AlreadyRedeemed()", "ALREADY REDEEMED"],
    )
    def test_voucher_already_used(self, message):
        assert normalize(failure(message), Action.REDEEM) == "Voucher already used."

    @pytest.mark.parametrize("message", ["Voucher not found", "invalid code", "Invalid signature"])
    def test_invalid_voucher(self, message):
        assert normalize(failure(message), Action.REDEEM) == "Invalid voucher code."

    def test_already_redeemed_takes_priority_over_invalid(self):
        """Test rule order decides between overlapping matches."""
        outcome = failure("invalid: voucher already redeemed")
        assert normalize(outcome, Action.REDEEM) == "Voucher already used."

    @pytest.mark.parametrize(
        "action",
        [Action.SEND, Action.SWAP, Action.CASHOUT, Action.BUY, Action.BRIDGE],
    )
    def test_insufficient_balance(self, action):
        assert normalize(failure("ERC20: transfer amount exceeds balance"), action) == "Insufficient balance."
        assert normalize(failure("insufficient funds for gas"), action) == "Insufficient balance."

    @pytest.mark.parametrize("action", [Action.SWAP, Action.CASHOUT, Action.BRIDGE])
    def test_slippage(self, action):
        assert normalize(failure("Too little received: slippage"), action) == "Price moved too much. Try again."

    def test_slippage_not_applied_to_send(self):
        assert normalize(failure("slippage exceeded"), Action.SEND) == "Transfer failed. Try later."

    def test_voucher_vocabulary_not_applied_to_send(self):
        """Test 'not found' on a transfer does not mention vouchers."""
        assert normalize(failure("recipient not found"), Action.SEND) == "Transfer failed. Try later."

    @pytest.mark.parametrize(
        "action,expected",
        [
            (Action.SEND, "Transfer failed. Try later."),
            (Action.REDEEM, "Redemption failed. Try later."),
            (Action.SWAP, "Swap failed. Try later."),
            (Action.BALANCE, "Balance failed. Try later."),
        ],
    )
    def test_fallback(self, action, expected):
        assert normalize(failure("nonce too low at 0xdeadbeef"), action) == expected

    def test_raw_error_never_returned(self):
        raw = "RPC node 10.0.0.3 returned -32000 nonce too low"
        reply = normalize(failure(raw), Action.SEND)
        assert raw not in reply
        assert "10.0.0.3" not in reply

    def test_missing_message(self):
        assert normalize(failure(None), Action.BRIDGE) == "Bridge failed. Try later."


class TestResponseNormalizer:
    """Test custom rule sets."""

    def test_custom_rules_evaluated_in_order(self):
        normalizer = ResponseNormalizer(
            rules=[
                Rule(name="first", reply="First.", patterns=("boom",)),
                Rule(name="second", reply="Second.", patterns=("boom",)),
            ]
        )
        assert normalizer.normalize(failure("boom"), Action.SEND) == "First."

    def test_classify_returns_none_without_match(self):
        normalizer = ResponseNormalizer()
        assert normalizer.classify(failure("weird"), Action.SEND) is None
        assert normalizer.classify(failure("weird", "timeout"), Action.SEND).name == "transport"


class TestServerErrors:
    """Test 5xx bodies keep their vocabulary but never read as transport failures."""

    def test_known_message_still_matches(self):
        outcome = failure("Voucher already redeemed", error_class="server_error")
        assert normalize(outcome, Action.REDEEM) == "Voucher already used."

    def test_unknown_message_uses_action_fallback(self):
        outcome = failure("could not detect network", error_class="server_error")
        assert normalize(outcome, Action.SEND) == "Transfer failed. Try later."
