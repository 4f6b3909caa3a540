"""
Tests for downstream outcomes, recipient resolutions and chains.
"""
from textchain.models.chains import available_chains, find_chain
from textchain.models.domain import Contact, UserAccount
from textchain.models.outcomes import DownstreamOutcome, RecipientResolution, ResolutionFailure


class TestDownstreamOutcome:

    def test_success_payload(self):
        outcome = DownstreamOutcome.from_payload({"success": True, "txHash": "0x1"})

        assert outcome.success is True
        assert outcome.message is None
        assert outcome.get("txHash") == "0x1"

    def test_failure_payload(self):
        outcome = DownstreamOutcome.from_payload({"success": False, "error": "nope"})

        assert outcome.success is False
        assert outcome.error_class is None
        assert outcome.message == "nope"

    def test_truthy_but_not_true_is_failure(self):
        outcome = DownstreamOutcome.from_payload({"success": "yes"})

        assert outcome.success is False
        assert outcome.message == "Unknown error"

    def test_non_dict_is_malformed(self):
        outcome = DownstreamOutcome.from_payload("<html>")

        assert outcome.success is False
        assert outcome.error_class == "malformed"

    def test_transport_failures(self):
        assert DownstreamOutcome.timed_out("slow").error_class == "timeout"
        assert DownstreamOutcome.unavailable("down").error_class == "unavailable"


class TestRecipientResolution:

    def test_resolved(self):
        resolution = RecipientResolution.to_address("0xabc", "address")
        assert resolution.resolved is True
        assert resolution.failure is None

    def test_failed(self):
        resolution = RecipientResolution.failed(ResolutionFailure.NOT_FOUND, "No one.", "phone")

        assert resolution.resolved is False
        assert resolution.reply == "No one."
        assert resolution.failure.value == "not_found"


class TestChains:

    def test_find_by_key_and_alias(self):
        assert find_chain("POLYGON").chain_id == 137
        assert find_chain("matic").key == "polygon"
        assert find_chain("Arbitrum").name == "Arbitrum"
        assert find_chain("mainnet").chain_id == 1

    def test_unknown(self):
        assert find_chain("solana") is None

    def test_available(self):
        assert available_chains() == "polygon, base, eth, arb"


class TestDomain:

    def test_short_address(self):
        account = UserAccount(
            phone_number="+15550001111",
            wallet_address="0x1234567890abcdef1234567890abcdef12345678",
            encrypted_private_key="{}",
        )
        assert account.short_address == "0x1234...5678"

    def test_contact_sms_string(self):
        assert Contact("+1", "mom", phone_number="+15551234567").to_sms_string() == "mom: +15551234567"
        contact = Contact("+1", "shop", wallet_address="0x1234567890abcdef1234567890abcdef12345678")
        assert contact.to_sms_string() == "shop: 0x1234...5678"
