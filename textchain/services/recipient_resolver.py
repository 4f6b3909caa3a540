"""
Recipient resolution for transfers.

A recipient is tried, in this order, as a literal address, a phone number,
a dotted name and finally a saved-contact alias. The first shape that fits
decides the strategy; text matching none of them is rejected without any
lookup.
"""
import re
from typing import List, Optional, Set

import structlog

from textchain.core.exceptions import UnavailableError
from textchain.database.base import AccountDirectory, ContactBook
from textchain.models.domain import Contact
from textchain.models.outcomes import RecipientResolution, ResolutionFailure
from textchain.services.settlement_backend import SettlementBackendClient

logger = structlog.get_logger(__name__)

ADDRESS_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")
ALIAS_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,32}$")
PHONE_SEPARATORS = re.compile(r"[\s\-()]")

INVALID_RECIPIENT = "Invalid recipient.\nUse phone (+1...), address (0x...), name or contact."
NAME_SERVICE_OFFLINE = "Name lookup offline. Try later."
DIRECTORY_LOOKUP_OFFLINE = "DB offline. Try later."
CONTACTS_LOOKUP_OFFLINE = "Address book offline."


def is_address(text: str) -> bool:
    return bool(ADDRESS_PATTERN.match(text))


def is_phone(text: str) -> bool:
    return text.startswith("+")


def is_dotted_name(text: str) -> bool:
    return "." in text and " " not in text


def is_alias(text: str) -> bool:
    return bool(ALIAS_PATTERN.match(text))


def normalize_phone(text: str) -> str:
    """Strip spaces, dashes and parentheses from a phone number."""
    return PHONE_SEPARATORS.sub("", text)


class RecipientResolver:
    """Turns free-text recipients into settlement addresses."""

    def __init__(
        self,
        accounts: Optional[AccountDirectory],
        contacts: Optional[ContactBook],
        backend: SettlementBackendClient,
    ):
        self.accounts = accounts
        self.contacts = contacts
        self.backend = backend

    async def resolve(self, principal: str, recipient: str) -> RecipientResolution:
        """
        Resolve ``recipient`` on behalf of ``principal``.

        Args:
            principal: Sender phone number (owner of the contact book)
            recipient: Recipient text exactly as the sender typed it

        Returns:
            Resolution carrying an address, or a typed failure and its reply
        """
        text = recipient.strip()

        if is_address(text):
            return RecipientResolution.to_address(text, "address")
        if is_phone(text):
            return await self._resolve_phone(normalize_phone(text), "phone")
        if is_dotted_name(text):
            return await self._resolve_name(text)
        if is_alias(text):
            return await self._resolve_contact(principal, text)

        logger.info("Recipient rejected without lookup", recipient_length=len(text))
        return RecipientResolution.failed(
            ResolutionFailure.AMBIGUOUS_OR_INVALID_FORMAT,
            INVALID_RECIPIENT,
            "none",
        )

    async def _resolve_phone(self, phone: str, strategy: str) -> RecipientResolution:
        if self.accounts is None:
            return RecipientResolution.failed(
                ResolutionFailure.RESOLUTION_SERVICE_UNAVAILABLE,
                DIRECTORY_LOOKUP_OFFLINE,
                strategy,
            )
        try:
            account = await self.accounts.find_by_phone(phone)
        except UnavailableError as e:
            logger.warning("Account directory unavailable during resolution", error=str(e))
            return RecipientResolution.failed(
                ResolutionFailure.RESOLUTION_SERVICE_UNAVAILABLE,
                DIRECTORY_LOOKUP_OFFLINE,
                strategy,
            )

        if account is None:
            return RecipientResolution.failed(
                ResolutionFailure.NOT_FOUND,
                f"{phone} hasn't joined yet.\nAsk them to text JOIN",
                strategy,
            )
        return RecipientResolution.to_address(account.wallet_address, strategy)

    async def _resolve_name(self, name: str) -> RecipientResolution:
        outcome = await self.backend.resolve_name(name)

        if outcome.unreachable:
            return RecipientResolution.failed(
                ResolutionFailure.RESOLUTION_SERVICE_UNAVAILABLE,
                NAME_SERVICE_OFFLINE,
                "name",
            )

        address = outcome.get("address") if outcome.success else None
        if not isinstance(address, str) or not is_address(address):
            logger.info("Name did not resolve", name=name, downstream_error=outcome.message)
            return RecipientResolution.failed(
                ResolutionFailure.AMBIGUOUS_OR_INVALID_FORMAT,
                f"Could not find {name}.",
                "name",
            )
        return RecipientResolution.to_address(address, "name")

    async def _resolve_contact(self, principal: str, alias: str) -> RecipientResolution:
        if self.contacts is None:
            return RecipientResolution.failed(
                ResolutionFailure.RESOLUTION_SERVICE_UNAVAILABLE,
                CONTACTS_LOOKUP_OFFLINE,
                "contact",
            )
        try:
            matches = await self.contacts.find_by_name(principal, alias)
        except UnavailableError as e:
            logger.warning("Contact book unavailable during resolution", error=str(e))
            return RecipientResolution.failed(
                ResolutionFailure.RESOLUTION_SERVICE_UNAVAILABLE,
                CONTACTS_LOOKUP_OFFLINE,
                "contact",
            )

        if not matches:
            return RecipientResolution.failed(
                ResolutionFailure.NOT_FOUND,
                f"No contact named {alias}.\nSAVE {alias} <phone> first.",
                "contact",
            )

        usable = [c for c in matches if c.is_usable]
        if len(_distinct_targets(usable)) > 1:
            return RecipientResolution.failed(
                ResolutionFailure.AMBIGUOUS_OR_INVALID_FORMAT,
                f"Several contacts named {alias}.\nSAVE {alias} <phone> again to fix.",
                "contact",
            )

        if not usable:
            return RecipientResolution.failed(
                ResolutionFailure.NOT_FOUND,
                f"Contact {alias} has no phone or address.",
                "contact",
            )

        contact = usable[0]
        if contact.wallet_address and is_address(contact.wallet_address):
            return RecipientResolution.to_address(contact.wallet_address, "contact")
        if contact.phone_number:
            return await self._resolve_phone(normalize_phone(contact.phone_number), "contact")
        return RecipientResolution.failed(
            ResolutionFailure.AMBIGUOUS_OR_INVALID_FORMAT,
            INVALID_RECIPIENT,
            "contact",
        )


def _distinct_targets(contacts: List[Contact]) -> Set[str]:
    targets = set()
    for contact in contacts:
        targets.add((contact.wallet_address or contact.phone_number or "").lower())
    return targets
