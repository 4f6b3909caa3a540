"""
In-memory repositories for local development and tests.

Each repository can be switched offline to exercise the unavailability
paths without a real backend.
"""
from decimal import Decimal
from typing import Dict, List, Optional

import structlog

from textchain.core.exceptions import UnavailableError
from textchain.database.base import (
    CONTACTS_OFFLINE,
    DIRECTORY_OFFLINE,
    LEDGER_OFFLINE,
    AccountDirectory,
    ContactBook,
    DepositLedger,
)
from textchain.models.domain import Contact, Deposit, UserAccount

logger = structlog.get_logger(__name__)


class InMemoryAccountDirectory(AccountDirectory):

    def __init__(self):
        self.accounts: Dict[str, UserAccount] = {}
        self.offline = False

    def _check(self) -> None:
        if self.offline:
            raise UnavailableError("account_directory", DIRECTORY_OFFLINE)

    async def find_by_phone(self, phone: str) -> Optional[UserAccount]:
        self._check()
        return self.accounts.get(phone)

    async def create(self, phone: str, address: str, encrypted_key: str) -> UserAccount:
        self._check()
        existing = self.accounts.get(phone)
        if existing is not None:
            logger.info("Account already exists, returning it", wallet_address=existing.wallet_address)
            return existing

        account = UserAccount(
            phone_number=phone,
            wallet_address=address,
            encrypted_private_key=encrypted_key,
        )
        self.accounts[phone] = account
        return account

    async def update_alias(self, phone: str, alias: str) -> None:
        self._check()
        if phone in self.accounts:
            self.accounts[phone].alias = alias

    async def update_pin_hash(self, phone: str, pin_hash: str) -> None:
        self._check()
        if phone in self.accounts:
            self.accounts[phone].pin_hash = pin_hash


class InMemoryContactBook(ContactBook):

    def __init__(self):
        self.contacts: Dict[str, List[Contact]] = {}
        self.offline = False

    def _check(self) -> None:
        if self.offline:
            raise UnavailableError("contact_book", CONTACTS_OFFLINE)

    async def add(
        self,
        owner_phone: str,
        name: str,
        phone: Optional[str] = None,
        address: Optional[str] = None,
    ) -> Contact:
        self._check()
        contact = Contact(owner_phone=owner_phone, name=name, phone_number=phone, wallet_address=address)
        entries = self.contacts.setdefault(owner_phone, [])
        # Saving an existing name replaces it
        entries[:] = [c for c in entries if c.name.lower() != name.lower()]
        entries.append(contact)
        return contact

    async def list(self, owner_phone: str) -> List[Contact]:
        self._check()
        return sorted(self.contacts.get(owner_phone, []), key=lambda c: c.name.lower())

    async def find_by_name(self, owner_phone: str, name: str) -> List[Contact]:
        self._check()
        return [c for c in self.contacts.get(owner_phone, []) if c.name.lower() == name.lower()]


class InMemoryDepositLedger(DepositLedger):

    def __init__(self):
        self.deposits: Dict[str, List[Deposit]] = {}
        self.offline = False

    def _check(self) -> None:
        if self.offline:
            raise UnavailableError("deposit_ledger", LEDGER_OFFLINE)

    async def recent(self, phone: str, limit: int) -> List[Deposit]:
        self._check()
        return list(reversed(self.deposits.get(phone, [])))[:limit]

    async def record(
        self,
        phone: str,
        amount: Decimal,
        source: str,
        tx_hash: Optional[str] = None,
    ) -> Deposit:
        self._check()
        deposit = Deposit(phone_number=phone, amount=amount, source=source, tx_hash=tx_hash)
        self.deposits.setdefault(phone, []).append(deposit)
        return deposit
