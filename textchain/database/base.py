"""
Repository contracts consumed by the command processor.

Storage failures of any kind surface as ``UnavailableError`` carrying the
offline reply for that repository; callers never see backend-specific
exceptions.
"""
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import List, Optional

from textchain.models.domain import Contact, Deposit, UserAccount

DIRECTORY_OFFLINE = "DB offline. Try later."
CONTACTS_OFFLINE = "Address book offline."
LEDGER_OFFLINE = "History offline. Try later."


class AccountDirectory(ABC):
    """Wallet accounts keyed by phone number. At most one account per phone."""

    @abstractmethod
    async def find_by_phone(self, phone: str) -> Optional[UserAccount]:
        ...

    @abstractmethod
    async def create(self, phone: str, address: str, encrypted_key: str) -> UserAccount:
        """Create an account, or return the existing one if the phone already has one."""

    @abstractmethod
    async def update_alias(self, phone: str, alias: str) -> None:
        ...

    @abstractmethod
    async def update_pin_hash(self, phone: str, pin_hash: str) -> None:
        ...


class ContactBook(ABC):
    """Per-principal saved aliases."""

    @abstractmethod
    async def add(
        self,
        owner_phone: str,
        name: str,
        phone: Optional[str] = None,
        address: Optional[str] = None,
    ) -> Contact:
        ...

    @abstractmethod
    async def list(self, owner_phone: str) -> List[Contact]:
        ...

    @abstractmethod
    async def find_by_name(self, owner_phone: str, name: str) -> List[Contact]:
        """Contacts whose name matches ``name`` case-insensitively."""


class DepositLedger(ABC):
    """Credits received by wallets."""

    @abstractmethod
    async def recent(self, phone: str, limit: int) -> List[Deposit]:
        """Most recent deposits first."""

    @abstractmethod
    async def record(
        self,
        phone: str,
        amount: Decimal,
        source: str,
        tx_hash: Optional[str] = None,
    ) -> Deposit:
        ...
