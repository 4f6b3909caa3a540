"""
Entities owned by the external repositories.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from textchain.utils.formatting import short_address


@dataclass
class UserAccount:
    """A custodial wallet keyed by the owner's phone number."""

    phone_number: str
    wallet_address: str
    encrypted_private_key: str
    alias: Optional[str] = None
    pin_hash: Optional[str] = None

    @property
    def short_address(self) -> str:
        """Address abbreviated to ``0xabcd...1234`` for SMS replies."""
        return short_address(self.wallet_address)


@dataclass
class Contact:
    """A saved alias in a principal's address book."""

    owner_phone: str
    name: str
    phone_number: Optional[str] = None
    wallet_address: Optional[str] = None

    @property
    def is_usable(self) -> bool:
        return bool(self.phone_number or self.wallet_address)

    def to_sms_string(self) -> str:
        if self.phone_number:
            return f"{self.name}: {self.phone_number}"
        if self.wallet_address:
            return f"{self.name}: {short_address(self.wallet_address)}"
        return self.name


@dataclass
class Deposit:
    """A credit to a wallet, labelled with where it came from."""

    phone_number: str
    amount: Decimal
    source: str
    tx_hash: Optional[str] = None


@dataclass(frozen=True)
class NewWallet:
    """Freshly generated wallet material ready to be stored."""

    address: str
    encrypted_private_key: str
