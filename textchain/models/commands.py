"""
Command model: the closed set of intents an inbound SMS can express.

Commands are immutable and built fresh for every inbound message.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional


class Command:
    """Base class for every parsed command."""

    kind = "command"


@dataclass(frozen=True)
class Help(Command):
    kind = "help"


@dataclass(frozen=True)
class Join(Command):
    """Create a wallet, optionally claiming a human-readable name."""

    kind = "join"
    alias: Optional[str] = None


@dataclass(frozen=True)
class Balance(Command):
    kind = "balance"


@dataclass(frozen=True)
class SetPin(Command):
    kind = "pin"
    new_pin: Optional[str] = None


@dataclass(frozen=True)
class Send(Command):
    """Transfer ``amount`` of ``token`` to a recipient given as free text."""

    kind = "send"
    amount: Decimal
    token: str
    recipient: str


@dataclass(frozen=True)
class Deposit(Command):
    kind = "deposit"


@dataclass(frozen=True)
class History(Command):
    kind = "history"


@dataclass(frozen=True)
class Redeem(Command):
    kind = "redeem"
    code: str


@dataclass(frozen=True)
class Swap(Command):
    kind = "swap"
    amount: Decimal
    token: str


@dataclass(frozen=True)
class Cashout(Command):
    kind = "cashout"
    amount: Decimal
    token: str


@dataclass(frozen=True)
class Buy(Command):
    kind = "buy"
    amount: Decimal


@dataclass(frozen=True)
class Bridge(Command):
    kind = "bridge"
    amount: Decimal
    token: str
    source_chain: str
    destination_chain: str


@dataclass(frozen=True)
class SaveContact(Command):
    kind = "save"
    name: str
    phone: str


@dataclass(frozen=True)
class ListContacts(Command):
    kind = "contacts"


@dataclass(frozen=True)
class SwitchChain(Command):
    kind = "chain"
    chain: str


@dataclass(frozen=True)
class Unrecognized(Command):
    """
    Text that did not parse into a command.

    ``usage`` is set when the keyword was recognised but its arguments were
    not; the reply is then exactly that usage string.
    """

    kind = "unrecognized"
    text: str = ""
    usage: Optional[str] = None
