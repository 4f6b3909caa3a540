"""
SMS command grammar.

Inbound text is trimmed and split on whitespace. The first token selects a
command family through the keyword table; the family's sub-parser then
checks the remaining tokens and either builds a command or returns
``Unrecognized`` carrying the family's usage string. Keywords, token
symbols, chain names and voucher codes are matched upper-case; recipients,
names, PINs and phone numbers keep the casing the sender used.
"""
from decimal import Decimal, InvalidOperation
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Tuple

import structlog

from textchain.models.commands import (
    Balance,
    Bridge,
    Buy,
    Cashout,
    Command,
    Deposit,
    Help,
    History,
    Join,
    ListContacts,
    Redeem,
    SaveContact,
    Send,
    SetPin,
    Swap,
    SwitchChain,
    Unrecognized,
)

logger = structlog.get_logger(__name__)

SubParser = Callable[[List[str]], Command]

JOIN_USAGE = "Usage: JOIN [name]"
PIN_USAGE = "Usage: PIN <4-6 digits>"
SEND_USAGE = "Usage: SEND <amount> <token> TO <recipient>\nExample: SEND 10 TXTC TO +15551234567"
REDEEM_USAGE = "Usage: REDEEM <code>"
SWAP_USAGE = "Usage: SWAP <amount> <token>\nExample: SWAP 100 TXTC"
CASHOUT_USAGE = "Usage: CASHOUT <amount> <token>\nExample: CASHOUT 100 TXTC"
BUY_USAGE = "Usage: BUY <amount>\nExample: BUY 10"
BRIDGE_USAGE = (
    "Usage: BRIDGE <amount> <token> FROM <chain> TO <chain>\n"
    "Example: BRIDGE 10 USDC FROM POLYGON TO BASE"
)
SAVE_USAGE = "Usage: SAVE <name> <phone>"
CHAIN_USAGE = "Usage: CHAIN <polygon|base|eth|arb>"
INVALID_AMOUNT = "Invalid amount"


def parse_amount(text: str) -> Optional[Decimal]:
    """Parse a decimal amount, returning None for anything non-numeric or non-finite."""
    try:
        amount = Decimal(text)
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite():
        return None
    return amount


def _usage(text: str) -> Unrecognized:
    return Unrecognized(usage=text)


def _parse_help(words: List[str]) -> Command:
    return Help()


def _parse_join(words: List[str]) -> Command:
    return Join(alias=words[1] if len(words) > 1 else None)


def _parse_balance(words: List[str]) -> Command:
    return Balance()


def _parse_pin(words: List[str]) -> Command:
    return SetPin(new_pin=words[1] if len(words) > 1 else None)


def _parse_send(words: List[str]) -> Command:
    if len(words) < 4:
        return _usage(SEND_USAGE)

    amount = parse_amount(words[1])
    if amount is None:
        return _usage(INVALID_AMOUNT)

    rest = words[3:]
    if rest[0].upper() == "TO":
        rest = rest[1:]
    if not rest:
        return _usage(SEND_USAGE)

    return Send(amount=amount, token=words[2].upper(), recipient=" ".join(rest))


def _parse_deposit(words: List[str]) -> Command:
    return Deposit()


def _parse_history(words: List[str]) -> Command:
    return History()


def _parse_redeem(words: List[str]) -> Command:
    if len(words) < 2:
        return _usage(REDEEM_USAGE)
    return Redeem(code=words[1].upper())


def _amount_and_token(words: List[str], usage: str, build: Callable[[Decimal, str], Command]) -> Command:
    if len(words) != 3:
        return _usage(usage)
    amount = parse_amount(words[1])
    if amount is None:
        return _usage(INVALID_AMOUNT)
    return build(amount, words[2].upper())


def _parse_swap(words: List[str]) -> Command:
    return _amount_and_token(words, SWAP_USAGE, lambda amount, token: Swap(amount=amount, token=token))


def _parse_cashout(words: List[str]) -> Command:
    return _amount_and_token(words, CASHOUT_USAGE, lambda amount, token: Cashout(amount=amount, token=token))


def _parse_buy(words: List[str]) -> Command:
    if len(words) != 2:
        return _usage(BUY_USAGE)
    amount = parse_amount(words[1])
    if amount is None:
        return _usage(INVALID_AMOUNT)
    return Buy(amount=amount)


def _bridge_chains(words: List[str]) -> Optional[Tuple[str, str]]:
    """Pick source and destination out of the three accepted surface forms."""
    upper = [word.upper() for word in words]
    markers = ("FROM", "TO")

    # BRIDGE <amt> <token> FROM <x> TO <y>
    if len(words) == 7 and upper[3] == "FROM" and upper[5] == "TO":
        chains = (upper[4], upper[6])
    # BRIDGE <amt> <token> FROM <x> <y>
    elif len(words) == 6 and upper[3] == "FROM":
        chains = (upper[4], upper[5])
    # BRIDGE <amt> <token> <x> <y>
    elif len(words) == 5:
        chains = (upper[3], upper[4])
    else:
        return None

    if any(chain in markers for chain in chains):
        return None
    return chains


def _parse_bridge(words: List[str]) -> Command:
    chains = _bridge_chains(words)
    if chains is None:
        return _usage(BRIDGE_USAGE)

    amount = parse_amount(words[1])
    if amount is None:
        return _usage(INVALID_AMOUNT)

    return Bridge(
        amount=amount,
        token=words[2].upper(),
        source_chain=chains[0],
        destination_chain=chains[1],
    )


def _parse_save(words: List[str]) -> Command:
    if len(words) < 3:
        return _usage(SAVE_USAGE)
    return SaveContact(name=words[1], phone=" ".join(words[2:]))


def _parse_contacts(words: List[str]) -> Command:
    return ListContacts()


def _parse_chain(words: List[str]) -> Command:
    if len(words) < 2:
        return _usage(CHAIN_USAGE)
    return SwitchChain(chain=words[1].upper())


class CommandGrammar:
    """Keyword table mapping synonym sets to sub-parsers."""

    def __init__(self):
        self._families: List[Tuple[FrozenSet[str], SubParser]] = []
        self._by_keyword: Dict[str, SubParser] = {}

    def register(self, keywords: Iterable[str], parser: SubParser) -> None:
        """
        Register a command family.

        Args:
            keywords: Upper-case synonyms that select the family
            parser: Builds the command from the whitespace-split words

        Raises:
            ValueError: If a keyword is already claimed by another family
        """
        keyword_set = frozenset(keyword.upper() for keyword in keywords)
        clashes = keyword_set & self._by_keyword.keys()
        if clashes:
            raise ValueError(f"Keywords already registered: {sorted(clashes)}")

        self._families.append((keyword_set, parser))
        for keyword in keyword_set:
            self._by_keyword[keyword] = parser

    @property
    def keywords(self) -> FrozenSet[str]:
        return frozenset(self._by_keyword)

    def parse(self, text: Optional[str]) -> Command:
        """
        Turn raw SMS text into a command. Never raises.

        Args:
            text: Message body as received

        Returns:
            The parsed command, or ``Unrecognized`` when the text does not fit
        """
        stripped = (text or "").strip()
        words = stripped.split()
        if not words:
            return Unrecognized(text="")

        parser = self._by_keyword.get(words[0].upper())
        if parser is None:
            return Unrecognized(text=stripped)

        command = parser(words)
        logger.debug(
            "Command parsed",
            keyword=words[0].upper(),
            command=command.kind,
            usage=getattr(command, "usage", None),
        )
        return command


def build_grammar() -> CommandGrammar:
    """Build the grammar with every supported command family."""
    grammar = CommandGrammar()
    grammar.register(("HELP", "?", "COMMANDS"), _parse_help)
    grammar.register(("JOIN", "START", "REGISTER"), _parse_join)
    grammar.register(("BALANCE", "BAL"), _parse_balance)
    grammar.register(("PIN",), _parse_pin)
    grammar.register(("SEND",), _parse_send)
    grammar.register(("DEPOSIT", "RECEIVE"), _parse_deposit)
    grammar.register(("HISTORY", "TRANSACTIONS", "TXS"), _parse_history)
    grammar.register(("REDEEM", "VOUCHER", "CODE"), _parse_redeem)
    grammar.register(("SWAP", "CONVERT"), _parse_swap)
    grammar.register(("CASHOUT", "WITHDRAW"), _parse_cashout)
    grammar.register(("BUY",), _parse_buy)
    grammar.register(("BRIDGE",), _parse_bridge)
    grammar.register(("SAVE", "ADD"), _parse_save)
    grammar.register(("CONTACTS", "BOOK"), _parse_contacts)
    grammar.register(("CHAIN", "NETWORK"), _parse_chain)
    return grammar


default_grammar = build_grammar()


def parse(text: Optional[str]) -> Command:
    """Parse ``text`` with the default grammar."""
    return default_grammar.parse(text)
