"""
Networks a wallet can be switched or bridged between.
"""
from dataclasses import dataclass
from typing import Dict, Optional, Tuple


@dataclass(frozen=True)
class Chain:
    """A supported network."""

    key: str
    name: str
    chain_id: int
    native_token: str
    aliases: Tuple[str, ...] = ()


CHAINS: Tuple[Chain, ...] = (
    Chain("polygon", "Polygon", 137, "POL", ("matic", "poly", "pol")),
    Chain("base", "Base", 8453, "ETH"),
    Chain("eth", "Ethereum", 1, "ETH", ("ethereum", "mainnet")),
    Chain("arb", "Arbitrum", 42161, "ETH", ("arbitrum", "arb1")),
)

_BY_INPUT: Dict[str, Chain] = {}
for _chain in CHAINS:
    _BY_INPUT[_chain.key] = _chain
    for _alias in _chain.aliases:
        _BY_INPUT[_alias] = _chain


def find_chain(text: str) -> Optional[Chain]:
    """Look a chain up by its key or one of its aliases, ignoring case."""
    return _BY_INPUT.get(text.strip().lower())


def available_chains() -> str:
    return ", ".join(chain.key for chain in CHAINS)
