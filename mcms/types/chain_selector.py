"""
Chain selectors and chain families.

A chain selector is a 64-bit identifier that names one deployment target.
The registry maps each selector to the family whose adapters handle it and
to the chain's native id (an EVM chain id, a Solana genesis hash, ...).
"""

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Union

from ..exceptions import InvalidChainID, UnknownChainSelector


ChainSelector = int


class ChainFamily(str, Enum):
    """Supported chain families."""
    EVM = "evm"
    SOLANA = "solana"
    CANTON = "canton"


@dataclass(frozen=True)
class ChainDetails:
    selector: int
    family: ChainFamily
    chain_id: Union[int, str]
    name: str = ""


_REGISTRY: Dict[int, ChainDetails] = {}
_registry_lock = threading.Lock()


def register_chain(
    selector: int,
    family: Union[ChainFamily, str],
    chain_id: Union[int, str],
    name: str = "",
) -> ChainDetails:
    """Add (or replace) a selector in the registry."""
    if selector <= 0 or selector >= 2 ** 64:
        raise UnknownChainSelector(f"chain selector {selector} out of uint64 range")
    details = ChainDetails(selector, ChainFamily(family), chain_id, name)
    with _registry_lock:
        _REGISTRY[selector] = details
    return details


def get_chain_details(selector: int) -> ChainDetails:
    details = _REGISTRY.get(int(selector))
    if details is None:
        raise UnknownChainSelector(f"chain family not found for selector {selector}")
    return details


def get_chain_family(selector: int) -> ChainFamily:
    return get_chain_details(selector).family


def get_evm_chain_id(selector: int) -> int:
    """Native EVM chain id of an EVM selector."""
    details = get_chain_details(selector)
    if details.family != ChainFamily.EVM or not isinstance(details.chain_id, int):
        raise InvalidChainID(f"selector {selector} is not an EVM chain")
    return details.chain_id


# ── Well-known chains ────────────────────────────────────────────────

for _sel, _family, _chain_id, _name in (
    (5009297550715157269, ChainFamily.EVM, 1, "ethereum-mainnet"),
    (16015286601757825753, ChainFamily.EVM, 11155111, "ethereum-testnet-sepolia"),
    (10344971235874465080, ChainFamily.EVM, 84532, "ethereum-testnet-sepolia-base-1"),
    (3379446385462418246, ChainFamily.EVM, 1337, "geth-testnet"),
    (124615329519749607, ChainFamily.SOLANA, "5eykt4UsFv8P8NJdTREpY1vzqKqZKvdpKuc147dw2N9d", "solana-mainnet"),
    (16423721717087811551, ChainFamily.SOLANA, "EtWTRABZaYq6iMfeYKouRu166VU2xqa1wcaWoxPkrZBG", "solana-devnet"),
    (6302590918974934319, ChainFamily.SOLANA, "4uhcVJyU9pJkvQyS88uRDiswHXSCkY3zQawwpjk2NsNY", "solana-testnet"),
):
    register_chain(_sel, _family, _chain_id, _name)
