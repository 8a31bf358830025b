"""
Chain-family dispatch.

One closed mapping from ChainFamily to that family's encoder, timelock
converter and field validators. Everything chain-specific the proposal
core needs goes through here, keyed by chain selector.
"""

from typing import Dict, Iterable, Mapping

from ..exceptions import UnsupportedChainFamily
from ..types.chain_selector import ChainFamily, get_chain_family
from ..types.operation import ChainMetadata, Transaction
from .interfaces import Encoder, TimelockConverter


def _family(selector: int) -> ChainFamily:
    family = get_chain_family(selector)
    if family not in (ChainFamily.EVM, ChainFamily.SOLANA, ChainFamily.CANTON):
        raise UnsupportedChainFamily(f"unsupported chain family: {family}")
    return family


def new_encoder(selector: int, tx_count: int, override_previous_root: bool, is_sim: bool = False) -> Encoder:
    """
    Raises:
        UnknownChainSelector: selector is not registered
        UnsupportedChainFamily: no adapter for the selector's family
    """
    family = _family(selector)
    if family == ChainFamily.EVM:
        from ..evm.encoder import EVMEncoder
        return EVMEncoder(selector, tx_count, override_previous_root, is_sim)
    if family == ChainFamily.SOLANA:
        from ..solana.encoder import SolanaEncoder
        return SolanaEncoder(selector, tx_count, override_previous_root)
    from ..canton.encoder import CantonEncoder
    return CantonEncoder(selector, tx_count, override_previous_root)


def new_converter(selector: int) -> TimelockConverter:
    family = _family(selector)
    if family == ChainFamily.EVM:
        from ..evm.timelock import EVMTimelockConverter
        return EVMTimelockConverter()
    if family == ChainFamily.SOLANA:
        from ..solana.timelock import SolanaTimelockConverter
        return SolanaTimelockConverter()
    from ..canton.timelock import CantonTimelockConverter
    return CantonTimelockConverter()


def build_encoders(
    tx_counts: Mapping[int, int],
    override_previous_root: bool,
    is_sim: bool = False,
) -> Dict[int, Encoder]:
    """One encoder per chain, sized by that chain's operation count."""
    return {
        selector: new_encoder(selector, count, override_previous_root, is_sim)
        for selector, count in tx_counts.items()
    }


def build_converters(selectors: Iterable[int]) -> Dict[int, TimelockConverter]:
    return {selector: new_converter(selector) for selector in selectors}


def validate_transaction(selector: int, tx: Transaction, timelock: bool = False) -> None:
    """
    Family-specific checks on an operation's additional fields.

    Canton timelock batch transactions only need parseable fields; the
    converter fills in the target and contract id.

    Raises:
        InvalidAdditionalFields / MissingField: malformed or incomplete fields
    """
    family = _family(selector)
    if family == ChainFamily.EVM:
        from ..evm.fields import validate_transaction as validate
    elif family == ChainFamily.SOLANA:
        from ..solana.fields import validate_transaction as validate
    elif timelock:
        from ..canton.fields import AdditionalFields
        AdditionalFields.from_dict(tx.additional_fields)
        return
    else:
        from ..canton.fields import validate_transaction as validate
    validate(tx)


def validate_chain_metadata(selector: int, metadata: ChainMetadata, timelock: bool = False) -> None:
    """
    Family-specific checks on chain metadata additional fields.

    Solana metadata only matters to timelock conversion, so it is checked
    only when ``timelock`` is set.
    """
    family = _family(selector)
    if family == ChainFamily.SOLANA and timelock:
        from ..solana.fields import validate_chain_metadata as validate
        validate(metadata)
    elif family == ChainFamily.CANTON:
        from ..canton.fields import validate_chain_metadata as validate
        validate(metadata)
