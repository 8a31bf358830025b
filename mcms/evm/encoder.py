"""
EVM leaf encoder.

Leaves are keccak256 over the ABI encoding of (domain separator, struct),
exactly as ManyChainMultiSig hashes the Op and RootMetadata structs it
verifies against the signed root.
"""

from typing import Tuple

from eth_abi import encode

from ..constants import (
    EVM_METADATA_DOMAIN_SEPARATOR_TEXT,
    EVM_OP_DOMAIN_SEPARATOR_TEXT,
    SIMULATED_EVM_CHAIN_ID,
)
from ..crypto.hashing import keccak256
from ..sdk.interfaces import Encoder
from ..types.chain_selector import get_evm_chain_id
from ..types.operation import ChainMetadata, Operation
from .abi import OP_TUPLE, ROOT_METADATA_TUPLE
from .fields import parse_address, validate_transaction

OP_DOMAIN_SEPARATOR = keccak256(EVM_OP_DOMAIN_SEPARATOR_TEXT)
METADATA_DOMAIN_SEPARATOR = keccak256(EVM_METADATA_DOMAIN_SEPARATOR_TEXT)


class EVMEncoder(Encoder):
    """
    Attributes:
        is_sim: Bind leaves to the simulated chain id instead of the
            selector's registered chain id
    """

    def __init__(self, chain_selector: int, tx_count: int, override_previous_root: bool, is_sim: bool = False):
        super().__init__(chain_selector, tx_count, override_previous_root)
        self.is_sim = is_sim

    @property
    def chain_id(self) -> int:
        if self.is_sim:
            return SIMULATED_EVM_CHAIN_ID
        return get_evm_chain_id(self.chain_selector)

    def to_op_tuple(self, op_count: int, metadata: ChainMetadata, op: Operation) -> Tuple:
        """ManyChainMultiSig.Op for ``op`` at nonce ``op_count``."""
        fields = validate_transaction(op.transaction)
        return (
            self.chain_id,
            parse_address(metadata.mcm_address, "MCM address"),
            op_count,
            parse_address(op.transaction.to, "target address"),
            fields.value,
            op.transaction.data,
        )

    def to_root_metadata_tuple(self, metadata: ChainMetadata) -> Tuple:
        return (
            self.chain_id,
            parse_address(metadata.mcm_address, "MCM address"),
            metadata.starting_op_count,
            metadata.starting_op_count + self.tx_count,
            self.override_previous_root,
        )

    def hash_operation(self, op_count: int, metadata: ChainMetadata, op: Operation) -> bytes:
        encoded = encode(
            ["bytes32", OP_TUPLE],
            [OP_DOMAIN_SEPARATOR, self.to_op_tuple(op_count, metadata, op)],
        )
        return keccak256(encoded)

    def hash_metadata(self, metadata: ChainMetadata) -> bytes:
        encoded = encode(
            ["bytes32", ROOT_METADATA_TUPLE],
            [METADATA_DOMAIN_SEPARATOR, self.to_root_metadata_tuple(metadata)],
        )
        return keccak256(encoded)
