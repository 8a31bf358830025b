"""
Solana leaf encoder.

The mcm program hashes a raw concatenation rather than an ABI encoding:
integers are u64 little-endian placed in the last 8 bytes of a 32-byte
word, keys are raw 32-byte public keys, and the contract is identified by
its multisig config PDA.
"""

from typing import Iterable

from ..constants import (
    SOLANA_METADATA_DOMAIN_SEPARATOR_TEXT,
    SOLANA_OP_DOMAIN_SEPARATOR_TEXT,
)
from ..crypto.hashing import keccak256
from ..sdk.interfaces import Encoder
from ..types.operation import ChainMetadata, Operation
from .address import find_config_pda, parse_contract_address, parse_program_id
from .fields import AdditionalFields

OP_DOMAIN_SEPARATOR = keccak256(SOLANA_OP_DOMAIN_SEPARATOR_TEXT)
METADATA_DOMAIN_SEPARATOR = keccak256(SOLANA_METADATA_DOMAIN_SEPARATOR_TEXT)


def u64_le_padded(n: int) -> bytes:
    return b"\x00" * 24 + int(n).to_bytes(8, "little")


def bool_padded(b: bool) -> bytes:
    return b"\x00" * 31 + (b"\x01" if b else b"\x00")


def _hash(buffers: Iterable[bytes]) -> bytes:
    return keccak256(b"".join(buffers))


class SolanaEncoder(Encoder):

    def hash_operation(self, op_count: int, metadata: ChainMetadata, op: Operation) -> bytes:
        program_id, seed = parse_contract_address(metadata.mcm_address)
        config_pda = find_config_pda(program_id, seed)
        to_program = parse_program_id(op.transaction.to)
        fields = AdditionalFields.from_dict(op.transaction.additional_fields)
        data = op.transaction.data

        buffers = [
            OP_DOMAIN_SEPARATOR,
            u64_le_padded(self.chain_selector),
            config_pda,
            u64_le_padded(op_count),
            to_program,
            u64_le_padded(len(data)),
            data,
            u64_le_padded(len(fields.accounts)),
        ]
        for meta in fields.accounts:
            flags = (0b10 if meta.is_signer else 0) | (0b01 if meta.is_writable else 0)
            buffers.append(meta.key_bytes + bytes([flags]))
        return _hash(buffers)

    def hash_metadata(self, metadata: ChainMetadata) -> bytes:
        program_id, seed = parse_contract_address(metadata.mcm_address)
        config_pda = find_config_pda(program_id, seed)
        return _hash([
            METADATA_DOMAIN_SEPARATOR,
            u64_le_padded(self.chain_selector),
            config_pda,
            u64_le_padded(metadata.starting_op_count),
            u64_le_padded(metadata.starting_op_count + self.tx_count),
            bool_padded(self.override_previous_root),
        ])
