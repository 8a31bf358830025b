"""
Anchor instruction encoding for the Solana mcm and timelock programs.

Instruction data is the 8-byte Anchor discriminator (first 8 bytes of
sha256("global:<name>")) followed by the Borsh encoding of the arguments:
little-endian integers, raw fixed-size arrays, and u32-length-prefixed
vectors and byte strings.
"""

import struct
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Sequence

from ..constants import SOLANA_SYSTEM_PROGRAM_ID
from ..crypto.hashing import sha256
from ..exceptions import InvalidAdditionalFields
from .address import decode_pubkey, encode_pubkey


# ══════════════════════════════════════════════════════════════════════
#  ACCOUNTS AND INSTRUCTIONS
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class AccountMeta:
    """
    Attributes:
        public_key: base58 account key
        is_signer: Account must sign the transaction
        is_writable: Account is mutated by the instruction
    """
    public_key: str
    is_signer: bool = False
    is_writable: bool = False

    @property
    def key_bytes(self) -> bytes:
        return decode_pubkey(self.public_key)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "publicKey": self.public_key,
            "isSigner": self.is_signer,
            "isWritable": self.is_writable,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AccountMeta":
        key = data.get("publicKey", data.get("PublicKey"))
        if not key:
            raise InvalidAdditionalFields(f"solana account is missing its public key: {data!r}")
        decode_pubkey(key)
        return cls(
            public_key=key,
            is_signer=bool(data.get("isSigner", data.get("IsSigner", False))),
            is_writable=bool(data.get("isWritable", data.get("IsWritable", False))),
        )


def account(key: bytes, signer: bool = False, writable: bool = False) -> AccountMeta:
    return AccountMeta(encode_pubkey(key), signer, writable)


@dataclass
class Instruction:
    program_id: str
    name: str
    accounts: List[AccountMeta] = field(default_factory=list)
    data: bytes = b""

    def to_arguments(self) -> Dict[str, Any]:
        """Payload handed to ChainClient.submit."""
        return {
            "data": self.data,
            "accounts": [a.to_dict() for a in self.accounts],
        }


# ══════════════════════════════════════════════════════════════════════
#  BORSH
# ══════════════════════════════════════════════════════════════════════

def discriminator(name: str) -> bytes:
    return sha256(f"global:{name}".encode())[:8]


def u8(value: int) -> bytes:
    return struct.pack("<B", value)


def u32(value: int) -> bytes:
    return struct.pack("<I", value)


def u64(value: int) -> bytes:
    return struct.pack("<Q", value)


def boolean(value: bool) -> bytes:
    return b"\x01" if value else b"\x00"


def fixed(value: bytes, size: int) -> bytes:
    if len(value) != size:
        raise ValueError(f"expected {size} bytes, got {len(value)}")
    return bytes(value)


def byte_vec(value: bytes) -> bytes:
    return u32(len(value)) + bytes(value)


def vec(items: Sequence[Any], encode_item: Callable[[Any], bytes]) -> bytes:
    return u32(len(items)) + b"".join(encode_item(item) for item in items)


def instruction_account(meta: AccountMeta) -> bytes:
    """timelock InstructionAccount {pubkey, is_signer, is_writable}."""
    return meta.key_bytes + boolean(meta.is_signer) + boolean(meta.is_writable)


@dataclass
class InstructionData:
    """An instruction stored inside a timelock operation."""
    program_id: bytes
    data: bytes
    accounts: List[AccountMeta] = field(default_factory=list)

    def encode(self) -> bytes:
        return (
            fixed(self.program_id, 32)
            + byte_vec(self.data)
            + vec(self.accounts, instruction_account)
        )


def _build(program_id: bytes, name: str, args: bytes, accounts: List[AccountMeta]) -> Instruction:
    return Instruction(encode_pubkey(program_id), name, accounts, discriminator(name) + args)


_SYSTEM_PROGRAM = AccountMeta(SOLANA_SYSTEM_PROGRAM_ID)


# ══════════════════════════════════════════════════════════════════════
#  MCM PROGRAM
# ══════════════════════════════════════════════════════════════════════

def init_signers(program_id, seed, total_signers, config_pda, config_signers_pda, authority) -> Instruction:
    return _build(program_id, "init_signers", fixed(seed, 32) + u8(total_signers), [
        account(config_pda),
        account(config_signers_pda, writable=True),
        account(authority, signer=True, writable=True),
        _SYSTEM_PROGRAM,
    ])


def append_signers(program_id, seed, signers: Sequence[bytes], config_pda, config_signers_pda, authority) -> Instruction:
    args = fixed(seed, 32) + vec(signers, lambda s: fixed(s, 20))
    return _build(program_id, "append_signers", args, [
        account(config_pda),
        account(config_signers_pda, writable=True),
        account(authority, signer=True, writable=True),
    ])


def finalize_signers(program_id, seed, config_pda, config_signers_pda, authority) -> Instruction:
    return _build(program_id, "finalize_signers", fixed(seed, 32), [
        account(config_pda),
        account(config_signers_pda, writable=True),
        account(authority, signer=True, writable=True),
    ])


def set_config(
    program_id, seed, signer_groups: Sequence[int], group_quorums: Sequence[int],
    group_parents: Sequence[int], clear_root: bool,
    config_pda, config_signers_pda, root_metadata_pda, expiring_root_pda, authority,
) -> Instruction:
    args = (
        fixed(seed, 32)
        + byte_vec(bytes(signer_groups))
        + fixed(bytes(group_quorums), 32)
        + fixed(bytes(group_parents), 32)
        + boolean(clear_root)
    )
    return _build(program_id, "set_config", args, [
        account(config_pda, writable=True),
        account(config_signers_pda, writable=True),
        account(root_metadata_pda, writable=True),
        account(expiring_root_pda, writable=True),
        account(authority, signer=True, writable=True),
        _SYSTEM_PROGRAM,
    ])


def _root_args(seed, root, valid_until) -> bytes:
    return fixed(seed, 32) + fixed(root, 32) + u32(valid_until)


def init_signatures(program_id, seed, root, valid_until, total_signatures, signatures_pda, authority) -> Instruction:
    return _build(program_id, "init_signatures", _root_args(seed, root, valid_until) + u8(total_signatures), [
        account(signatures_pda, writable=True),
        account(authority, signer=True, writable=True),
        _SYSTEM_PROGRAM,
    ])


def append_signatures(program_id, seed, root, valid_until, signatures, signatures_pda, authority) -> Instruction:
    """``signatures`` are (v, r, s) tuples."""
    args = _root_args(seed, root, valid_until) + vec(
        signatures, lambda sig: u8(sig[0]) + fixed(sig[1], 32) + fixed(sig[2], 32)
    )
    return _build(program_id, "append_signatures", args, [
        account(signatures_pda, writable=True),
        account(authority, signer=True, writable=True),
    ])


def finalize_signatures(program_id, seed, root, valid_until, signatures_pda, authority) -> Instruction:
    return _build(program_id, "finalize_signatures", _root_args(seed, root, valid_until), [
        account(signatures_pda, writable=True),
        account(authority, signer=True, writable=True),
    ])


def set_root(
    program_id, seed, root, valid_until, chain_id: int, multisig: bytes,
    pre_op_count: int, post_op_count: int, override_previous_root: bool, proof: Sequence[bytes],
    signatures_pda, root_metadata_pda, seen_signed_hashes_pda, expiring_root_pda, config_pda, authority,
) -> Instruction:
    metadata = (
        u64(chain_id) + fixed(multisig, 32) + u64(pre_op_count)
        + u64(post_op_count) + boolean(override_previous_root)
    )
    args = _root_args(seed, root, valid_until) + metadata + vec(proof, lambda p: fixed(p, 32))
    return _build(program_id, "set_root", args, [
        account(signatures_pda, writable=True),
        account(root_metadata_pda, writable=True),
        account(seen_signed_hashes_pda, writable=True),
        account(expiring_root_pda, writable=True),
        account(config_pda),
        account(authority, signer=True, writable=True),
        _SYSTEM_PROGRAM,
    ])


def execute(
    program_id, seed, chain_id: int, nonce: int, data: bytes, proof: Sequence[bytes],
    config_pda, root_metadata_pda, expiring_root_pda, to_program, signer_pda, authority,
    remaining: Sequence[AccountMeta] = (),
) -> Instruction:
    args = fixed(seed, 32) + u64(chain_id) + u64(nonce) + byte_vec(data) + vec(proof, lambda p: fixed(p, 32))
    return _build(program_id, "execute", args, [
        account(config_pda),
        account(root_metadata_pda),
        account(expiring_root_pda, writable=True),
        account(to_program),
        account(signer_pda),
        account(authority, signer=True, writable=True),
        *remaining,
    ])


# ══════════════════════════════════════════════════════════════════════
#  TIMELOCK PROGRAM
# ══════════════════════════════════════════════════════════════════════

def initialize_operation(
    program_id, seed, op_id, predecessor, salt, instruction_count: int,
    operation_pda, config_pda, role_controller, authority,
) -> Instruction:
    args = fixed(seed, 32) + fixed(op_id, 32) + fixed(predecessor, 32) + fixed(salt, 32) + u32(instruction_count)
    return _build(program_id, "initialize_operation", args, [
        account(operation_pda, writable=True),
        account(config_pda),
        account(role_controller),
        account(authority, signer=True, writable=True),
        _SYSTEM_PROGRAM,
    ])


def append_instructions(
    program_id, seed, op_id, batch: Sequence[InstructionData],
    operation_pda, config_pda, role_controller, authority,
) -> Instruction:
    args = fixed(seed, 32) + fixed(op_id, 32) + vec(batch, lambda ix: ix.encode())
    return _build(program_id, "append_instructions", args, [
        account(operation_pda, writable=True),
        account(config_pda),
        account(role_controller),
        account(authority, signer=True, writable=True),
        _SYSTEM_PROGRAM,
    ])


def finalize_operation(program_id, seed, op_id, operation_pda, config_pda, role_controller, authority) -> Instruction:
    return _build(program_id, "finalize_operation", fixed(seed, 32) + fixed(op_id, 32), [
        account(operation_pda, writable=True),
        account(config_pda),
        account(role_controller),
        account(authority, signer=True, writable=True),
    ])


def schedule_batch(program_id, seed, op_id, delay: int, operation_pda, config_pda, role_controller, authority) -> Instruction:
    return _build(program_id, "schedule_batch", fixed(seed, 32) + fixed(op_id, 32) + u64(delay), [
        account(operation_pda, writable=True),
        account(config_pda),
        account(role_controller),
        account(authority, signer=True, writable=True),
    ])


def cancel(program_id, seed, op_id, operation_pda, config_pda, role_controller, authority) -> Instruction:
    return _build(program_id, "cancel", fixed(seed, 32) + fixed(op_id, 32), [
        account(operation_pda, writable=True),
        account(config_pda),
        account(role_controller),
        account(authority, signer=True, writable=True),
    ])


def bypasser_execute_batch(
    program_id, seed, op_id, operation_pda, config_pda, timelock_signer_pda, role_controller, authority,
    remaining: Sequence[AccountMeta] = (),
) -> Instruction:
    return _build(program_id, "bypasser_execute_batch", fixed(seed, 32) + fixed(op_id, 32), [
        account(operation_pda, writable=True),
        account(config_pda),
        account(timelock_signer_pda),
        account(role_controller),
        account(authority, signer=True, writable=True),
        *remaining,
    ])


def execute_batch(
    program_id, seed, op_id, operation_pda, predecessor_operation_pda, config_pda,
    timelock_signer_pda, role_controller, authority, remaining: Sequence[AccountMeta] = (),
) -> Instruction:
    return _build(program_id, "execute_batch", fixed(seed, 32) + fixed(op_id, 32), [
        account(operation_pda, writable=True),
        account(predecessor_operation_pda),
        account(config_pda),
        account(timelock_signer_pda),
        account(role_controller),
        account(authority, signer=True, writable=True),
        *remaining,
    ])


def initialize_bypasser_operation(
    program_id, seed, op_id, salt, instruction_count: int,
    operation_pda, config_pda, role_controller, authority,
) -> Instruction:
    args = fixed(seed, 32) + fixed(op_id, 32) + fixed(salt, 32) + u32(instruction_count)
    return _build(program_id, "initialize_bypasser_operation", args, [
        account(operation_pda, writable=True),
        account(config_pda),
        account(role_controller),
        account(authority, signer=True, writable=True),
        _SYSTEM_PROGRAM,
    ])


def append_bypasser_instructions(
    program_id, seed, op_id, batch: Sequence[InstructionData],
    operation_pda, config_pda, role_controller, authority,
) -> Instruction:
    args = fixed(seed, 32) + fixed(op_id, 32) + vec(batch, lambda ix: ix.encode())
    return _build(program_id, "append_bypasser_instructions", args, [
        account(operation_pda, writable=True),
        account(config_pda),
        account(role_controller),
        account(authority, signer=True, writable=True),
        _SYSTEM_PROGRAM,
    ])


def finalize_bypasser_operation(program_id, seed, op_id, operation_pda, config_pda, role_controller, authority) -> Instruction:
    return _build(program_id, "finalize_bypasser_operation", fixed(seed, 32) + fixed(op_id, 32), [
        account(operation_pda, writable=True),
        account(config_pda),
        account(role_controller),
        account(authority, signer=True, writable=True),
    ])
