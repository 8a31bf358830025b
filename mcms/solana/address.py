"""
Solana public keys, program-derived addresses and MCMS contract addresses.

An MCMS instance on Solana is one program plus a 32-byte instance seed.
Its contract address string is "<programID>.<seed>", where the seed is
printed without its zero padding.
"""

from typing import List, Sequence, Tuple

import base58

from ..crypto.hashing import sha256
from ..exceptions import InvalidContractAddress

PDA_MARKER = b"ProgramDerivedAddress"
MAX_SEED_LENGTH = 32
MAX_SEEDS = 16

# ed25519 field prime and curve constant d = -121665/121666
_P = 2 ** 255 - 19
_D = (-121665 * pow(121666, _P - 2, _P)) % _P


# ── Public keys ──────────────────────────────────────────────────────

def decode_pubkey(key: str) -> bytes:
    """
    Raises:
        InvalidContractAddress: not a base58 32-byte key
    """
    try:
        raw = base58.b58decode(key)
    except ValueError as e:
        raise InvalidContractAddress(f"invalid solana public key {key!r}: {e}") from e
    if len(raw) != 32:
        raise InvalidContractAddress(f"invalid solana public key {key!r}: expected 32 bytes, got {len(raw)}")
    return raw


def encode_pubkey(raw: bytes) -> str:
    return base58.b58encode(bytes(raw)).decode()


def is_zero_pubkey(key: str) -> bool:
    return decode_pubkey(key) == b"\x00" * 32


def is_on_curve(point: bytes) -> bool:
    """
    Whether 32 bytes decompress to an ed25519 point.

    Program-derived addresses must not, so no private key can sign for them.
    """
    y = int.from_bytes(point, "little") & ((1 << 255) - 1)
    y2 = y * y % _P
    u = (y2 - 1) % _P
    v = (_D * y2 + 1) % _P
    x2 = u * pow(v, _P - 2, _P) % _P
    return x2 == 0 or pow(x2, (_P - 1) // 2, _P) == 1


# ── Program-derived addresses ────────────────────────────────────────

def create_program_address(seeds: Sequence[bytes], program_id: bytes) -> bytes:
    if len(seeds) > MAX_SEEDS:
        raise ValueError(f"too many seeds: {len(seeds)} max is {MAX_SEEDS}")
    for seed in seeds:
        if len(seed) > MAX_SEED_LENGTH:
            raise ValueError(f"seed too long: {len(seed)} bytes, max is {MAX_SEED_LENGTH}")
    candidate = sha256(b"".join(seeds) + bytes(program_id) + PDA_MARKER)
    if is_on_curve(candidate):
        raise ValueError("invalid seeds, address must fall off the curve")
    return candidate


def find_program_address(seeds: Sequence[bytes], program_id: bytes) -> Tuple[bytes, int]:
    """
    First off-curve address searching the bump seed from 255 down.

    Returns:
        (address, bump)
    """
    for bump in range(255, -1, -1):
        try:
            return create_program_address(list(seeds) + [bytes([bump])], program_id), bump
        except ValueError:
            continue
    raise ValueError(f"unable to find a viable program address bump seed for {seeds[0]!r}")


def find_pda(program_id: bytes, seeds: List[bytes]) -> bytes:
    address, _ = find_program_address(seeds, program_id)
    return address


# ── Contract addresses ───────────────────────────────────────────────

def pad_seed(seed: bytes) -> bytes:
    if len(seed) > MAX_SEED_LENGTH:
        raise InvalidContractAddress(f"pda seed is too long (max {MAX_SEED_LENGTH} bytes)")
    return seed.ljust(MAX_SEED_LENGTH, b"\x00")


def contract_address(program_id: str, seed: bytes) -> str:
    trimmed = pad_seed(seed).strip(b"\x00")
    return f"{program_id}.{trimmed.decode()}"


def parse_contract_address(address: str) -> Tuple[bytes, bytes]:
    """
    Split "<programID>.<seed>".

    Returns:
        (program id bytes, 32-byte zero-padded seed)

    Raises:
        InvalidContractAddress: malformed address
    """
    parts = address.split(".")
    if len(parts) != 2:
        raise InvalidContractAddress(f"invalid solana contract address format: {address!r}")
    program_id = decode_pubkey(parts[0])
    return program_id, pad_seed(parts[1].encode())


def parse_program_id(address: str) -> bytes:
    """Program id from either a contract address or a bare base58 key."""
    if "." in address:
        program_id, _ = parse_contract_address(address)
        return program_id
    return decode_pubkey(address)


# ── MCM and timelock PDAs ────────────────────────────────────────────

def valid_until_bytes(valid_until: int) -> bytes:
    return int(valid_until).to_bytes(4, "little")


def find_signer_pda(program_id: bytes, seed: bytes) -> bytes:
    return find_pda(program_id, [b"multisig_signer", seed])


def find_config_pda(program_id: bytes, seed: bytes) -> bytes:
    return find_pda(program_id, [b"multisig_config", seed])


def find_config_signers_pda(program_id: bytes, seed: bytes) -> bytes:
    return find_pda(program_id, [b"multisig_config_signers", seed])


def find_root_metadata_pda(program_id: bytes, seed: bytes) -> bytes:
    return find_pda(program_id, [b"root_metadata", seed])


def find_expiring_root_and_op_count_pda(program_id: bytes, seed: bytes) -> bytes:
    return find_pda(program_id, [b"expiring_root_and_op_count", seed])


def find_root_signatures_pda(
    program_id: bytes, seed: bytes, root: bytes, valid_until: int, authority: bytes
) -> bytes:
    return find_pda(
        program_id,
        [b"root_signatures", seed, bytes(root), valid_until_bytes(valid_until), bytes(authority)],
    )


def find_seen_signed_hashes_pda(program_id: bytes, seed: bytes, root: bytes, valid_until: int) -> bytes:
    return find_pda(program_id, [b"seen_signed_hashes", seed, bytes(root), valid_until_bytes(valid_until)])


def find_timelock_config_pda(program_id: bytes, seed: bytes) -> bytes:
    return find_pda(program_id, [b"timelock_config", seed])


def find_timelock_operation_pda(program_id: bytes, seed: bytes, op_id: bytes) -> bytes:
    return find_pda(program_id, [b"timelock_operation", seed, bytes(op_id)])


def find_timelock_bypasser_operation_pda(program_id: bytes, seed: bytes, op_id: bytes) -> bytes:
    return find_pda(program_id, [b"timelock_bypasser_operation", seed, bytes(op_id)])


def find_timelock_signer_pda(program_id: bytes, seed: bytes) -> bytes:
    return find_pda(program_id, [b"timelock_signer", seed])
