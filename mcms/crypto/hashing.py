"""
MCMS Crypto Hashing Module

Provides the hash functions used by the leaf encoders:
- keccak256: every MCMS contract hashes leaves, roots and operation ids with it
- sha256: Solana program-derived address search
"""

import hashlib
from typing import Union

from Crypto.Hash import keccak as _keccak

from ..constants import ETH_SIGNED_MESSAGE_PREFIX


def _to_bytes(data: Union[bytes, bytearray, str]) -> bytes:
    if isinstance(data, str):
        if data.startswith('0x') or data.startswith('0X'):
            return bytes.fromhex(data[2:])
        return bytes.fromhex(data)
    return bytes(data)


def keccak256(data: Union[bytes, bytearray, str]) -> bytes:
    """
    Compute Keccak-256 hash (Ethereum standard).

    Args:
        data: Input bytes or hex string

    Returns:
        32-byte hash
    """
    k = _keccak.new(digest_bits=256)
    k.update(_to_bytes(data))
    return k.digest()


def keccak256_hex(data: Union[bytes, bytearray, str]) -> str:
    """Keccak-256 as a 0x-prefixed hex string."""
    return '0x' + keccak256(data).hex()


def sha256(data: Union[bytes, bytearray, str]) -> bytes:
    """
    Compute SHA-256 hash.

    Args:
        data: Input bytes or hex string

    Returns:
        32-byte hash
    """
    return hashlib.sha256(_to_bytes(data)).digest()


def to_eth_signed_message_hash(message_hash: bytes) -> bytes:
    """
    EIP-191 "personal_sign" digest over a 32-byte hash.

    Every family signs roots this way so one secp256k1 signer set can be
    reused across chains.
    """
    if len(message_hash) != 32:
        raise ValueError(f"Message hash must be 32 bytes, got {len(message_hash)}")
    return keccak256(ETH_SIGNED_MESSAGE_PREFIX + message_hash)


def root_signing_hash(root: bytes, valid_until: int) -> bytes:
    """
    Digest signers sign for a root.

    keccak256(root || uint256(valid_until)) wrapped as an Ethereum signed
    message, the same on every chain family.
    """
    inner = keccak256(bytes(root) + int(valid_until).to_bytes(32, 'big'))
    return to_eth_signed_message_hash(inner)
