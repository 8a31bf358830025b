"""
MCMS Cryptography Module

Hashing, secp256k1 keys and the sorted-pair Merkle tree shared by every
chain family.
"""

from .hashing import (
    keccak256,
    keccak256_hex,
    root_signing_hash,
    sha256,
    to_eth_signed_message_hash,
)
from .keys import PrivateKey, PublicKey
from .merkle import MerkleTree, hash_pair, verify_proof

__all__ = [
    # Hashing
    'keccak256',
    'keccak256_hex',
    'root_signing_hash',
    'sha256',
    'to_eth_signed_message_hash',
    # Keys
    'PrivateKey',
    'PublicKey',
    # Merkle
    'MerkleTree',
    'hash_pair',
    'verify_proof',
]
