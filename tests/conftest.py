"""
Shared fixtures for the MCMS adapter tests.
"""

import os
import sys

import pytest

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from eth_utils import to_checksum_address

from mcms.crypto.hashing import keccak256
from mcms.crypto.keys import PrivateKey


def make_address(i: int) -> str:
    """Deterministic checksummed address that nobody holds a key for."""
    return to_checksum_address(keccak256(b"address" + i.to_bytes(4, "big"))[12:])


@pytest.fixture
def addresses():
    return [make_address(i) for i in range(64)]


@pytest.fixture
def signer_keys():
    """Five signing keys, ordered ascending by address."""
    keys = [PrivateKey.from_int(0x1000 + i) for i in range(5)]
    return sorted(keys, key=lambda k: int(k.address, 16))
