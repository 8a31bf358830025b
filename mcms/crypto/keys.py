"""
MCMS Crypto Keys Module

secp256k1 keys used to sign proposal roots. Wraps eth-keys so signer
addresses are derived exactly as the EVM contracts derive them.
"""

import secrets
from typing import Tuple, Union

from eth_keys.datatypes import PrivateKey as EthPrivateKey, PublicKey as EthPublicKey
from eth_keys.datatypes import Signature as EthSignature
from eth_utils import decode_hex

from ..exceptions import InvalidSignature


class PrivateKey:
    """
    secp256k1 private key for root signing.

    Wraps eth-keys PrivateKey for Web3 compatibility.
    """

    def __init__(self, key_bytes: bytes):
        """
        Initialize from raw 32-byte private key.

        Raises:
            ValueError: If key bytes are invalid
        """
        if len(key_bytes) != 32:
            raise ValueError(f"Private key must be 32 bytes, got {len(key_bytes)}")
        self._key = EthPrivateKey(key_bytes)

    @classmethod
    def from_hex(cls, hex_str: str) -> "PrivateKey":
        return cls(decode_hex(hex_str))

    @classmethod
    def from_int(cls, key_int: int) -> "PrivateKey":
        return cls(key_int.to_bytes(32, byteorder='big'))

    @classmethod
    def generate(cls) -> "PrivateKey":
        """Generate a new random private key."""
        return cls(secrets.token_bytes(32))

    @property
    def public_key(self) -> "PublicKey":
        return PublicKey(self._key.public_key)

    @property
    def address(self) -> str:
        """Checksummed EVM address of this key."""
        return self._key.public_key.to_checksum_address()

    def sign_msg_hash(self, msg_hash: bytes) -> Tuple[int, int, int]:
        """
        Sign a 32-byte digest.

        Returns:
            (v, r, s) with v in {0, 1}
        """
        sig = self._key.sign_msg_hash(msg_hash)
        return sig.v, sig.r, sig.s

    def to_hex(self) -> str:
        return '0x' + self._key.to_bytes().hex()

    def __repr__(self) -> str:
        return f"PrivateKey(address={self.address})"


class PublicKey:
    """
    secp256k1 public key.
    """

    def __init__(self, key: Union[EthPublicKey, bytes]):
        if isinstance(key, EthPublicKey):
            self._key = key
        elif len(key) == 64:
            self._key = EthPublicKey(key)
        elif len(key) == 65 and key[0] == 0x04:
            self._key = EthPublicKey(key[1:])
        else:
            raise ValueError(f"Invalid public key length: {len(key)}")

    @classmethod
    def recover(cls, msg_hash: bytes, v: int, r: int, s: int) -> "PublicKey":
        """
        Recover the signing key of (v, r, s) over ``msg_hash``.

        ``v`` may be 0/1 or 27/28.

        Raises:
            InvalidSignature: If recovery fails
        """
        if v >= 27:
            v -= 27
        try:
            sig = EthSignature(vrs=(v, r, s))
            return cls(sig.recover_public_key_from_msg_hash(msg_hash))
        except Exception as e:
            raise InvalidSignature(f"Unable to recover public key: {e}") from e

    def to_bytes(self, prefixed: bool = False) -> bytes:
        """64-byte x||y, or 65 bytes with the 0x04 SEC1 prefix."""
        raw = self._key.to_bytes()
        return b'\x04' + raw if prefixed else raw

    def to_address(self) -> str:
        """Checksummed EVM address."""
        return self._key.to_checksum_address()

    def __eq__(self, other) -> bool:
        if not isinstance(other, PublicKey):
            return False
        return self._key == other._key

    def __hash__(self) -> int:
        return hash(self._key.to_bytes())

    def __repr__(self) -> str:
        return f"PublicKey({self.to_address()})"
