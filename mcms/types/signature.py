"""
ECDSA signature over a proposal signing hash.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Sequence

from eth_utils import decode_hex

from ..constants import SIGNATURE_V_OFFSET, SIGNATURE_V_THRESHOLD
from ..crypto.keys import PrivateKey, PublicKey
from ..exceptions import InvalidSignature, UnsortedSignatures


@dataclass(frozen=True)
class Signature:
    """
    Attributes:
        v: Recovery id, stored as 27/28
        r: 32-byte R component
        s: 32-byte S component
    """
    v: int
    r: bytes
    s: bytes

    def __post_init__(self):
        if len(self.r) != 32 or len(self.s) != 32:
            raise InvalidSignature("signature r and s must be 32 bytes each")
        v = self.v
        if v < SIGNATURE_V_THRESHOLD:
            v += SIGNATURE_V_OFFSET
        object.__setattr__(self, "v", v)

    @classmethod
    def from_bytes(cls, sig: bytes) -> "Signature":
        """Parse the 65-byte r || s || v form."""
        if len(sig) != 65:
            raise InvalidSignature(f"invalid signature length: {len(sig)}")
        return cls(v=sig[64], r=sig[:32], s=sig[32:64])

    @classmethod
    def from_hex(cls, hex_str: str) -> "Signature":
        return cls.from_bytes(decode_hex(hex_str))

    @classmethod
    def sign(cls, private_key: PrivateKey, msg_hash: bytes) -> "Signature":
        v, r, s = private_key.sign_msg_hash(msg_hash)
        return cls(v=v, r=r.to_bytes(32, "big"), s=s.to_bytes(32, "big"))

    def to_bytes(self) -> bytes:
        return self.r + self.s + bytes([self.v])

    def to_hex(self) -> str:
        return "0x" + self.to_bytes().hex()

    def recover_public_key(self, msg_hash: bytes) -> PublicKey:
        return PublicKey.recover(
            msg_hash, self.v, int.from_bytes(self.r, "big"), int.from_bytes(self.s, "big")
        )

    def recover_address(self, msg_hash: bytes) -> str:
        """Checksummed address of the signer."""
        return self.recover_public_key(msg_hash).to_address()

    recover = recover_address

    def to_dict(self) -> Dict[str, Any]:
        return {"r": "0x" + self.r.hex(), "s": "0x" + self.s.hex(), "v": self.v}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Signature":
        return cls(v=int(data["v"]), r=decode_hex(data["r"]), s=decode_hex(data["s"]))


def sort_signatures(signatures: Sequence[Signature], msg_hash: bytes) -> List[Signature]:
    """Signatures ordered ascending by recovered signer address."""
    return sorted(signatures, key=lambda sig: int(sig.recover(msg_hash), 16))


def require_sorted_signatures(signatures: Sequence[Signature], msg_hash: bytes) -> List[str]:
    """
    Recover every signer and check strict ascending order.

    Returns:
        The recovered addresses, in submission order

    Raises:
        UnsortedSignatures: order is not strictly ascending
    """
    recovered = [sig.recover(msg_hash) for sig in signatures]
    for prev, cur in zip(recovered, recovered[1:]):
        if int(prev, 16) >= int(cur, 16):
            raise UnsortedSignatures(
                f"signatures must be sorted ascending by signer address: {prev} >= {cur}"
            )
    return recovered
