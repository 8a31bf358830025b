"""
Merkle tree over 32-byte leaves.

Pairs are hashed in sorted order (keccak256(min || max)) so proofs carry no
left/right flags, matching the verifier in every MCMS contract. A layer with
an odd number of nodes duplicates its last node.
"""

from typing import Dict, List

from .hashing import keccak256
from ..exceptions import MerkleProofError


def hash_pair(a: bytes, b: bytes) -> bytes:
    if a < b:
        return keccak256(a + b)
    return keccak256(b + a)


class MerkleTree:
    """
    Attributes:
        root: 32-byte root (all zeros for an empty tree)
        layers: every layer below the root, leaves first
    """

    def __init__(self, leaves: List[bytes]):
        self.layers: List[List[bytes]] = []
        if not leaves:
            self.root = b"\x00" * 32
            return

        current = list(leaves)
        while len(current) > 1:
            if len(current) % 2 != 0:
                current.append(current[-1])
            self.layers.append(current)
            current = [
                hash_pair(current[i], current[i + 1])
                for i in range(0, len(current), 2)
            ]
        self.root = current[0]

    def get_proof(self, leaf: bytes) -> List[bytes]:
        """Sibling hashes from ``leaf`` up to the root."""
        proof: List[bytes] = []
        target = leaf
        for layer in self.layers:
            try:
                index = layer.index(target)
            except ValueError:
                raise MerkleProofError(
                    f"merkle tree does not contain hash: 0x{target.hex()}"
                ) from None
            sibling = layer[index ^ 1]
            proof.append(sibling)
            target = hash_pair(target, sibling)
        if not self.layers and leaf != self.root:
            raise MerkleProofError(f"merkle tree does not contain hash: 0x{leaf.hex()}")
        return proof

    def get_proofs(self) -> Dict[bytes, List[bytes]]:
        if not self.layers:
            raise MerkleProofError("no layers in the Merkle tree")
        return {leaf: self.get_proof(leaf) for leaf in self.layers[0]}


def verify_proof(root: bytes, leaf: bytes, proof: List[bytes]) -> bool:
    computed = leaf
    for sibling in proof:
        computed = hash_pair(computed, sibling)
    return computed == root
