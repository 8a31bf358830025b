"""
MCMS Cryptography Test Suite

Covers:
  - keccak256 / sha256 known vectors and hex input
  - Root signing hash (Ethereum signed message over root || validUntil)
  - secp256k1 signing, recovery and v normalisation
  - Signature ordering (sort_signatures / require_sorted_signatures)
  - Sorted-pair Merkle tree: proofs, odd layers, unknown leaves

Run with:
    pytest tests/test_crypto.py -v
"""

import pytest

from mcms.crypto.hashing import keccak256, root_signing_hash, sha256, to_eth_signed_message_hash
from mcms.crypto.keys import PrivateKey, PublicKey
from mcms.crypto.merkle import MerkleTree, hash_pair, verify_proof
from mcms.exceptions import InvalidSignature, MerkleProofError, UnsortedSignatures
from mcms.types.signature import Signature, require_sorted_signatures, sort_signatures


ROOT = bytes.fromhex("ab" * 32)
VALID_UNTIL = 1_900_000_000


# ============================================================================
# Hashing
# ============================================================================


class TestHashing:

    def test_keccak_empty(self):
        assert keccak256(b"").hex() == "c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"

    def test_sha256_abc(self):
        assert sha256(b"abc").hex() == "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"

    def test_keccak_accepts_hex(self):
        assert keccak256("0x0102") == keccak256(b"\x01\x02")
        assert keccak256("0102") == keccak256(b"\x01\x02")

    def test_signed_message_hash_requires_32_bytes(self):
        with pytest.raises(ValueError, match="32 bytes"):
            to_eth_signed_message_hash(b"\x00" * 31)

    def test_root_signing_hash_layout(self):
        inner = keccak256(ROOT + VALID_UNTIL.to_bytes(32, "big"))
        expected = keccak256(b"\x19Ethereum Signed Message:\n32" + inner)
        assert root_signing_hash(ROOT, VALID_UNTIL) == expected

    def test_root_signing_hash_binds_valid_until(self):
        assert root_signing_hash(ROOT, VALID_UNTIL) != root_signing_hash(ROOT, VALID_UNTIL + 1)


# ============================================================================
# Keys and signatures
# ============================================================================


class TestSignatures:

    def test_sign_and_recover(self):
        key = PrivateKey.from_int(42)
        msg = root_signing_hash(ROOT, VALID_UNTIL)
        sig = Signature.sign(key, msg)
        assert sig.v in (27, 28)
        assert sig.recover(msg) == key.address

    def test_recover_public_key(self):
        key = PrivateKey.from_int(42)
        msg = keccak256(b"message")
        sig = Signature.sign(key, msg)
        assert sig.recover_public_key(msg) == key.public_key
        assert len(sig.recover_public_key(msg).to_bytes(prefixed=True)) == 65

    def test_v_normalised(self):
        sig = Signature(v=1, r=b"\x01" * 32, s=b"\x02" * 32)
        assert sig.v == 28

    def test_bytes_round_trip(self):
        key = PrivateKey.from_int(7)
        sig = Signature.sign(key, keccak256(b"x"))
        assert Signature.from_bytes(sig.to_bytes()) == sig
        assert Signature.from_hex(sig.to_hex()) == sig
        assert Signature.from_dict(sig.to_dict()) == sig

    def test_bad_length_rejected(self):
        with pytest.raises(InvalidSignature, match="invalid signature length"):
            Signature.from_bytes(b"\x00" * 64)

    def test_bad_component_length_rejected(self):
        with pytest.raises(InvalidSignature):
            Signature(v=27, r=b"\x01" * 31, s=b"\x02" * 32)

    def test_public_key_from_prefixed_bytes(self):
        key = PrivateKey.from_int(9)
        raw = key.public_key.to_bytes(prefixed=True)
        assert PublicKey(raw).to_address() == key.address

    def test_private_key_length_checked(self):
        with pytest.raises(ValueError, match="32 bytes"):
            PrivateKey(b"\x01" * 31)


class TestSignatureOrdering:

    def test_sort_by_recovered_address(self, signer_keys):
        msg = root_signing_hash(ROOT, VALID_UNTIL)
        sigs = [Signature.sign(k, msg) for k in reversed(signer_keys)]
        ordered = sort_signatures(sigs, msg)
        assert [s.recover(msg) for s in ordered] == [k.address for k in signer_keys]

    def test_require_sorted_accepts_ascending(self, signer_keys):
        msg = root_signing_hash(ROOT, VALID_UNTIL)
        sigs = [Signature.sign(k, msg) for k in signer_keys]
        assert require_sorted_signatures(sigs, msg) == [k.address for k in signer_keys]

    def test_require_sorted_rejects_descending(self, signer_keys):
        msg = root_signing_hash(ROOT, VALID_UNTIL)
        sigs = [Signature.sign(k, msg) for k in reversed(signer_keys)]
        with pytest.raises(UnsortedSignatures):
            require_sorted_signatures(sigs, msg)

    def test_require_sorted_rejects_duplicates(self, signer_keys):
        msg = root_signing_hash(ROOT, VALID_UNTIL)
        sig = Signature.sign(signer_keys[0], msg)
        with pytest.raises(UnsortedSignatures):
            require_sorted_signatures([sig, sig], msg)


# ============================================================================
# Merkle tree
# ============================================================================


def leaves(n):
    return sorted(keccak256(bytes([i])) for i in range(n))


class TestMerkleTree:

    @pytest.mark.parametrize("n", [1, 2, 3, 5, 8])
    def test_every_proof_verifies(self, n):
        tree = MerkleTree(leaves(n))
        for leaf in leaves(n):
            assert verify_proof(tree.root, leaf, tree.get_proof(leaf))

    def test_single_leaf_is_root(self):
        (leaf,) = leaves(1)
        tree = MerkleTree([leaf])
        assert tree.root == leaf
        assert tree.get_proof(leaf) == []

    def test_empty_tree(self):
        assert MerkleTree([]).root == b"\x00" * 32

    def test_pair_hash_is_order_independent(self):
        a, b = leaves(2)
        assert hash_pair(a, b) == hash_pair(b, a) == keccak256(a + b)

    def test_odd_layer_duplicates_last(self):
        a, b, c = leaves(3)
        tree = MerkleTree([a, b, c])
        assert tree.root == hash_pair(hash_pair(a, b), hash_pair(c, c))

    def test_unknown_leaf(self):
        tree = MerkleTree(leaves(4))
        with pytest.raises(MerkleProofError, match="does not contain hash"):
            tree.get_proof(keccak256(b"missing"))

    def test_tampered_proof_fails(self):
        tree = MerkleTree(leaves(4))
        leaf = leaves(4)[0]
        proof = tree.get_proof(leaf)
        proof[0] = keccak256(b"tampered")
        assert not verify_proof(tree.root, leaf, proof)

    def test_get_proofs(self):
        tree = MerkleTree(leaves(4))
        proofs = tree.get_proofs()
        assert set(proofs) == set(leaves(4))
