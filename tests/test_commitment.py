"""Tests for Merkle role commitments: leaf hashing, proofs and tree building."""

import hashlib

import pytest

from avalon.commitment import (
    HASH_SIZE,
    ZERO_HASH,
    build_merkle_tree,
    build_role_commitment,
    compute_merkle_root,
    hash_pair,
    hash_role_leaf,
    parse_hash,
    verify,
)
from avalon.roles import Alignment, Role

SEED = b"\x07" * 32

ENTRIES = [
    ("alice", Role.MERLIN, Alignment.GOOD),
    ("bob", Role.PERCIVAL, Alignment.GOOD),
    ("carol", Role.SERVANT, Alignment.GOOD),
    ("dave", Role.MORGANA, Alignment.EVIL),
    ("erin", Role.ASSASSIN, Alignment.EVIL),
]


def _flip(data: bytes, bit: int = 0) -> bytes:
    return bytes([data[0] ^ (1 << bit)]) + data[1:]


# ── TestLeafHashing ───────────────────────────────────────────────────────────


class TestLeafHashing:
    def test_leaf_encoding(self):
        # Merlin tag 1, Good tag 1.
        expected = hashlib.sha256(b"alice" + b"\x01" + b"\x01" + SEED).digest()
        assert hash_role_leaf("alice", Role.MERLIN, Alignment.GOOD, SEED) == expected

    def test_evil_tags(self):
        # Assassin tag 5, Evil tag 2.
        expected = hashlib.sha256(b"erin" + b"\x05" + b"\x02" + SEED).digest()
        assert hash_role_leaf("erin", Role.ASSASSIN, Alignment.EVIL, SEED) == expected

    def test_seed_changes_leaf(self):
        a = hash_role_leaf("alice", Role.MERLIN, Alignment.GOOD, SEED)
        b = hash_role_leaf("alice", Role.MERLIN, Alignment.GOOD, b"\x08" * 32)
        assert a != b

    def test_pair_is_order_independent(self):
        x, y = b"\x01" * 32, b"\x02" * 32
        assert hash_pair(x, y) == hash_pair(y, x)
        assert hash_pair(x, y) == hashlib.sha256(x + y).digest()


# ── TestMerkleTree ────────────────────────────────────────────────────────────


class TestMerkleTree:
    def test_empty(self):
        assert build_merkle_tree([]) == (ZERO_HASH, [])

    def test_single_leaf_is_root(self):
        leaf = b"\xaa" * 32
        root, proofs = build_merkle_tree([leaf])
        assert root == leaf
        assert proofs == [[]]
        assert compute_merkle_root(leaf, []) == root

    def test_two_leaves(self):
        a, b = b"\x01" * 32, b"\x02" * 32
        root, proofs = build_merkle_tree([a, b])
        assert root == hash_pair(a, b)
        assert proofs == [[b], [a]]

    def test_odd_count_padded_with_zero_hashes(self):
        leaves = [bytes([i]) * 32 for i in range(1, 4)]
        root, proofs = build_merkle_tree(leaves)
        assert proofs[2][0] == ZERO_HASH
        expected = hash_pair(hash_pair(leaves[0], leaves[1]), hash_pair(leaves[2], ZERO_HASH))
        assert root == expected

    def test_every_proof_reconstructs_root(self):
        leaves = [bytes([i]) * 32 for i in range(1, 11)]
        root, proofs = build_merkle_tree(leaves)
        assert all(len(p) == 4 for p in proofs)
        for leaf, proof in zip(leaves, proofs):
            assert compute_merkle_root(leaf, proof) == root


# ── TestVerify ────────────────────────────────────────────────────────────────


class TestVerify:
    @pytest.fixture
    def commitment(self):
        return build_role_commitment(ENTRIES, SEED)

    def test_every_member_verifies(self, commitment):
        for pid, role, alignment in ENTRIES:
            assert verify(pid, role, alignment, SEED, commitment.proof_for(pid), commitment.root)

    def test_wrong_role_fails(self, commitment):
        assert not verify("carol", Role.MERLIN, Alignment.GOOD, SEED, commitment.proof_for("carol"), commitment.root)

    def test_wrong_alignment_fails(self, commitment):
        assert not verify("dave", Role.MORGANA, Alignment.GOOD, SEED, commitment.proof_for("dave"), commitment.root)

    def test_wrong_identity_fails(self, commitment):
        assert not verify("mallory", Role.MERLIN, Alignment.GOOD, SEED, commitment.proof_for("alice"), commitment.root)

    def test_wrong_seed_fails(self, commitment):
        proof = commitment.proof_for("alice")
        assert not verify("alice", Role.MERLIN, Alignment.GOOD, b"\x00" * 32, proof, commitment.root)

    def test_flipped_sibling_fails(self, commitment):
        proof = commitment.proof_for("bob")
        for i in range(len(proof)):
            tampered = list(proof)
            tampered[i] = _flip(tampered[i], bit=i % 8)
            assert not verify("bob", Role.PERCIVAL, Alignment.GOOD, SEED, tampered, commitment.root)

    def test_flipped_root_fails(self, commitment):
        assert not verify(
            "bob", Role.PERCIVAL, Alignment.GOOD, SEED,
            commitment.proof_for("bob"), _flip(commitment.root),
        )

    def test_truncated_proof_fails(self, commitment):
        proof = commitment.proof_for("bob")[:-1]
        assert not verify("bob", Role.PERCIVAL, Alignment.GOOD, SEED, proof, commitment.root)

    def test_malformed_sizes_fail_quietly(self, commitment):
        proof = commitment.proof_for("bob")
        assert not verify("bob", Role.PERCIVAL, Alignment.GOOD, SEED, proof, commitment.root[:31])
        assert not verify("bob", Role.PERCIVAL, Alignment.GOOD, SEED, [proof[0][:16]] + proof[1:], commitment.root)

    def test_unknown_identity_has_no_proof(self, commitment):
        with pytest.raises(KeyError):
            commitment.proof_for("mallory")

    def test_to_dict_is_hex(self, commitment):
        data = commitment.to_dict()
        assert data["root"] == commitment.root.hex()
        assert set(data["proofs"]) == {pid for pid, _, _ in ENTRIES}
        assert all(len(s) == 2 * HASH_SIZE for s in data["proofs"]["alice"])


# ── TestParseHash ─────────────────────────────────────────────────────────────


class TestParseHash:
    def test_accepts_bytes_hex_and_ints(self):
        raw = bytes(range(32))
        assert parse_hash(raw) == raw
        assert parse_hash(raw.hex()) == raw
        assert parse_hash("0x" + raw.hex()) == raw
        assert parse_hash(list(raw)) == raw

    def test_rejects_wrong_length(self):
        with pytest.raises(ValueError):
            parse_hash(b"\x00" * 31)

    def test_rejects_non_hex(self):
        with pytest.raises(ValueError):
            parse_hash("zz" * 32)
