"""Role commitment: Merkle leaf hashing, proof verification, and tree building.

The arbiter commits to every player's secret (role, alignment) by publishing
a single Merkle root when the game starts.  Each player later reveals their
own pair together with a proof; :func:`verify` rebuilds the root from the
revealed leaf and checks it byte-for-byte against the published one.

Leaf encoding::

    SHA-256(identity_utf8 || role_tag || alignment_tag || seed)

Binding the game seed into every leaf stops a leaf (and its proof) from
being replayed in another game.  Interior nodes hash the two children in
byte order (smaller first), so proofs need no left/right metadata.

Nothing here touches game state; the engine only calls :func:`verify`.
"""

import hashlib
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Sequence, Tuple, Union

from avalon.roles import ALIGNMENT_TAGS, ROLE_TAGS, Alignment, Role

HASH_SIZE = 32
ZERO_HASH = bytes(HASH_SIZE)

HashLike = Union[bytes, bytearray, str, Sequence[int]]


# ── encoding helpers ──────────────────────────────────────────────────────────


def identity_bytes(identity: Union[str, bytes]) -> bytes:
    """Byte form of an opaque identity token."""
    if isinstance(identity, str):
        return identity.encode("utf-8")
    return bytes(identity)


def parse_hash(raw: HashLike, size: int = HASH_SIZE) -> bytes:
    """
    Coerce *raw* into exactly *size* bytes.

    Accepts raw bytes, a hex string (``0x`` prefix optional), or a sequence
    of ints (the JSON form used by clients).

    Raises:
        ValueError: wrong length or undecodable input.
    """
    if isinstance(raw, (bytes, bytearray)):
        value = bytes(raw)
    elif isinstance(raw, str):
        text = raw.strip()
        if text.startswith(("0x", "0X")):
            text = text[2:]
        try:
            value = bytes.fromhex(text)
        except ValueError:
            raise ValueError(f"Not a hex string: {raw!r}")
    else:
        try:
            value = bytes(raw)
        except (TypeError, ValueError):
            raise ValueError(f"Cannot interpret {type(raw).__name__} as bytes")

    if len(value) != size:
        raise ValueError(f"Expected {size} bytes, got {len(value)}")
    return value


# ── hashing ───────────────────────────────────────────────────────────────────


def hash_role_leaf(
    identity: Union[str, bytes],
    role: Role,
    alignment: Alignment,
    seed: bytes,
) -> bytes:
    """Hash one committed (identity, role, alignment) assignment."""
    data = b"".join([
        identity_bytes(identity),
        bytes([ROLE_TAGS[role]]),
        bytes([ALIGNMENT_TAGS[alignment]]),
        bytes(seed),
    ])
    return hashlib.sha256(data).digest()


def hash_pair(a: bytes, b: bytes) -> bytes:
    """Parent hash of two siblings, ordered smaller-first."""
    first, second = (a, b) if a <= b else (b, a)
    return hashlib.sha256(first + second).digest()


def compute_merkle_root(leaf: bytes, proof: Iterable[bytes]) -> bytes:
    """Fold *proof* into *leaf* and return the reconstructed root."""
    current = leaf
    for sibling in proof:
        current = hash_pair(current, sibling)
    return current


def verify(
    identity: Union[str, bytes],
    role: Role,
    alignment: Alignment,
    seed: bytes,
    proof: Sequence[bytes],
    commitment_root: bytes,
) -> bool:
    """
    Check that (*role*, *alignment*) for *identity* is part of the assignment
    committed to by *commitment_root*.

    Pure function.  Malformed proofs (siblings or root of the wrong size)
    simply fail verification.
    """
    if len(commitment_root) != HASH_SIZE:
        return False
    if any(len(sibling) != HASH_SIZE for sibling in proof):
        return False
    leaf = hash_role_leaf(identity, role, alignment, seed)
    return compute_merkle_root(leaf, proof) == bytes(commitment_root)


# ── tree building (arbiter side) ──────────────────────────────────────────────


def build_merkle_tree(leaves: Sequence[bytes]) -> Tuple[bytes, List[List[bytes]]]:
    """
    Build a sorted-pair Merkle tree over *leaves*.

    Leaves are padded with zero hashes up to the next power of two.

    Returns:
        ``(root, proofs)`` where ``proofs[i]`` is the sibling path for
        ``leaves[i]``.
    """
    if not leaves:
        return ZERO_HASH, []
    if len(leaves) == 1:
        return bytes(leaves[0]), [[]]

    layer = [bytes(leaf) for leaf in leaves]
    while len(layer) & (len(layer) - 1):
        layer.append(ZERO_HASH)

    layers: List[List[bytes]] = [layer]
    while len(layer) > 1:
        layer = [hash_pair(layer[i], layer[i + 1]) for i in range(0, len(layer), 2)]
        layers.append(layer)

    proofs: List[List[bytes]] = []
    for leaf_idx in range(len(leaves)):
        proof: List[bytes] = []
        idx = leaf_idx
        for level in layers[:-1]:
            proof.append(level[idx ^ 1])
            idx //= 2
        proofs.append(proof)

    return layers[-1][0], proofs


@dataclass
class RoleCommitment:
    """A published root plus the per-player material needed to reveal."""

    root: bytes
    seed: bytes
    leaves: Dict[str, bytes] = field(default_factory=dict)
    proofs: Dict[str, List[bytes]] = field(default_factory=dict)

    def proof_for(self, identity: str) -> List[bytes]:
        if identity not in self.proofs:
            raise KeyError(f"No committed leaf for {identity!r}")
        return list(self.proofs[identity])

    def to_dict(self) -> Dict[str, Any]:
        """Hex-encoded, JSON-safe form."""
        return {
            "root": self.root.hex(),
            "seed": self.seed.hex(),
            "leaves": {pid: leaf.hex() for pid, leaf in self.leaves.items()},
            "proofs": {
                pid: [sibling.hex() for sibling in proof]
                for pid, proof in self.proofs.items()
            },
        }


def build_role_commitment(
    entries: Iterable[Tuple[str, Role, Alignment]],
    seed: bytes,
) -> RoleCommitment:
    """Commit to ``(identity, role, alignment)`` entries under *seed*."""
    entries = list(entries)
    leaves = [hash_role_leaf(pid, role, alignment, seed) for pid, role, alignment in entries]
    root, proofs = build_merkle_tree(leaves)
    return RoleCommitment(
        root=root,
        seed=bytes(seed),
        leaves={pid: leaf for (pid, _r, _a), leaf in zip(entries, leaves)},
        proofs={pid: proof for (pid, _r, _a), proof in zip(entries, proofs)},
    )
