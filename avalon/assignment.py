"""Arbiter-side role assignment.

The engine never assigns roles.  An arbiter running off-engine consumes the
externally supplied seed, deals roles with a deterministic shuffle, commits
to the result (see :mod:`avalon.commitment`) and hands each player their own
role plus proof.  The same seed and roster always produce the same deal, so
the assignment can be audited once the game is over.
"""

import hashlib
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple, TypeVar

from avalon.commitment import RoleCommitment, build_role_commitment
from avalon.errors import AvalonError, ErrorCode
from avalon.roles import (
    MAX_PLAYERS,
    MIN_PLAYERS,
    Alignment,
    Role,
    alignment_of,
    compute_knowledge,
)

T = TypeVar("T")


# ── default role pools (keyed by player count) ───────────────────────────────

ROLE_DISTRIBUTION: Dict[int, List[Role]] = {
    5: [
        Role.MERLIN, Role.PERCIVAL, Role.SERVANT,
        Role.MORGANA, Role.ASSASSIN,
    ],
    6: [
        Role.MERLIN, Role.PERCIVAL, Role.SERVANT, Role.SERVANT,
        Role.MORGANA, Role.ASSASSIN,
    ],
    7: [
        Role.MERLIN, Role.PERCIVAL, Role.SERVANT, Role.SERVANT,
        Role.MORGANA, Role.ASSASSIN, Role.MINION,
    ],
    8: [
        Role.MERLIN, Role.PERCIVAL,
        Role.SERVANT, Role.SERVANT, Role.SERVANT,
        Role.MORGANA, Role.ASSASSIN, Role.MINION,
    ],
    9: [
        Role.MERLIN, Role.PERCIVAL,
        Role.SERVANT, Role.SERVANT, Role.SERVANT, Role.SERVANT,
        Role.MORGANA, Role.ASSASSIN, Role.MINION,
    ],
    10: [
        Role.MERLIN, Role.PERCIVAL,
        Role.SERVANT, Role.SERVANT, Role.SERVANT, Role.SERVANT,
        Role.MORGANA, Role.ASSASSIN, Role.MINION, Role.MINION,
    ],
}


@dataclass
class Assignment:
    """One player's dealt role and what that role lets them see."""

    identity: str
    index: int
    role: Role
    alignment: Alignment
    known_players: Tuple[str, ...] = field(default_factory=tuple)


def seeded_shuffle(items: Sequence[T], seed: bytes) -> List[T]:
    """
    Deterministic Fisher-Yates shuffle driven by a SHA-256 chain.

    For ``i`` from ``n-1`` down to 1 the next chain value is
    ``SHA-256(state || i)``; its first four bytes (big-endian) pick the swap
    partner ``j = value % (i + 1)``.
    """
    result = list(items)
    state = bytes(seed)
    for i in range(len(result) - 1, 0, -1):
        digest = hashlib.sha256(state + bytes([i & 0xFF])).digest()
        j = int.from_bytes(digest[:4], "big") % (i + 1)
        result[i], result[j] = result[j], result[i]
        state = digest
    return result


def assign_roles(identities: Sequence[str], seed: bytes) -> List[Assignment]:
    """
    Deal roles to *identities* (in roster order) from *seed*.

    Raises:
        AvalonError: unsupported player count or duplicate identities.
    """
    count = len(identities)
    if not (MIN_PLAYERS <= count <= MAX_PLAYERS):
        raise AvalonError(
            ErrorCode.UNSUPPORTED_PLAYER_COUNT,
            f"Avalon requires {MIN_PLAYERS}–{MAX_PLAYERS} players, got {count}",
            player_count=count,
        )
    if len(set(identities)) != count:
        raise AvalonError(ErrorCode.PLAYER_ALREADY_IN_GAME, "Duplicate identities in roster")

    roles = seeded_shuffle(ROLE_DISTRIBUTION[count], seed)
    assignments = [
        Assignment(identity=pid, index=i, role=role, alignment=alignment_of(role))
        for i, (pid, role) in enumerate(zip(identities, roles))
    ]

    roster = [(a.identity, a.role, a.alignment) for a in assignments]
    for a in assignments:
        a.known_players = compute_knowledge(a.identity, a.role, roster)
    return assignments


def commit_assignments(assignments: Sequence[Assignment], seed: bytes) -> RoleCommitment:
    """Build the role commitment for a deal produced by :func:`assign_roles`."""
    return build_role_commitment(
        ((a.identity, a.role, a.alignment) for a in assignments), seed
    )
