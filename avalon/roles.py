"""Role definitions, visibility rules, and static game tables for Avalon.

All player-count-dependent constants (quest sizes, fail thresholds) and the
byte tags used by the role commitment live here so that the engine in
engine.py stays table-driven.  Adding or tweaking a role requires changes
only in this module.
"""

from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple


class Role(Enum):
    """Avalon character roles.  ``UNKNOWN`` marks a role not yet revealed."""

    UNKNOWN = "Unknown"
    MERLIN = "Merlin"
    PERCIVAL = "Percival"
    SERVANT = "Servant"
    MORGANA = "Morgana"
    ASSASSIN = "Assassin"
    MINION = "Minion"


class Alignment(Enum):
    """Faction a role belongs to."""

    UNKNOWN = "Unknown"
    GOOD = "Good"
    EVIL = "Evil"


# ── alignment table ───────────────────────────────────────────────────────────

ROLE_ALIGNMENT: Dict[Role, Alignment] = {
    Role.UNKNOWN: Alignment.UNKNOWN,
    Role.MERLIN: Alignment.GOOD,
    Role.PERCIVAL: Alignment.GOOD,
    Role.SERVANT: Alignment.GOOD,
    Role.MORGANA: Alignment.EVIL,
    Role.ASSASSIN: Alignment.EVIL,
    Role.MINION: Alignment.EVIL,
}

GOOD_ROLES = frozenset(r for r, a in ROLE_ALIGNMENT.items() if a == Alignment.GOOD)
EVIL_ROLES = frozenset(r for r, a in ROLE_ALIGNMENT.items() if a == Alignment.EVIL)


def alignment_of(role: Role) -> Alignment:
    """Return the alignment *role* determines."""
    return ROLE_ALIGNMENT[role]


def is_evil(role: Role) -> bool:
    return role in EVIL_ROLES


def is_consistent(role: Role, alignment: Alignment) -> bool:
    """True when *alignment* is the one *role* determines and neither is unknown."""
    return role != Role.UNKNOWN and ROLE_ALIGNMENT[role] == alignment


# ── commitment byte tags ──────────────────────────────────────────────────────
# One byte per enum in the committed leaf.  Order is part of the wire format.

ROLE_TAGS: Dict[Role, int] = {
    Role.UNKNOWN: 0,
    Role.MERLIN: 1,
    Role.PERCIVAL: 2,
    Role.SERVANT: 3,
    Role.MORGANA: 4,
    Role.ASSASSIN: 5,
    Role.MINION: 6,
}

ALIGNMENT_TAGS: Dict[Alignment, int] = {
    Alignment.UNKNOWN: 0,
    Alignment.GOOD: 1,
    Alignment.EVIL: 2,
}


def parse_role(raw) -> Role:
    """Resolve a role from an enum, its name, or its value (case-insensitive)."""
    if isinstance(raw, Role):
        return raw
    if isinstance(raw, str):
        key = raw.strip().lower()
        for role in Role:
            if key in (role.value.lower(), role.name.lower()):
                return role
    raise ValueError(f"Unknown role: {raw!r}")


def parse_alignment(raw) -> Alignment:
    """Resolve an alignment from an enum, its name, or its value (case-insensitive)."""
    if isinstance(raw, Alignment):
        return raw
    if isinstance(raw, str):
        key = raw.strip().lower()
        for alignment in Alignment:
            if key in (alignment.value.lower(), alignment.name.lower()):
                return alignment
    raise ValueError(f"Unknown alignment: {raw!r}")


# ── quest tables ──────────────────────────────────────────────────────────────
# [Q1, Q2, Q3, Q4, Q5] team sizes and fails needed, indexed by player count.

MIN_PLAYERS = 5
MAX_PLAYERS = 10
NUM_QUESTS = 5

QUEST_SIZES: Dict[int, List[int]] = {
    5:  [2, 3, 2, 3, 3],
    6:  [2, 3, 4, 3, 4],
    7:  [2, 3, 3, 4, 4],
    8:  [3, 4, 4, 5, 5],
    9:  [3, 4, 4, 5, 5],
    10: [3, 4, 4, 5, 5],
}

QUEST_FAILS_REQUIRED: Dict[int, List[int]] = {
    5:  [1, 1, 1, 1, 1],
    6:  [1, 1, 1, 1, 1],
    7:  [1, 1, 1, 2, 1],
    8:  [1, 1, 1, 2, 1],
    9:  [1, 1, 1, 2, 1],
    10: [1, 1, 1, 2, 1],
}


def quest_table(num_players: int) -> Optional[List[Tuple[int, int]]]:
    """Return ``[(team_size, fails_required), ...]`` for quests 1–5.

    ``None`` when *num_players* is not a supported player count.
    """
    if num_players not in QUEST_SIZES:
        return None
    return list(zip(QUEST_SIZES[num_players], QUEST_FAILS_REQUIRED[num_players]))


# ── role-knowledge derivation ─────────────────────────────────────────────────


def compute_knowledge(
    my_id: str,
    my_role: Role,
    roster: Sequence[Tuple[str, Role, Alignment]],
) -> Tuple[str, ...]:
    """
    Compute which other identities *my_id* is permitted to know.

    *roster* is ``(identity, role, alignment)`` in roster-slot order.  The
    result keeps roster order, so Percival's two entries carry no hint of
    which one is Merlin and which one is Morgana.

    - Merlin sees every Evil player.
    - Percival sees the Merlin and Morgana holders, unlabelled.
    - Morgana / Assassin / Minion see every *other* Evil player.
    - Servant (and an unrevealed role) sees nobody.
    """
    if my_role == Role.MERLIN:
        return tuple(
            pid for pid, _role, alignment in roster
            if alignment == Alignment.EVIL and pid != my_id
        )

    if my_role == Role.PERCIVAL:
        return tuple(
            pid for pid, role, _alignment in roster
            if role in (Role.MERLIN, Role.MORGANA) and pid != my_id
        )

    if my_role in EVIL_ROLES:
        return tuple(
            pid for pid, _role, alignment in roster
            if alignment == Alignment.EVIL and pid != my_id
        )

    return ()
