"""Tests for role tables, knowledge rules and the arbiter's seeded deal."""

import pytest

from avalon.assignment import (
    ROLE_DISTRIBUTION,
    assign_roles,
    commit_assignments,
    seeded_shuffle,
)
from avalon.commitment import verify
from avalon.errors import AvalonError, ErrorCode
from avalon.roles import (
    EVIL_ROLES,
    GOOD_ROLES,
    Alignment,
    Role,
    alignment_of,
    compute_knowledge,
    is_consistent,
    parse_alignment,
    parse_role,
    quest_table,
)

SEED = bytes.fromhex("5eed" * 16)


def _roster(*entries):
    return [(pid, role, alignment_of(role)) for pid, role in entries]


# ── TestRoleTables ────────────────────────────────────────────────────────────


class TestRoleTables:
    def test_alignment_partition(self):
        assert GOOD_ROLES == {Role.MERLIN, Role.PERCIVAL, Role.SERVANT}
        assert EVIL_ROLES == {Role.MORGANA, Role.ASSASSIN, Role.MINION}

    def test_consistency(self):
        assert is_consistent(Role.MERLIN, Alignment.GOOD)
        assert is_consistent(Role.MINION, Alignment.EVIL)
        assert not is_consistent(Role.MORGANA, Alignment.GOOD)
        assert not is_consistent(Role.UNKNOWN, Alignment.UNKNOWN)

    def test_parse_role_by_name_or_value(self):
        assert parse_role("merlin") == Role.MERLIN
        assert parse_role("ASSASSIN") == Role.ASSASSIN
        assert parse_role(Role.SERVANT) == Role.SERVANT
        with pytest.raises(ValueError):
            parse_role("Oberon")

    def test_parse_alignment(self):
        assert parse_alignment("good") == Alignment.GOOD
        assert parse_alignment("Evil") == Alignment.EVIL
        with pytest.raises(ValueError):
            parse_alignment("Neutral")

    @pytest.mark.parametrize("n,sizes,fails", [
        (5, [2, 3, 2, 3, 3], [1, 1, 1, 1, 1]),
        (6, [2, 3, 4, 3, 4], [1, 1, 1, 1, 1]),
        (7, [2, 3, 3, 4, 4], [1, 1, 1, 2, 1]),
        (8, [3, 4, 4, 5, 5], [1, 1, 1, 2, 1]),
        (9, [3, 4, 4, 5, 5], [1, 1, 1, 2, 1]),
        (10, [3, 4, 4, 5, 5], [1, 1, 1, 2, 1]),
    ])
    def test_quest_table(self, n, sizes, fails):
        table = quest_table(n)
        assert [s for s, _ in table] == sizes
        assert [f for _, f in table] == fails

    @pytest.mark.parametrize("n", [0, 4, 11])
    def test_quest_table_unsupported(self, n):
        assert quest_table(n) is None


# ── TestKnowledge ─────────────────────────────────────────────────────────────


class TestKnowledge:
    ROSTER = _roster(
        ("a", Role.MORGANA),
        ("b", Role.SERVANT),
        ("c", Role.MERLIN),
        ("d", Role.PERCIVAL),
        ("e", Role.ASSASSIN),
        ("f", Role.MINION),
    )

    def test_merlin_sees_all_evil(self):
        assert compute_knowledge("c", Role.MERLIN, self.ROSTER) == ("a", "e", "f")

    def test_percival_sees_both_candidates_in_roster_order(self):
        # Morgana sits before Merlin; order must not reveal which is which.
        assert compute_knowledge("d", Role.PERCIVAL, self.ROSTER) == ("a", "c")

    def test_evil_see_each_other(self):
        assert compute_knowledge("a", Role.MORGANA, self.ROSTER) == ("e", "f")
        assert compute_knowledge("e", Role.ASSASSIN, self.ROSTER) == ("a", "f")
        assert compute_knowledge("f", Role.MINION, self.ROSTER) == ("a", "e")

    def test_servant_sees_nobody(self):
        assert compute_knowledge("b", Role.SERVANT, self.ROSTER) == ()

    def test_never_includes_self(self):
        for pid, role, _ in self.ROSTER:
            assert pid not in compute_knowledge(pid, role, self.ROSTER)


# ── TestAssignment ────────────────────────────────────────────────────────────


class TestAssignment:
    def test_distribution_sizes(self):
        for n, roles in ROLE_DISTRIBUTION.items():
            assert len(roles) == n
            assert roles.count(Role.MERLIN) == 1
            assert roles.count(Role.ASSASSIN) == 1

    def test_evil_counts(self):
        expected = {5: 2, 6: 2, 7: 3, 8: 3, 9: 3, 10: 4}
        for n, evil in expected.items():
            assert sum(1 for r in ROLE_DISTRIBUTION[n] if r in EVIL_ROLES) == evil

    def test_shuffle_is_deterministic_permutation(self):
        items = list(range(10))
        a = seeded_shuffle(items, SEED)
        assert a == seeded_shuffle(items, SEED)
        assert sorted(a) == items
        assert items == list(range(10))

    def test_different_seeds_differ(self):
        items = list(range(10))
        assert seeded_shuffle(items, SEED) != seeded_shuffle(items, b"\x01" * 32)

    def test_assign_roles(self):
        players = [f"P{i}" for i in range(1, 8)]
        assignments = assign_roles(players, SEED)
        assert [a.identity for a in assignments] == players
        assert sorted(a.role.value for a in assignments) == sorted(r.value for r in ROLE_DISTRIBUTION[7])
        for a in assignments:
            assert a.alignment == alignment_of(a.role)

    def test_assignment_knowledge_matches_rules(self):
        players = [f"P{i}" for i in range(1, 6)]
        assignments = assign_roles(players, SEED)
        roster = [(a.identity, a.role, a.alignment) for a in assignments]
        for a in assignments:
            assert a.known_players == compute_knowledge(a.identity, a.role, roster)

    def test_commitment_verifies_every_assignment(self):
        players = [f"P{i}" for i in range(1, 11)]
        assignments = assign_roles(players, SEED)
        commitment = commit_assignments(assignments, SEED)
        for a in assignments:
            assert verify(a.identity, a.role, a.alignment, SEED, commitment.proof_for(a.identity), commitment.root)

    @pytest.mark.parametrize("n", [4, 11])
    def test_unsupported_count(self, n):
        with pytest.raises(AvalonError) as exc:
            assign_roles([f"P{i}" for i in range(n)], SEED)
        assert exc.value.code == ErrorCode.UNSUPPORTED_PLAYER_COUNT

    def test_duplicate_identities(self):
        with pytest.raises(AvalonError) as exc:
            assign_roles(["P1", "P1", "P2", "P3", "P4"], SEED)
        assert exc.value.code == ErrorCode.PLAYER_ALREADY_IN_GAME
