"""Avalon game-state data model.

``GameState`` is the root aggregate for one game: every other record (roster
slots, quests, revealed-role records) hangs off it.  The engine never mutates
a snapshot it was handed; it works on a :meth:`GameState.copy` and returns
that.

Fixed-capacity slots
--------------------
The roster and the per-quest vote arrays are fixed-length lists of
``MAX_PLAYERS`` optional slots.  A player's slot index never changes, and
leader rotation plus the per-slot votes are positional, so slot ``i`` in
``Quest.votes`` always belongs to ``players[i]``.

Tri-state votes are stored as ``Optional[bool]``:

    Quest.votes          None = unset, True = approve, False = reject
    Quest.quest_votes    None = unset, True = success, False = fail
    Quest.passed         None = unresolved, True = passed, False = failed
"""

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from avalon.commitment import HASH_SIZE
from avalon.roles import MAX_PLAYERS, MIN_PLAYERS, NUM_QUESTS, Alignment, Role


class GamePhase(Enum):
    """Distinct stages within an Avalon game."""

    LOBBY = "Lobby"
    ROLE_ASSIGNMENT = "RoleAssignment"
    TEAM_BUILDING = "TeamBuilding"
    VOTING = "Voting"
    QUEST = "Quest"
    ASSASSINATION = "Assassination"
    ENDED = "Ended"


# Phases in which the roster is fixed and play is under way.
ACTIVE_PHASES = frozenset({
    GamePhase.ROLE_ASSIGNMENT,
    GamePhase.TEAM_BUILDING,
    GamePhase.VOTING,
    GamePhase.QUEST,
    GamePhase.ASSASSINATION,
})


def _empty_slots() -> List[Optional[bool]]:
    return [None] * MAX_PLAYERS


@dataclass
class Player:
    identity: str
    role: Role = Role.UNKNOWN
    alignment: Alignment = Alignment.UNKNOWN
    is_ready: bool = False
    team_votes_cast: int = 0
    quests_participated: int = 0

    @property
    def revealed(self) -> bool:
        return self.role != Role.UNKNOWN


@dataclass
class Quest:
    required_players: int = 0
    fail_required: int = 0
    proposed_team: List[str] = field(default_factory=list)
    votes: List[Optional[bool]] = field(default_factory=_empty_slots)
    quest_votes: List[Optional[bool]] = field(default_factory=_empty_slots)
    passed: Optional[bool] = None
    vote_attempts: int = 0

    @property
    def approve_count(self) -> int:
        return sum(1 for v in self.votes if v is True)

    @property
    def reject_count(self) -> int:
        return sum(1 for v in self.votes if v is False)

    @property
    def fail_count(self) -> int:
        return sum(1 for v in self.quest_votes if v is False)

    @property
    def quest_votes_cast(self) -> int:
        return sum(1 for v in self.quest_votes if v is not None)

    def clear_team_votes(self) -> None:
        self.votes = _empty_slots()

    def clear_quest_votes(self) -> None:
        self.quest_votes = _empty_slots()


@dataclass
class RoleRecord:
    """A player's accepted reveal and the identities that role may see.

    ``known_players`` stays ``None`` until knowledge is derived, which happens
    once the whole roster has revealed (or the reveal phase is forced closed).
    """

    identity: str
    role: Role
    alignment: Alignment
    known_players: Optional[Tuple[str, ...]] = None


@dataclass
class GameState:
    game_id: str
    creator: str
    phase: GamePhase = GamePhase.LOBBY
    players: List[Optional[Player]] = field(default_factory=lambda: [None] * MAX_PLAYERS)
    current_quest: int = 0
    quests: List[Quest] = field(default_factory=lambda: [Quest() for _ in range(NUM_QUESTS)])
    leader_index: int = 0
    successful_quests: int = 0
    failed_quests: int = 0
    winner: Optional[Alignment] = None
    created_at: int = 0
    last_action_at: int = 0
    seed: bytes = bytes(HASH_SIZE)
    roles_commitment: bytes = bytes(HASH_SIZE)
    role_records: Dict[str, RoleRecord] = field(default_factory=dict)

    # ------------------------------------------------------------------
    # roster queries
    # ------------------------------------------------------------------

    @property
    def player_count(self) -> int:
        return sum(1 for p in self.players if p is not None)

    def roster(self) -> List[Player]:
        """Present players in slot order."""
        return [p for p in self.players if p is not None]

    def identities(self) -> List[str]:
        return [p.identity for p in self.roster()]

    def find_player_index(self, identity: str) -> Optional[int]:
        for i, p in enumerate(self.players):
            if p is not None and p.identity == identity:
                return i
        return None

    def get_player(self, identity: str) -> Optional[Player]:
        idx = self.find_player_index(identity)
        return self.players[idx] if idx is not None else None

    @property
    def leader(self) -> Optional[str]:
        if self.player_count == 0:
            return None
        player = self.players[self.leader_index]
        return player.identity if player is not None else None

    @property
    def active_quest(self) -> Quest:
        return self.quests[self.current_quest]

    @property
    def is_over(self) -> bool:
        return self.phase == GamePhase.ENDED

    def copy(self) -> "GameState":
        """Deep copy; the engine applies every transition to one of these."""
        return copy.deepcopy(self)

    # ------------------------------------------------------------------
    # invariants
    # ------------------------------------------------------------------

    def invariant_violations(self) -> List[str]:
        """Return a description of every broken structural invariant."""
        problems: List[str] = []
        count = self.player_count

        if len(self.players) != MAX_PLAYERS:
            problems.append(f"roster has {len(self.players)} slots, expected {MAX_PLAYERS}")
        if not (0 <= count <= MAX_PLAYERS):
            problems.append(f"player_count {count} out of range")
        if self.phase in ACTIVE_PHASES and not (MIN_PLAYERS <= count <= MAX_PLAYERS):
            problems.append(f"{count} players during active play")
        if any(p is None for p in self.players[:count]):
            problems.append("roster slots are not contiguous")
        ids = self.identities()
        if len(set(ids)) != len(ids):
            problems.append("duplicate identities on roster")
        if not (0 <= self.current_quest < NUM_QUESTS):
            problems.append(f"current_quest {self.current_quest} out of range")
        if self.successful_quests + self.failed_quests > NUM_QUESTS:
            problems.append("more resolved quests than quests")
        if count > 0 and not (0 <= self.leader_index < count):
            problems.append(f"leader_index {self.leader_index} >= player_count {count}")
        if (self.winner is not None) != (self.phase == GamePhase.ENDED):
            problems.append("winner must be set exactly when the game has ended")

        for qi, quest in enumerate(self.quests):
            cast = sum(1 for v in quest.votes if v is not None)
            if cast > count:
                problems.append(f"quest {qi}: {cast} team votes for {count} players")
            for slot, vote in enumerate(quest.quest_votes):
                if vote is None:
                    continue
                player = self.players[slot]
                if player is None or player.identity not in quest.proposed_team:
                    problems.append(f"quest {qi}: quest vote from slot {slot} not on team")
        return problems

    # ------------------------------------------------------------------
    # serialisation
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe snapshot (bytes hex-encoded, enums by value)."""
        return {
            "game_id": self.game_id,
            "creator": self.creator,
            "phase": self.phase.value,
            "players": [
                None if p is None else {
                    "identity": p.identity,
                    "role": p.role.value,
                    "alignment": p.alignment.value,
                    "is_ready": p.is_ready,
                    "team_votes_cast": p.team_votes_cast,
                    "quests_participated": p.quests_participated,
                }
                for p in self.players
            ],
            "current_quest": self.current_quest,
            "quests": [
                {
                    "required_players": q.required_players,
                    "fail_required": q.fail_required,
                    "proposed_team": list(q.proposed_team),
                    "votes": list(q.votes),
                    "quest_votes": list(q.quest_votes),
                    "passed": q.passed,
                    "vote_attempts": q.vote_attempts,
                }
                for q in self.quests
            ],
            "leader_index": self.leader_index,
            "successful_quests": self.successful_quests,
            "failed_quests": self.failed_quests,
            "winner": self.winner.value if self.winner else None,
            "created_at": self.created_at,
            "last_action_at": self.last_action_at,
            "seed": self.seed.hex(),
            "roles_commitment": self.roles_commitment.hex(),
            "role_records": {
                pid: {
                    "role": rec.role.value,
                    "alignment": rec.alignment.value,
                    "known_players": (
                        None if rec.known_players is None else list(rec.known_players)
                    ),
                }
                for pid, rec in self.role_records.items()
            },
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GameState":
        """Restore a snapshot produced by :meth:`to_dict`."""
        players: List[Optional[Player]] = []
        for raw in data["players"]:
            if raw is None:
                players.append(None)
                continue
            players.append(Player(
                identity=raw["identity"],
                role=Role(raw["role"]),
                alignment=Alignment(raw["alignment"]),
                is_ready=raw.get("is_ready", False),
                team_votes_cast=raw.get("team_votes_cast", 0),
                quests_participated=raw.get("quests_participated", 0),
            ))

        quests = [
            Quest(
                required_players=raw["required_players"],
                fail_required=raw["fail_required"],
                proposed_team=list(raw.get("proposed_team", [])),
                votes=list(raw.get("votes") or _empty_slots()),
                quest_votes=list(raw.get("quest_votes") or _empty_slots()),
                passed=raw.get("passed"),
                vote_attempts=raw.get("vote_attempts", 0),
            )
            for raw in data["quests"]
        ]

        return cls(
            game_id=data["game_id"],
            creator=data["creator"],
            phase=GamePhase(data["phase"]),
            players=players,
            current_quest=data["current_quest"],
            quests=quests,
            leader_index=data["leader_index"],
            successful_quests=data["successful_quests"],
            failed_quests=data["failed_quests"],
            winner=Alignment(data["winner"]) if data.get("winner") else None,
            created_at=data.get("created_at", 0),
            last_action_at=data.get("last_action_at", 0),
            seed=bytes.fromhex(data["seed"]),
            roles_commitment=bytes.fromhex(data["roles_commitment"]),
            role_records={
                pid: RoleRecord(
                    identity=pid,
                    role=Role(rec["role"]),
                    alignment=Alignment(rec["alignment"]),
                    known_players=(
                        None if rec.get("known_players") is None
                        else tuple(rec["known_players"])
                    ),
                )
                for pid, rec in data.get("role_records", {}).items()
            },
        )
