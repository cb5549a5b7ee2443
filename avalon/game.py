"""Stateful Avalon game facade.

``AvalonGame`` holds the current ``GameState`` snapshot and drives the pure
transition functions in :mod:`avalon.engine` from plain action dicts.  It
adds what a table of players needs around the bare engine: per-player views
that keep secrets secret, the list of actions each player may take, and an
action log with quest votes and reveals redacted from the public copy.
"""

from typing import Any, Callable, Dict, List, Optional, Tuple

from core.game import Game
from avalon import engine
from avalon.actions import (
    AssassinateAction,
    CreateGameAction,
    VoteQuestAction,
    VoteTeamAction,
    parse_action,
)
from avalon.config import EngineConfig
from avalon.errors import AvalonError, ErrorCode
from avalon.roles import MAX_PLAYERS, MIN_PLAYERS, Alignment, Role
from avalon.state import GamePhase, GameState

# Fields removed from an action before it enters the public log.
_SECRET_FIELDS = {
    "VOTE_QUEST": ("success",),
    "REVEAL_ROLE": ("role", "alignment", "proof"),
}


class AvalonGame(Game):
    """
    Actor-driven facade for one Avalon game.

    Design invariants:
    - Never decides on behalf of a player; only validates and applies actions.
    - A rejected action raises ``AvalonError`` and leaves the game untouched.
    - The snapshot plus the config is sufficient to resume the game.
    """

    def __init__(
        self,
        game_id: str,
        creator: str,
        config: Optional[EngineConfig] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        """
        Args:
            game_id: Caller-chosen game identifier.
            creator: Identity allowed to start the game.
            config:  Engine configuration; ``None`` uses defaults.
            clock:   Timestamp source for ``last_action_at``; ``None`` uses
                     wall-clock seconds.
        """
        self._config = config or EngineConfig()
        self._clock = clock
        self._state = engine.create_game(game_id, creator, now=self._now())
        self._action_log: List[Dict[str, Any]] = []

    @classmethod
    def from_state(
        cls,
        state: GameState,
        config: Optional[EngineConfig] = None,
        clock: Optional[Callable[[], int]] = None,
    ) -> "AvalonGame":
        """Wrap an existing snapshot (e.g. one loaded from storage)."""
        game = cls.__new__(cls)
        game._config = config or EngineConfig()
        game._clock = clock
        game._state = state
        game._action_log = []
        return game

    # ------------------------------------------------------------------
    # identity
    # ------------------------------------------------------------------

    @property
    def game_type(self) -> str:
        return "avalon"

    @property
    def state(self) -> GameState:
        return self._state

    @property
    def config(self) -> EngineConfig:
        return self._config

    def _now(self) -> Optional[int]:
        return self._clock() if self._clock is not None else None

    # ------------------------------------------------------------------
    # step
    # ------------------------------------------------------------------

    def step(self, action: Dict[str, Any]) -> Tuple[Dict[str, Any], bool]:
        """
        Validate and apply *action*.

        Returns:
            ``(result_dict, game_over)``

        Raises:
            AvalonError: on any rejected action.
        """
        parsed = parse_action(action)
        if isinstance(parsed, CreateGameAction):
            raise AvalonError(ErrorCode.INVALID_ACTION, "This game has already been created")

        before = self._state
        after = engine.apply(before, parsed, now=self._now(), config=self._config)
        self._state = after

        result = self._describe(parsed, before, after)
        self._log(parsed, result)
        return result, after.is_over

    def _describe(self, action, before: GameState, after: GameState) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "action_type": action.action_type,
            "actor": action.actor,
            "previous_phase": before.phase.value,
            "phase": after.phase.value,
        }

        if isinstance(action, VoteTeamAction) and after.phase != GamePhase.VOTING:
            quest = before.active_quest
            approvals = quest.approve_count + (1 if action.approve else 0)
            result.update({
                "vote_resolved": True,
                "approve_count": approvals,
                "reject_count": before.player_count - approvals,
                "passed": after.phase == GamePhase.QUEST,
                "vote_attempts": after.quests[before.current_quest].vote_attempts,
            })

        if isinstance(action, VoteQuestAction) and after.phase != GamePhase.QUEST:
            resolved = after.quests[before.current_quest]
            result.update({
                "quest_resolved": True,
                "quest_number": before.current_quest + 1,
                "team": list(resolved.proposed_team),
                "fail_count": resolved.fail_count,
                "fail_required": resolved.fail_required,
                "passed": resolved.passed,
            })

        if isinstance(action, AssassinateAction):
            result.update({
                "target": action.target,
                "successful": after.winner == Alignment.EVIL,
            })

        if after.phase != before.phase and after.phase == GamePhase.TEAM_BUILDING:
            result["leader"] = after.leader

        if after.is_over:
            result["winner"] = after.winner.value
        return result

    def _log(self, action, result: Dict[str, Any]) -> None:
        self._action_log.append({
            "actor": action.actor,
            "action": _action_to_dict(action),
            "result": result,
        })
        limit = self._config.action_log_limit
        if len(self._action_log) > limit:
            del self._action_log[: len(self._action_log) - limit]

    def _public_action_log(self) -> List[Dict[str, Any]]:
        """Return the action log with quest votes and reveals redacted."""
        out = []
        for entry in self._action_log:
            hidden = _SECRET_FIELDS.get(entry["action"].get("action_type"), ())
            if hidden:
                sanitised = {k: v for k, v in entry["action"].items() if k not in hidden}
                entry = {**entry, "action": sanitised}
            out.append(entry)
        return out

    # ------------------------------------------------------------------
    # state views
    # ------------------------------------------------------------------

    def get_players(self) -> List[str]:
        return self._state.identities()

    def get_teams(self) -> Optional[Dict[str, List[str]]]:
        """Alignments become public only once the game is over."""
        if not self._state.is_over:
            return None
        roster = self._state.roster()
        return {
            "good": [p.identity for p in roster if p.alignment == Alignment.GOOD],
            "evil": [p.identity for p in roster if p.alignment == Alignment.EVIL],
        }

    def get_state(self) -> Dict[str, Any]:
        return {
            "public": self.get_public_state(),
            "private_states": {pid: self.get_private_state(pid) for pid in self.get_players()},
            "metadata": {
                "phase": self._state.phase.value,
                "current_quest": self._state.current_quest,
                "game_over": self._state.is_over,
                "winner": self.get_winner(),
            },
        }

    def get_public_state(self) -> Dict[str, Any]:
        s = self._state
        quests = []
        for i, q in enumerate(s.quests):
            votes = {
                p.identity: q.votes[slot]
                for slot, p in enumerate(s.players)
                if p is not None and q.votes[slot] is not None
            }
            quests.append({
                "quest_number": i + 1,
                "required_players": q.required_players,
                "fail_required": q.fail_required,
                "proposed_team": list(q.proposed_team),
                "votes": votes,
                "quest_votes_cast": q.quest_votes_cast,
                # Individual quest votes stay secret; only the tally is shown.
                "fail_count": q.fail_count if q.passed is not None else None,
                "passed": q.passed,
                "vote_attempts": q.vote_attempts,
            })

        public: Dict[str, Any] = {
            "game_id": s.game_id,
            "creator": s.creator,
            "phase": s.phase.value,
            "players": [
                {
                    "identity": p.identity,
                    "revealed": p.revealed,
                    "is_ready": p.is_ready,
                    "team_votes_cast": p.team_votes_cast,
                    "quests_participated": p.quests_participated,
                }
                for p in s.roster()
            ],
            "num_players": s.player_count,
            "current_quest": s.current_quest,
            "leader": s.leader,
            "leader_index": s.leader_index,
            "quests": quests,
            "successful_quests": s.successful_quests,
            "failed_quests": s.failed_quests,
            "seed": s.seed.hex(),
            "roles_commitment": s.roles_commitment.hex(),
            "created_at": s.created_at,
            "last_action_at": s.last_action_at,
            "game_over": s.is_over,
            "winner": self.get_winner(),
            "action_log": self._public_action_log(),
        }
        if s.is_over:
            public["roles"] = {p.identity: p.role.value for p in s.roster() if p.revealed}
        return public

    def get_private_state(self, player_id: str) -> Dict[str, Any]:
        s = self._state
        idx = s.find_player_index(player_id)
        if idx is None:
            raise AvalonError(ErrorCode.PLAYER_NOT_IN_GAME, f"Unknown player: {player_id}", player=player_id)

        player = s.players[idx]
        record = s.role_records.get(player_id)
        quest = s.active_quest

        state: Dict[str, Any] = {
            "player_id": player_id,
            "player_index": idx,
            "role": player.role.value,
            "alignment": player.alignment.value,
            "revealed": player.revealed,
            "knowledge": (
                list(record.known_players)
                if record is not None and record.known_players is not None
                else None
            ),
            "is_leader": s.leader == player_id,
            "on_team": player_id in quest.proposed_team,
        }
        if quest.votes[idx] is not None:
            state["my_vote"] = quest.votes[idx]
        if quest.quest_votes[idx] is not None:
            state["my_quest_vote"] = quest.quest_votes[idx]
        return state

    # ------------------------------------------------------------------
    # available actions
    # ------------------------------------------------------------------

    def get_available_actions(self, player_id: str) -> List[Dict[str, Any]]:
        s = self._state
        idx = s.find_player_index(player_id)
        member = idx is not None
        actions: List[Dict[str, Any]] = []

        if s.phase == GamePhase.LOBBY:
            if not member and s.player_count < MAX_PLAYERS:
                actions.append({"action_type": "JOIN"})
            if player_id == s.creator and s.player_count >= MIN_PLAYERS:
                actions.append({
                    "action_type": "START",
                    "description": "Publish the seed and role commitment root.",
                })
            return actions

        if not member or s.is_over:
            return actions

        player = s.players[idx]
        quest = s.active_quest

        if s.phase == GamePhase.ROLE_ASSIGNMENT and not player.revealed:
            actions.append({
                "action_type": "REVEAL_ROLE",
                "description": "Reveal your role, alignment and Merkle proof.",
            })

        elif s.phase == GamePhase.TEAM_BUILDING and idx == s.leader_index:
            actions.append({
                "action_type": "PROPOSE_TEAM",
                "description": (
                    f"Choose exactly {quest.required_players} players "
                    f"for quest {s.current_quest + 1}."
                ),
                "team_size": quest.required_players,
                "candidates": s.identities(),
            })

        elif s.phase == GamePhase.VOTING and quest.votes[idx] is None:
            actions.append({"action_type": "VOTE_TEAM", "approve": True})
            actions.append({"action_type": "VOTE_TEAM", "approve": False})

        elif (
            s.phase == GamePhase.QUEST
            and player_id in quest.proposed_team
            and quest.quest_votes[idx] is None
            and player.revealed
        ):
            actions.append({"action_type": "VOTE_QUEST", "success": True})
            if player.alignment == Alignment.EVIL:
                actions.append({"action_type": "VOTE_QUEST", "success": False})

        elif s.phase == GamePhase.ASSASSINATION and player.role == Role.ASSASSIN:
            actions.append({
                "action_type": "ASSASSINATE",
                "description": "Identify which player is Merlin.",
                "valid_targets": s.identities(),
            })

        if s.phase in (GamePhase.ROLE_ASSIGNMENT, GamePhase.TEAM_BUILDING) and (
            not self._config.restrict_advance_to_creator or player_id == s.creator
        ):
            actions.append({"action_type": "ADVANCE_PHASE"})

        return actions

    # ------------------------------------------------------------------
    # terminal queries
    # ------------------------------------------------------------------

    def is_over(self) -> bool:
        return engine.is_terminal(self._state)

    def get_winner(self) -> Optional[str]:
        winner = engine.get_winner(self._state)
        return winner.value if winner is not None else None

    def get_scores(self) -> Dict[str, Any]:
        return {
            "good": self._state.successful_quests,
            "evil": self._state.failed_quests,
            "winner": self.get_winner(),
        }

    # ------------------------------------------------------------------
    # serialisation
    # ------------------------------------------------------------------

    def serialize(self) -> Dict[str, Any]:
        """Full-fidelity snapshot including secret state, for storage / replay."""
        return {
            "game_type": "avalon",
            "state": self._state.to_dict(),
            "config": self._config.model_dump(),
            "action_log": list(self._action_log),
        }

    @classmethod
    def deserialize(cls, data: Dict[str, Any]) -> "AvalonGame":
        game = cls.from_state(
            GameState.from_dict(data["state"]),
            config=EngineConfig(**data.get("config", {})),
        )
        game._action_log = list(data.get("action_log", []))
        return game


def _action_to_dict(action) -> Dict[str, Any]:
    """JSON-safe dump of a typed action (hashes hex-encoded)."""
    out: Dict[str, Any] = {}
    for key, value in action.model_dump().items():
        if isinstance(value, bytes):
            value = value.hex()
        elif isinstance(value, list):
            value = [v.hex() if isinstance(v, bytes) else v for v in value]
        elif isinstance(value, (Role, Alignment)):
            value = value.value
        out[key] = value
    return out


__all__ = ["AvalonGame"]
