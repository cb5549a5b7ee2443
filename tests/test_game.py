"""Tests for the AvalonGame facade.

Coverage:
- Stepping through a full game with action dicts
- Public view: no roles before the end, quest votes only as tallies
- Private view: own role and knowledge only
- Available actions per phase and per player
- Public action-log redaction of quest votes and reveals
- Serialisation round trip
"""

import json

import pytest

from avalon import create_game
from avalon.commitment import build_role_commitment
from avalon.config import EngineConfig
from avalon.errors import AvalonError, ErrorCode
from avalon.game import AvalonGame
from avalon.roles import Alignment, Role
from avalon.state import GamePhase

SEED = b"\x42" * 32
NOW = 1_700_000_000

ROLES = [
    ("P1", Role.MERLIN, Alignment.GOOD),
    ("P2", Role.PERCIVAL, Alignment.GOOD),
    ("P3", Role.SERVANT, Alignment.GOOD),
    ("P4", Role.MORGANA, Alignment.EVIL),
    ("P5", Role.ASSASSIN, Alignment.EVIL),
]


# ── helpers ───────────────────────────────────────────────────────────────────


def _lobby(config=None) -> AvalonGame:
    game = AvalonGame("g1", "P1", config=config, clock=lambda: NOW)
    for pid, _, _ in ROLES:
        game.step({"action_type": "JOIN", "actor": pid})
    return game


def _started(config=None):
    game = _lobby(config)
    commitment = build_role_commitment(ROLES, SEED)
    game.step({
        "action_type": "START",
        "actor": "P1",
        "seed": SEED.hex(),
        "roles_commitment": commitment.root.hex(),
    })
    return game, commitment


def _playing(config=None) -> AvalonGame:
    game, commitment = _started(config)
    for pid, role, alignment in ROLES:
        game.step({
            "action_type": "REVEAL_ROLE",
            "actor": pid,
            "role": role.value,
            "alignment": alignment.value,
            "proof": [s.hex() for s in commitment.proof_for(pid)],
        })
    return game


def _quest(game: AvalonGame, team, fails=()):
    game.step({"action_type": "PROPOSE_TEAM", "actor": game.state.leader, "team": list(team)})
    for pid in game.get_players():
        game.step({"action_type": "VOTE_TEAM", "actor": pid, "approve": True})
    result = None
    for pid in team:
        result, _ = game.step({"action_type": "VOTE_QUEST", "actor": pid, "success": pid not in fails})
    return result


def _kinds(actions):
    return [a["action_type"] for a in actions]


# ── TestStep ──────────────────────────────────────────────────────────────────


class TestStep:
    def test_factory(self):
        game = create_game("g9", "P1")
        assert game.game_type == "avalon"
        assert game.state.phase == GamePhase.LOBBY

    def test_step_returns_result_and_flag(self):
        game = _lobby()
        result, over = game.step({"action_type": "ADVANCE_PHASE", "actor": "P2"})
        assert over is False
        assert result["phase"] == "Lobby"
        assert result["actor"] == "P2"

    def test_rejected_step_keeps_state(self):
        game = _lobby()
        before = game.serialize()
        with pytest.raises(AvalonError) as exc:
            game.step({"action_type": "JOIN", "actor": "P1"})
        assert exc.value.code == ErrorCode.PLAYER_ALREADY_IN_GAME
        assert game.serialize() == before

    def test_create_rejected(self):
        with pytest.raises(AvalonError) as exc:
            _lobby().step({"action_type": "CREATE", "actor": "P1", "game_id": "g2"})
        assert exc.value.code == ErrorCode.INVALID_ACTION

    def test_team_vote_result(self):
        game = _playing()
        game.step({"action_type": "PROPOSE_TEAM", "actor": "P1", "team": ["P2", "P3"]})
        for pid, vote in zip(game.get_players(), [False, False, False, True, True]):
            result, _ = game.step({"action_type": "VOTE_TEAM", "actor": pid, "approve": vote})
        assert result["vote_resolved"] is True
        assert (result["approve_count"], result["reject_count"]) == (2, 3)
        assert result["passed"] is False
        assert result["vote_attempts"] == 1
        assert result["leader"] == "P2"

    def test_quest_result(self):
        result = _quest(_playing(), ["P2", "P3"])
        assert result["quest_resolved"] is True
        assert result["quest_number"] == 1
        assert result["passed"] is True
        assert result["fail_count"] == 0
        assert result["leader"] == "P2"

    def test_full_game_assassin_misses(self):
        game = _playing()
        _quest(game, ["P1", "P2"])
        _quest(game, ["P1", "P2", "P3"])
        _quest(game, ["P1", "P3"])
        assert game.state.phase == GamePhase.ASSASSINATION
        assert _kinds(game.get_available_actions("P5")) == ["ASSASSINATE"]
        result, over = game.step({"action_type": "ASSASSINATE", "actor": "P5", "target": "P3"})
        assert over is True
        assert result["successful"] is False
        assert result["winner"] == "Good"
        assert game.is_over()
        assert game.get_winner() == "Good"
        assert game.get_scores() == {"good": 3, "evil": 0, "winner": "Good"}

    def test_full_game_evil_by_failures(self):
        game = _playing()
        _quest(game, ["P4", "P5"], fails={"P4"})
        _quest(game, ["P3", "P4", "P5"], fails={"P5"})
        result = _quest(game, ["P4", "P5"], fails={"P4"})
        assert result["winner"] == "Evil"
        assert game.get_scores()["evil"] == 3

    def test_timestamps_from_clock(self):
        game = _lobby()
        assert game.state.created_at == NOW
        assert game.state.last_action_at == NOW


# ── TestViews ─────────────────────────────────────────────────────────────────


class TestViews:
    def test_public_state_hides_roles(self):
        public = _playing().get_public_state()
        assert "roles" not in public
        assert all(set(p) == {"identity", "revealed", "is_ready", "team_votes_cast", "quests_participated"}
                   for p in public["players"])
        assert public["phase"] == "TeamBuilding"
        assert public["leader"] == "P1"

    def test_public_state_hides_individual_quest_votes(self):
        game = _playing()
        game.step({"action_type": "PROPOSE_TEAM", "actor": "P1", "team": ["P3", "P4"]})
        for pid in game.get_players():
            game.step({"action_type": "VOTE_TEAM", "actor": pid, "approve": True})
        game.step({"action_type": "VOTE_QUEST", "actor": "P4", "success": False})
        quest = game.get_public_state()["quests"][0]
        assert quest["quest_votes_cast"] == 1
        assert quest["fail_count"] is None
        assert quest["votes"] == {pid: True for pid in game.get_players()}

        game.step({"action_type": "VOTE_QUEST", "actor": "P3", "success": True})
        quest = game.get_public_state()["quests"][0]
        assert quest["fail_count"] == 1
        assert quest["passed"] is False

    def test_private_state(self):
        game = _playing()
        merlin = game.get_private_state("P1")
        assert merlin["role"] == "Merlin"
        assert merlin["knowledge"] == ["P4", "P5"]
        assert merlin["is_leader"] is True
        percival = game.get_private_state("P2")
        assert percival["knowledge"] == ["P1", "P4"]
        assert game.get_private_state("P3")["knowledge"] == []

    def test_knowledge_hidden_until_all_revealed(self):
        game, commitment = _started()
        game.step({
            "action_type": "REVEAL_ROLE", "actor": "P1", "role": "Merlin",
            "alignment": "Good", "proof": commitment.proof_for("P1"),
        })
        assert game.get_private_state("P1")["knowledge"] is None
        assert game.get_private_state("P2")["role"] == "Unknown"

    def test_private_state_unknown_player(self):
        with pytest.raises(AvalonError) as exc:
            _playing().get_private_state("X")
        assert exc.value.code == ErrorCode.PLAYER_NOT_IN_GAME

    def test_teams_only_after_end(self):
        game = _playing()
        assert game.get_teams() is None
        _quest(game, ["P1", "P2"])
        _quest(game, ["P1", "P2", "P3"])
        _quest(game, ["P1", "P3"])
        game.step({"action_type": "ASSASSINATE", "actor": "P5", "target": "P1"})
        assert game.get_teams() == {"good": ["P1", "P2", "P3"], "evil": ["P4", "P5"]}
        public = game.get_public_state()
        assert public["roles"]["P1"] == "Merlin"
        assert public["winner"] == "Evil"

    def test_get_state_bundles_views(self):
        state = _playing().get_state()
        assert set(state["private_states"]) == {"P1", "P2", "P3", "P4", "P5"}
        assert state["metadata"]["phase"] == "TeamBuilding"
        assert state["metadata"]["game_over"] is False


# ── TestAvailableActions ──────────────────────────────────────────────────────


class TestAvailableActions:
    def test_lobby(self):
        game = _lobby()
        assert _kinds(game.get_available_actions("P9")) == ["JOIN"]
        assert _kinds(game.get_available_actions("P1")) == ["START"]
        assert game.get_available_actions("P2") == []

    def test_reveal_phase(self):
        game, _ = _started()
        assert _kinds(game.get_available_actions("P2")) == ["REVEAL_ROLE", "ADVANCE_PHASE"]
        assert game.get_available_actions("X") == []

    def test_team_building(self):
        game = _playing()
        leader = game.get_available_actions("P1")
        assert _kinds(leader) == ["PROPOSE_TEAM", "ADVANCE_PHASE"]
        assert leader[0]["team_size"] == 2
        assert _kinds(game.get_available_actions("P2")) == ["ADVANCE_PHASE"]

    def test_advance_restricted_by_config(self):
        game = _playing(EngineConfig(restrict_advance_to_creator=True))
        assert game.get_available_actions("P2") == []
        assert "ADVANCE_PHASE" in _kinds(game.get_available_actions("P1"))

    def test_voting(self):
        game = _playing()
        game.step({"action_type": "PROPOSE_TEAM", "actor": "P1", "team": ["P2", "P3"]})
        assert _kinds(game.get_available_actions("P4")) == ["VOTE_TEAM", "VOTE_TEAM"]
        game.step({"action_type": "VOTE_TEAM", "actor": "P4", "approve": False})
        assert game.get_available_actions("P4") == []

    def test_quest_options_by_alignment(self):
        game = _playing()
        game.step({"action_type": "PROPOSE_TEAM", "actor": "P1", "team": ["P3", "P4"]})
        for pid in game.get_players():
            game.step({"action_type": "VOTE_TEAM", "actor": pid, "approve": True})
        assert game.get_available_actions("P3") == [{"action_type": "VOTE_QUEST", "success": True}]
        assert [a["success"] for a in game.get_available_actions("P4")] == [True, False]
        assert game.get_available_actions("P1") == []

    def test_nothing_after_end(self):
        game = _playing()
        for team in (["P4", "P5"], ["P3", "P4", "P5"], ["P4", "P5"]):
            _quest(game, team, fails={"P4"})
        assert game.is_over()
        assert all(game.get_available_actions(pid) == [] for pid in game.get_players())


# ── TestActionLog ─────────────────────────────────────────────────────────────


class TestActionLog:
    def test_public_log_redacts_secrets(self):
        game = _playing()
        _quest(game, ["P3", "P4"], fails={"P4"})
        log = game.get_public_state()["action_log"]
        for entry in log:
            action = entry["action"]
            if action["action_type"] == "VOTE_QUEST":
                assert "success" not in action
            if action["action_type"] == "REVEAL_ROLE":
                assert "role" not in action
                assert "proof" not in action

    def test_full_log_keeps_secrets(self):
        game = _playing()
        _quest(game, ["P3", "P4"], fails={"P4"})
        quest_votes = [e for e in game.serialize()["action_log"] if e["action"]["action_type"] == "VOTE_QUEST"]
        assert [e["action"]["success"] for e in quest_votes] == [True, False]

    def test_log_is_bounded(self):
        game = _playing(EngineConfig(action_log_limit=3))
        assert len(game.serialize()["action_log"]) == 3
        assert game.serialize()["action_log"][-1]["actor"] == "P5"


# ── TestSerialization ─────────────────────────────────────────────────────────


class TestSerialization:
    def test_round_trip_and_continue(self):
        game = _playing()
        _quest(game, ["P2", "P3"])
        data = game.serialize()
        restored = AvalonGame.deserialize(data)
        assert restored.state == game.state
        assert restored.serialize() == data
        restored.step({"action_type": "PROPOSE_TEAM", "actor": "P2", "team": ["P1", "P2", "P3"]})
        assert restored.state.phase == GamePhase.VOTING

    def test_serialized_config(self):
        game = _lobby(EngineConfig(max_rejections=3))
        restored = AvalonGame.deserialize(game.serialize())
        assert restored.config.max_rejections == 3

    def test_load_config_from_file(self, tmp_path):
        from avalon.config import load_config

        path = tmp_path / "engine.json"
        path.write_text(json.dumps({"max_rejections": 4, "restrict_advance_to_creator": True}))
        config = load_config(str(path))
        assert config.max_rejections == 4
        assert config.restrict_advance_to_creator is True
        assert config.seed_length == 32

    def test_unknown_config_key_rejected(self):
        from pydantic import ValidationError

        with pytest.raises(ValidationError):
            EngineConfig(max_rejection=4)
