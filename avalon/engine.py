"""Core Avalon state machine.

Phase state-machine
-------------------
LOBBY            ->  players join; creator starts
                     +-- start  ->  ROLE_ASSIGNMENT (quest table, seed, root)

ROLE_ASSIGNMENT  ->  each player reveals (role, alignment) + Merkle proof
                     +-- all revealed  ->  derive knowledge, TEAM_BUILDING

TEAM_BUILDING    ->  leader proposes a team  ->  VOTING

VOTING           ->  every player votes once
                     +-- approvals > rejections  ->  QUEST
                     +-- otherwise               ->  attempts++
                          +-- attempts >= 5  ->  ENDED (Evil)
                          +-- else           ->  advance leader, TEAM_BUILDING

QUEST            ->  every team member votes success / fail
                     resolve:
                     +-- 3 successes  ->  ASSASSINATION
                     +-- 3 failures   ->  ENDED (Evil)
                     +-- else         ->  next quest, advance leader, TEAM_BUILDING

ASSASSINATION    ->  Assassin names one player
                     +-- Merlin     ->  ENDED (Evil)
                     +-- otherwise  ->  ENDED (Good)

Every public function here is a pure transition: it takes a snapshot, an
actor identity and arguments, and returns a *new* snapshot.  The snapshot
passed in is never modified, so a rejected action (``AvalonError``) leaves
the caller's state exactly as it was.  Callers must serialise actions per
game; nothing here locks.
"""

import logging
import time
from typing import Optional, Sequence

from avalon.actions import (
    AdvancePhaseAction,
    AssassinateAction,
    CreateGameAction,
    JoinGameAction,
    ProposeTeamAction,
    RevealRoleAction,
    StartGameAction,
    VoteQuestAction,
    VoteTeamAction,
    parse_action,
)
from avalon.commitment import HASH_SIZE, verify
from avalon.config import DEFAULT_CONFIG, EngineConfig
from avalon.errors import AvalonError, ErrorCode
from avalon.roles import (
    MAX_PLAYERS,
    MIN_PLAYERS,
    Alignment,
    Role,
    compute_knowledge,
    is_consistent,
    quest_table,
)
from avalon.state import GamePhase, GameState, Player, Quest, RoleRecord

logger = logging.getLogger(__name__)

QUESTS_TO_WIN = 3


# ---------------------------------------------------------------------------
# helpers
# ---------------------------------------------------------------------------


def _reject(code: ErrorCode, message: str, **details) -> AvalonError:
    logger.debug("Rejected (%s): %s", code.value, message)
    return AvalonError(code, message, **details)


def _stamp(state: GameState, now: Optional[int]) -> None:
    state.last_action_at = int(time.time()) if now is None else now


def _require_phase(state: GameState, phase: GamePhase, code: ErrorCode = ErrorCode.WRONG_PHASE) -> None:
    if state.phase != phase:
        raise _reject(
            code,
            f"Action requires phase {phase.value}, game is in {state.phase.value}",
            expected=phase,
            actual=state.phase,
        )


def _require_member(state: GameState, identity: str) -> int:
    idx = state.find_player_index(identity)
    if idx is None:
        raise _reject(ErrorCode.PLAYER_NOT_IN_GAME, f"{identity!r} is not in this game", player=identity)
    return idx


def _advance_leader(state: GameState) -> None:
    state.leader_index = (state.leader_index + 1) % state.player_count


def _derive_knowledge(state: GameState) -> None:
    """Fill ``known_players`` for every revealed player from the final roster."""
    roster = [(p.identity, p.role, p.alignment) for p in state.roster()]
    for player in state.roster():
        record = state.role_records.get(player.identity)
        if record is None or record.known_players is not None:
            continue
        record.known_players = compute_knowledge(player.identity, player.role, roster)


def _end_game(state: GameState, winner: Alignment, reason: str) -> None:
    state.winner = winner
    state.phase = GamePhase.ENDED
    logger.info("Game %s over: %s wins (%s)", state.game_id, winner.value, reason)


# ---------------------------------------------------------------------------
# lobby
# ---------------------------------------------------------------------------


def create_game(game_id: str, creator: str, *, now: Optional[int] = None) -> GameState:
    """Open a new game in the lobby."""
    timestamp = int(time.time()) if now is None else now
    state = GameState(game_id=game_id, creator=creator, created_at=timestamp, last_action_at=timestamp)
    logger.info("Game %s created by %s", game_id, creator)
    return state


def join_game(state: GameState, actor: str, *, now: Optional[int] = None) -> GameState:
    """Append *actor* to the roster."""
    _require_phase(state, GamePhase.LOBBY, ErrorCode.GAME_NOT_IN_LOBBY)
    if state.player_count >= MAX_PLAYERS:
        raise _reject(ErrorCode.GAME_FULL, f"Game already has {MAX_PLAYERS} players")
    if state.find_player_index(actor) is not None:
        raise _reject(ErrorCode.PLAYER_ALREADY_IN_GAME, f"{actor!r} already joined", player=actor)

    new = state.copy()
    new.players[new.player_count] = Player(identity=actor)
    _stamp(new, now)
    logger.info("Player %s joined game %s (%d/%d)", actor, new.game_id, new.player_count, MAX_PLAYERS)
    return new


def start_game(
    state: GameState,
    actor: str,
    seed: bytes,
    roles_commitment: bytes,
    *,
    now: Optional[int] = None,
    config: Optional[EngineConfig] = None,
) -> GameState:
    """Close the lobby, size the quests, and record the seed and role commitment."""
    config = config or DEFAULT_CONFIG
    _require_phase(state, GamePhase.LOBBY, ErrorCode.GAME_NOT_IN_LOBBY)
    if actor != state.creator:
        raise _reject(ErrorCode.NOT_CREATOR, "Only the creator can start the game", player=actor)

    count = state.player_count
    if count < MIN_PLAYERS:
        raise _reject(
            ErrorCode.NOT_ENOUGH_PLAYERS,
            f"Need at least {MIN_PLAYERS} players, have {count}",
            player_count=count,
        )
    table = quest_table(count)
    if table is None:
        raise _reject(
            ErrorCode.UNSUPPORTED_PLAYER_COUNT,
            f"No quest table for {count} players",
            player_count=count,
        )
    if len(seed) != config.seed_length:
        raise _reject(
            ErrorCode.INVALID_SEED,
            f"Seed must be {config.seed_length} bytes, got {len(seed)}",
        )
    if len(roles_commitment) != HASH_SIZE:
        raise _reject(
            ErrorCode.INVALID_COMMITMENT,
            f"Commitment root must be {HASH_SIZE} bytes, got {len(roles_commitment)}",
        )

    new = state.copy()
    new.phase = GamePhase.ROLE_ASSIGNMENT
    new.seed = bytes(seed)
    new.roles_commitment = bytes(roles_commitment)
    new.quests = [
        Quest(required_players=size, fail_required=fails) for size, fails in table
    ]
    _stamp(new, now)
    logger.info("Game %s started with %d players", new.game_id, count)
    logger.debug("Game %s commitment root %s", new.game_id, new.roles_commitment.hex())
    return new


# ---------------------------------------------------------------------------
# role reveal
# ---------------------------------------------------------------------------


def submit_role_reveal(
    state: GameState,
    actor: str,
    role: Role,
    alignment: Alignment,
    proof: Sequence[bytes],
    *,
    now: Optional[int] = None,
) -> GameState:
    """
    Accept *actor*'s reveal if it matches the published commitment.

    Once every roster member has revealed, role knowledge is derived for the
    whole table and the game moves to team building.
    """
    _require_phase(state, GamePhase.ROLE_ASSIGNMENT)
    idx = _require_member(state, actor)
    if state.players[idx].revealed:
        raise _reject(ErrorCode.ALREADY_REVEALED, f"{actor!r} has already revealed", player=actor)
    if not is_consistent(role, alignment):
        raise _reject(
            ErrorCode.ROLE_ALIGNMENT_MISMATCH,
            f"{role.value} is not {alignment.value}",
            role=role,
            alignment=alignment,
        )
    if not verify(actor, role, alignment, state.seed, list(proof), state.roles_commitment):
        raise _reject(ErrorCode.INVALID_MERKLE_PROOF, "Proof does not match the role commitment", player=actor)

    new = state.copy()
    player = new.players[idx]
    player.role = role
    player.alignment = alignment
    player.is_ready = True
    new.role_records[actor] = RoleRecord(identity=actor, role=role, alignment=alignment)
    logger.info("Player %s revealed in game %s", actor, new.game_id)

    if all(p.revealed for p in new.roster()):
        _derive_knowledge(new)
        new.phase = GamePhase.TEAM_BUILDING
        logger.info("Game %s: all roles revealed, team building", new.game_id)

    _stamp(new, now)
    return new


# ---------------------------------------------------------------------------
# team proposal & vote
# ---------------------------------------------------------------------------


def propose_team(
    state: GameState,
    actor: str,
    team: Sequence[str],
    *,
    now: Optional[int] = None,
) -> GameState:
    """Leader puts *team* up for the active quest."""
    _require_phase(state, GamePhase.TEAM_BUILDING)
    idx = _require_member(state, actor)
    if idx != state.leader_index:
        raise _reject(ErrorCode.NOT_LEADER, f"{actor!r} is not the leader", player=actor, leader=state.leader)

    required = state.active_quest.required_players
    if len(team) != required:
        raise _reject(
            ErrorCode.INVALID_TEAM_SIZE,
            f"Team size must be exactly {required}, got {len(team)}",
            required=required,
            got=len(team),
        )
    if len(set(team)) != len(team):
        raise _reject(ErrorCode.DUPLICATE_TEAM_MEMBER, "Duplicate players in team proposal")
    for member in team:
        _require_member(state, member)

    new = state.copy()
    quest = new.active_quest
    quest.proposed_team = list(team)
    quest.clear_team_votes()
    new.phase = GamePhase.VOTING
    _stamp(new, now)
    logger.info("Game %s quest %d: %s proposed %s", new.game_id, new.current_quest + 1, actor, list(team))
    return new


def vote_team(
    state: GameState,
    actor: str,
    approve: bool,
    *,
    now: Optional[int] = None,
    config: Optional[EngineConfig] = None,
) -> GameState:
    """Record *actor*'s approve / reject vote; tally once everyone has voted."""
    config = config or DEFAULT_CONFIG
    _require_phase(state, GamePhase.VOTING)
    idx = _require_member(state, actor)
    if state.active_quest.votes[idx] is not None:
        raise _reject(ErrorCode.ALREADY_VOTED, f"{actor!r} already voted this round", player=actor)

    new = state.copy()
    quest = new.active_quest
    quest.votes[idx] = bool(approve)
    new.players[idx].team_votes_cast += 1

    if all(quest.votes[i] is not None for i in range(new.player_count)):
        _resolve_team_vote(new, config)

    _stamp(new, now)
    return new


def _resolve_team_vote(state: GameState, config: EngineConfig) -> None:
    quest = state.active_quest
    approvals, rejections = quest.approve_count, quest.reject_count

    if approvals > rejections:
        quest.clear_quest_votes()
        state.phase = GamePhase.QUEST
        logger.info("Game %s: team approved %d-%d", state.game_id, approvals, rejections)
        return

    quest.vote_attempts += 1
    if quest.vote_attempts >= config.max_rejections:
        _end_game(state, Alignment.EVIL, f"{quest.vote_attempts} rejected proposals")
        return

    quest.clear_team_votes()
    _advance_leader(state)
    state.phase = GamePhase.TEAM_BUILDING
    logger.info(
        "Game %s: team rejected %d-%d, attempt %d of %d, leader now %s",
        state.game_id, approvals, rejections, quest.vote_attempts, config.max_rejections, state.leader,
    )


# ---------------------------------------------------------------------------
# quest
# ---------------------------------------------------------------------------


def submit_quest_vote(
    state: GameState,
    actor: str,
    success: bool,
    *,
    now: Optional[int] = None,
) -> GameState:
    """
    Record a team member's secret quest vote.

    Good players may only vote success; a fail from them is rejected rather
    than silently turned into a success.
    """
    _require_phase(state, GamePhase.QUEST)
    idx = _require_member(state, actor)
    quest = state.active_quest
    if actor not in quest.proposed_team:
        raise _reject(ErrorCode.NOT_ON_TEAM, f"{actor!r} is not on the quest team", player=actor)
    if quest.quest_votes[idx] is not None:
        raise _reject(ErrorCode.ALREADY_VOTED, f"{actor!r} already voted on this quest", player=actor)

    player = state.players[idx]
    if not player.revealed:
        raise _reject(ErrorCode.ROLE_NOT_REVEALED, f"{actor!r} never revealed a role", player=actor)
    if player.alignment == Alignment.GOOD and not success:
        raise _reject(ErrorCode.GOOD_MUST_SUCCEED, "Good players must vote success", player=actor)

    new = state.copy()
    quest = new.active_quest
    quest.quest_votes[idx] = bool(success)
    new.players[idx].quests_participated += 1
    logger.info("Game %s quest %d: %s voted", new.game_id, new.current_quest + 1, actor)

    if quest.quest_votes_cast == len(quest.proposed_team):
        _resolve_quest(new)

    _stamp(new, now)
    return new


def _resolve_quest(state: GameState) -> None:
    quest = state.active_quest
    fail_count = quest.fail_count
    quest.passed = fail_count < quest.fail_required

    if quest.passed:
        state.successful_quests += 1
    else:
        state.failed_quests += 1
    logger.info(
        "Game %s quest %d %s (%d fail(s), %d needed)",
        state.game_id, state.current_quest + 1,
        "passed" if quest.passed else "failed", fail_count, quest.fail_required,
    )

    if state.successful_quests >= QUESTS_TO_WIN:
        state.phase = GamePhase.ASSASSINATION
        logger.info("Game %s: Good won %d quests, assassination begins", state.game_id, QUESTS_TO_WIN)
    elif state.failed_quests >= QUESTS_TO_WIN:
        _end_game(state, Alignment.EVIL, f"{QUESTS_TO_WIN} failed quests")
    else:
        state.current_quest += 1
        _advance_leader(state)
        nxt = state.active_quest
        nxt.clear_team_votes()
        nxt.clear_quest_votes()
        state.phase = GamePhase.TEAM_BUILDING


# ---------------------------------------------------------------------------
# assassination
# ---------------------------------------------------------------------------


def assassinate(
    state: GameState,
    actor: str,
    target: str,
    *,
    now: Optional[int] = None,
) -> GameState:
    """The Assassin names Merlin; the game ends either way."""
    _require_phase(state, GamePhase.ASSASSINATION)
    idx = _require_member(state, actor)
    if state.players[idx].role != Role.ASSASSIN:
        raise _reject(ErrorCode.NOT_ASSASSIN, f"{actor!r} is not the Assassin", player=actor)
    target_idx = _require_member(state, target)

    new = state.copy()
    hit = new.players[target_idx].role == Role.MERLIN
    _stamp(new, now)
    if hit:
        _end_game(new, Alignment.EVIL, f"assassin found Merlin ({target})")
    else:
        _end_game(new, Alignment.GOOD, f"assassin missed ({target})")
    return new


# ---------------------------------------------------------------------------
# escape valve
# ---------------------------------------------------------------------------


def advance_phase(
    state: GameState,
    actor: str,
    *,
    now: Optional[int] = None,
    config: Optional[EngineConfig] = None,
) -> GameState:
    """
    Push a stalled game forward.

    - ROLE_ASSIGNMENT: close the reveal window; knowledge is derived for the
      players who did reveal.
    - TEAM_BUILDING: skip the current leader.
    - any other phase: no change besides the action timestamp.

    Any caller may do this unless ``config.restrict_advance_to_creator``.
    """
    config = config or DEFAULT_CONFIG
    if config.restrict_advance_to_creator and actor != state.creator:
        raise _reject(ErrorCode.NOT_CREATOR, "Only the creator can advance the phase", player=actor)

    new = state.copy()
    if new.phase == GamePhase.ROLE_ASSIGNMENT:
        _derive_knowledge(new)
        new.phase = GamePhase.TEAM_BUILDING
        unrevealed = [p.identity for p in new.roster() if not p.revealed]
        logger.warning(
            "Game %s: reveal phase forced closed by %s, %d unrevealed",
            new.game_id, actor, len(unrevealed),
        )
    elif new.phase == GamePhase.TEAM_BUILDING:
        _advance_leader(new)
        logger.info("Game %s: leader skipped by %s, leader now %s", new.game_id, actor, new.leader)
    _stamp(new, now)
    return new


# ---------------------------------------------------------------------------
# dispatch & terminal queries
# ---------------------------------------------------------------------------


def apply(
    state: Optional[GameState],
    action,
    *,
    now: Optional[int] = None,
    config: Optional[EngineConfig] = None,
) -> GameState:
    """
    Apply one action (typed model or raw dict) and return the new snapshot.

    *state* is ``None`` only for ``CREATE``.

    Raises:
        AvalonError: on any rejected action.
    """
    action = parse_action(action)

    if isinstance(action, CreateGameAction):
        if state is not None:
            raise _reject(ErrorCode.INVALID_ACTION, "CREATE cannot be applied to an existing game")
        return create_game(action.game_id, action.actor, now=now)

    if state is None:
        raise _reject(ErrorCode.INVALID_ACTION, f"{action.action_type} requires an existing game")

    if isinstance(action, JoinGameAction):
        return join_game(state, action.actor, now=now)
    if isinstance(action, StartGameAction):
        return start_game(state, action.actor, action.seed, action.roles_commitment, now=now, config=config)
    if isinstance(action, RevealRoleAction):
        return submit_role_reveal(state, action.actor, action.role, action.alignment, action.proof, now=now)
    if isinstance(action, ProposeTeamAction):
        return propose_team(state, action.actor, action.team, now=now)
    if isinstance(action, VoteTeamAction):
        return vote_team(state, action.actor, action.approve, now=now, config=config)
    if isinstance(action, VoteQuestAction):
        return submit_quest_vote(state, action.actor, action.success, now=now)
    if isinstance(action, AssassinateAction):
        return assassinate(state, action.actor, action.target, now=now)
    if isinstance(action, AdvancePhaseAction):
        return advance_phase(state, action.actor, now=now, config=config)
    raise _reject(ErrorCode.INVALID_ACTION, f"Unknown action_type: {action.action_type!r}")


def is_terminal(state: GameState) -> bool:
    return state.phase == GamePhase.ENDED


def get_winner(state: GameState) -> Optional[Alignment]:
    """Winning alignment, or ``None`` while the game is still running."""
    return state.winner
