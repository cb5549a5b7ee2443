"""
Rejection taxonomy for the Avalon engine.

Every illegal action raises :class:`AvalonError`.  The error carries a
machine-readable ``code`` (what exactly went wrong) and a coarse ``kind``
(which family of rule was broken) so a client can explain the failure to
the player without parsing the message text.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(Enum):
    """Families of rejected transitions."""

    PHASE = "phase"
    AUTHORIZATION = "authorization"
    MEMBERSHIP = "membership"
    SEQUENCING = "sequencing"
    INTEGRITY = "integrity"
    RULE = "rule"
    CONFIGURATION = "configuration"
    VALIDATION = "validation"


class ErrorCode(Enum):
    """Specific rejection reasons."""

    # phase
    GAME_NOT_IN_LOBBY = "game_not_in_lobby"
    WRONG_PHASE = "wrong_phase"
    # authorization
    NOT_CREATOR = "not_creator"
    NOT_LEADER = "not_leader"
    NOT_ASSASSIN = "not_assassin"
    NOT_ON_TEAM = "not_on_team"
    ROLE_NOT_REVEALED = "role_not_revealed"
    # capacity / membership
    GAME_FULL = "game_full"
    PLAYER_ALREADY_IN_GAME = "player_already_in_game"
    PLAYER_NOT_IN_GAME = "player_not_in_game"
    INVALID_TEAM_SIZE = "invalid_team_size"
    DUPLICATE_TEAM_MEMBER = "duplicate_team_member"
    # sequencing
    ALREADY_VOTED = "already_voted"
    ALREADY_REVEALED = "already_revealed"
    # integrity
    INVALID_MERKLE_PROOF = "invalid_merkle_proof"
    ROLE_ALIGNMENT_MISMATCH = "role_alignment_mismatch"
    # rule
    GOOD_MUST_SUCCEED = "good_must_succeed"
    # configuration
    NOT_ENOUGH_PLAYERS = "not_enough_players"
    UNSUPPORTED_PLAYER_COUNT = "unsupported_player_count"
    INVALID_SEED = "invalid_seed"
    INVALID_COMMITMENT = "invalid_commitment"
    # validation
    INVALID_ACTION = "invalid_action"


ERROR_KINDS: Dict[ErrorCode, ErrorKind] = {
    ErrorCode.GAME_NOT_IN_LOBBY: ErrorKind.PHASE,
    ErrorCode.WRONG_PHASE: ErrorKind.PHASE,
    ErrorCode.NOT_CREATOR: ErrorKind.AUTHORIZATION,
    ErrorCode.NOT_LEADER: ErrorKind.AUTHORIZATION,
    ErrorCode.NOT_ASSASSIN: ErrorKind.AUTHORIZATION,
    ErrorCode.NOT_ON_TEAM: ErrorKind.AUTHORIZATION,
    ErrorCode.ROLE_NOT_REVEALED: ErrorKind.AUTHORIZATION,
    ErrorCode.GAME_FULL: ErrorKind.MEMBERSHIP,
    ErrorCode.PLAYER_ALREADY_IN_GAME: ErrorKind.MEMBERSHIP,
    ErrorCode.PLAYER_NOT_IN_GAME: ErrorKind.MEMBERSHIP,
    ErrorCode.INVALID_TEAM_SIZE: ErrorKind.MEMBERSHIP,
    ErrorCode.DUPLICATE_TEAM_MEMBER: ErrorKind.MEMBERSHIP,
    ErrorCode.ALREADY_VOTED: ErrorKind.SEQUENCING,
    ErrorCode.ALREADY_REVEALED: ErrorKind.SEQUENCING,
    ErrorCode.INVALID_MERKLE_PROOF: ErrorKind.INTEGRITY,
    ErrorCode.ROLE_ALIGNMENT_MISMATCH: ErrorKind.INTEGRITY,
    ErrorCode.GOOD_MUST_SUCCEED: ErrorKind.RULE,
    ErrorCode.NOT_ENOUGH_PLAYERS: ErrorKind.CONFIGURATION,
    ErrorCode.UNSUPPORTED_PLAYER_COUNT: ErrorKind.CONFIGURATION,
    ErrorCode.INVALID_SEED: ErrorKind.CONFIGURATION,
    ErrorCode.INVALID_COMMITMENT: ErrorKind.CONFIGURATION,
    ErrorCode.INVALID_ACTION: ErrorKind.VALIDATION,
}


class AvalonError(ValueError):
    """
    Raised when an action is rejected.

    Attributes:
        code:    Specific rejection reason
        kind:    Rejection family derived from ``code``
        details: Optional structured context (actor, phase, sizes, ...)
    """

    def __init__(
        self,
        code: ErrorCode,
        message: Optional[str] = None,
        **details: Any,
    ):
        super().__init__(message or code.value.replace("_", " "))
        self.code = code
        self.kind = ERROR_KINDS[code]
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe summary for clients."""
        return {
            "code": self.code.value,
            "kind": self.kind.value,
            "message": str(self),
            "details": {k: _jsonable(v) for k, v in self.details.items()},
        }


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value
