"""Typed actions for the Avalon engine.

Raw action dicts (from a transport layer, a CLI, or a test) are normalised
into one pydantic model per operation, discriminated on ``action_type``:

    CREATE, JOIN, START, REVEAL_ROLE, PROPOSE_TEAM,
    VOTE_TEAM, VOTE_QUEST, ASSASSINATE, ADVANCE_PHASE

Hashes (seed, commitment root, proof siblings) accept raw bytes, hex strings
or int lists; roles and alignments accept names in any case; votes accept
booleans or the usual words ("approve", "reject", "success", "fail", ...).
"""

from typing import Annotated, Any, Dict, List, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from avalon.commitment import HASH_SIZE, parse_hash
from avalon.errors import AvalonError, ErrorCode
from avalon.roles import Alignment, Role, parse_alignment, parse_role

_TRUE_WORDS = {"true", "yes", "approve", "approved", "success", "succeed", "pass", "1"}
_FALSE_WORDS = {"false", "no", "reject", "rejected", "fail", "failure", "0"}


def _coerce_bool(value: Any) -> Any:
    if isinstance(value, str):
        low = value.strip().lower()
        if low in _TRUE_WORDS:
            return True
        if low in _FALSE_WORDS:
            return False
    return value


def _coerce_bytes(value: Any) -> Any:
    """Hex / int-list to bytes; length is checked by the engine."""
    if isinstance(value, str):
        text = value.strip()
        if text.startswith(("0x", "0X")):
            text = text[2:]
        return bytes.fromhex(text)
    if isinstance(value, (list, tuple)):
        return bytes(value)
    return value


class _ActionBase(BaseModel):
    actor: str = Field(..., min_length=1, description="Opaque identity of the acting player")

    model_config = ConfigDict(extra="forbid")


class CreateGameAction(_ActionBase):
    action_type: Literal["CREATE"] = "CREATE"
    game_id: str = Field(..., min_length=1)


class JoinGameAction(_ActionBase):
    action_type: Literal["JOIN"] = "JOIN"


class StartGameAction(_ActionBase):
    action_type: Literal["START"] = "START"
    seed: bytes
    roles_commitment: bytes

    @field_validator("seed", mode="before")
    @classmethod
    def _seed(cls, v: Any) -> Any:
        return _coerce_bytes(v)

    @field_validator("roles_commitment", mode="before")
    @classmethod
    def _root(cls, v: Any) -> Any:
        return parse_hash(v)


class RevealRoleAction(_ActionBase):
    action_type: Literal["REVEAL_ROLE"] = "REVEAL_ROLE"
    role: Role
    alignment: Alignment
    proof: List[bytes] = Field(default_factory=list)

    @field_validator("role", mode="before")
    @classmethod
    def _role(cls, v: Any) -> Role:
        return parse_role(v)

    @field_validator("alignment", mode="before")
    @classmethod
    def _alignment(cls, v: Any) -> Alignment:
        return parse_alignment(v)

    @field_validator("proof", mode="before")
    @classmethod
    def _proof(cls, v: Any) -> List[bytes]:
        if not isinstance(v, (list, tuple)):
            raise ValueError("proof must be a list of hashes")
        return [parse_hash(sibling, HASH_SIZE) for sibling in v]


class ProposeTeamAction(_ActionBase):
    action_type: Literal["PROPOSE_TEAM"] = "PROPOSE_TEAM"
    team: List[str]


class VoteTeamAction(_ActionBase):
    action_type: Literal["VOTE_TEAM"] = "VOTE_TEAM"
    approve: bool

    @field_validator("approve", mode="before")
    @classmethod
    def _approve(cls, v: Any) -> Any:
        return _coerce_bool(v)


class VoteQuestAction(_ActionBase):
    action_type: Literal["VOTE_QUEST"] = "VOTE_QUEST"
    success: bool

    @field_validator("success", mode="before")
    @classmethod
    def _success(cls, v: Any) -> Any:
        return _coerce_bool(v)


class AssassinateAction(_ActionBase):
    action_type: Literal["ASSASSINATE"] = "ASSASSINATE"
    target: str = Field(..., min_length=1)


class AdvancePhaseAction(_ActionBase):
    action_type: Literal["ADVANCE_PHASE"] = "ADVANCE_PHASE"


Action = Annotated[
    Union[
        CreateGameAction,
        JoinGameAction,
        StartGameAction,
        RevealRoleAction,
        ProposeTeamAction,
        VoteTeamAction,
        VoteQuestAction,
        AssassinateAction,
        AdvancePhaseAction,
    ],
    Field(discriminator="action_type"),
]

ACTION_TYPES = (
    "CREATE", "JOIN", "START", "REVEAL_ROLE", "PROPOSE_TEAM",
    "VOTE_TEAM", "VOTE_QUEST", "ASSASSINATE", "ADVANCE_PHASE",
)

_ACTION_ADAPTER: TypeAdapter = TypeAdapter(Action)


def parse_action(raw: Union[BaseModel, Dict[str, Any]]) -> Any:
    """
    Normalise *raw* into a typed action model.

    Raises:
        AvalonError: ``INVALID_ACTION`` when the payload does not describe a
                     well-formed action.
    """
    if isinstance(raw, _ActionBase):
        return raw
    if not isinstance(raw, dict):
        raise AvalonError(ErrorCode.INVALID_ACTION, f"Action must be a dict, got {type(raw).__name__}")

    data = dict(raw)
    action_type = str(data.get("action_type", "")).strip().upper()
    if action_type not in ACTION_TYPES:
        raise AvalonError(
            ErrorCode.INVALID_ACTION,
            f"Unknown action_type: {data.get('action_type')!r}",
            valid=list(ACTION_TYPES),
        )
    data["action_type"] = action_type

    try:
        return _ACTION_ADAPTER.validate_python(data)
    except ValidationError as e:
        problems = [
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        ]
        raise AvalonError(
            ErrorCode.INVALID_ACTION,
            f"Malformed {action_type} action: {'; '.join(problems)}",
            errors=problems,
        )
