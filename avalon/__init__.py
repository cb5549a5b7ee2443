"""Avalon hidden-role game engine with a Merkle commit-reveal role verifier.

Implements *The Resistance: Avalon* for 5–10 players as a pure state
machine: lobby, role reveal against a published commitment, team proposal
and vote, secret quest votes, and the final assassination.

Components:
- engine:      Pure phase transitions over ``GameState`` snapshots
- game:        Stateful facade (AvalonGame) with per-player views
- commitment:  Merkle leaf hashing, proof verification and tree building
- assignment:  Arbiter-side seeded role deal and commitment
- roles:       Role definitions, quest tables and knowledge rules
- actions:     Typed action models (Pydantic)
- config:      Engine configuration (Pydantic)
- errors:      AvalonError and its error codes
"""

from typing import Optional

from avalon.config import EngineConfig
from avalon.errors import AvalonError, ErrorCode, ErrorKind
from avalon.game import AvalonGame
from avalon.roles import Alignment, Role
from avalon.state import GamePhase, GameState

__all__ = [
    "AvalonGame",
    "AvalonError",
    "ErrorCode",
    "ErrorKind",
    "EngineConfig",
    "GamePhase",
    "GameState",
    "Role",
    "Alignment",
    "create_game",
]

GAME_TYPE = "avalon"


def create_game(game_id: str, creator: str, config: Optional[EngineConfig] = None) -> AvalonGame:
    """Factory: open a new AvalonGame in the lobby."""
    return AvalonGame(game_id, creator, config=config)
