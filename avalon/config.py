"""Engine configuration."""

import json
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class EngineConfig(BaseModel):
    """Configuration for the Avalon engine.

    Attributes:
        seed_length:                 Required length in bytes of the
                                     externally supplied randomness seed.
        max_rejections:              Team rejections on a single quest that
                                     hand the game to Evil.
        restrict_advance_to_creator: When True only the creator may force a
                                     stalled phase forward.  Off by default:
                                     any caller may advance.
        action_log_limit:            Entries kept in ``AvalonGame``'s action
                                     log (oldest dropped first).
    """

    seed_length: int = Field(default=32, ge=1, le=64, description="Seed size in bytes")
    max_rejections: int = Field(
        default=5, ge=1, le=5, description="Rejected proposals per quest before Evil wins"
    )
    restrict_advance_to_creator: bool = Field(
        default=False, description="Only the creator may use the advance-phase escape valve"
    )
    action_log_limit: int = Field(default=200, ge=0, description="Bounded action-log length")

    model_config = ConfigDict(extra="forbid")


DEFAULT_CONFIG = EngineConfig()


def load_config(filepath: str) -> EngineConfig:
    """Load configuration from a JSON file."""
    data = json.loads(Path(filepath).read_text())
    return EngineConfig(**data)
