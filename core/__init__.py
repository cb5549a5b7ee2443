"""
Core abstract interfaces.

Game packages implement :class:`core.Game` so callers can drive any game
through the same stateful, action-dict facade.
"""

from core.game import Game

__all__ = [
    "Game",
]
