"""
Abstract Game interface.

A game wraps a rules engine behind one stateful object so that a transport
layer, a CLI or a test can drive it with plain action dicts and read back
per-player views without knowing the engine's internals.
"""

from abc import ABC, abstractmethod
from typing import Dict, Any, List, Optional, Tuple


class Game(ABC):
    """
    Abstract base class for actor-driven, turn-structured games.

    Unlike strictly sequential games, several players may be entitled to act
    at the same moment (everyone votes on a proposal at once), so every
    action names its actor and the game decides whether that actor may act.

    Key concepts:
    - **Players**: Identified by opaque string tokens; the game only
      compares them for equality.
    - **State**: Divided into public (visible to all) and private (per-player)
    - **Actions**: Structured dicts with an ``action_type``, an ``actor`` and
      action-specific fields

    Example implementation:
        class MyGame(Game):
            def step(self, action):
                self.state = my_engine.apply(self.state, action)
                return {"phase": self.state.phase}, self.is_over()
    """

    @property
    @abstractmethod
    def game_type(self) -> str:
        """
        Return the game type identifier.

        Returns:
            String identifier for this game type (e.g., "avalon")
        """
        pass

    @abstractmethod
    def get_state(self) -> Dict[str, Any]:
        """
        Get the complete current game state.

        Returns a snapshot including both public and all private
        information, for an impartial arbiter or for post-game review.

        Returns:
            Dict containing:
                - public: Public game state
                - private_states: Dict mapping player_id to their private state
                - metadata: Phase, game-over flag, winner, etc.
        """
        pass

    @abstractmethod
    def get_public_state(self) -> Dict[str, Any]:
        """
        Get the publicly visible game state.

        Returns:
            Dict with game-specific public state fields
        """
        pass

    @abstractmethod
    def get_private_state(self, player_id: str) -> Dict[str, Any]:
        """
        Get private state visible only to a specific player.

        Args:
            player_id: The player's identity token

        Returns:
            Dict with player-specific private state

        Raises:
            ValueError: If the player is not in the game
        """
        pass

    @abstractmethod
    def get_available_actions(self, player_id: str) -> List[Dict[str, Any]]:
        """
        Get the actions *player_id* may take right now.

        Returns:
            List of action templates, each containing at least
            ``action_type``; empty when the player cannot act.
        """
        pass

    @abstractmethod
    def step(self, action: Dict[str, Any]) -> Tuple[Dict[str, Any], bool]:
        """
        Validate and apply one action.

        Args:
            action: Action dict naming its ``action_type`` and ``actor``

        Returns:
            Tuple of (result_dict, game_over)

        Raises:
            ValueError: If the action is rejected.  The game state is left
                unchanged.
        """
        pass

    @abstractmethod
    def is_over(self) -> bool:
        """Check if the game has reached a terminal state."""
        pass

    @abstractmethod
    def get_winner(self) -> Optional[str]:
        """
        Get the winner of the game.

        Returns:
            Winning side / player identifier, or None while ongoing
        """
        pass

    @abstractmethod
    def get_scores(self) -> Dict[str, Any]:
        """Get current or final scores."""
        pass

    def get_players(self) -> List[str]:
        """
        Get list of all player IDs in the game.

        Default implementation returns an empty list.
        """
        return []

    def get_teams(self) -> Optional[Dict[str, List[str]]]:
        """
        Get team assignments if this is a team-based game.

        Returns:
            Dict mapping team_id to list of player_ids, or None if teams are
            not (yet) public
        """
        return None

    def serialize(self) -> Dict[str, Any]:
        """
        Serialize the complete game state for storage/replay.

        Default implementation uses get_state().
        """
        return self.get_state()

    @classmethod
    def deserialize(cls, data: Dict[str, Any]) -> "Game":
        """
        Restore a game from serialized state.

        Raises:
            NotImplementedError: If deserialization not supported
        """
        raise NotImplementedError(
            f"{cls.__name__} does not support deserialization"
        )
