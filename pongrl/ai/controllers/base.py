"""
Base Controller Interface
=========================

Abstract base class for everything that can steer a paddle.

A controller is polled by the match runner with the current MatchState
and answers with an action: -1 (up), 0 (stay) or 1 (down). Hooks run at
match start and end, and mirror_controller() creates a controller of the
same kind for the opposite side (used for self-play).

To add a new controller:
1. Create a new module in pongrl/ai/controllers/
2. Inherit from BaseController and implement select_action
3. Register it in __init__.py
"""

from abc import ABC, abstractmethod
from typing import Optional

from ...config import Config, ConfigError
from ...game.state import MatchState, SIDES, opposite_side


def mirror_seed(seed: Optional[int]) -> Optional[int]:
    """Seed for a mirrored controller, offset from its source's."""
    return None if seed is None else seed + 1


class BaseController(ABC):
    """
    Abstract paddle controller.

    Attributes:
        side: 'left' or 'right'
        config: Configuration object
        needs_frames: True if select_action expects snapshots carrying frames
    """

    needs_frames: bool = False

    def __init__(self, side: str, config: Optional[Config] = None):
        if side not in SIDES:
            raise ConfigError(f"Controller side must be one of {SIDES} (got {side!r})")
        self.side = side
        self.config = config or Config()

    def mirror_controller(self, **overrides) -> 'BaseController':
        """
        Create a controller of the same type for the opposite side.

        Args:
            **overrides: Constructor keyword arguments for the new controller
        """
        return type(self)(opposite_side(self.side), config=self.config, **overrides)

    @abstractmethod
    async def select_action(self, state: MatchState) -> int:
        """
        Pick the next action for the given state.

        Returns:
            -1 (up), 0 (stay) or 1 (down)
        """

    async def on_match_start(self) -> None:
        """Called before the first tick of a match."""

    async def on_match_end(self, won: bool) -> None:
        """Called once the match has a winner. won is True if this side won."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(side={self.side!r})"
