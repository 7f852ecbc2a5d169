"""
Keyboard Controller
===================

Lets a human steer a paddle. Key state is read from pygame, so a pygame
window must be open and pumping events (PongRenderer.show does this).
"""

from typing import Any, Callable, Optional

import pygame

from .base import BaseController
from ...config import Config
from ...game.state import MatchState


class KeyboardController(BaseController):
    """
    Returns -1 while the up key is held, 1 while the down key is held, else 0.

    Args:
        side: 'left' or 'right'
        config: Configuration object
        up_key: pygame key code for up (default K_UP)
        down_key: pygame key code for down (default K_DOWN)
        key_state: Callable returning an indexable key state
                   (default pygame.key.get_pressed)
    """

    def __init__(
        self,
        side: str,
        config: Optional[Config] = None,
        up_key: int = pygame.K_UP,
        down_key: int = pygame.K_DOWN,
        key_state: Optional[Callable[[], Any]] = None
    ):
        super().__init__(side, config)
        self.up_key = up_key
        self.down_key = down_key
        self._key_state = key_state or pygame.key.get_pressed

    def action_from_keys(self, keys) -> int:
        """Convert a key state to an action."""
        if keys[self.up_key]:
            return -1
        if keys[self.down_key]:
            return 1
        return 0

    async def select_action(self, state: MatchState) -> int:
        return self.action_from_keys(self._key_state())
