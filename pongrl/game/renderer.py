"""
Court Renderer
==============

Draws a match onto a pygame surface and captures downscaled grayscale
frames from it for visual controllers. Optionally shows the surface in a
window.

The renderer only reads engine state; nothing it does feeds back into the
simulation.
"""

from typing import Optional, Tuple

import numpy as np
import pygame

from .pong import MatchEngine
from ..config import Config


class PongRenderer:
    """
    Draws ball and paddles as light rectangles on a black court.

    Example:
        >>> renderer = PongRenderer(config)
        >>> renderer.draw(engine)
        >>> frame = renderer.capture_frame(10)  # shape (18, 24) for 240x180
    """

    COLOR_BACKGROUND: Tuple[int, int, int] = (0, 0, 0)
    COLOR_FOREGROUND: Tuple[int, int, int] = (229, 229, 230)

    def __init__(
        self,
        config: Optional[Config] = None,
        width: Optional[int] = None,
        height: Optional[int] = None
    ):
        """
        Initialize the renderer.

        Args:
            config: Configuration object (uses default if None)
            width: Surface width in pixels (default CAPTURE_WIDTH)
            height: Surface height in pixels (default CAPTURE_HEIGHT)
        """
        self.config = config or Config()
        self.width = width or self.config.CAPTURE_WIDTH
        self.height = height or self.config.CAPTURE_HEIGHT

        # 32-bit so smoothscale works without a display
        self.surface = pygame.Surface((self.width, self.height), 0, 32)
        self.surface.fill(self.COLOR_BACKGROUND)

        self._window: Optional[pygame.Surface] = None

    def draw(self, engine: MatchEngine) -> None:
        """Redraw the court from the engine's current bodies."""
        self.surface.fill(self.COLOR_BACKGROUND)
        for body in (engine.ball, engine.left_paddle, engine.right_paddle):
            rect = pygame.Rect(
                int(round(body.left * self.width)),
                int(round(body.top * self.height)),
                max(1, int(round(body.width * self.width))),
                max(1, int(round(body.height * self.height))),
            )
            pygame.draw.rect(self.surface, self.COLOR_FOREGROUND, rect)

    def capture_frame(self, downscale_factor: Optional[int] = None) -> np.ndarray:
        """
        Sample the surface as a grayscale intensity grid.

        Args:
            downscale_factor: Integer shrink factor (default CAPTURE_DOWNSCALE)

        Returns:
            float32 array of shape (height // f, width // f) with values in [0, 1]
        """
        factor = downscale_factor or self.config.CAPTURE_DOWNSCALE
        size = (max(1, self.width // factor), max(1, self.height // factor))
        small = pygame.transform.smoothscale(self.surface, size)

        # surfarray is indexed (x, y); transpose to (row, column)
        rgb = pygame.surfarray.array3d(small).astype(np.float32)
        gray = rgb.mean(axis=2).T / 255.0
        return np.clip(gray, 0.0, 1.0).astype(np.float32)

    def show(self, scale: int = 3) -> None:
        """Present the surface in a pygame window and pump window events."""
        if self._window is None:
            pygame.display.init()
            pygame.display.set_caption("pongrl")
            self._window = pygame.display.set_mode((self.width * scale, self.height * scale))

        pygame.transform.scale(self.surface, self._window.get_size(), self._window)
        pygame.display.flip()
        pygame.event.pump()

    def close(self) -> None:
        """Close the window if one was opened."""
        if self._window is not None:
            pygame.display.quit()
            self._window = None
