"""
Match State
===========

Data holders for the simulation.

Body       - mutable physics object (ball or paddle) owned by the engine
MatchState - immutable snapshot handed to controllers once per tick

All positions are normalized court coordinates: (0, 0) is the top-left
corner and (1, 1) the bottom-right. Forces are direction components in
[-1, 1]; multiplying by speed gives velocity.
"""

from dataclasses import dataclass, field, replace
from typing import Optional

import numpy as np

LEFT = 'left'
RIGHT = 'right'
SIDES = (LEFT, RIGHT)


def opposite_side(side: str) -> str:
    """Return the other side of the court."""
    if side == LEFT:
        return RIGHT
    if side == RIGHT:
        return LEFT
    raise ValueError(f"Side must be '{LEFT}' or '{RIGHT}' (got {side!r})")


@dataclass
class Body:
    """A movable rectangle (ball or paddle)."""
    x: float
    y: float
    width: float
    height: float
    speed: float
    force_x: float = 0.0
    force_y: float = 0.0

    @property
    def left(self) -> float:
        return self.x - self.width / 2

    @property
    def right(self) -> float:
        return self.x + self.width / 2

    @property
    def top(self) -> float:
        return self.y - self.height / 2

    @property
    def bottom(self) -> float:
        return self.y + self.height / 2


@dataclass(frozen=True)
class BallState:
    """Ball position and velocity (force already scaled by speed)."""
    x: float
    y: float
    force_x: float
    force_y: float


@dataclass(frozen=True)
class PaddleState:
    """Paddle position."""
    x: float
    y: float


@dataclass(frozen=True)
class MatchState:
    """
    Immutable snapshot of a match at one tick.

    Attributes:
        ball: Ball position and velocity
        left_paddle: Left paddle position
        right_paddle: Right paddle position
        winner: 'left', 'right' or None while the match is running
        time_passed: Virtual seconds since the match started
        frame: Optional grayscale capture of the court (height, width)
        previous_frame: The capture from the previous controller poll
    """
    ball: BallState
    left_paddle: PaddleState
    right_paddle: PaddleState
    winner: Optional[str] = None
    time_passed: float = 0.0
    frame: Optional[np.ndarray] = field(default=None, compare=False, repr=False)
    previous_frame: Optional[np.ndarray] = field(default=None, compare=False, repr=False)

    def paddle(self, side: str) -> PaddleState:
        """Return the paddle belonging to side."""
        if side == LEFT:
            return self.left_paddle
        if side == RIGHT:
            return self.right_paddle
        raise ValueError(f"Side must be '{LEFT}' or '{RIGHT}' (got {side!r})")

    @property
    def is_terminal(self) -> bool:
        return self.winner is not None

    def with_frames(
        self,
        frame: np.ndarray,
        previous_frame: Optional[np.ndarray] = None
    ) -> 'MatchState':
        """
        Return a copy carrying visual frames.

        The snapshot takes its own read-only copies so later captures can't
        change it.
        """
        frame = np.array(frame, dtype=np.float32)
        frame.setflags(write=False)
        if previous_frame is not None:
            previous_frame = np.array(previous_frame, dtype=np.float32)
            previous_frame.setflags(write=False)
        return replace(self, frame=frame, previous_frame=previous_frame)
