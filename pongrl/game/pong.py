"""
Pong Match Engine
=================

Deterministic fixed-step simulation of a single Pong match.

Key Features:
- Normalized court: every position and size is in [0, 1]
- Fixed time step, so identical seeds and actions give identical matches
- Paddle "spin": a moving paddle bends the ball's return angle
- Ball speeds up a little every tick, up to a maximum

Match Rules:
- Left paddle sits at x=0.02, right paddle at x=0.98
- Ball bounces off the top and bottom walls and off paddles
- A side wins as soon as the ball gets past the opposing paddle
- There is a single point per match; the winner never changes afterwards
"""

from typing import Optional

import numpy as np

from .state import Body, BallState, PaddleState, MatchState, LEFT, RIGHT
from ..config import Config
from ..utils.logger import get_logger

logger = get_logger(__name__)

# Valid paddle actions: up, stay, down
ACTIONS = (-1, 0, 1)

# Spin that would leave the ball this flat gets doubled
MIN_SPIN_FORCE_Y = 0.33


def validate_action(action: int) -> int:
    """Return action if it is -1, 0 or 1, raise ValueError otherwise."""
    if action not in ACTIONS:
        raise ValueError(f"Action must be one of {ACTIONS} (got {action!r})")
    return int(action)


class MatchEngine:
    """
    Fixed-step Pong physics.

    Each tick:
        1. Paddle directions are set from the actions (-1 up, 0 stay, 1 down)
        2. Objects move horizontally; the ball bounces off a paddle it hits
        3. Objects move vertically; paddles stop at walls, the ball bounces
        4. Ball speed grows by BALL_SPEED_INCREASE, capped at BALL_SPEED_MAX
        5. The winner is checked (and kept once set)

    Example:
        >>> engine = MatchEngine(Config(), seed=42)
        >>> state = engine.tick(0, 0)
        >>> state.ball.x
    """

    def __init__(self, config: Optional[Config] = None, seed: Optional[int] = None):
        """
        Initialize the engine and start a match.

        Args:
            config: Configuration object (uses default if None)
            seed: Seed for the initial ball direction (falls back to config.SEED)
        """
        self.config = config or Config()
        self.time_step = self.config.TIME_STEP
        self._rng = np.random.default_rng(seed if seed is not None else self.config.SEED)

        self.left_paddle: Body
        self.right_paddle: Body
        self.ball: Body
        self.current_frame = 0
        self._winner: Optional[str] = None

        self.reset()

    def reset(self) -> MatchState:
        """Put paddles and ball back to the center and pick a new ball direction."""
        cfg = self.config

        self.left_paddle = Body(
            x=cfg.LEFT_PADDLE_X, y=0.5,
            width=cfg.PADDLE_WIDTH, height=cfg.PADDLE_HEIGHT,
            speed=cfg.PADDLE_SPEED,
        )
        self.right_paddle = Body(
            x=cfg.RIGHT_PADDLE_X, y=0.5,
            width=cfg.PADDLE_WIDTH, height=cfg.PADDLE_HEIGHT,
            speed=cfg.PADDLE_SPEED,
        )
        self.ball = Body(
            x=0.5, y=0.5,
            width=cfg.BALL_WIDTH, height=cfg.BALL_HEIGHT,
            speed=cfg.BALL_SPEED,
        )

        # Random direction, normalized to unit length
        force_x = 0.5 + self._rng.random() * 0.25
        force_y = 0.9 + self._rng.random() * 0.25
        norm = float(np.hypot(force_x, force_y))
        sign_x = 1.0 if self._rng.random() > 0.5 else -1.0
        sign_y = 1.0 if self._rng.random() > 0.5 else -1.0
        self.ball.force_x = sign_x * force_x / norm
        self.ball.force_y = sign_y * force_y / norm

        self.current_frame = 0
        self._winner = None

        return self.get_state()

    def seed(self, seed: int) -> None:
        """Reseed the engine's random generator (takes effect on next reset)."""
        self._rng = np.random.default_rng(seed)

    def paddle(self, side: str) -> Body:
        """Return the paddle body for 'left' or 'right'."""
        if side == LEFT:
            return self.left_paddle
        if side == RIGHT:
            return self.right_paddle
        raise ValueError(f"Side must be '{LEFT}' or '{RIGHT}' (got {side!r})")

    # -------------------------------------------------------------------------
    # Simulation
    # -------------------------------------------------------------------------

    def tick(self, left_action: int, right_action: int) -> MatchState:
        """Advance one fixed time step and return the new snapshot."""
        self.advance(left_action, right_action)
        self.current_frame += 1
        return self.get_state()

    def advance(self, left_action: int, right_action: int, dt: Optional[float] = None) -> None:
        """
        Run one physics step.

        Args:
            left_action: -1 (up), 0 (stay) or 1 (down) for the left paddle
            right_action: Same for the right paddle
            dt: Time step in seconds (defaults to the fixed step)
        """
        dt = self.time_step if dt is None else dt

        self.left_paddle.force_y = float(validate_action(left_action))
        self.right_paddle.force_y = float(validate_action(right_action))

        self._move(self.left_paddle, dt)
        self._move(self.right_paddle, dt)
        self._move(self.ball, dt, is_ball=True)

        self.ball.speed = min(
            self.config.BALL_SPEED_MAX,
            self.ball.speed * self.config.BALL_SPEED_INCREASE
        )

        self.get_winner()

    def _move(self, body: Body, dt: float, is_ball: bool = False) -> None:
        """Move a body by its force, resolving wall and paddle contacts."""
        if body.force_x:
            body.x += body.force_x * body.speed * dt

            if is_ball:
                side = RIGHT if body.force_x > 0 else LEFT
                if self.check_collision(side):
                    body.force_x = -body.force_x
                    paddle = self.paddle(side)
                    if paddle.force_y:
                        self._apply_spin(paddle)

        if body.force_y:
            body.y += body.force_y * body.speed * dt
            half_height = body.height / 2

            if not is_ball:
                # Paddles stop at the wall
                body.y = max(half_height, min(1 - half_height, body.y))
                if body.y in (half_height, 1 - half_height):
                    body.force_y = 0.0
            elif body.y < half_height:
                body.force_y = abs(body.force_y)
            elif body.y > 1 - half_height:
                body.force_y = -abs(body.force_y)

    def _apply_spin(self, paddle: Body) -> None:
        """Blend the moving paddle's direction into the ball's."""
        ball = self.ball
        force_y = (ball.force_y + paddle.force_y) / 2
        if abs(force_y) < MIN_SPIN_FORCE_Y:
            force_y *= 2
        norm = float(np.hypot(ball.force_x, force_y))
        ball.force_x /= norm
        ball.force_y = force_y / norm

    def check_collision(self, side: str) -> bool:
        """
        Check if the ball overlaps the paddle on the given side.

        The paddle's height is inflated by COLLISION_HEIGHT_FACTOR. A ball
        that is already behind the paddle never counts as a hit.
        """
        paddle = self.paddle(side)
        ball = self.ball

        paddle_half_width = paddle.width / 2
        paddle_half_height = paddle.height * self.config.COLLISION_HEIGHT_FACTOR / 2

        # Too far away on x
        if side == LEFT and ball.left > paddle.x + paddle_half_width:
            return False
        if side == RIGHT and ball.right < paddle.x - paddle_half_width:
            return False

        # Above or below the paddle
        if ball.top > paddle.y + paddle_half_height:
            return False
        if ball.bottom < paddle.y - paddle_half_height:
            return False

        # Already past the paddle
        if side == LEFT and ball.left < paddle.x - paddle_half_width:
            return False
        if side == RIGHT and ball.right > paddle.x + paddle_half_width:
            return False

        return True

    def get_winner(self) -> Optional[str]:
        """
        Return 'left' or 'right' once the ball got past a paddle, else None.

        The first winner found is kept for the rest of the match.
        """
        if self._winner is not None:
            return self._winner

        ball = self.ball
        if ball.force_x < 0 and ball.left < self.left_paddle.left:
            self._winner = RIGHT
        elif ball.force_x > 0 and ball.right > self.right_paddle.right:
            self._winner = LEFT

        if self._winner is not None:
            logger.debug(f"Winner: {self._winner} after {self.current_frame} ticks")
        return self._winner

    @property
    def winner(self) -> Optional[str]:
        return self._winner

    @property
    def time_passed(self) -> float:
        """Virtual seconds simulated so far."""
        return self.current_frame * self.time_step

    def get_state(self) -> MatchState:
        """Build an immutable snapshot of the current match."""
        ball = self.ball
        return MatchState(
            ball=BallState(
                x=ball.x,
                y=ball.y,
                force_x=ball.force_x * ball.speed,
                force_y=ball.force_y * ball.speed,
            ),
            left_paddle=PaddleState(x=self.left_paddle.x, y=self.left_paddle.y),
            right_paddle=PaddleState(x=self.right_paddle.x, y=self.right_paddle.y),
            winner=self.get_winner(),
            time_passed=self.time_passed,
        )
