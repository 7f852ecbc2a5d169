"""
Configuration for Pong Reinforcement Learning
=============================================

All match physics, controller hyperparameters and network shapes are
centralized here. Modify these values to experiment with different setups.

Usage:
    from pongrl.config import Config
    cfg = Config()
    print(cfg.BALL_SPEED)

    hard = cfg.with_difficulty(3)
"""

from dataclasses import dataclass, replace
from typing import Dict, Optional

import torch


class ConfigError(ValueError):
    """Raised when a configuration value is malformed."""


@dataclass(frozen=True)
class DifficultySettings:
    """Physics values derived from a difficulty level."""
    paddle_height: float
    paddle_speed: float
    ball_speed: float
    ball_speed_max: float
    ball_speed_increase: float


# Difficulty level -> (speed factor q, per-tick ball speed growth)
_DIFFICULTY_TABLE: Dict[int, tuple] = {
    1: (1.0, 1.0001),
    2: (1.15, 1.001),
    3: (1.5, 1.01),
}


def difficulty_settings(level: int) -> DifficultySettings:
    """
    Map a difficulty level (1..3) to match physics.

    Higher levels shrink and slow the paddles, speed up the ball and make
    it accelerate faster.

    Raises:
        ConfigError: If level is not 1, 2 or 3
    """
    if level not in _DIFFICULTY_TABLE:
        raise ConfigError(f"Difficulty must be 1, 2 or 3 (got {level!r})")
    q, increase = _DIFFICULTY_TABLE[level]
    return DifficultySettings(
        paddle_height=0.33 / q,
        paddle_speed=1.25 / q,
        ball_speed=0.8 * q,
        ball_speed_max=1.5 * q,
        ball_speed_increase=increase,
    )


@dataclass
class Config:
    """
    Central configuration for the entire project.

    Sections:
    1. Match Physics - court, paddles, ball
    2. Scheduling - tick rate and controller polling
    3. Scripted Controller
    4. Dense DQL - feature-vector Q-learning
    5. Visual DQL - frame-based Q-learning
    6. Logging and System
    """

    # =========================================================================
    # MATCH PHYSICS
    # =========================================================================

    # All coordinates are normalized court coordinates in [0, 1]
    PADDLE_HEIGHT: float = 0.25
    PADDLE_WIDTH: float = 0.0375
    PADDLE_SPEED: float = 1.0
    LEFT_PADDLE_X: float = 0.02
    RIGHT_PADDLE_X: float = 0.98

    BALL_WIDTH: float = 0.0375
    BALL_HEIGHT: float = 0.05
    BALL_SPEED: float = 0.8
    BALL_SPEED_INCREASE: float = 1.001  # Multiplied into ball speed every tick
    BALL_SPEED_MAX: float = 2.0

    # Paddle height is inflated by this factor for collision tests,
    # so returns are slightly more forgiving than the drawn paddle
    COLLISION_HEIGHT_FACTOR: float = 1.1

    # =========================================================================
    # SCHEDULING
    # =========================================================================

    # Virtual frame interval (40ms = 25 updates per second). Also the fixed
    # physics time step, so results are identical on every machine.
    UPDATE_INTERVAL_MS: int = 40

    # Ask controllers for a new action every N ticks (25 / 5 = 5 per second)
    CONTROLLER_FRAME_INTERVAL: int = 5

    # Pause after a match ends before the result is returned (skipped in fast mode)
    MATCH_END_PAUSE_MS: int = 250

    # Abort a match after this many ticks (0 = unlimited)
    MAX_TICKS_PER_MATCH: int = 0

    # Matches used for the moving-average match duration
    STATS_MOVING_AVERAGE: int = 20

    # =========================================================================
    # SCRIPTED CONTROLLER
    # =========================================================================

    # Ball follower only changes its mind every N calls
    FOLLOWER_REACTION_TIME: int = 4
    # Chance to move the wrong way after deciding
    FOLLOWER_HICCUP_CHANCE: float = 0.05

    # =========================================================================
    # DENSE DQL (feature-vector Q-learning)
    # =========================================================================

    DQL_MEMORY_CAPACITY: int = 2000
    DQL_TRAINING_SET_MIN: int = 40
    DQL_TRAINING_SET_MAX: int = 400
    DQL_TRAINING_EPOCHS: int = 1
    DQL_TRAINING_ITERATIONS: int = 4
    DQL_TEMPERATURE: float = 1.0
    # No discount: future value counts fully
    DQL_GAMMA: float = 1.0

    # Dense network: 6 inputs (ball x, y, force x, force y, own y, other y)
    DENSE_N_INPUTS: int = 6
    DENSE_HIDDEN_LAYERS: int = 3
    DENSE_HIDDEN_UNITS: int = 40
    DENSE_DROPOUT: float = 0.1
    DENSE_LEARNING_RATE: float = 0.01
    DENSE_BATCH_SIZE: int = 80

    # =========================================================================
    # VISUAL DQL (frame-based Q-learning)
    # =========================================================================

    VDQL_MEMORY_CAPACITY: int = 3000
    VDQL_TRAINING_SET_MIN: int = 20
    VDQL_TRAINING_SET_MAX: int = 200
    VDQL_TRAINING_EPOCHS: int = 1
    VDQL_TRAINING_ITERATIONS: int = 4
    VDQL_GAMMA: float = 0.99
    VDQL_LEARNING_RATE: float = 0.001
    VDQL_LR_DECAY: float = 0.99
    VDQL_EPSILON: float = 0.5
    VDQL_EPSILON_DECAY: float = 0.95

    # Captured court size in pixels and the capture downscale factor
    CAPTURE_WIDTH: int = 240
    CAPTURE_HEIGHT: int = 180
    CAPTURE_DOWNSCALE: int = 10

    VISUAL_CONV_LAYERS: int = 2
    VISUAL_KERNEL_SIZE: int = 3
    VISUAL_FILTERS: int = 30
    VISUAL_POOL_SIZE: int = 2
    VISUAL_DENSE_LAYERS: int = 1
    VISUAL_HIDDEN_UNITS: int = 30
    VISUAL_DROPOUT: float = 0.1
    VISUAL_BATCH_SIZE: int = 80

    # Targets below this value are masked out of the loss
    MASK_THRESHOLD: float = -5.0
    # Value used to pre-fill targets that should be masked
    MASK_VALUE: float = -10.0
    # Max gradient norm per optimizer step (0 = off)
    GRAD_CLIP: float = 1.0

    # =========================================================================
    # LOGGING AND SYSTEM
    # =========================================================================

    LOG_DIR: str = 'logs'
    LOG_LEVEL: str = 'INFO'

    # Small networks train faster on CPU than on an accelerator
    FORCE_CPU: bool = True

    # Random seed for reproducibility (None for random)
    SEED: Optional[int] = None

    @property
    def DEVICE(self) -> torch.device:
        """Auto-detect CUDA/MPS/CPU, or force CPU if configured."""
        if self.FORCE_CPU:
            return torch.device('cpu')
        if torch.cuda.is_available():
            return torch.device('cuda')
        elif hasattr(torch.backends, 'mps') and torch.backends.mps.is_available():
            return torch.device('mps')
        return torch.device('cpu')

    @property
    def TIME_STEP(self) -> float:
        """Fixed physics time step in seconds."""
        return self.UPDATE_INTERVAL_MS / 1000

    @property
    def CAPTURE_SHAPE(self) -> tuple:
        """(height, width) of a downscaled frame."""
        return (self.CAPTURE_HEIGHT // self.CAPTURE_DOWNSCALE,
                self.CAPTURE_WIDTH // self.CAPTURE_DOWNSCALE)

    def with_difficulty(self, level: int) -> 'Config':
        """Return a copy of this config with a difficulty preset applied."""
        settings = difficulty_settings(level)
        return replace(
            self,
            PADDLE_HEIGHT=settings.paddle_height,
            PADDLE_SPEED=settings.paddle_speed,
            BALL_SPEED=settings.ball_speed,
            BALL_SPEED_MAX=settings.ball_speed_max,
            BALL_SPEED_INCREASE=settings.ball_speed_increase,
        )

    def __post_init__(self):
        """Validate once; malformed values fail here instead of mid-match."""
        _require(0 < self.PADDLE_HEIGHT < 1, "PADDLE_HEIGHT must be in (0, 1)")
        _require(0 < self.PADDLE_WIDTH < 1, "PADDLE_WIDTH must be in (0, 1)")
        _require(self.PADDLE_SPEED > 0, "PADDLE_SPEED must be positive")
        _require(0 < self.BALL_WIDTH < 1 and 0 < self.BALL_HEIGHT < 1,
                 "Ball size must be in (0, 1)")
        _require(self.BALL_SPEED > 0, "BALL_SPEED must be positive")
        _require(self.BALL_SPEED_INCREASE >= 1, "BALL_SPEED_INCREASE must be >= 1")
        _require(self.BALL_SPEED <= self.BALL_SPEED_MAX,
                 "BALL_SPEED must not exceed BALL_SPEED_MAX")
        _require(self.COLLISION_HEIGHT_FACTOR > 0, "COLLISION_HEIGHT_FACTOR must be positive")
        _require(self.UPDATE_INTERVAL_MS > 0, "UPDATE_INTERVAL_MS must be positive")
        _require(self.CONTROLLER_FRAME_INTERVAL > 0, "CONTROLLER_FRAME_INTERVAL must be positive")
        _require(self.MATCH_END_PAUSE_MS >= 0, "MATCH_END_PAUSE_MS must be >= 0")
        _require(self.MAX_TICKS_PER_MATCH >= 0, "MAX_TICKS_PER_MATCH must be >= 0")
        _require(self.STATS_MOVING_AVERAGE > 0, "STATS_MOVING_AVERAGE must be positive")
        _require(self.FOLLOWER_REACTION_TIME > 0, "FOLLOWER_REACTION_TIME must be positive")
        _require(0 <= self.FOLLOWER_HICCUP_CHANCE <= 1, "FOLLOWER_HICCUP_CHANCE must be in [0, 1]")

        for prefix in ('DQL', 'VDQL'):
            capacity = getattr(self, f'{prefix}_MEMORY_CAPACITY')
            set_min = getattr(self, f'{prefix}_TRAINING_SET_MIN')
            set_max = getattr(self, f'{prefix}_TRAINING_SET_MAX')
            _require(capacity > 0, f"{prefix}_MEMORY_CAPACITY must be positive")
            _require(0 <= set_min <= set_max,
                     f"{prefix} training set bounds must satisfy 0 <= min <= max")
            _require(getattr(self, f'{prefix}_TRAINING_EPOCHS') > 0,
                     f"{prefix}_TRAINING_EPOCHS must be positive")
            _require(getattr(self, f'{prefix}_TRAINING_ITERATIONS') >= 0,
                     f"{prefix}_TRAINING_ITERATIONS must be >= 0")
            gamma = getattr(self, f'{prefix}_GAMMA')
            _require(0 < gamma <= 1, f"{prefix}_GAMMA must be in (0, 1]")

        _require(self.DQL_TEMPERATURE > 0, "DQL_TEMPERATURE must be positive")
        _require(self.DENSE_LEARNING_RATE > 0, "DENSE_LEARNING_RATE must be positive")
        _require(self.VDQL_LEARNING_RATE > 0, "VDQL_LEARNING_RATE must be positive")
        _require(0 < self.VDQL_LR_DECAY <= 1, "VDQL_LR_DECAY must be in (0, 1]")
        _require(0 < self.VDQL_EPSILON_DECAY <= 1, "VDQL_EPSILON_DECAY must be in (0, 1]")
        _require(0 <= self.VDQL_EPSILON <= 1, "VDQL_EPSILON must be in [0, 1]")
        _require(self.DENSE_BATCH_SIZE > 0 and self.VISUAL_BATCH_SIZE > 0,
                 "Batch sizes must be positive")
        _require(self.CAPTURE_DOWNSCALE > 0, "CAPTURE_DOWNSCALE must be positive")
        _require(self.CAPTURE_WIDTH >= self.CAPTURE_DOWNSCALE
                 and self.CAPTURE_HEIGHT >= self.CAPTURE_DOWNSCALE,
                 "Capture size must be at least one downscaled pixel")
        _require(self.MASK_VALUE < self.MASK_THRESHOLD,
                 "MASK_VALUE must be below MASK_THRESHOLD")
        _require(self.GRAD_CLIP >= 0, "GRAD_CLIP must be >= 0")


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise ConfigError(message)


# Global config instance for easy importing
config = Config()
