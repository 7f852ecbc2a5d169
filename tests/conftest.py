"""
Pytest configuration for the test suite.

This file is automatically loaded by pytest and applies configuration
to all tests in the tests/ directory.
"""

import os

# pygame must not try to open a real display during tests
os.environ.setdefault('SDL_VIDEODRIVER', 'dummy')

import numpy as np
import pytest

from pongrl.config import Config
from pongrl.game.state import BallState, MatchState, PaddleState


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )


@pytest.fixture
def config():
    """Default configuration with a fixed seed."""
    return Config(SEED=42)


@pytest.fixture
def small_config():
    """Configuration with tiny networks and memories for fast learning tests."""
    return Config(
        SEED=7,
        DQL_MEMORY_CAPACITY=50,
        DQL_TRAINING_SET_MIN=4,
        DQL_TRAINING_SET_MAX=16,
        DQL_TRAINING_ITERATIONS=2,
        DENSE_HIDDEN_LAYERS=1,
        DENSE_HIDDEN_UNITS=8,
        DENSE_BATCH_SIZE=8,
        VDQL_MEMORY_CAPACITY=50,
        VDQL_TRAINING_SET_MIN=4,
        VDQL_TRAINING_SET_MAX=16,
        VDQL_TRAINING_ITERATIONS=2,
        VISUAL_FILTERS=4,
        VISUAL_HIDDEN_UNITS=8,
        VISUAL_BATCH_SIZE=8,
    )


class FakeModel:
    """
    Deterministic stand-in for QModel.

    predict returns the same row of outputs for every input, fit records its
    arguments and sample_action always answers with a fixed action.
    """

    def __init__(self, outputs=(0.2, -0.4, 0.8), action=1, lr=0.01, loss=0.25):
        self.outputs = np.asarray(outputs, dtype=np.float32)
        self.action = action
        self.lr = lr
        self.loss = loss
        self.fit_calls = []
        self.sample_calls = []
        self.lr_history = []

    def predict(self, x):
        return np.tile(self.outputs, (len(np.asarray(x)), 1))

    def fit(self, x, y, epochs=1):
        self.fit_calls.append((np.asarray(x), np.asarray(y), epochs))
        return self.loss

    def sample_action(self, x, temperature=1.0):
        self.sample_calls.append((np.asarray(x), temperature))
        return self.action

    def set_learning_rate(self, lr):
        self.lr = lr
        self.lr_history.append(lr)


@pytest.fixture
def fake_model():
    """Factory for deterministic approximators."""
    return FakeModel


def make_state(ball_x=0.5, ball_y=0.5, force_x=0.3, force_y=-0.2,
               left_y=0.5, right_y=0.5, winner=None, frame=None, previous_frame=None):
    """Build a MatchState by hand."""
    state = MatchState(
        ball=BallState(ball_x, ball_y, force_x, force_y),
        left_paddle=PaddleState(0.02, left_y),
        right_paddle=PaddleState(0.98, right_y),
        winner=winner,
    )
    if frame is not None:
        state = state.with_frames(frame, previous_frame)
    return state


@pytest.fixture
def state_factory():
    """Factory for hand-built match states."""
    return make_state
