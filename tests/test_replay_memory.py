"""
Tests for the replay memory.

These tests verify:
    - Construction and capacity validation
    - Transition storage (push)
    - Circular overwrite once full
    - Sampling behavior and its range checks
"""

import pytest

from pongrl.ai.replay_memory import ReplayMemory, Transition
from pongrl.config import ConfigError
from pongrl.game.state import LEFT, RIGHT, BallState, MatchState, PaddleState


def make_state(ball_x: float = 0.5, winner=None) -> MatchState:
    return MatchState(
        ball=BallState(ball_x, 0.5, 0.5, 0.5),
        left_paddle=PaddleState(0.02, 0.5),
        right_paddle=PaddleState(0.98, 0.5),
        winner=winner,
    )


@pytest.fixture
def memory():
    """Create a small seeded memory."""
    return ReplayMemory(capacity=10, seed=0)


def fill(memory, count, side=LEFT):
    for i in range(count):
        memory.push(side, make_state(i / 100), 0, make_state((i + 1) / 100), 0.0)


class TestReplayMemoryInitialization:
    """Test memory initialization."""

    def test_starts_empty(self, memory):
        assert len(memory) == 0
        assert memory.position == 0

    def test_capacity_set_correctly(self, memory):
        assert memory.capacity == 10

    @pytest.mark.parametrize('capacity', [0, -1, 2.5, None, True])
    def test_invalid_capacity_raises(self, capacity):
        with pytest.raises(ConfigError):
            ReplayMemory(capacity=capacity)


class TestPush:
    """Test storing transitions."""

    def test_push_returns_transition(self, memory):
        state, new_state = make_state(0.1), make_state(0.2)
        transition = memory.push(RIGHT, state, -1, new_state, 1.0)
        assert transition == Transition(RIGHT, state, -1, new_state, 1.0)
        assert len(memory) == 1

    def test_transitions_are_immutable(self, memory):
        transition = memory.push(LEFT, make_state(), 0, make_state(), 0.0)
        with pytest.raises(AttributeError):
            transition.reward = 1.0

    def test_is_ready(self, memory):
        fill(memory, 3)
        assert memory.is_ready(3)
        assert not memory.is_ready(4)


class TestCircularOverwrite:
    """The memory never holds more than capacity transitions."""

    def test_size_never_exceeds_capacity(self, memory):
        for i in range(35):
            fill(memory, 1)
            assert len(memory) == min(i + 1, memory.capacity)

    def test_overwrites_oldest(self, memory):
        fill(memory, 10)
        oldest = memory.transitions()[0]
        memory.push(RIGHT, make_state(0.9), 1, make_state(0.95), -1.0)

        stored = memory.transitions()
        assert len(stored) == 10
        assert oldest not in stored
        assert stored[0].side == RIGHT
        assert memory.position == 1

    def test_clear(self, memory):
        fill(memory, 5)
        memory.clear()
        assert len(memory) == 0
        assert memory.transitions() == []


class TestSampling:
    """Test sampling."""

    def test_sample_before_full(self, memory):
        fill(memory, 4)
        batch = memory.sample(4)
        assert len(batch) == 4
        assert all(t is not None for t in batch)

    def test_sample_without_replacement(self, memory):
        fill(memory, 10)
        batch = memory.sample(10)
        assert len({id(t) for t in batch}) == 10

    def test_sample_zero(self, memory):
        fill(memory, 2)
        assert memory.sample(0) == []

    def test_sample_is_seeded(self):
        first, second = ReplayMemory(10, seed=3), ReplayMemory(10, seed=3)
        fill(first, 10)
        fill(second, 10)
        assert [t.state for t in first.sample(5)] == [t.state for t in second.sample(5)]

    def test_sample_more_than_stored_raises(self, memory):
        fill(memory, 3)
        with pytest.raises(ValueError):
            memory.sample(4)

    @pytest.mark.parametrize('n', [-1, 1.5, '2'])
    def test_invalid_sample_size_raises(self, memory, n):
        fill(memory, 3)
        with pytest.raises(ValueError):
            memory.sample(n)
