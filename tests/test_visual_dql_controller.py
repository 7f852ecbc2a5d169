"""
Tests for the visual Q-learning controller.

These tests verify:
    - Frame-difference inputs and side mirroring
    - Epsilon exploration and temperature sampling
    - Sentinel-masked targets with a discount
    - Learning rate and epsilon decay after each match
"""

import asyncio

import numpy as np
import pytest

from pongrl.ai.controllers import SharedLearner, VisualDQLController
from pongrl.ai.replay_memory import ReplayMemory, Transition
from pongrl.config import Config
from pongrl.game.pong import ACTIONS
from pongrl.game.state import LEFT, RIGHT


@pytest.fixture
def frame():
    """An 18x24 frame with a bright column on the left."""
    image = np.zeros((18, 24), dtype=np.float32)
    image[:, 2] = 1.0
    return image


@pytest.fixture
def learner(fake_model):
    return SharedLearner(ReplayMemory(capacity=50, seed=0), fake_model())


def make_controller(learner, side=LEFT, **overrides):
    config = Config(SEED=0, VDQL_TRAINING_SET_MIN=2, VDQL_TRAINING_SET_MAX=8, **overrides)
    return VisualDQLController(side, config, learner=learner)


class TestInputs:
    """Test frame preprocessing."""

    def test_needs_frames(self):
        assert VisualDQLController.needs_frames

    def test_input_shape(self, learner, frame, state_factory):
        controller = make_controller(learner)
        x = controller.state_to_input(state_factory(frame=frame))
        assert x.shape == (1, 18, 24)
        assert x.dtype == np.float32

    def test_without_previous_frame_input_is_frame(self, learner, frame, state_factory):
        controller = make_controller(learner)
        x = controller.state_to_input(state_factory(frame=frame))
        np.testing.assert_array_equal(x[0], frame)

    def test_previous_frame_is_half_subtracted(self, learner, frame, state_factory):
        controller = make_controller(learner)
        previous = np.full((18, 24), 0.5, dtype=np.float32)
        x = controller.state_to_input(state_factory(frame=frame, previous_frame=previous))
        np.testing.assert_allclose(x[0], frame - 0.25)

    def test_right_side_is_flipped(self, learner, frame, state_factory):
        controller = make_controller(learner)
        state = state_factory(frame=frame)
        left = controller.state_to_input(state, LEFT)
        right = controller.state_to_input(state, RIGHT)
        np.testing.assert_array_equal(right[0], left[0][:, ::-1])
        assert right[0, 0, 21] == 1.0

    def test_missing_frame_raises(self, learner, state_factory):
        controller = make_controller(learner)
        with pytest.raises(ValueError):
            controller.state_to_input(state_factory())


class TestExploration:
    """Test action selection."""

    def test_full_epsilon_moves_randomly(self, learner, frame, state_factory):
        controller = make_controller(learner, VDQL_EPSILON=1.0)
        actions = {controller.choose_action(state_factory(frame=frame)) for _ in range(50)}
        assert actions <= {-1, 1}
        assert learner.model.sample_calls == []

    def test_zero_epsilon_samples_model(self, learner, frame, state_factory):
        controller = make_controller(learner, VDQL_EPSILON=0.0)
        action = controller.choose_action(state_factory(frame=frame))
        assert action == learner.model.action
        _, temperature = learner.model.sample_calls[-1]
        assert temperature == pytest.approx(0.1)

    def test_temperature_follows_epsilon(self, learner, frame, state_factory):
        controller = make_controller(learner, VDQL_EPSILON=0.2)
        controller.epsilon = 0.2
        controller._rng = np.random.default_rng(1)
        for _ in range(30):
            controller.choose_action(state_factory(frame=frame))
        assert learner.model.sample_calls
        assert all(t == pytest.approx(0.5) for _, t in learner.model.sample_calls)


class TestTargets:
    """Untaken actions are masked with the sentinel."""

    def test_sentinel_and_discount(self, learner, frame, state_factory):
        controller = make_controller(learner)
        state = state_factory(frame=frame)
        targets = controller.transitions_to_y([Transition(LEFT, state, 0, state, 0.0)])

        assert targets[0, 0] == controller.config.MASK_VALUE
        assert targets[0, 2] == controller.config.MASK_VALUE
        # Fake outputs peak at 0.8
        assert targets[0, 1] == pytest.approx(0.99 * 0.8)

    def test_masked_entries_below_threshold(self, learner, frame, state_factory):
        controller = make_controller(learner)
        state = state_factory(frame=frame)
        batch = [Transition(LEFT, state, a, state, 0.0) for a in ACTIONS]
        targets = controller.transitions_to_y(batch)
        for i, action in enumerate(ACTIONS):
            others = np.delete(targets[i], ACTIONS.index(action))
            assert np.all(others < controller.config.MASK_THRESHOLD)
            assert -1.0 <= targets[i, ACTIONS.index(action)] <= 1.0

    def test_terminal_bootstrap_is_zero(self, learner, frame, state_factory):
        controller = make_controller(learner)
        state = state_factory(frame=frame)
        terminal = state_factory(frame=frame, winner=LEFT)
        targets = controller.transitions_to_y([Transition(LEFT, state, 1, terminal, 1.0)])
        assert targets[0, 2] == pytest.approx(1.0)

        targets = controller.transitions_to_y([Transition(RIGHT, state, -1, terminal, -1.0)])
        assert targets[0, 0] == pytest.approx(-1.0)


class TestDecay:
    """Learning rate and epsilon decay once per match."""

    def test_lr_set_before_training_then_decayed(self, learner):
        controller = make_controller(learner)
        start_lr, start_epsilon = controller.lr, controller.epsilon

        asyncio.run(controller.on_match_end(True))

        assert learner.model.lr_history == [start_lr]
        assert controller.lr == pytest.approx(start_lr * controller.config.VDQL_LR_DECAY)
        assert controller.epsilon == pytest.approx(start_epsilon * controller.config.VDQL_EPSILON_DECAY)

    def test_decay_compounds(self, learner):
        controller = make_controller(learner)
        for _ in range(3):
            asyncio.run(controller.on_match_end(False))
        assert controller.epsilon == pytest.approx(0.5 * 0.95 ** 3)
        assert learner.model.lr_history[-1] == pytest.approx(0.001 * 0.99 ** 2)


class TestWithRealModel:
    """A short learning run with a tiny convolutional network."""

    def test_trains_on_frames(self, small_config, state_factory):
        controller = VisualDQLController(LEFT, small_config)
        rng = np.random.default_rng(0)
        previous = None
        for i in range(6):
            frame = rng.random(small_config.CAPTURE_SHAPE).astype(np.float32)
            winner = LEFT if i == 5 else None
            state = state_factory(frame=frame, previous_frame=previous, winner=winner)
            asyncio.run(controller.select_action(state))
            previous = frame
        asyncio.run(controller.on_match_end(True))

        assert controller.last_loss is not None
        assert np.isfinite(controller.last_loss)

    def test_mirror_explores_independently(self, small_config):
        controller = VisualDQLController(LEFT, small_config)
        mirror = controller.mirror_controller()
        assert mirror.memory is controller.memory
        assert not np.array_equal(controller._rng.random(10), mirror._rng.random(10))
