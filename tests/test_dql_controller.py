"""
Tests for the dense Q-learning controller.

These tests verify:
    - Rewards and transition recording
    - Side-relative feature vectors
    - Q-learning target construction (masking, clamping, terminal bootstrap)
    - Training rounds at match end
    - Mirrored self-play sharing one learner
"""

import asyncio

import numpy as np
import pytest

from pongrl.ai.controllers import DQLController, SharedLearner
from pongrl.ai.replay_memory import ReplayMemory, Transition
from pongrl.config import Config, ConfigError
from pongrl.game.state import LEFT, RIGHT


@pytest.fixture
def learner(fake_model):
    """Shared learner around a fake model."""
    return SharedLearner(ReplayMemory(capacity=50, seed=0), fake_model())


@pytest.fixture
def controller(learner):
    """Dense controller on the left side with a small training set."""
    config = Config(SEED=0, DQL_TRAINING_SET_MIN=2, DQL_TRAINING_SET_MAX=8, DQL_TRAINING_ITERATIONS=3)
    return DQLController(LEFT, config, learner=learner)


class TestRewards:
    """Test reward computation."""

    def test_no_winner_no_reward(self, controller, state_factory):
        assert controller.get_reward(state_factory()) == 0.0

    def test_win_and_loss(self, controller, state_factory):
        assert controller.get_reward(state_factory(winner=LEFT)) == 1.0
        assert controller.get_reward(state_factory(winner=RIGHT)) == -1.0


class TestSelectAction:
    """Test the acting loop."""

    def test_first_call_records_nothing(self, controller, state_factory):
        action = asyncio.run(controller.select_action(state_factory()))
        assert action == 1
        assert len(controller.memory) == 0
        assert controller.previous_action == 1

    def test_second_call_records_transition(self, controller, state_factory):
        first, second = state_factory(ball_x=0.4), state_factory(ball_x=0.45, winner=RIGHT)
        asyncio.run(controller.select_action(first))
        asyncio.run(controller.select_action(second))

        (transition,) = controller.memory.transitions()
        assert transition == Transition(LEFT, first, 1, second, -1.0)

    def test_uses_configured_temperature(self, learner, state_factory):
        controller = DQLController(LEFT, Config(DQL_TEMPERATURE=0.3), learner=learner)
        asyncio.run(controller.select_action(state_factory()))
        _, temperature = learner.model.sample_calls[-1]
        assert temperature == 0.3

    def test_invalid_action_from_model_raises(self, learner, state_factory):
        learner.model.action = 7
        controller = DQLController(LEFT, learner=learner)
        with pytest.raises(ValueError):
            asyncio.run(controller.select_action(state_factory()))


class TestFeatures:
    """Feature vectors are side-relative."""

    def test_left_features(self, controller, state_factory):
        state = state_factory(ball_x=0.75, ball_y=0.25, force_x=0.3, force_y=-0.2, left_y=0.4, right_y=0.6)
        np.testing.assert_allclose(
            controller.state_to_features(state, LEFT),
            [0.5, -0.5, 0.3, -0.2, -0.2, 0.2],
            rtol=1e-6,
        )

    def test_right_features_are_mirrored(self, controller, state_factory):
        state = state_factory(ball_x=0.75, ball_y=0.25, force_x=0.3, force_y=-0.2, left_y=0.4, right_y=0.6)
        np.testing.assert_allclose(
            controller.state_to_features(state, RIGHT),
            [-0.5, -0.5, -0.3, -0.2, 0.2, -0.2],
            rtol=1e-6,
        )

    def test_mirrored_states_look_the_same(self, controller, state_factory):
        """The left view of a court equals the right view of its mirror image."""
        state = state_factory(ball_x=0.3, force_x=-0.4, left_y=0.35, right_y=0.7)
        mirrored = state_factory(ball_x=0.7, force_x=0.4, left_y=0.7, right_y=0.35)
        np.testing.assert_allclose(
            controller.state_to_features(state, LEFT),
            controller.state_to_features(mirrored, RIGHT),
            atol=1e-6,
        )


class TestTargets:
    """Test Q-learning target construction."""

    def test_only_taken_action_changes(self, controller, state_factory):
        # Fake outputs (0.2, -0.4, 0.8) centered on their mean (0.2)
        transitions = [Transition(LEFT, state_factory(), 1, state_factory(), 0.0)]
        targets = controller.transitions_to_y(transitions)
        np.testing.assert_allclose(targets[0], [0.0, -0.6, 0.6], atol=1e-6)

    def test_untaken_actions_keep_baseline(self, controller, state_factory):
        transitions = [
            Transition(LEFT, state_factory(), -1, state_factory(), 0.0),
            Transition(RIGHT, state_factory(), 0, state_factory(), 0.0),
        ]
        targets = controller.transitions_to_y(transitions)
        np.testing.assert_allclose(targets[0, 1:], [-0.6, 0.6], atol=1e-6)
        np.testing.assert_allclose(targets[1, [0, 2]], [0.0, 0.6], atol=1e-6)

    def test_terminal_state_has_no_future(self, learner, state_factory):
        learner.model.outputs = np.array([0.9, 0.9, -0.9], dtype=np.float32)
        controller = DQLController(LEFT, learner=learner)
        transitions = [Transition(LEFT, state_factory(), 0, state_factory(winner=RIGHT), -1.0)]
        targets = controller.transitions_to_y(transitions)
        assert targets[0, 1] == pytest.approx(-1.0)

    def test_terminal_zero_reward_target_is_zero(self, controller, state_factory):
        transitions = [Transition(LEFT, state_factory(), -1, state_factory(winner=LEFT), 0.0)]
        targets = controller.transitions_to_y(transitions)
        assert targets[0, 0] == 0.0

    def test_target_is_clamped(self, controller, state_factory):
        transitions = [Transition(LEFT, state_factory(), 1, state_factory(), 1.0)]
        targets = controller.transitions_to_y(transitions)
        assert targets[0, 2] == 1.0

    def test_gamma_one_for_dense_variant(self, controller):
        assert controller.gamma == 1.0

    def test_transitions_to_x_uses_transition_side(self, controller, state_factory):
        state = state_factory(ball_x=0.75)
        x = controller.transitions_to_x([
            Transition(LEFT, state, 0, state, 0.0),
            Transition(RIGHT, state, 0, state, 0.0),
        ])
        assert x.shape == (2, 6)
        assert x[0, 0] == pytest.approx(0.5)
        assert x[1, 0] == pytest.approx(-0.5)


class TestTraining:
    """Test training at match end."""

    def test_skips_when_memory_too_small(self, controller, learner, state_factory):
        asyncio.run(controller.select_action(state_factory()))
        asyncio.run(controller.on_match_end(True))
        assert learner.model.fit_calls == []
        assert controller.last_loss is None

    def test_runs_training_iterations(self, controller, learner, state_factory):
        for i in range(5):
            asyncio.run(controller.select_action(state_factory(ball_x=0.1 * (i + 1))))
        asyncio.run(controller.on_match_end(False))

        assert len(learner.model.fit_calls) == 3
        x, y, epochs = learner.model.fit_calls[0]
        assert x.shape == (4, 6)
        assert y.shape == (4, 3)
        assert epochs == controller.training_epochs
        assert controller.last_loss == 0.25
        assert list(controller.losses) == [0.25, 0.25, 0.25]

    def test_batch_capped_at_training_set_max(self, controller, learner, state_factory):
        for i in range(20):
            asyncio.run(controller.select_action(state_factory(ball_x=0.04 * (i + 1))))
        controller.train_model()
        x, _, _ = learner.model.fit_calls[-1]
        assert len(x) == controller.training_set_max

    def test_match_end_clears_previous_state(self, controller, state_factory):
        asyncio.run(controller.select_action(state_factory()))
        asyncio.run(controller.on_match_end(True))
        assert controller.previous_state is None
        assert controller.previous_action is None
        assert not controller.is_training

    def test_learning_rate_applied_before_training(self, controller, learner):
        asyncio.run(controller.on_match_end(True))
        assert learner.model.lr_history == [controller.lr]

    def test_negative_iterations_rejected(self, learner):
        with pytest.raises(ConfigError):
            DQLController(LEFT, learner=learner, training_iterations=-1)


class TestMirror:
    """Mirrored self-play shares one learner."""

    def test_mirror_shares_memory_and_model(self, controller, learner):
        mirror = controller.mirror_controller()
        assert mirror.side == RIGHT
        assert mirror.memory is controller.memory
        assert mirror.model is controller.model
        assert mirror.training_iterations == 0
        assert learner.ref_count == 2
        assert learner.trainer is controller

    def test_memory_sees_both_sides(self, controller, state_factory):
        mirror = controller.mirror_controller()
        for i in range(3):
            state = state_factory(ball_x=0.2 * (i + 1))
            asyncio.run(controller.select_action(state))
            asyncio.run(mirror.select_action(state))

        sides = {t.side for t in controller.memory.sample(len(controller.memory))}
        assert sides == {LEFT, RIGHT}

    def test_mirror_does_not_train(self, controller, learner, state_factory):
        mirror = controller.mirror_controller()
        for i in range(5):
            asyncio.run(mirror.select_action(state_factory(ball_x=0.1 * (i + 1))))
        asyncio.run(mirror.on_match_end(True))
        assert learner.model.fit_calls == []
        assert learner.model.lr_history == []

    def test_mirror_explores_independently(self, controller):
        mirror = controller.mirror_controller()
        assert mirror.seed == controller.seed + 1
        assert not np.array_equal(controller._rng.random(10), mirror._rng.random(10))

    def test_second_trainer_rejected(self, controller, learner):
        with pytest.raises(ConfigError):
            DQLController(RIGHT, learner=learner, training_iterations=1)

    def test_close_detaches(self, controller, learner):
        mirror = controller.mirror_controller()
        mirror.close()
        controller.close()
        assert learner.ref_count == 0
        assert learner.trainer is None


class TestWithRealModel:
    """A short learning run with a tiny torch network."""

    def test_trains_and_records_loss(self, small_config, state_factory):
        controller = DQLController(LEFT, small_config)
        for i in range(8):
            winner = RIGHT if i == 7 else None
            asyncio.run(controller.select_action(state_factory(ball_x=0.1 * (i + 1), winner=winner)))
        asyncio.run(controller.on_match_end(False))

        assert controller.last_loss is not None
        assert np.isfinite(controller.last_loss)
        assert len(controller.losses) == small_config.DQL_TRAINING_ITERATIONS
