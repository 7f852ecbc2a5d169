"""
Deep Q-Learning Controllers
===========================

QLearningController holds the Q-learning loop shared by the dense and the
visual controller; DQLController is the dense, feature-vector variant.

Every poll the controller:
1. Rewards the previous action (+1 won, -1 lost, 0 otherwise)
2. Stores (previous state, previous action, state, reward) in replay memory
3. Picks and remembers the next action

When a match ends it trains the model for training_iterations rounds on
random samples from memory. Targets only change the Q-value of the action
that was taken:

    Q(s, a) <- clamp(r + gamma * max Q(s', .), -1, 1)

with the bootstrap term dropped when s' ends the match. The other outputs
keep a baseline value, or a sentinel below MASK_THRESHOLD so the loss
ignores them.

Self-play:
    mirror_controller() returns a controller for the other side that shares
    this one's memory and model but does not train.
"""

import asyncio
from abc import abstractmethod
from collections import deque
from typing import List, Optional

import numpy as np

from .base import BaseController, mirror_seed
from .shared import SharedLearner
from ..network import QModel, build_dense_model
from ..replay_memory import ReplayMemory, Transition
from ...config import Config, ConfigError
from ...game.pong import ACTIONS, validate_action
from ...game.state import MatchState, RIGHT, opposite_side
from ...utils.logger import get_logger

logger = get_logger(__name__)


class QLearningController(BaseController):
    """
    Replay-memory Q-learning on top of a QModel.

    Subclasses set config_prefix ('DQL' or 'VDQL') and implement
    build_model, state_to_input, choose_action, baseline_targets and
    next_state_values.

    Args:
        side: 'left' or 'right'
        config: Configuration object
        learner: SharedLearner to use (a new one is created if None)
        training_iterations: Training rounds per match end (0 = never train)
        seed: Seed for the memory and for exploration
    """

    config_prefix = 'DQL'

    def __init__(
        self,
        side: str,
        config: Optional[Config] = None,
        learner: Optional[SharedLearner] = None,
        training_iterations: Optional[int] = None,
        seed: Optional[int] = None
    ):
        super().__init__(side, config)
        cfg = self.config
        prefix = self.config_prefix
        seed = cfg.SEED if seed is None else seed
        self.seed = seed

        self.training_set_min: int = getattr(cfg, f'{prefix}_TRAINING_SET_MIN')
        self.training_set_max: int = getattr(cfg, f'{prefix}_TRAINING_SET_MAX')
        self.training_epochs: int = getattr(cfg, f'{prefix}_TRAINING_EPOCHS')
        self.gamma: float = getattr(cfg, f'{prefix}_GAMMA')

        if training_iterations is None:
            training_iterations = getattr(cfg, f'{prefix}_TRAINING_ITERATIONS')
        if training_iterations < 0:
            raise ConfigError(f"training_iterations must be >= 0 (got {training_iterations})")
        self.training_iterations = training_iterations

        if learner is None:
            memory = ReplayMemory(getattr(cfg, f'{prefix}_MEMORY_CAPACITY'), seed=seed)
            learner = SharedLearner(memory, self.build_model(seed))
        learner.attach(self, trains=self.training_iterations > 0)
        self.learner = learner

        self.lr = self.model.lr
        self.lr_decay = 1.0
        self.epsilon: Optional[float] = None

        self.previous_state: Optional[MatchState] = None
        self.previous_action: Optional[int] = None
        self.is_training = False
        self.matches_played = 0

        self.losses: deque = deque(maxlen=1000)
        self.last_loss: Optional[float] = None

        self._rng = np.random.default_rng(seed)

    @property
    def memory(self) -> ReplayMemory:
        return self.learner.memory

    @property
    def model(self) -> QModel:
        return self.learner.model

    @abstractmethod
    def build_model(self, seed: Optional[int] = None) -> QModel:
        """Create a fresh model for this controller type."""

    @abstractmethod
    def state_to_input(self, state: MatchState, side: Optional[str] = None) -> np.ndarray:
        """Encode a state as a network input from side's point of view."""

    @abstractmethod
    def choose_action(self, state: MatchState) -> int:
        """Pick the action for the current state."""

    @abstractmethod
    def baseline_targets(self, transitions: List[Transition]) -> np.ndarray:
        """Targets for the actions that were not taken, shape (n, 3)."""

    @abstractmethod
    def next_state_values(self, transitions: List[Transition]) -> np.ndarray:
        """Q-value estimates for each transition's new state, shape (n, 3)."""

    def mirror_controller(self, **overrides) -> 'QLearningController':
        """
        Create a non-training controller for the opposite side that shares
        this controller's memory and model.
        """
        options = dict(learner=self.learner, training_iterations=0, seed=mirror_seed(self.seed))
        options.update(overrides)
        return type(self)(opposite_side(self.side), config=self.config, **options)

    def close(self) -> None:
        """Detach from the shared learner."""
        self.learner.detach(self)

    # ------------------------------------------------------------------
    # Acting
    # ------------------------------------------------------------------

    def get_reward(self, state: MatchState) -> float:
        """+1 if this side won, -1 if it lost, 0 while the match runs."""
        if state.winner is None:
            return 0.0
        return 1.0 if state.winner == self.side else -1.0

    async def select_action(self, state: MatchState) -> int:
        reward = self.get_reward(state)
        if self.previous_state is not None:
            self.memory.push(self.side, self.previous_state, self.previous_action, state, reward)

        action = validate_action(self.choose_action(state))
        self.previous_state = state
        self.previous_action = action
        return action

    async def on_match_start(self) -> None:
        self.previous_state = None
        self.previous_action = None

    # ------------------------------------------------------------------
    # Learning
    # ------------------------------------------------------------------

    def transitions_to_x(self, transitions: List[Transition]) -> np.ndarray:
        """Stack the prior-state inputs of a batch."""
        return np.stack([self.state_to_input(t.state, t.side) for t in transitions])

    def transitions_to_y(self, transitions: List[Transition]) -> np.ndarray:
        """Build training targets for a batch of transitions."""
        targets = np.array(self.baseline_targets(transitions), dtype=np.float32, copy=True)
        next_values = self.next_state_values(transitions)

        for i, transition in enumerate(transitions):
            future = 0.0 if transition.new_state.winner is not None else float(np.max(next_values[i]))
            value = transition.reward + self.gamma * future
            targets[i, ACTIONS.index(transition.action)] = np.clip(value, -1.0, 1.0)

        return targets

    def train_model(self) -> Optional[float]:
        """
        Run one training round on a random sample from memory.

        Returns:
            Loss of the round, or None if memory holds too few transitions
        """
        size = min(len(self.memory), self.training_set_max)
        if size == 0 or size < self.training_set_min:
            logger.debug(f"{self!r}: {len(self.memory)} transitions stored, "
                         f"need {self.training_set_min} to train")
            return None

        batch = self.memory.sample(size)
        x = self.transitions_to_x(batch)
        y = self.transitions_to_y(batch)
        loss = self.model.fit(x, y, epochs=self.training_epochs)

        self.last_loss = loss
        self.losses.append(loss)
        logger.debug(f"{self!r}: trained on {size} transitions, loss={loss:.5f}")
        return loss

    def get_average_loss(self, n: int = 100) -> float:
        """Average loss of the last n training rounds."""
        if not self.losses:
            return 0.0
        recent = list(self.losses)[-n:]
        return float(np.mean(recent))

    def decay(self) -> None:
        """Decay exploration parameters after a match."""
        self.lr *= self.lr_decay

    async def on_match_end(self, won: bool) -> None:
        self.previous_state = None
        self.previous_action = None
        self.matches_played += 1

        if self.training_iterations > 0:
            self.is_training = True
            try:
                self.model.set_learning_rate(self.lr)
                for _ in range(self.training_iterations):
                    self.train_model()
                    # Let other tasks run between rounds
                    await asyncio.sleep(0)
            finally:
                self.is_training = False

        self.decay()
        if self.training_iterations > 0:
            message = f"{self!r}: lr={self.lr:.6g}"
            if self.epsilon is not None:
                message += f", epsilon={self.epsilon:.4f}"
            logger.info(message)


class DQLController(QLearningController):
    """
    Q-learning on a six-value feature vector.

    Features, from this side's point of view:
        [ball_x, ball_y, force_x, force_y, own_paddle_y, other_paddle_y]
    with positions mapped from [0, 1] to [-1, 1]. For the right side the
    x axis is flipped so both sides see themselves on the left.

    Targets for the untaken actions are the model's current predictions
    centered on their batch mean, and gamma defaults to 1.
    """

    config_prefix = 'DQL'

    def __init__(
        self,
        side: str,
        config: Optional[Config] = None,
        learner: Optional[SharedLearner] = None,
        training_iterations: Optional[int] = None,
        seed: Optional[int] = None
    ):
        super().__init__(side, config, learner, training_iterations, seed)
        self.temperature = self.config.DQL_TEMPERATURE

    def build_model(self, seed: Optional[int] = None) -> QModel:
        return build_dense_model(self.config, seed=seed)

    def state_to_features(self, state: MatchState, side: Optional[str] = None) -> np.ndarray:
        """Encode a state as the dense feature vector for side."""
        side = side or self.side
        own = state.paddle(side)
        other = state.paddle(opposite_side(side))

        ball_x = state.ball.x * 2 - 1
        force_x = state.ball.force_x
        if side == RIGHT:
            ball_x = -ball_x
            force_x = -force_x

        return np.array([
            ball_x,
            state.ball.y * 2 - 1,
            force_x,
            state.ball.force_y,
            own.y * 2 - 1,
            other.y * 2 - 1,
        ], dtype=np.float32)

    def state_to_input(self, state: MatchState, side: Optional[str] = None) -> np.ndarray:
        return self.state_to_features(state, side)

    def choose_action(self, state: MatchState) -> int:
        return self.model.sample_action(self.state_to_features(state), self.temperature)

    def _centered_predictions(self, states: List[MatchState], sides: List[str]) -> np.ndarray:
        x = np.stack([self.state_to_features(s, side) for s, side in zip(states, sides)])
        predictions = self.model.predict(x)
        return predictions - predictions.mean()

    def baseline_targets(self, transitions: List[Transition]) -> np.ndarray:
        return self._centered_predictions([t.state for t in transitions], [t.side for t in transitions])

    def next_state_values(self, transitions: List[Transition]) -> np.ndarray:
        return self._centered_predictions([t.new_state for t in transitions], [t.side for t in transitions])
