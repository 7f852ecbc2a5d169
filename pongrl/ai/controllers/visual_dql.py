"""
Visual Deep Q-Learning Controller
=================================

Learns from downscaled grayscale captures of the court instead of
coordinates. The runner attaches the current and previous capture to each
snapshot it hands this controller; the network input is

    frame - 0.5 * previous_frame

which keeps the ball's direction visible in a single image. Frames are
flipped horizontally for the right side.

Exploration is epsilon based: with probability epsilon a random move up or
down, otherwise a sample at temperature 0.1 + 2 * epsilon. Epsilon and the
learning rate decay after every match.
"""

from typing import List, Optional

import numpy as np

from .dql import QLearningController
from .shared import SharedLearner
from ..network import QModel, build_visual_model
from ..replay_memory import Transition
from ...config import Config
from ...game.state import MatchState, RIGHT


class VisualDQLController(QLearningController):
    """
    Q-learning on frame differences with a convolutional network.

    Untaken actions get MASK_VALUE as their target, so only the taken
    action's output is trained.
    """

    config_prefix = 'VDQL'
    needs_frames = True

    def __init__(
        self,
        side: str,
        config: Optional[Config] = None,
        learner: Optional[SharedLearner] = None,
        training_iterations: Optional[int] = None,
        seed: Optional[int] = None
    ):
        super().__init__(side, config, learner, training_iterations, seed)
        cfg = self.config
        self.lr = cfg.VDQL_LEARNING_RATE
        self.lr_decay = cfg.VDQL_LR_DECAY
        self.epsilon = cfg.VDQL_EPSILON
        self.epsilon_decay = cfg.VDQL_EPSILON_DECAY
        self.mask_value = cfg.MASK_VALUE

    def build_model(self, seed: Optional[int] = None) -> QModel:
        return build_visual_model(self.config, seed=seed)

    def state_to_input(self, state: MatchState, side: Optional[str] = None) -> np.ndarray:
        """
        Build the (1, height, width) network input for side.

        Raises:
            ValueError: If the snapshot carries no frame
        """
        side = side or self.side
        if state.frame is None:
            raise ValueError(f"{self!r} needs snapshots with frames attached")

        frame = np.asarray(state.frame, dtype=np.float32)
        if state.previous_frame is None:
            previous = np.zeros_like(frame)
        else:
            previous = np.asarray(state.previous_frame, dtype=np.float32)

        image = frame - 0.5 * previous
        if side == RIGHT:
            image = image[:, ::-1]
        return np.ascontiguousarray(image[np.newaxis])

    def choose_action(self, state: MatchState) -> int:
        if self._rng.random() < self.epsilon:
            return -1 if self._rng.random() < 0.5 else 1
        temperature = 0.1 + 2 * self.epsilon
        return self.model.sample_action(self.state_to_input(state), temperature)

    def baseline_targets(self, transitions: List[Transition]) -> np.ndarray:
        return np.full((len(transitions), 3), self.mask_value, dtype=np.float32)

    def next_state_values(self, transitions: List[Transition]) -> np.ndarray:
        x = np.stack([self.state_to_input(t.new_state, t.side) for t in transitions])
        return self.model.predict(x)

    def decay(self) -> None:
        super().decay()
        self.epsilon *= self.epsilon_decay
