"""
Shared learning state for self-play.

A learning controller and its mirrors hold the same SharedLearner, so
transitions from both sides land in one replay memory and one model learns
from them. Only one attached controller may train; the model's parameters
would otherwise be updated from two places.
"""

from typing import Any, Optional

from ..network import QModel
from ..replay_memory import ReplayMemory
from ...config import ConfigError


class SharedLearner:
    """
    Replay memory plus model, shared by reference between controllers.

    Attributes:
        memory: Replay memory all attached controllers push to
        model: Function approximator all attached controllers act with
        trainer: The one attached controller allowed to train, or None
    """

    def __init__(self, memory: ReplayMemory, model: QModel):
        self.memory = memory
        self.model = model
        self.trainer: Optional[Any] = None
        self._ref_count = 0

    @property
    def ref_count(self) -> int:
        """Number of controllers currently attached."""
        return self._ref_count

    def attach(self, controller: Any, trains: bool) -> None:
        """
        Register a controller.

        Raises:
            ConfigError: If trains is set and another controller already trains
        """
        if trains:
            if self.trainer is not None and self.trainer is not controller:
                raise ConfigError(
                    f"{self.trainer!r} already trains this learner; "
                    f"create mirrors with training_iterations=0"
                )
            self.trainer = controller
        self._ref_count += 1

    def detach(self, controller: Any) -> None:
        """Unregister a controller."""
        if self._ref_count > 0:
            self._ref_count -= 1
        if self.trainer is controller:
            self.trainer = None
