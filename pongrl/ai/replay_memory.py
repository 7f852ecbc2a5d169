"""
Replay Memory
=============

A fixed-capacity buffer of transitions that learning controllers sample
training batches from.

How it works:
    1. A controller pushes (side, state, action, new_state, reward) after
       every action it picks that has a previous state
    2. At the end of a match, random batches are drawn for training
    3. When full, each push overwrites the oldest slot (ring buffer)

One memory may be shared by a controller and its self-play mirror, so a
single learner sees transitions from both sides.
"""

from dataclasses import dataclass
from numbers import Integral
from typing import List, Optional

import numpy as np

from ..config import ConfigError
from ..game.state import MatchState
from ..utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Transition:
    """One observed step: state --action--> new_state, with its reward."""
    side: str
    state: MatchState
    action: int
    new_state: MatchState
    reward: float


class ReplayMemory:
    """
    Fixed-size circular buffer of Transition objects.

    Attributes:
        capacity: Maximum number of transitions stored
        position: Slot the next push writes to

    Example:
        >>> memory = ReplayMemory(capacity=2000)
        >>> memory.push('left', state, -1, new_state, 0)
        >>> batch = memory.sample(min(len(memory), 400))
    """

    def __init__(self, capacity: int = 2000, seed: Optional[int] = None):
        """
        Initialize the memory.

        Args:
            capacity: Maximum number of transitions to store
            seed: Seed for sampling (None for random)

        Raises:
            ConfigError: If capacity is not a positive integer
        """
        if not isinstance(capacity, Integral) or isinstance(capacity, bool) or capacity <= 0:
            raise ConfigError(f"Replay memory capacity must be a positive integer (got {capacity!r})")

        self.capacity = int(capacity)
        self._slots: List[Optional[Transition]] = [None] * self.capacity
        self._size = 0
        self.position = 0
        self._rng = np.random.default_rng(seed)

    def push(
        self,
        side: str,
        state: MatchState,
        action: int,
        new_state: MatchState,
        reward: float
    ) -> Transition:
        """
        Store a transition, overwriting the oldest one when full.

        Returns:
            The stored Transition
        """
        transition = Transition(side, state, action, new_state, reward)
        self._slots[self.position] = transition

        self.position = (self.position + 1) % self.capacity
        if self._size < self.capacity:
            self._size += 1
            if self._size == self.capacity:
                logger.debug(f"Replay memory full ({self.capacity}), overwriting oldest from now on")

        return transition

    def sample(self, n: int) -> List[Transition]:
        """
        Draw n distinct transitions uniformly at random.

        Only slots that have been written count, so the memory can be
        sampled before it is full.

        Args:
            n: Number of transitions (callers clamp this to len(memory))

        Raises:
            ValueError: If n is negative, not an integer, or above len(memory)
        """
        if not isinstance(n, Integral) or isinstance(n, bool):
            raise ValueError(f"Sample size must be an integer (got {n!r})")
        if n < 0:
            raise ValueError(f"Sample size must be >= 0 (got {n})")
        if n > self._size:
            raise ValueError(f"Cannot sample {n} transitions from a memory holding {self._size}")

        indices = self._rng.choice(self._size, size=int(n), replace=False)
        return [self._slots[i] for i in indices]

    def transitions(self) -> List[Transition]:
        """All stored transitions in slot order."""
        return [t for t in self._slots[:self._size] if t is not None]

    def __len__(self) -> int:
        """Return the number of stored transitions."""
        return self._size

    def is_ready(self, n: int) -> bool:
        """Check if at least n transitions are stored."""
        return self._size >= n

    def clear(self) -> None:
        """Remove all transitions."""
        self._slots = [None] * self.capacity
        self._size = 0
        self.position = 0
