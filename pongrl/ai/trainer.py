"""
Self-Play Training Loop
=======================

Plays matches back to back between two controllers:
    1. Run a match on a fresh engine
    2. Let the controllers train in their on_match_end hooks
    3. Record per-match statistics
    4. Log progress

Learning happens inside the controllers; this module only schedules
matches and keeps the numbers.
"""

from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

import numpy as np

from .controllers import BaseController, QLearningController
from ..config import Config
from ..game.match import MatchRunner
from ..game.pong import MatchEngine
from ..game.renderer import PongRenderer
from ..game.state import LEFT, RIGHT
from ..utils.logger import get_logger, log_match_result

logger = get_logger(__name__)


@dataclass
class MatchStats:
    """Statistics for a single match."""
    match: int
    winner: str
    ticks: int
    duration: float
    wall_time: float
    loss: Optional[float] = None
    epsilon: Optional[float] = None


class TrainingMetrics:
    """
    Tracks match results over time.

    Metrics tracked:
        - Winners and wins per side
        - Virtual match durations
        - Ticks per match
        - Training losses
    """

    def __init__(self, history_length: int = 1000, moving_average: int = 20):
        """
        Initialize metrics tracker.

        Args:
            history_length: Maximum history to store
            moving_average: Window for moving averages
        """
        self.history_length = history_length
        self.moving_average = moving_average

        self.winners: List[str] = []
        self.durations: List[float] = []
        self.ticks: List[int] = []
        self.losses: List[float] = []
        self.wins = {LEFT: 0, RIGHT: 0}
        self.matches = 0

    def add(self, stats: MatchStats) -> None:
        """Add match statistics."""
        self.matches += 1
        self.wins[stats.winner] += 1
        self.winners.append(stats.winner)
        self.durations.append(stats.duration)
        self.ticks.append(stats.ticks)
        if stats.loss is not None:
            self.losses.append(stats.loss)

        # Trim to history length
        for attr in ['winners', 'durations', 'ticks', 'losses']:
            values = getattr(self, attr)
            if len(values) > self.history_length:
                setattr(self, attr, values[-self.history_length:])

    def get_recent_average(self, metric: str, n: Optional[int] = None) -> float:
        """Get average of last n values for a metric (default: moving average window)."""
        values = getattr(self, metric, [])
        if not values:
            return 0.0
        return float(np.mean(values[-(n or self.moving_average):]))

    def get_win_rate(self, side: str, n: Optional[int] = None) -> float:
        """Get the share of the last n matches won by side."""
        if not self.winners:
            return 0.0
        recent = self.winners[-(n or self.moving_average):]
        return sum(1 for w in recent if w == side) / len(recent)


class SelfPlayTrainer:
    """
    Runs matches between two controllers and tracks the results.

    Example:
        >>> left = DQLController('left', config)
        >>> trainer = SelfPlayTrainer(left, left.mirror_controller(), config, fast=True)
        >>> metrics = asyncio.run(trainer.run(100))
    """

    def __init__(
        self,
        left_controller: BaseController,
        right_controller: BaseController,
        config: Optional[Config] = None,
        renderer: Optional[PongRenderer] = None,
        fast: bool = False,
        show_window: bool = False,
        seed: Optional[int] = None
    ):
        """
        Initialize the trainer.

        Args:
            left_controller: Controller for the left paddle
            right_controller: Controller for the right paddle
            config: Configuration object
            renderer: Capture collaborator for visual controllers / the window
            fast: Run matches without throttling
            show_window: Show matches in a pygame window
            seed: Base seed for the engines (match i uses seed + i)
        """
        self.left = left_controller
        self.right = right_controller
        self.config = config or Config()
        self.renderer = renderer
        self.fast = fast
        self.show_window = show_window
        self.seed = self.config.SEED if seed is None else seed

        self.metrics = TrainingMetrics(moving_average=self.config.STATS_MOVING_AVERAGE)
        self.current_match = 0
        self.runner: Optional[MatchRunner] = None

    def _learner(self) -> Optional[QLearningController]:
        """The controller whose loss and epsilon get reported."""
        learners = [c for c in (self.left, self.right) if isinstance(c, QLearningController)]
        for controller in learners:
            if controller.training_iterations > 0:
                return controller
        return learners[0] if learners else None

    def _learner_stats(self) -> Tuple[Optional[float], Optional[float]]:
        learner = self._learner()
        if learner is None:
            return None, None
        return learner.last_loss, learner.epsilon

    async def play_match(self) -> MatchStats:
        """Play one match and record it."""
        match_seed = None if self.seed is None else self.seed + self.current_match
        engine = MatchEngine(self.config, seed=match_seed)
        self.runner = MatchRunner(
            engine, self.left, self.right, self.config,
            renderer=self.renderer, fast=self.fast, show_window=self.show_window,
        )

        winner = await self.runner.run()

        loss, epsilon = self._learner_stats()
        stats = MatchStats(
            match=self.current_match,
            winner=winner,
            ticks=self.runner.ticks,
            duration=engine.time_passed,
            wall_time=self.runner.wall_time,
            loss=loss,
            epsilon=epsilon,
        )
        self.metrics.add(stats)
        self.current_match += 1

        log_match_result(stats.match, winner, stats.ticks, stats.duration, loss, epsilon)
        return stats

    async def run(
        self,
        num_matches: int = 0,
        progress_callback: Optional[Callable[[MatchStats, TrainingMetrics], None]] = None
    ) -> TrainingMetrics:
        """
        Play num_matches matches (0 = until cancelled).

        Args:
            num_matches: Number of matches to play
            progress_callback: Called with each match's stats and the metrics

        Returns:
            Training metrics
        """
        logger.info(f"Starting {num_matches or 'unlimited'} matches: {self.left!r} vs {self.right!r} "
                    f"(device {self.config.DEVICE})")

        played = 0
        while num_matches == 0 or played < num_matches:
            stats = await self.play_match()
            played += 1
            if progress_callback:
                progress_callback(stats, self.metrics)

        logger.info(
            f"Finished {played} matches | "
            f"left {self.metrics.wins[LEFT]} - right {self.metrics.wins[RIGHT]} | "
            f"avg duration {self.metrics.get_recent_average('durations'):.1f}s"
        )
        return self.metrics

    def stop(self) -> None:
        """Cancel the match in progress."""
        if self.runner is not None:
            self.runner.cancel()
