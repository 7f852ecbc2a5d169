"""
Match Runner
============

Plays one match between two controllers on the asyncio event loop.

A timer loop fires every UPDATE_INTERVAL_MS (or back-to-back in fast mode).
Each firing starts one update unless the previous update is still awaiting
its controllers, in which case the firing is skipped:

    1. Take a snapshot of the engine
    2. Every CONTROLLER_FRAME_INTERVAL frames, or once the snapshot has a
       winner, ask both controllers for actions; otherwise reuse the last ones
    3. With a winner: stop, run both on_match_end hooks, resolve the match
    4. Otherwise tick the engine

The outcome travels through a single future: run() returns the winning
side, or raises whatever an update raised.
"""

import asyncio
import time
from typing import Dict, Optional

import numpy as np

from .pong import MatchEngine, validate_action
from .renderer import PongRenderer
from .state import LEFT, RIGHT, MatchState
from ..config import Config, ConfigError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class MatchAbortedError(RuntimeError):
    """A match ran longer than MAX_TICKS_PER_MATCH."""


class MatchRunner:
    """
    Drives a MatchEngine with two controllers until one side wins.

    Args:
        engine: Engine to run (reset before the match starts)
        left_controller: Controller for the left paddle
        right_controller: Controller for the right paddle
        config: Configuration object (defaults to the engine's)
        renderer: Capture collaborator, required by controllers needing frames
        fast: Run ticks back-to-back and skip the end-of-match pause
        show_window: Present every tick in a pygame window (needs renderer)

    Example:
        >>> runner = MatchRunner(MatchEngine(config), left, right, config, fast=True)
        >>> winner = asyncio.run(runner.run())
    """

    def __init__(
        self,
        engine: MatchEngine,
        left_controller,
        right_controller,
        config: Optional[Config] = None,
        renderer: Optional[PongRenderer] = None,
        fast: bool = False,
        show_window: bool = False
    ):
        if left_controller.side != LEFT or right_controller.side != RIGHT:
            raise ConfigError(
                f"Controllers must play left and right "
                f"(got {left_controller.side!r} and {right_controller.side!r})"
            )
        needs_frames = left_controller.needs_frames or right_controller.needs_frames
        if (needs_frames or show_window) and renderer is None:
            raise ConfigError("A renderer is required for visual controllers and for showing a window")

        self.engine = engine
        self.controllers = {LEFT: left_controller, RIGHT: right_controller}
        self.config = config or engine.config
        self.renderer = renderer
        self.fast = fast
        self.show_window = show_window
        self.capture_frames = needs_frames

        self.ticks = 0
        self.skipped_ticks = 0
        self.wall_time = 0.0

        self._actions: Dict[str, int] = {LEFT: 0, RIGHT: 0}
        self._previous_frame: Optional[np.ndarray] = None
        self._running = False
        self._busy = False
        self._result: Optional[asyncio.Future] = None
        self._timer: Optional[asyncio.Task] = None
        self._update_task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._running

    async def run(self) -> str:
        """
        Play the match to the end.

        Returns:
            'left' or 'right'

        Raises:
            MatchAbortedError: If MAX_TICKS_PER_MATCH is exceeded
            asyncio.CancelledError: If cancel() was called
            Exception: Whatever a controller, the capture or the engine raised
        """
        if self._result is not None and not self._result.done():
            raise RuntimeError("Match is already running")

        loop = asyncio.get_running_loop()
        self._result = loop.create_future()
        self.engine.reset()
        self.ticks = 0
        self.skipped_ticks = 0
        self._actions = {LEFT: 0, RIGHT: 0}
        self._previous_frame = None
        self._busy = False

        await asyncio.gather(
            self.controllers[LEFT].on_match_start(),
            self.controllers[RIGHT].on_match_start(),
        )
        logger.info(f"Match started: {self.controllers[LEFT]!r} vs {self.controllers[RIGHT]!r}")

        started = time.perf_counter()
        self._running = True
        self._timer = loop.create_task(self._tick_loop())
        try:
            return await self._result
        finally:
            self._running = False
            self.wall_time = time.perf_counter() - started
            for task in (self._timer, self._update_task):
                if task is not None and not task.done():
                    task.cancel()

    def cancel(self) -> None:
        """Stop the loop; run() raises asyncio.CancelledError."""
        self._running = False
        if self._result is not None and not self._result.done():
            self._result.cancel()

    async def _tick_loop(self) -> None:
        interval = 0 if self.fast else self.config.UPDATE_INTERVAL_MS / 1000
        loop = asyncio.get_running_loop()
        while self._running:
            if self._busy:
                self.skipped_ticks += 1
            else:
                self._busy = True
                self._update_task = loop.create_task(self._guarded_update())
            await asyncio.sleep(interval)

    async def _guarded_update(self) -> None:
        try:
            winner = await self._update()
        except Exception as exc:
            logger.error(f"Match aborted at frame {self.engine.current_frame}: {exc!r}")
            self._fail(exc)
            return
        finally:
            self._busy = False

        if winner is None:
            return

        self._running = False
        logger.info(f"Match won by {winner} after {self.ticks} ticks ({self.engine.time_passed:.1f}s)")
        try:
            await self._finish(winner)
        except Exception as exc:
            logger.error(f"on_match_end failed: {exc!r}")
            self._fail(exc)
            return

        if not self._result.done():
            self._result.set_result(winner)

    def _fail(self, exc: BaseException) -> None:
        self._running = False
        if not self._result.done():
            self._result.set_exception(exc)

    async def _update(self) -> Optional[str]:
        """One runner step. Returns the winner once there is one."""
        state = self.engine.get_state()
        terminal = state.winner is not None

        if terminal or self.engine.current_frame % self.config.CONTROLLER_FRAME_INTERVAL == 0:
            snapshot = self._attach_frames(state)
            left_action, right_action = await asyncio.gather(
                self.controllers[LEFT].select_action(snapshot),
                self.controllers[RIGHT].select_action(snapshot),
            )
            self._actions[LEFT] = validate_action(left_action)
            self._actions[RIGHT] = validate_action(right_action)

        if terminal:
            return state.winner

        self.engine.tick(self._actions[LEFT], self._actions[RIGHT])
        self.ticks += 1

        if self.show_window:
            self.renderer.draw(self.engine)
            self.renderer.show()

        max_ticks = self.config.MAX_TICKS_PER_MATCH
        if max_ticks and self.ticks >= max_ticks:
            raise MatchAbortedError(f"No winner after {self.ticks} ticks")

        return None

    def _attach_frames(self, state: MatchState) -> MatchState:
        if not self.capture_frames:
            return state
        self.renderer.draw(self.engine)
        frame = self.renderer.capture_frame(self.config.CAPTURE_DOWNSCALE)
        snapshot = state.with_frames(frame, self._previous_frame)
        self._previous_frame = frame
        return snapshot

    async def _finish(self, winner: str) -> None:
        pause = 0 if self.fast else self.config.MATCH_END_PAUSE_MS / 1000
        results = await asyncio.gather(
            self.controllers[LEFT].on_match_end(winner == LEFT),
            self.controllers[RIGHT].on_match_end(winner == RIGHT),
            asyncio.sleep(pause),
            return_exceptions=True,
        )
        errors = [r for r in results if isinstance(r, BaseException)]
        for extra in errors[1:]:
            logger.error(f"Another on_match_end hook also failed: {extra!r}")
        if errors:
            raise errors[0]
