"""
Ball Follower
=============

A scripted opponent that chases the ball on the y axis, reacts with a
delay and sometimes moves the wrong way.
"""

from typing import Optional

import numpy as np

from .base import BaseController, mirror_seed
from ...config import Config
from ...game.state import MatchState


class BallFollowerController(BaseController):
    """
    Moves toward the ball, re-deciding every FOLLOWER_REACTION_TIME calls.

    After each decision the action is flipped with probability
    FOLLOWER_HICCUP_CHANCE.
    """

    def __init__(self, side: str, config: Optional[Config] = None, seed: Optional[int] = None):
        super().__init__(side, config)
        self.reaction_time = self.config.FOLLOWER_REACTION_TIME
        self.hiccup_chance = self.config.FOLLOWER_HICCUP_CHANCE

        self.current_action = 0
        self.frame = 0
        self.seed = seed if seed is not None else self.config.SEED
        self._rng = np.random.default_rng(self.seed)

    def mirror_controller(self, **overrides) -> 'BallFollowerController':
        overrides.setdefault('seed', mirror_seed(self.seed))
        return super().mirror_controller(**overrides)

    async def select_action(self, state: MatchState) -> int:
        self.frame += 1
        if self.frame % self.reaction_time != 0:
            return self.current_action

        paddle = state.paddle(self.side)
        self.current_action = -1 if paddle.y > state.ball.y else 1

        if self._rng.random() < self.hiccup_chance:
            self.current_action = -self.current_action

        return self.current_action

    async def on_match_start(self) -> None:
        self.current_action = 0
        self.frame = 0
