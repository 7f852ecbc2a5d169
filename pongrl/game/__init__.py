"""
Game Module
===========

The Pong simulation and everything that drives it.

Classes:
    MatchEngine   - Fixed-step physics and winner detection
    MatchState    - Immutable snapshot handed to controllers
    PongRenderer  - Draws the court and captures grayscale frames
    MatchRunner   - Plays one match between two controllers
"""

from .state import LEFT, RIGHT, SIDES, opposite_side, BallState, PaddleState, MatchState
from .pong import ACTIONS, MatchEngine, validate_action
from .renderer import PongRenderer
from .match import MatchRunner, MatchAbortedError

__all__ = [
    'LEFT', 'RIGHT', 'SIDES', 'opposite_side',
    'BallState', 'PaddleState', 'MatchState',
    'ACTIONS', 'MatchEngine', 'validate_action',
    'PongRenderer', 'MatchRunner', 'MatchAbortedError',
]
