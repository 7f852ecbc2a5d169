"""
Controllers
===========

Everything that can steer a paddle.

Classes:
    BaseController         - Abstract base class for controllers
    BallFollowerController - Scripted opponent that chases the ball
    KeyboardController     - Human player via pygame key state
    DQLController          - Q-learning on a feature vector
    VisualDQLController    - Q-learning on captured frames
    SharedLearner          - Memory and model shared between mirrors

Controller Registry:
    Use get_controller(name) to get a controller class by name
    Use list_controllers() to get all available controller names
"""

from typing import Any, Dict, List, Optional, Type

from .base import BaseController
from .follower import BallFollowerController
from .keyboard import KeyboardController
from .shared import SharedLearner
from .dql import QLearningController, DQLController
from .visual_dql import VisualDQLController


# =============================================================================
# CONTROLLER REGISTRY
# =============================================================================
# Maps CLI names to controller classes and metadata.
# To add a new controller:
#   1. Create the class inheriting from BaseController
#   2. Add an entry to CONTROLLER_REGISTRY below

CONTROLLER_REGISTRY: Dict[str, Dict[str, Any]] = {
    'follower': {
        'class': BallFollowerController,
        'name': 'Ball Follower',
        'description': 'Scripted opponent that chases the ball with delay and hiccups',
        'learns': False,
    },
    'keyboard': {
        'class': KeyboardController,
        'name': 'Keyboard',
        'description': 'Human player (arrow keys)',
        'learns': False,
    },
    'dql': {
        'class': DQLController,
        'name': 'Dense DQL',
        'description': 'Q-learning on ball and paddle coordinates',
        'learns': True,
    },
    'visual_dql': {
        'class': VisualDQLController,
        'name': 'Visual DQL',
        'description': 'Q-learning on downscaled frames of the court',
        'learns': True,
    },
}


def get_controller(name: str) -> Optional[Type[BaseController]]:
    """
    Get a controller class by name.

    Returns:
        The controller class, or None if not found

    Example:
        >>> ControllerClass = get_controller('dql')
        >>> controller = ControllerClass('left', config)
    """
    entry = CONTROLLER_REGISTRY.get(name.lower())
    if entry:
        return entry['class']
    return None


def list_controllers() -> List[str]:
    """Get a list of all available controller names."""
    return list(CONTROLLER_REGISTRY.keys())


__all__ = [
    'BaseController',
    'BallFollowerController',
    'KeyboardController',
    'QLearningController',
    'DQLController',
    'VisualDQLController',
    'SharedLearner',
    'CONTROLLER_REGISTRY',
    'get_controller',
    'list_controllers',
]
