"""
pongrl
======

Pong match simulation with Q-learning controllers.

Subpackages:
    game  - Match engine, renderer and match runner
    ai    - Replay memory, networks, controllers and the self-play trainer
    utils - Logging
"""

__version__ = '0.1.0'
