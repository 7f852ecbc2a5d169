"""
AI Module
=========

Q-learning components for playing Pong.

Classes:
    ReplayMemory    - Circular buffer of transitions
    QModel          - Torch function approximator (predict / fit / sample_action)
    SelfPlayTrainer - Plays matches back to back and tracks results

Controllers live in pongrl.ai.controllers.
"""

from .replay_memory import ReplayMemory, Transition
from .network import QModel, DenseQNetwork, VisualQNetwork, build_dense_model, build_visual_model
from .trainer import SelfPlayTrainer, MatchStats, TrainingMetrics

__all__ = [
    'ReplayMemory', 'Transition',
    'QModel', 'DenseQNetwork', 'VisualQNetwork', 'build_dense_model', 'build_visual_model',
    'SelfPlayTrainer', 'MatchStats', 'TrainingMetrics',
]
