#!/usr/bin/env python3
"""
pongrl - Main Entry Point
=========================

Plays Pong matches between controllers, with Q-learning controllers
training between matches.

Usage:
    # Dense DQL learning against a scripted opponent, with a window
    python main.py --left dql --right follower

    # Self-play: the right paddle mirrors the left learner
    python main.py --left dql --right mirror --fast --no-window --matches 500

    # Visual DQL (learns from downscaled frames)
    python main.py --left visual_dql --right follower --fast

    # Play yourself (arrow keys) against the scripted opponent
    python main.py --left follower --right keyboard

Press Ctrl+C to stop.
"""

# Suppress pygame's pkg_resources deprecation warning (pygame issue #4557)
import warnings
warnings.filterwarnings("ignore", category=UserWarning, module="pygame.pkgdata")

import argparse
import asyncio
from typing import Optional

import pygame

from pongrl.ai.controllers import BaseController, get_controller, list_controllers, KeyboardController
from pongrl.ai.controllers.base import mirror_seed
from pongrl.ai.trainer import SelfPlayTrainer
from pongrl.config import Config, ConfigError
from pongrl.game.renderer import PongRenderer
from pongrl.game.state import LEFT, RIGHT
from pongrl.utils.logger import LogLevel, get_logger, setup_logging


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    available = list_controllers()

    parser = argparse.ArgumentParser(
        description="pongrl - Pong with Q-learning controllers",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
CONTROLLERS: {', '.join(available)}
Use --right mirror for self-play against the left controller.
        """
    )
    parser.add_argument(
        '--left', type=str, default='dql', choices=available,
        help='Controller for the left paddle (default: dql)'
    )
    parser.add_argument(
        '--right', type=str, default='follower', choices=available + ['mirror'],
        help='Controller for the right paddle, or mirror (default: follower)'
    )
    parser.add_argument(
        '--matches', type=int, default=0,
        help='Number of matches to play (default: 0 = until interrupted)'
    )
    parser.add_argument(
        '--difficulty', type=int, default=None, choices=[1, 2, 3],
        help='Difficulty preset for paddle size and ball speed'
    )
    parser.add_argument(
        '--fast', action='store_true',
        help='Run ticks back-to-back without throttling'
    )
    parser.add_argument(
        '--seed', type=int, default=None,
        help='Random seed for engines, controllers and networks'
    )
    parser.add_argument(
        '--log-level', type=str, default='INFO',
        choices=[level.name for level in LogLevel],
        help='Logging level (default: INFO)'
    )
    parser.add_argument(
        '--log-file', action='store_true',
        help='Also write logs to a timestamped file in LOG_DIR'
    )
    parser.add_argument(
        '--no-window', action='store_true',
        help='Do not open a pygame window'
    )

    args = parser.parse_args(argv)
    uses_keyboard = 'keyboard' in (args.left, args.right)
    if uses_keyboard and args.no_window:
        parser.error("the keyboard controller needs a window")
    if args.matches < 0:
        parser.error("--matches must be >= 0")
    return args


def build_config(args: argparse.Namespace) -> Config:
    """Apply CLI overrides to the default configuration."""
    config = Config(LOG_LEVEL=args.log_level, SEED=args.seed)
    if args.difficulty is not None:
        config = config.with_difficulty(args.difficulty)
    return config


def build_controller(name: str, side: str, config: Config, seed: Optional[int] = None) -> BaseController:
    """Create a controller by registry name."""
    controller_class = get_controller(name)
    if controller_class is None:
        raise ConfigError(f"Unknown controller: {name}")
    if controller_class is KeyboardController and side == LEFT:
        return KeyboardController(side, config, up_key=pygame.K_w, down_key=pygame.K_s)
    if controller_class is KeyboardController:
        return KeyboardController(side, config)
    return controller_class(side, config, seed=seed)


def main(argv=None) -> None:
    args = parse_args(argv)
    config = build_config(args)

    setup_logging(
        log_dir=config.LOG_DIR,
        level=LogLevel[config.LOG_LEVEL],
        file_output=args.log_file,
        force=True,
    )
    logger = get_logger('main')

    left = build_controller(args.left, LEFT, config, seed=args.seed)
    if args.right == 'mirror':
        right = left.mirror_controller()
    else:
        right_seed = mirror_seed(args.seed)
        right = build_controller(args.right, RIGHT, config, seed=right_seed)

    show_window = not args.no_window
    renderer = None
    if show_window or left.needs_frames or right.needs_frames:
        renderer = PongRenderer(config)

    trainer = SelfPlayTrainer(
        left, right, config,
        renderer=renderer, fast=args.fast, show_window=show_window, seed=args.seed,
    )

    try:
        asyncio.run(trainer.run(args.matches))
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
    finally:
        metrics = trainer.metrics
        logger.info(
            f"{metrics.matches} matches played | "
            f"left {metrics.wins[LEFT]} - right {metrics.wins[RIGHT]}"
        )
        if renderer is not None:
            renderer.close()
        pygame.quit()


if __name__ == "__main__":
    main()
