"""Utility modules for pongrl."""

from .logger import get_logger, setup_logging, log_match_result, LogLevel

__all__ = ['get_logger', 'setup_logging', 'log_match_result', 'LogLevel']
