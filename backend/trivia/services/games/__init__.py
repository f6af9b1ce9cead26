"""Game domain services: question timer engine, runtime cache, persistence,
scoring and passcode allocation.

This package contains pure(ish) domain logic that should be imported by
HTTP routes and socket handlers, keeping transport concerns separated
from core game mechanics.
"""
from .cache import GameCache
from .engine import AnswerSubmission, GameEngine
from .repository import GameRepository
from .timer import SocketIOTicker, TimerHandle

__all__ = [
    'AnswerSubmission',
    'GameCache',
    'GameEngine',
    'GameRepository',
    'SocketIOTicker',
    'TimerHandle',
]
