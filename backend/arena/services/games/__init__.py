"""Game domain services: levels, coin conversion and the boss-battle engine.

This package contains pure(ish) domain logic that should be imported by
HTTP routes and socket handlers, keeping transport concerns separated
from core game mechanics.
"""

from .engine import GameEngine, GameSnapshot, Phase
from .levels import LEVELS, LevelConfig

__all__ = ['GameEngine', 'GameSnapshot', 'LEVELS', 'LevelConfig', 'Phase']
