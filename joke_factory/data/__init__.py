"""
Data access layer: the shared game store and the managers that mutate it.
Every manager commits through GameStore.mutation so writes stay atomic.
"""

from .game_store import GameStore, StoreManager
from .roster_manager import RosterManager
from .round_manager import RoundManager
from .batch_manager import BatchManager
from .market_manager import MarketManager

__all__ = [
    "GameStore",
    "StoreManager",
    "RosterManager",
    "RoundManager",
    "BatchManager",
    "MarketManager",
]
