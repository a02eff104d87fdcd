"""Service layer helpers for the Joke Factory game server."""

from .aggregate_locks import AggregateLocks, aggregate_locks  # noqa: F401
from .errors import GameError  # noqa: F401

__all__ = [
    "AggregateLocks",
    "aggregate_locks",
    "GameError",
]
