# Import models to make them accessible via joke_factory.models
# and ensure they are registered with SQLAlchemy's Base metadata
from .game_state import GameState, GAME_STATE_ID
from .team import Team
from .participant import (
    Assignment,
    Participant,
    ParticipantStatus,
    Role,
    ROLE_FROM_WIRE,
    WIRE_ROLE_NAMES,
)
from .round import Round, RoundStatus
from .batch import Batch, BatchStatus, Joke, JOKE_ID_STRIDE, joke_id_for
from .purchase import Purchase

__all__ = [
    "GameState",
    "GAME_STATE_ID",
    "Team",
    "Assignment",
    "Participant",
    "ParticipantStatus",
    "Role",
    "ROLE_FROM_WIRE",
    "WIRE_ROLE_NAMES",
    "Round",
    "RoundStatus",
    "Batch",
    "BatchStatus",
    "Joke",
    "JOKE_ID_STRIDE",
    "joke_id_for",
    "Purchase",
]
