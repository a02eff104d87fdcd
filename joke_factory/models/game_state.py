from sqlalchemy import Column, DateTime, Integer, func

from joke_factory.database import Base

GAME_STATE_ID = 1


class GameState(Base):
    """Singleton row: which round is current and the store's change counter."""

    __tablename__ = "game_state"

    id = Column(Integer, primary_key=True, default=GAME_STATE_ID)
    active_round_id = Column(Integer, nullable=True)
    version = Column(Integer, nullable=False, default=1)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
