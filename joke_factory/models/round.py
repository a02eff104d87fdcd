from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, Integer, String, func

from joke_factory.database import Base


class RoundStatus(str, Enum):
    CONFIGURED = "CONFIGURED"
    ACTIVE = "ACTIVE"
    ENDED = "ENDED"


class Round(Base):
    __tablename__ = "rounds"
    __table_args__ = {"sqlite_autoincrement": True}

    round_id = Column(Integer, primary_key=True)
    round_number = Column(Integer, nullable=False, unique=True)
    status = Column(String(16), nullable=False, default=RoundStatus.CONFIGURED.value)
    batch_size = Column(Integer, nullable=False)
    customer_budget = Column(Integer, nullable=False)
    started_at = Column(DateTime(timezone=True), nullable=True)
    ended_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    is_popped_active = Column(Boolean, nullable=False, default=False)

    @property
    def is_active(self) -> bool:
        return self.status == RoundStatus.ACTIVE.value
