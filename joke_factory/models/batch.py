from enum import Enum

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from joke_factory.database import Base

JOKE_ID_STRIDE = 100


def joke_id_for(batch_id: int, position: int) -> int:
    return batch_id * JOKE_ID_STRIDE + position


class BatchStatus(str, Enum):
    SUBMITTED = "SUBMITTED"
    RATED = "RATED"


class Batch(Base):
    __tablename__ = "batches"
    __table_args__ = {"sqlite_autoincrement": True}

    batch_id = Column(Integer, primary_key=True)
    round_id = Column(
        Integer, ForeignKey("rounds.round_id", ondelete="CASCADE"), nullable=False, index=True
    )
    team_id = Column(Integer, nullable=False, index=True)
    # Plain column: removing the submitter must not touch the batch.
    submitted_by = Column(Integer, nullable=True)
    status = Column(String(16), nullable=False, default=BatchStatus.SUBMITTED.value)
    submitted_at = Column(DateTime(timezone=True), nullable=False)
    rated_at = Column(DateTime(timezone=True), nullable=True)
    avg_score = Column(Float, nullable=True)
    passes_count = Column(Integer, nullable=True)
    feedback = Column(Text, nullable=True)

    jokes = relationship(
        "Joke",
        back_populates="batch",
        order_by="Joke.position",
        cascade="all, delete-orphan",
    )

    @property
    def is_rated(self) -> bool:
        return self.status == BatchStatus.RATED.value

    def published_jokes(self):
        """The first ``passes_count`` jokes in submission order."""
        if not self.is_rated or not self.passes_count:
            return []
        return [joke for joke in self.jokes if joke.position < self.passes_count]


class Joke(Base):
    __tablename__ = "jokes"

    joke_id = Column(Integer, primary_key=True, autoincrement=False)
    batch_id = Column(
        Integer, ForeignKey("batches.batch_id", ondelete="CASCADE"), nullable=False, index=True
    )
    position = Column(Integer, nullable=False)
    joke_text = Column(Text, nullable=False)
    rating = Column(Float, nullable=True)
    tags = Column(JSON, nullable=False, default=list)
    joke_title = Column(String(120), nullable=True)

    batch = relationship("Batch", back_populates="jokes")
