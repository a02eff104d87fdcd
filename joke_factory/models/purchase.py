from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, text

from joke_factory.database import Base


class Purchase(Base):
    """Ledger entry. Rows are never deleted, only marked returned."""

    __tablename__ = "purchases"
    __table_args__ = (
        Index(
            "uq_purchases_active_key",
            "round_id",
            "buyer_id",
            "joke_id",
            unique=True,
            sqlite_where=text("returned_at IS NULL"),
        ),
        {"sqlite_autoincrement": True},
    )

    purchase_id = Column(Integer, primary_key=True)
    round_id = Column(
        Integer, ForeignKey("rounds.round_id", ondelete="CASCADE"), nullable=False, index=True
    )
    buyer_id = Column(Integer, nullable=False, index=True)
    joke_id = Column(Integer, nullable=False, index=True)
    team_id = Column(Integer, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    returned_at = Column(DateTime(timezone=True), nullable=True)

    @property
    def is_active(self) -> bool:
        return self.returned_at is None
