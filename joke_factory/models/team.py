from sqlalchemy import Column, Integer, String

from joke_factory.database import Base


class Team(Base):
    __tablename__ = "teams"
    __table_args__ = {"sqlite_autoincrement": True}

    team_id = Column(Integer, primary_key=True)
    # Cosmetic only; duplicates are allowed.
    name = Column(String(80), nullable=False)

    def to_dict(self) -> dict:
        return {"id": self.team_id, "name": self.name}
