from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from joke_factory.database import Base


class ParticipantStatus(str, Enum):
    WAITING = "WAITING"
    ASSIGNED = "ASSIGNED"


class Role(str, Enum):
    INSTRUCTOR = "INSTRUCTOR"
    PRODUCER = "PRODUCER"
    QUALITY_CONTROL = "QUALITY_CONTROL"
    CUSTOMER = "CUSTOMER"


# Names the browser clients use on the wire.
WIRE_ROLE_NAMES = {
    Role.INSTRUCTOR: "INSTRUCTOR",
    Role.PRODUCER: "JM",
    Role.QUALITY_CONTROL: "QC",
    Role.CUSTOMER: "CUSTOMER",
}
ROLE_FROM_WIRE = {wire: role for role, wire in WIRE_ROLE_NAMES.items()}


class Participant(Base):
    __tablename__ = "participants"
    __table_args__ = {"sqlite_autoincrement": True}

    user_id = Column(Integer, primary_key=True)
    display_name = Column(String(80), nullable=False)
    display_name_key = Column(String(80), nullable=False, unique=True, index=True)
    status = Column(String(16), nullable=False, default=ParticipantStatus.WAITING.value)
    joined_at = Column(DateTime(timezone=True), nullable=False)
    assigned_at = Column(DateTime(timezone=True), nullable=True)

    assignment = relationship(
        "Assignment",
        back_populates="participant",
        uselist=False,
        cascade="all, delete-orphan",
    )

    @property
    def role(self):
        return self.assignment.role if self.assignment else None

    @property
    def team_id(self):
        return self.assignment.team_id if self.assignment else None

    @property
    def is_instructor(self) -> bool:
        return self.role == Role.INSTRUCTOR.value


class Assignment(Base):
    __tablename__ = "assignments"

    user_id = Column(
        Integer,
        ForeignKey("participants.user_id", ondelete="CASCADE"),
        primary_key=True,
    )
    role = Column(String(32), nullable=True)
    team_id = Column(
        Integer,
        ForeignKey("teams.team_id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    participant = relationship("Participant", back_populates="assignment")
