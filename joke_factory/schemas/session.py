from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

WireRole = Literal["INSTRUCTOR", "JM", "QC", "CUSTOMER"]
ParticipantStatusName = Literal["WAITING", "ASSIGNED"]


class JoinRequest(BaseModel):
    display_name: str = Field(..., max_length=200)


class InstructorLoginRequest(BaseModel):
    display_name: str = Field(..., max_length=200)
    password: str = Field(..., max_length=200)


class UserOut(BaseModel):
    user_id: int
    display_name: str


class ParticipantOut(BaseModel):
    status: ParticipantStatusName
    joined_at: datetime
    assigned_at: Optional[datetime] = None


class AssignmentOut(BaseModel):
    role: Optional[WireRole] = None
    team_id: Optional[int] = None


class SessionResponse(BaseModel):
    user: UserOut
    participant: ParticipantOut
    assignment: AssignmentOut
    round_id: Optional[int] = None


class TeamMember(BaseModel):
    user_id: int
    display_name: str
    status: ParticipantStatusName
    role: Optional[WireRole] = None
    team_id: Optional[int] = None


class TeamMembersResponse(BaseModel):
    round_id: Optional[int] = None
    team_id: Optional[int] = None
    members: List[TeamMember] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    code: str
    message: str
    details: dict = Field(default_factory=dict)
