from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from joke_factory.schemas.rounds import TeamOut
from joke_factory.schemas.session import TeamMember, WireRole

_ROLE_ALIASES = {"PRODUCER": "JM", "QUALITY_CONTROL": "QC"}


class AssignOptionsResponse(BaseModel):
    round_id: int
    eligible_count: int
    options: List[int] = Field(default_factory=list)


class AssignRequest(BaseModel):
    customer_count: int
    team_count: int


class FormedTeam(BaseModel):
    team_id: int
    producer_id: int
    quality_control_id: int


class AssignResponse(BaseModel):
    round_id: int
    customers: List[int] = Field(default_factory=list)
    teams: List[FormedTeam] = Field(default_factory=list)


class PatchAssignmentRequest(BaseModel):
    """Only the fields present in the request body are changed."""

    role: Optional[WireRole] = None
    team_id: Optional[int] = None
    status: Optional[Literal["WAITING", "ASSIGNED"]] = None

    @field_validator("role", mode="before")
    @classmethod
    def _accept_long_role_names(cls, value):
        if isinstance(value, str):
            upper = value.strip().upper()
            return _ROLE_ALIASES.get(upper, upper)
        return value


class DeletedUserResponse(BaseModel):
    deleted_user_id: int


class LobbySummary(BaseModel):
    waiting: int
    assigned: int
    team_count: int
    customer_count: int
    eligible_count: int


class LobbyTeam(BaseModel):
    team: TeamOut
    members: List[TeamMember] = Field(default_factory=list)


class LobbyResponse(BaseModel):
    round_id: int
    summary: LobbySummary
    teams: List[LobbyTeam] = Field(default_factory=list)
    customers: List[TeamMember] = Field(default_factory=list)
    unassigned: List[TeamMember] = Field(default_factory=list)
    instructors: List[TeamMember] = Field(default_factory=list)


class ResetResponse(BaseModel):
    active_round_id: int
    state_version: int
