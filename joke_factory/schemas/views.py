"""Role-specific session projections, tagged by ``kind``."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from joke_factory.schemas.batch import QueueNextResponse, TeamBatch
from joke_factory.schemas.instructor import AssignOptionsResponse, LobbyResponse
from joke_factory.schemas.market import BudgetResponse, MarketItem
from joke_factory.schemas.rounds import RoundOut
from joke_factory.schemas.session import ParticipantStatusName, TeamMember, WireRole
from joke_factory.schemas.stats import InstructorStatsResponse, TeamSummaryResponse


class SelfRecord(BaseModel):
    user_id: int
    display_name: str
    status: ParticipantStatusName
    role: Optional[WireRole] = None
    team_id: Optional[int] = None


class InstructorView(BaseModel):
    kind: Literal["instructor"] = "instructor"
    lobby: LobbyResponse
    assign_options: AssignOptionsResponse
    stats: InstructorStatsResponse


class ProducerView(BaseModel):
    kind: Literal["producer"] = "producer"
    team_id: Optional[int] = None
    team_summary: Optional[TeamSummaryResponse] = None
    batches: List[TeamBatch] = Field(default_factory=list)
    team_members: List[TeamMember] = Field(default_factory=list)


class QualityControlView(BaseModel):
    kind: Literal["quality_control"] = "quality_control"
    team_id: Optional[int] = None
    next_batch: Optional[QueueNextResponse] = None
    queue_size: int = 0
    team_summary: Optional[TeamSummaryResponse] = None
    team_members: List[TeamMember] = Field(default_factory=list)


class CustomerView(BaseModel):
    kind: Literal["customer"] = "customer"
    budget: Optional[BudgetResponse] = None
    market: List[MarketItem] = Field(default_factory=list)
    purchased_joke_ids: List[int] = Field(default_factory=list)


class UnassignedView(BaseModel):
    kind: Literal["unassigned"] = "unassigned"
    joined_at: Optional[datetime] = None


RoleView = Annotated[
    Union[InstructorView, ProducerView, QualityControlView, CustomerView, UnassignedView],
    Field(discriminator="kind"),
]


class SessionView(BaseModel):
    state_version: int
    me: SelfRecord
    round: Optional[RoundOut] = None
    view: RoleView
