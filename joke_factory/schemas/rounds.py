from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, StrictBool

RoundStatusName = Literal["CONFIGURED", "ACTIVE", "ENDED"]


class RoundOut(BaseModel):
    id: int
    round_number: int
    status: RoundStatusName
    batch_size: int
    customer_budget: int
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    is_popped_active: bool = False

    @classmethod
    def from_round(cls, game_round) -> "RoundOut":
        return cls(
            id=game_round.round_id,
            round_number=game_round.round_number,
            status=game_round.status,
            batch_size=game_round.batch_size,
            customer_budget=game_round.customer_budget,
            started_at=game_round.started_at,
            ended_at=game_round.ended_at,
            created_at=game_round.created_at,
            is_popped_active=bool(game_round.is_popped_active),
        )


class ActiveRoundsResponse(BaseModel):
    rounds: List[RoundOut] = Field(default_factory=list)


class RoundEnvelope(BaseModel):
    round: RoundOut


class RoundConfigRequest(BaseModel):
    batch_size: int
    customer_budget: int


class RevealFlagRequest(BaseModel):
    is_popped_active: StrictBool


class TeamOut(BaseModel):
    id: int
    name: str


class TeamsResponse(BaseModel):
    teams: List[TeamOut] = Field(default_factory=list)


class TeamRenameRequest(BaseModel):
    name: str = Field(..., max_length=200)
