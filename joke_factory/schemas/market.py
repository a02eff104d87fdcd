from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from joke_factory.schemas.rounds import TeamOut


class MarketItem(BaseModel):
    joke_id: int
    joke_title: Optional[str] = None
    joke_text: str
    batch_id: int
    team: TeamOut
    is_bought_by_me: bool = False


class MarketResponse(BaseModel):
    round_id: int
    items: List[MarketItem] = Field(default_factory=list)


class BudgetResponse(BaseModel):
    round_id: int
    starting_budget: int
    remaining_budget: int


class PurchaseOut(BaseModel):
    purchase_id: int
    joke_id: int


class TeamPointsDelta(BaseModel):
    team_id: int
    points_delta: int


class BuyReturnResponse(BaseModel):
    purchase: PurchaseOut
    budget: BudgetResponse
    team_points_awarded: TeamPointsDelta
