from __future__ import annotations

from datetime import datetime
from typing import List

from pydantic import BaseModel, Field

from joke_factory.schemas.rounds import TeamOut


class TeamSummaryResponse(BaseModel):
    team: TeamOut
    round_id: int
    rank: int
    points: int
    total_sales: int
    batches_created: int
    batches_rated: int
    accepted_jokes: int
    avg_score_overall: float
    unrated_batches: int
    acceptance_rate: float


class LeaderboardRow(BaseModel):
    rank: int
    team: TeamOut
    points: int
    total_sales: int
    batches_rated: int
    avg_score_overall: float
    accepted_jokes: int


class SalesEvent(BaseModel):
    event_index: int
    timestamp: datetime
    team_id: int
    team_name: str
    total_sales: int


class BatchQualityPoint(BaseModel):
    batch_id: int
    team_id: int
    team_name: str
    submitted_at: datetime
    batch_size: int
    avg_score: float


class LearningCurvePoint(BaseModel):
    team_id: int
    team_name: str
    batch_order: int
    avg_score: float


class OutputVsRejection(BaseModel):
    team_id: int
    team_name: str
    total_jokes: int
    rated_jokes: int
    accepted_jokes: int
    rejection_rate: float


class RevenueVsAcceptance(BaseModel):
    team_id: int
    team_name: str
    total_sales: int
    accepted_jokes: int
    acceptance_rate: float


class InstructorStatsResponse(BaseModel):
    round_id: int
    leaderboard: List[LeaderboardRow] = Field(default_factory=list)
    cumulative_sales: List[SalesEvent] = Field(default_factory=list)
    batch_quality_by_size: List[BatchQualityPoint] = Field(default_factory=list)
    learning_curve: List[LearningCurvePoint] = Field(default_factory=list)
    output_vs_rejection: List[OutputVsRejection] = Field(default_factory=list)
    revenue_vs_acceptance: List[RevenueVsAcceptance] = Field(default_factory=list)
