from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

BatchStatusName = Literal["SUBMITTED", "RATED"]


class BatchCreateRequest(BaseModel):
    team_id: int
    jokes: List[str] = Field(default_factory=list)


class BatchCreated(BaseModel):
    batch_id: int
    round_id: int
    team_id: int
    status: BatchStatusName
    submitted_at: datetime
    jokes_count: int
    joke_ids: List[int] = Field(default_factory=list)


class BatchCreatedResponse(BaseModel):
    batch: BatchCreated


class QueueBatch(BaseModel):
    batch_id: int
    round_id: int
    team_id: int
    submitted_at: datetime


class QueueJoke(BaseModel):
    joke_id: int
    joke_text: str


class QueueNextResponse(BaseModel):
    batch: QueueBatch
    jokes: List[QueueJoke] = Field(default_factory=list)
    queue_size: int


class QueueCountResponse(BaseModel):
    round_id: int
    queue_size: int


class RatingEntry(BaseModel):
    joke_id: int
    rating: float = Field(allow_inf_nan=False)
    tags: List[str] = Field(default_factory=list)
    tag: Optional[str] = None
    joke_title: Optional[str] = None


class RatingsRequest(BaseModel):
    ratings: List[RatingEntry] = Field(default_factory=list)
    feedback: Optional[str] = None


class RatedBatch(BaseModel):
    batch_id: int
    status: BatchStatusName
    rated_at: datetime
    avg_score: float
    passes_count: int


class PublishedJokes(BaseModel):
    count: int
    joke_ids: List[int] = Field(default_factory=list)


class RatingsResponse(BaseModel):
    batch: RatedBatch
    published: PublishedJokes


class TagCount(BaseModel):
    tag: str
    count: int


class TeamBatch(BaseModel):
    batch_id: int
    round_id: int
    team_id: int
    status: BatchStatusName
    jokes_count: int
    submitted_at: datetime
    rated_at: Optional[datetime] = None
    avg_score: Optional[float] = None
    passes_count: Optional[int] = None
    feedback: Optional[str] = None
    tag_summary: List[TagCount] = Field(default_factory=list)


class TeamBatchesResponse(BaseModel):
    round_id: int
    team_id: int
    batches: List[TeamBatch] = Field(default_factory=list)
