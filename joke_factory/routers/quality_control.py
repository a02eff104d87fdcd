from typing import Optional

from fastapi import APIRouter, Depends, Query

from joke_factory.auth.identity import get_current_participant
from joke_factory.data.batch_manager import BatchManager, get_batch_manager
from joke_factory.models import Participant, Role
from joke_factory.schemas.batch import (
    QueueCountResponse,
    QueueNextResponse,
    RatingsRequest,
    RatingsResponse,
)
from joke_factory.services.errors import NotFound, forbidden
from joke_factory.services.projections import queue_head_payload

router = APIRouter(prefix="/v1/qc", tags=["quality-control"])


def _require_quality_control(
    participant: Participant = Depends(get_current_participant),
) -> Participant:
    if participant.role != Role.QUALITY_CONTROL.value:
        raise forbidden("Only quality control can use the grading queue.")
    return participant


def _resolve_round(batches: BatchManager, round_id: Optional[int]) -> int:
    if round_id is not None:
        batches.store.get_round(round_id)
        return round_id
    current = batches.store.current_round()
    if current is None:
        raise NotFound("NOT_FOUND", "Round not found.")
    return current.round_id


@router.get("/queue/next", response_model=QueueNextResponse)
def read_next_batch(
    round_id: Optional[int] = Query(None),
    _: Participant = Depends(_require_quality_control),
    batches: BatchManager = Depends(get_batch_manager),
):
    resolved = _resolve_round(batches, round_id)
    found = batches.next_for_grading(resolved)
    if found is None:
        raise NotFound("EMPTY_QUEUE", "No batches waiting.", {"round_id": resolved})
    return queue_head_payload(*found)


@router.get("/queue/count", response_model=QueueCountResponse)
def read_queue_count(
    round_id: Optional[int] = Query(None),
    _: Participant = Depends(_require_quality_control),
    batches: BatchManager = Depends(get_batch_manager),
):
    resolved = _resolve_round(batches, round_id)
    return QueueCountResponse(round_id=resolved, queue_size=batches.queue_size(resolved))


@router.post("/batches/{batch_id}/ratings", response_model=RatingsResponse)
def submit_ratings(
    batch_id: int,
    payload: RatingsRequest,
    participant: Participant = Depends(get_current_participant),
    batches: BatchManager = Depends(get_batch_manager),
):
    result = batches.submit_grading(
        batch_id,
        [entry.model_dump() for entry in payload.ratings],
        payload.feedback,
        participant,
    )
    published = result.pop("published_joke_ids")
    return RatingsResponse(
        batch=result,
        published={"count": len(published), "joke_ids": published},
    )
