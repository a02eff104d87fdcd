from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from joke_factory.auth.identity import get_current_participant
from joke_factory.data.batch_manager import BatchManager, get_batch_manager
from joke_factory.database import get_db
from joke_factory.models import Participant
from joke_factory.schemas.batch import (
    BatchCreateRequest,
    BatchCreatedResponse,
    TeamBatchesResponse,
)
from joke_factory.schemas.stats import TeamSummaryResponse
from joke_factory.services.team_stats import TeamStats

router = APIRouter(prefix="/v1/rounds/{round_id}", tags=["production"])


@router.post("/batches", response_model=BatchCreatedResponse)
def submit_batch(
    round_id: int,
    payload: BatchCreateRequest,
    participant: Participant = Depends(get_current_participant),
    batches: BatchManager = Depends(get_batch_manager),
):
    batch = batches.submit_batch(round_id, payload.team_id, payload.jokes, participant)
    joke_ids = [joke.joke_id for joke in batch.jokes]
    return BatchCreatedResponse(
        batch={
            "batch_id": batch.batch_id,
            "round_id": batch.round_id,
            "team_id": batch.team_id,
            "status": batch.status,
            "submitted_at": batch.submitted_at,
            "jokes_count": len(joke_ids),
            "joke_ids": joke_ids,
        }
    )


@router.get("/teams/{team_id}/summary", response_model=TeamSummaryResponse)
def read_team_summary(
    round_id: int,
    team_id: int,
    _: Participant = Depends(get_current_participant),
    db: Session = Depends(get_db),
):
    return TeamSummaryResponse(**TeamStats(db).team_summary(round_id, team_id))


@router.get("/teams/{team_id}/batches", response_model=TeamBatchesResponse)
def read_team_batches(
    round_id: int,
    team_id: int,
    _: Participant = Depends(get_current_participant),
    batches: BatchManager = Depends(get_batch_manager),
):
    batches.store.get_round(round_id)
    batches.store.get_team(team_id)
    return TeamBatchesResponse(
        round_id=round_id,
        team_id=team_id,
        batches=batches.team_batches(round_id, team_id),
    )
