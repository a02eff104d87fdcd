import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from joke_factory.auth.identity import require_instructor
from joke_factory.data.game_store import GameStore
from joke_factory.data.roster_manager import RosterManager, get_roster_manager, member_entry
from joke_factory.data.round_manager import RoundManager, get_round_manager
from joke_factory.database import get_db
from joke_factory.models import Participant
from joke_factory.schemas.instructor import (
    AssignOptionsResponse,
    AssignRequest,
    AssignResponse,
    DeletedUserResponse,
    LobbyResponse,
    PatchAssignmentRequest,
    ResetResponse,
)
from joke_factory.schemas.rounds import (
    RevealFlagRequest,
    RoundConfigRequest,
    RoundEnvelope,
    RoundOut,
    TeamOut,
    TeamRenameRequest,
)
from joke_factory.schemas.session import TeamMember
from joke_factory.schemas.stats import InstructorStatsResponse
from joke_factory.services.team_stats import TeamStats

logger = logging.getLogger("joke_factory.routers.instructor")

router = APIRouter(prefix="/v1/instructor", tags=["instructor"])


# --- Round lifecycle -------------------------------------------------------


@router.put("/rounds/{round_id}/config", response_model=RoundEnvelope)
def configure_round(
    round_id: int,
    payload: RoundConfigRequest,
    _: Participant = Depends(require_instructor),
    rounds: RoundManager = Depends(get_round_manager),
):
    game_round = rounds.configure(round_id, payload.batch_size, payload.customer_budget)
    return RoundEnvelope(round=RoundOut.from_round(game_round))


@router.post("/rounds/next", response_model=RoundEnvelope)
def open_next_round(
    _: Participant = Depends(require_instructor),
    rounds: RoundManager = Depends(get_round_manager),
):
    return RoundEnvelope(round=RoundOut.from_round(rounds.open_next_round()))


@router.post("/rounds/{round_id}/start", response_model=RoundEnvelope)
def start_round(
    round_id: int,
    _: Participant = Depends(require_instructor),
    rounds: RoundManager = Depends(get_round_manager),
):
    return RoundEnvelope(round=RoundOut.from_round(rounds.start(round_id)))


@router.post("/rounds/{round_id}/end", response_model=RoundEnvelope)
def end_round(
    round_id: int,
    _: Participant = Depends(require_instructor),
    rounds: RoundManager = Depends(get_round_manager),
):
    return RoundEnvelope(round=RoundOut.from_round(rounds.end(round_id)))


@router.post("/rounds/{round_id}/popups", response_model=RoundEnvelope)
def set_reveal_flag(
    round_id: int,
    payload: RevealFlagRequest,
    _: Participant = Depends(require_instructor),
    rounds: RoundManager = Depends(get_round_manager),
):
    game_round = rounds.set_reveal_flag(round_id, payload.is_popped_active)
    return RoundEnvelope(round=RoundOut.from_round(game_round))


# --- Lobby and team formation ----------------------------------------------


@router.get("/rounds/{round_id}/lobby", response_model=LobbyResponse)
def read_lobby(
    round_id: int,
    _: Participant = Depends(require_instructor),
    roster: RosterManager = Depends(get_roster_manager),
):
    roster.store.get_round(round_id)
    return LobbyResponse(round_id=round_id, **roster.lobby())


@router.get("/rounds/{round_id}/assign/options", response_model=AssignOptionsResponse)
def read_assign_options(
    round_id: int,
    _: Participant = Depends(require_instructor),
    roster: RosterManager = Depends(get_roster_manager),
):
    roster.store.get_round(round_id)
    return AssignOptionsResponse(round_id=round_id, **roster.customer_options())


@router.post("/rounds/{round_id}/assign", response_model=AssignResponse)
def auto_assign(
    round_id: int,
    payload: AssignRequest,
    _: Participant = Depends(require_instructor),
    roster: RosterManager = Depends(get_roster_manager),
):
    roster.store.get_round(round_id)
    result = roster.auto_assign(payload.customer_count, payload.team_count)
    return AssignResponse(round_id=round_id, **result)


@router.patch("/rounds/{round_id}/users/{user_id}", response_model=TeamMember)
def patch_assignment(
    round_id: int,
    user_id: int,
    payload: PatchAssignmentRequest,
    _: Participant = Depends(require_instructor),
    roster: RosterManager = Depends(get_roster_manager),
):
    roster.store.get_round(round_id)
    changes = {field: getattr(payload, field) for field in payload.model_fields_set}
    participant = roster.patch_assignment(user_id, changes)
    return TeamMember(**member_entry(participant))


@router.delete("/rounds/{round_id}/users/{user_id}", response_model=DeletedUserResponse)
def remove_participant(
    round_id: int,
    user_id: int,
    _: Participant = Depends(require_instructor),
    roster: RosterManager = Depends(get_roster_manager),
):
    roster.store.get_round(round_id)
    return DeletedUserResponse(deleted_user_id=roster.remove(user_id))


@router.patch("/teams/{team_id}", response_model=TeamOut)
def rename_team(
    team_id: int,
    payload: TeamRenameRequest,
    _: Participant = Depends(require_instructor),
    roster: RosterManager = Depends(get_roster_manager),
):
    return TeamOut(**roster.rename_team(team_id, payload.name).to_dict())


# --- Stats and reset ---------------------------------------------------------


@router.get("/rounds/{round_id}/stats", response_model=InstructorStatsResponse)
def read_stats(
    round_id: int,
    _: Participant = Depends(require_instructor),
    db: Session = Depends(get_db),
):
    return InstructorStatsResponse(**TeamStats(db).instructor_stats(round_id))


@router.post("/reset", response_model=ResetResponse)
def reset_game(
    instructor: Participant = Depends(require_instructor),
    db: Session = Depends(get_db),
):
    instructor_id = instructor.user_id
    result = GameStore(db).reset()
    logger.warning("Game reset by instructor %s", instructor_id)
    return ResetResponse(**result)
