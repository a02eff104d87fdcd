from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from joke_factory.auth.identity import client_ip, get_current_participant
from joke_factory.data.game_store import GameStore
from joke_factory.data.roster_manager import RosterManager, get_roster_manager, wire_role
from joke_factory.database import get_db
from joke_factory.models import Participant
from joke_factory.schemas.session import (
    InstructorLoginRequest,
    JoinRequest,
    SessionResponse,
    TeamMembersResponse,
)
from joke_factory.schemas.views import SessionView
from joke_factory.services.projections import SessionProjector

router = APIRouter(prefix="/v1/session", tags=["session"])


def _session_payload(participant: Participant, round_id: Optional[int]) -> SessionResponse:
    return SessionResponse(
        user={"user_id": participant.user_id, "display_name": participant.display_name},
        participant={
            "status": participant.status,
            "joined_at": participant.joined_at,
            "assigned_at": participant.assigned_at,
        },
        assignment={"role": wire_role(participant.role), "team_id": participant.team_id},
        round_id=round_id,
    )


@router.post("/join", response_model=SessionResponse)
def join_session(
    payload: JoinRequest,
    roster: RosterManager = Depends(get_roster_manager),
):
    participant = roster.join(payload.display_name)
    return _session_payload(participant, roster.store.state().active_round_id)


@router.post("/instructor-login", response_model=SessionResponse)
def instructor_login(
    payload: InstructorLoginRequest,
    request: Request,
    roster: RosterManager = Depends(get_roster_manager),
):
    participant = roster.instructor_login(
        payload.display_name, payload.password, ip=client_ip(request)
    )
    return _session_payload(participant, roster.store.state().active_round_id)


@router.get("/me", response_model=SessionResponse)
def read_me(
    participant: Participant = Depends(get_current_participant),
    db: Session = Depends(get_db),
):
    return _session_payload(participant, GameStore(db).state().active_round_id)


@router.get("/team", response_model=TeamMembersResponse)
def read_team(
    round_id: Optional[int] = Query(None),
    participant: Participant = Depends(get_current_participant),
    roster: RosterManager = Depends(get_roster_manager),
):
    resolved_round = round_id if round_id is not None else roster.store.state().active_round_id
    return TeamMembersResponse(
        round_id=resolved_round,
        team_id=participant.team_id,
        members=roster.team_members(participant),
    )


@router.get("/view", response_model=SessionView)
def read_view(
    participant: Participant = Depends(get_current_participant),
    db: Session = Depends(get_db),
):
    return SessionProjector(db).build(participant)
