from fastapi import APIRouter, Depends

from joke_factory.data.roster_manager import RosterManager, get_roster_manager
from joke_factory.data.round_manager import RoundManager, get_round_manager
from joke_factory.schemas.rounds import ActiveRoundsResponse, RoundOut, TeamsResponse

router = APIRouter(prefix="/v1", tags=["rounds"])


@router.get("/rounds/active", response_model=ActiveRoundsResponse)
def list_active_rounds(rounds: RoundManager = Depends(get_round_manager)):
    return ActiveRoundsResponse(
        rounds=[RoundOut.from_round(r) for r in rounds.list_active_rounds()]
    )


@router.get("/teams", response_model=TeamsResponse)
def list_teams(roster: RosterManager = Depends(get_roster_manager)):
    return TeamsResponse(teams=[team.to_dict() for team in roster.list_teams()])
