from fastapi import APIRouter, Depends

from joke_factory.auth.identity import get_current_participant
from joke_factory.data.market_manager import MarketManager, get_market_manager
from joke_factory.models import Participant, Role
from joke_factory.schemas.market import BudgetResponse, BuyReturnResponse, MarketResponse
from joke_factory.services.errors import forbidden

router = APIRouter(prefix="/v1/rounds/{round_id}", tags=["market"])


@router.get("/market", response_model=MarketResponse)
def read_market(
    round_id: int,
    participant: Participant = Depends(get_current_participant),
    market: MarketManager = Depends(get_market_manager),
):
    market.store.get_round(round_id)
    return MarketResponse(
        round_id=round_id,
        items=market.list_market(round_id, participant.user_id),
    )


@router.get("/customers/budget", response_model=BudgetResponse)
def read_budget(
    round_id: int,
    participant: Participant = Depends(get_current_participant),
    market: MarketManager = Depends(get_market_manager),
):
    if participant.role != Role.CUSTOMER.value:
        raise forbidden("Only customers have a budget.")
    return BudgetResponse(**market.budget(round_id, participant.user_id))


@router.post("/market/{joke_id}/buy", response_model=BuyReturnResponse)
def buy_joke(
    round_id: int,
    joke_id: int,
    participant: Participant = Depends(get_current_participant),
    market: MarketManager = Depends(get_market_manager),
):
    return BuyReturnResponse(**market.buy(round_id, joke_id, participant))


@router.post("/market/{joke_id}/return", response_model=BuyReturnResponse)
def return_joke(
    round_id: int,
    joke_id: int,
    participant: Participant = Depends(get_current_participant),
    market: MarketManager = Depends(get_market_manager),
):
    return BuyReturnResponse(**market.return_purchase(round_id, joke_id, participant))
