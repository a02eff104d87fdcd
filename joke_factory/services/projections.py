"""Per-participant read model polled by every client."""

from __future__ import annotations

from typing import Optional

from sqlalchemy.orm import Session

from joke_factory.data.batch_manager import BatchManager
from joke_factory.data.game_store import GameStore
from joke_factory.data.market_manager import MarketManager
from joke_factory.data.roster_manager import RosterManager, wire_role
from joke_factory.models import Participant, Role, Round
from joke_factory.schemas.batch import QueueNextResponse
from joke_factory.schemas.instructor import AssignOptionsResponse, LobbyResponse
from joke_factory.schemas.market import BudgetResponse, MarketItem
from joke_factory.schemas.rounds import RoundOut
from joke_factory.schemas.stats import InstructorStatsResponse, TeamSummaryResponse
from joke_factory.schemas.views import (
    CustomerView,
    InstructorView,
    ProducerView,
    QualityControlView,
    RoleView,
    SelfRecord,
    SessionView,
    UnassignedView,
)
from joke_factory.services.team_stats import TeamStats


def queue_head_payload(batch, queue_size: int) -> QueueNextResponse:
    return QueueNextResponse(
        batch={
            "batch_id": batch.batch_id,
            "round_id": batch.round_id,
            "team_id": batch.team_id,
            "submitted_at": batch.submitted_at,
        },
        jokes=[
            {"joke_id": joke.joke_id, "joke_text": joke.joke_text} for joke in batch.jokes
        ],
        queue_size=queue_size,
    )


class SessionProjector:
    """Builds the tagged view for one participant from a single store snapshot."""

    def __init__(self, db: Session, store: Optional[GameStore] = None) -> None:
        self.db = db
        self.store = store or GameStore(db)

    def self_record(self, participant: Participant) -> SelfRecord:
        return SelfRecord(
            user_id=participant.user_id,
            display_name=participant.display_name,
            status=participant.status,
            role=wire_role(participant.role),
            team_id=participant.team_id,
        )

    def _team_summary(
        self, game_round: Optional[Round], team_id: Optional[int]
    ) -> Optional[TeamSummaryResponse]:
        if game_round is None or team_id is None:
            return None
        summary = TeamStats(self.db, self.store).team_summary(game_round.round_id, team_id)
        return TeamSummaryResponse(**summary)

    def _instructor(self, game_round: Optional[Round]) -> InstructorView:
        roster = RosterManager(self.db, self.store)
        round_id = game_round.round_id if game_round is not None else 0
        options = roster.customer_options()
        stats = (
            TeamStats(self.db, self.store).instructor_stats(round_id)
            if game_round is not None
            else {"round_id": 0}
        )
        return InstructorView(
            lobby=LobbyResponse(round_id=round_id, **roster.lobby()),
            assign_options=AssignOptionsResponse(round_id=round_id, **options),
            stats=InstructorStatsResponse(**stats),
        )

    def _producer(self, participant: Participant, game_round: Optional[Round]) -> ProducerView:
        team_id = participant.team_id
        batches = []
        if game_round is not None and team_id is not None:
            batches = BatchManager(self.db, self.store).team_batches(
                game_round.round_id, team_id
            )
        return ProducerView(
            team_id=team_id,
            team_summary=self._team_summary(game_round, team_id),
            batches=batches,
            team_members=RosterManager(self.db, self.store).team_members(participant),
        )

    def _quality_control(
        self, participant: Participant, game_round: Optional[Round]
    ) -> QualityControlView:
        head = None
        queue_size = 0
        if game_round is not None:
            batches = BatchManager(self.db, self.store)
            found = batches.next_for_grading(game_round.round_id)
            if found is not None:
                head = queue_head_payload(*found)
                queue_size = found[1]
        return QualityControlView(
            team_id=participant.team_id,
            next_batch=head,
            queue_size=queue_size,
            team_summary=self._team_summary(game_round, participant.team_id),
            team_members=RosterManager(self.db, self.store).team_members(participant),
        )

    def _customer(self, participant: Participant, game_round: Optional[Round]) -> CustomerView:
        if game_round is None:
            return CustomerView()
        market = MarketManager(self.db, self.store)
        round_id = game_round.round_id
        return CustomerView(
            budget=BudgetResponse(**market.budget(round_id, participant.user_id)),
            market=[MarketItem(**item) for item in market.list_market(round_id, participant.user_id)],
            purchased_joke_ids=sorted(market.purchased_joke_ids(round_id, participant.user_id)),
        )

    def role_view(self, participant: Participant, game_round: Optional[Round]) -> RoleView:
        role = participant.role
        if role == Role.INSTRUCTOR.value:
            return self._instructor(game_round)
        if role == Role.PRODUCER.value:
            return self._producer(participant, game_round)
        if role == Role.QUALITY_CONTROL.value:
            return self._quality_control(participant, game_round)
        if role == Role.CUSTOMER.value:
            return self._customer(participant, game_round)
        return UnassignedView(joined_at=participant.joined_at)

    def build(self, participant: Participant) -> SessionView:
        state = self.store.state()
        game_round = self.store.current_round()
        return SessionView(
            state_version=state.version,
            me=self.self_record(participant),
            round=RoundOut.from_round(game_round) if game_round is not None else None,
            view=self.role_view(participant, game_round),
        )
