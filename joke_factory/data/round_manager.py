from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from joke_factory.database import get_db
from joke_factory.data.game_store import (
    GAME_LOCK,
    StoreManager,
    round_lock,
    utcnow,
)
from joke_factory.models import Round, RoundStatus
from joke_factory.services.errors import Conflict, invalid_request

logger = logging.getLogger("joke_factory.rounds")


class RoundManager(StoreManager):
    """Round lifecycle: CONFIGURED -> ACTIVE -> ENDED, plus the reveal flag."""

    def _load_for_update(self, round_id: int) -> Round:
        game_round = self.store.get_round(round_id)
        self.db.refresh(game_round)
        return game_round

    def list_active_rounds(self) -> List[Round]:
        current = self.store.current_round()
        return [current] if current is not None else []

    def configure(
        self,
        round_id: int,
        batch_size: int,
        customer_budget: int,
    ) -> Round:
        max_batch_size = self.settings["max_batch_size"]
        if not isinstance(batch_size, int) or not 1 <= batch_size <= max_batch_size:
            raise invalid_request(
                f"batch_size must be between 1 and {max_batch_size}.",
                batch_size=batch_size,
            )
        if not isinstance(customer_budget, int) or customer_budget < 0:
            raise invalid_request(
                "customer_budget must be zero or more.",
                customer_budget=customer_budget,
            )
        with self.store.mutation(round_lock(round_id)):
            game_round = self._load_for_update(round_id)
            if game_round.status != RoundStatus.CONFIGURED.value:
                raise Conflict(
                    "ROUND_NOT_CONFIGURABLE",
                    "Round can only be configured before it starts.",
                    {"round_id": round_id, "status": game_round.status},
                )
            game_round.batch_size = batch_size
            game_round.customer_budget = customer_budget
        logger.info(
            "Round %s configured: batch_size=%s customer_budget=%s",
            round_id,
            batch_size,
            customer_budget,
        )
        return game_round

    def _transition(self, round_id: int, source: RoundStatus, target: RoundStatus) -> Round:
        with self.store.mutation(round_lock(round_id)):
            game_round = self._load_for_update(round_id)
            current_id = self.store.state().active_round_id
            if game_round.round_id != current_id or game_round.status != source.value:
                raise Conflict(
                    "INVALID_ROUND_TRANSITION",
                    f"Cannot move round from {game_round.status} to {target.value}.",
                    {"round_id": round_id, "status": game_round.status},
                )
            game_round.status = target.value
            if target is RoundStatus.ACTIVE:
                game_round.started_at = utcnow()
            else:
                game_round.ended_at = utcnow()
        logger.info("Round %s is now %s", round_id, target.value)
        return game_round

    def start(self, round_id: int) -> Round:
        return self._transition(round_id, RoundStatus.CONFIGURED, RoundStatus.ACTIVE)

    def end(self, round_id: int) -> Round:
        return self._transition(round_id, RoundStatus.ACTIVE, RoundStatus.ENDED)

    def set_reveal_flag(self, round_id: int, is_popped_active: bool) -> Round:
        if not isinstance(is_popped_active, bool):
            raise invalid_request("is_popped_active must be a boolean.")
        with self.store.mutation(round_lock(round_id)):
            game_round = self._load_for_update(round_id)
            game_round.is_popped_active = is_popped_active
        logger.info("Round %s reveal flag set to %s", round_id, is_popped_active)
        return game_round

    def open_next_round(self) -> Round:
        """
        Create round 2 once round 1 has ended and make it the current round.

        Round 2 allows batches of up to ``round2_batch_limit`` jokes and keeps
        round 1's customer budget.
        """
        current: Optional[Round] = self.store.current_round()
        if current is None:
            raise Conflict("INVALID_ROUND_TRANSITION", "There is no round to follow.")
        with self.store.mutation(GAME_LOCK, round_lock(current.round_id)):
            current = self._load_for_update(current.round_id)
            if current.round_number != 1 or current.status != RoundStatus.ENDED.value:
                raise Conflict(
                    "INVALID_ROUND_TRANSITION",
                    "Round 2 opens only after round 1 has ended.",
                    {"round_id": current.round_id, "status": current.status},
                )
            next_round = Round(
                round_number=2,
                status=RoundStatus.CONFIGURED.value,
                batch_size=min(
                    self.settings["round2_batch_limit"], self.settings["max_batch_size"]
                ),
                customer_budget=current.customer_budget,
                is_popped_active=False,
            )
            self.db.add(next_round)
            self.db.flush()
            state = self.store.state()
            state.active_round_id = next_round.round_id
            self.db.flush()
        logger.info("Opened round 2 as round id %s", next_round.round_id)
        return next_round


def get_round_manager(db: Session = Depends(get_db)) -> RoundManager:
    """Dependency provider for RoundManager."""
    return RoundManager(db=db)
