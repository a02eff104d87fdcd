from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Set

from fastapi import Depends
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from joke_factory.database import get_db
from joke_factory.data.game_store import StoreManager, buyer_lock, utcnow
from joke_factory.models import Batch, BatchStatus, Joke, Participant, Purchase, Role
from joke_factory.services.errors import Conflict, Forbidden, not_found

logger = logging.getLogger("joke_factory.market")


class MarketManager(StoreManager):
    """Published jokes, customer budgets and the append-only purchase ledger."""

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def _active_purchases_query(self, round_id: int, buyer_id: int):
        return self.db.query(Purchase).filter(
            Purchase.round_id == round_id,
            Purchase.buyer_id == buyer_id,
            Purchase.returned_at.is_(None),
        )

    def purchased_joke_ids(self, round_id: int, buyer_id: int) -> Set[int]:
        return {
            purchase.joke_id
            for purchase in self._active_purchases_query(round_id, buyer_id).all()
        }

    def budget(self, round_id: int, buyer_id: int) -> Dict[str, int]:
        game_round = self.store.get_round(round_id)
        spent = int(
            self._active_purchases_query(round_id, buyer_id)
            .with_entities(func.count(Purchase.purchase_id))
            .scalar()
            or 0
        )
        starting = int(game_round.customer_budget)
        return {
            "round_id": round_id,
            "starting_budget": starting,
            "remaining_budget": max(0, starting - spent),
        }

    def list_market(self, round_id: int, viewer_id: Optional[int]) -> List[Dict[str, Any]]:
        """Every published joke of the round, in (batch, position) order."""
        self.store.ensure_seeded()
        team_names = self.store.team_names()
        owned = (
            self.purchased_joke_ids(round_id, viewer_id) if viewer_id is not None else set()
        )
        rows = (
            self.db.query(Joke, Batch)
            .join(Batch, Joke.batch_id == Batch.batch_id)
            .filter(
                Batch.round_id == round_id,
                Batch.status == BatchStatus.RATED.value,
                Batch.passes_count > 0,
                Joke.position < Batch.passes_count,
            )
            .order_by(Batch.batch_id, Joke.position)
            .all()
        )
        return [
            {
                "joke_id": joke.joke_id,
                "joke_title": joke.joke_title,
                "joke_text": joke.joke_text,
                "batch_id": batch.batch_id,
                "team": {
                    "id": batch.team_id,
                    "name": team_names.get(batch.team_id, f"Team {batch.team_id}"),
                },
                "is_bought_by_me": joke.joke_id in owned,
            }
            for joke, batch in rows
        ]

    def _published_joke(self, round_id: int, joke_id: int) -> Joke:
        joke = self.db.get(Joke, joke_id)
        batch = joke.batch if joke is not None else None
        if (
            batch is None
            or batch.round_id != round_id
            or not batch.is_rated
            or joke.position >= (batch.passes_count or 0)
        ):
            raise not_found("Joke", joke_id=joke_id, round_id=round_id)
        return joke

    # ------------------------------------------------------------------
    # Ledger writes
    # ------------------------------------------------------------------
    def buy(self, round_id: int, joke_id: int, caller: Participant) -> Dict[str, Any]:
        if caller.role != Role.CUSTOMER.value:
            raise Forbidden("FORBIDDEN", "Only customers can buy jokes.")
        buyer_id = caller.user_id
        with self.store.mutation(buyer_lock(round_id, buyer_id)):
            self.store.require_active(round_id)
            joke = self._published_joke(round_id, joke_id)
            team_id = joke.batch.team_id
            existing = (
                self._active_purchases_query(round_id, buyer_id)
                .filter(Purchase.joke_id == joke_id)
                .first()
            )
            if existing is not None:
                raise Conflict(
                    "ALREADY_BOUGHT",
                    "You already bought this joke.",
                    {"joke_id": joke_id},
                )
            if self.budget(round_id, buyer_id)["remaining_budget"] <= 0:
                raise Conflict(
                    "INSUFFICIENT_BUDGET",
                    "Insufficient budget.",
                    {"round_id": round_id},
                )
            purchase = Purchase(
                round_id=round_id,
                buyer_id=buyer_id,
                joke_id=joke_id,
                team_id=team_id,
                created_at=utcnow(),
            )
            self.db.add(purchase)
            try:
                self.db.flush()
            except IntegrityError as exc:
                raise Conflict(
                    "ALREADY_BOUGHT",
                    "You already bought this joke.",
                    {"joke_id": joke_id},
                ) from exc
            purchase_id = purchase.purchase_id
            budget = self.budget(round_id, buyer_id)
        logger.info(
            "Customer %s bought joke %s (team %s) in round %s",
            buyer_id,
            joke_id,
            team_id,
            round_id,
        )
        return {
            "purchase": {"purchase_id": purchase_id, "joke_id": joke_id},
            "budget": budget,
            "team_points_awarded": {"team_id": team_id, "points_delta": 1},
        }

    def return_purchase(
        self, round_id: int, joke_id: int, caller: Participant
    ) -> Dict[str, Any]:
        buyer_id = caller.user_id
        with self.store.mutation(buyer_lock(round_id, buyer_id)):
            self.store.require_active(round_id)
            purchase = (
                self.db.query(Purchase)
                .filter(
                    Purchase.round_id == round_id,
                    Purchase.buyer_id == buyer_id,
                    Purchase.joke_id == joke_id,
                )
                .order_by(Purchase.purchase_id.desc())
                .first()
            )
            if purchase is None:
                raise Conflict(
                    "NOT_BOUGHT_YET",
                    "You have not bought this joke.",
                    {"joke_id": joke_id},
                )
            if purchase.returned_at is not None:
                raise Conflict(
                    "ALREADY_RETURNED",
                    "This joke was already returned.",
                    {"joke_id": joke_id},
                )
            purchase.returned_at = utcnow()
            self.db.flush()
            purchase_id = purchase.purchase_id
            team_id = purchase.team_id
            budget = self.budget(round_id, buyer_id)
        logger.info(
            "Customer %s returned joke %s (team %s) in round %s",
            buyer_id,
            joke_id,
            team_id,
            round_id,
        )
        return {
            "purchase": {"purchase_id": purchase_id, "joke_id": joke_id},
            "budget": budget,
            "team_points_awarded": {"team_id": team_id, "points_delta": -1},
        }


def get_market_manager(db: Session = Depends(get_db)) -> MarketManager:
    """Dependency provider for MarketManager."""
    return MarketManager(db=db)
