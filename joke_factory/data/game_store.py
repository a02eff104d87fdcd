from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from joke_factory.config.loader import get_game_settings
from joke_factory.models import (
    GAME_STATE_ID,
    Assignment,
    Batch,
    GameState,
    Joke,
    Participant,
    Purchase,
    Round,
    RoundStatus,
    Team,
)
from joke_factory.services.aggregate_locks import AggregateLocks, LockKey, aggregate_locks
from joke_factory.services.errors import Conflict, not_found

logger = logging.getLogger("joke_factory.store")

SEED_LOCK: LockKey = ("seed",)
ROSTER_LOCK: LockKey = ("roster",)
GAME_LOCK: LockKey = ("game",)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def round_lock(round_id: int) -> LockKey:
    return ("round", int(round_id))


def batch_lock(batch_id: int) -> LockKey:
    return ("batch", int(batch_id))


def buyer_lock(round_id: int, buyer_id: int) -> LockKey:
    return ("buyer", int(round_id), int(buyer_id))


class GameStore:
    """
    The single authoritative store behind every game operation.

    Wraps a SQLAlchemy session with lazy seeding, the monotonically increasing
    state version and the per-aggregate mutation boundary.
    """

    def __init__(
        self,
        db: Session,
        locks: Optional[AggregateLocks] = None,
        settings: Optional[Dict[str, int]] = None,
    ) -> None:
        self.db = db
        self.locks = locks or aggregate_locks
        self.settings = settings or get_game_settings()

    # ------------------------------------------------------------------
    # Seeding
    # ------------------------------------------------------------------
    def ensure_seeded(self) -> GameState:
        state = self.db.get(GameState, GAME_STATE_ID)
        if state is not None:
            return state
        with self.locks.hold(SEED_LOCK):
            state = self.db.get(GameState, GAME_STATE_ID)
            if state is not None:
                return state
            try:
                state = self._seed()
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise
            logger.info(
                "Seeded game store with %s teams and round 1.",
                self.settings["team_count"],
            )
            return self.db.get(GameState, GAME_STATE_ID)

    def _seed(self) -> GameState:
        for index in range(1, self.settings["team_count"] + 1):
            self.db.add(Team(name=f"Team {index}"))
        first_round = Round(
            round_number=1,
            status=RoundStatus.CONFIGURED.value,
            batch_size=self.settings["round1_batch_size"],
            customer_budget=self.settings["customer_budget"],
            is_popped_active=False,
        )
        self.db.add(first_round)
        self.db.flush()
        state = GameState(
            id=GAME_STATE_ID, active_round_id=first_round.round_id, version=1
        )
        self.db.add(state)
        self.db.flush()
        return state

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def state(self) -> GameState:
        self.ensure_seeded()
        return self.db.get(GameState, GAME_STATE_ID, populate_existing=True)

    def version(self) -> int:
        return int(self.state().version)

    def current_round(self) -> Optional[Round]:
        state = self.state()
        if state.active_round_id is None:
            return None
        return self.db.get(Round, state.active_round_id)

    def get_round(self, round_id: int) -> Round:
        self.ensure_seeded()
        game_round = self.db.get(Round, round_id)
        if game_round is None:
            raise not_found("Round", round_id=round_id)
        return game_round

    def require_active(self, round_id: int) -> Round:
        """Return the round if it is the session's current round and ACTIVE."""
        game_round = self.db.get(Round, round_id, populate_existing=True)
        current_id = self.state().active_round_id
        if game_round is None or game_round.round_id != current_id or not game_round.is_active:
            raise Conflict(
                "ROUND_NOT_ACTIVE",
                "Round is not active.",
                {"round_id": round_id},
            )
        return game_round

    def get_participant(self, user_id: int) -> Participant:
        self.ensure_seeded()
        participant = self.db.get(Participant, user_id)
        if participant is None:
            raise not_found("User", user_id=user_id)
        return participant

    def get_team(self, team_id: int) -> Team:
        self.ensure_seeded()
        team = self.db.get(Team, team_id)
        if team is None:
            raise not_found("Team", team_id=team_id)
        return team

    def team_names(self) -> Dict[int, str]:
        self.ensure_seeded()
        return {team.team_id: team.name for team in self.db.query(Team).all()}

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def _bump_version(self) -> None:
        self.db.execute(
            update(GameState)
            .where(GameState.id == GAME_STATE_ID)
            .values(version=GameState.version + 1)
        )

    @contextmanager
    def mutation(self, *keys: LockKey) -> Iterator[None]:
        """
        Serialise writers on ``keys`` and apply the enclosed changes atomically.

        The session commits (with a version bump) only when the block exits
        cleanly; any exception rolls every pending change back.
        """
        self.ensure_seeded()
        with self.locks.hold(*keys):
            try:
                yield
                self._bump_version()
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

    def reset(self) -> Dict[str, Any]:
        """Wipe every table and reseed the defaults."""
        self.ensure_seeded()
        with self.locks.hold(GAME_LOCK, ROSTER_LOCK):
            try:
                for model in (Purchase, Joke, Batch, Assignment, Participant):
                    self.db.query(model).delete(synchronize_session=False)
                self.db.query(GameState).delete(synchronize_session=False)
                self.db.query(Round).delete(synchronize_session=False)
                self.db.query(Team).delete(synchronize_session=False)
                self.db.flush()
                self.db.expunge_all()
                self._seed()
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise
        self.locks.clear()
        logger.info("Game reset; store reseeded.")
        state = self.db.get(GameState, GAME_STATE_ID)
        return {"active_round_id": state.active_round_id, "state_version": state.version}


class StoreManager:
    """Base for managers that operate on the shared :class:`GameStore`."""

    def __init__(self, db: Session, store: Optional[GameStore] = None) -> None:
        self.db = db
        self.store = store or GameStore(db)

    @property
    def settings(self) -> Dict[str, int]:
        return self.store.settings
