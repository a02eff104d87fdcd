from __future__ import annotations

import logging
import math
from collections import Counter
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from fastapi import Depends
from sqlalchemy import func, update
from sqlalchemy.orm import Session

from joke_factory.database import get_db
from joke_factory.data.game_store import (
    StoreManager,
    batch_lock,
    round_lock,
    utcnow,
)
from joke_factory.models import Batch, BatchStatus, Joke, Participant, Role, joke_id_for
from joke_factory.services.errors import (
    Conflict,
    Forbidden,
    ValidationFailed,
    invalid_request,
    not_found,
)

logger = logging.getLogger("joke_factory.batches")

MAX_JOKE_LENGTH = 1000
MAX_TAGS_PER_JOKE = 8
MAX_TAG_LENGTH = 40
MAX_FEEDBACK_LENGTH = 2000


def _clean_tags(raw: Iterable[Any]) -> List[str]:
    tags: List[str] = []
    for value in raw or []:
        tag = str(value or "").strip()[:MAX_TAG_LENGTH]
        if tag and tag not in tags:
            tags.append(tag)
        if len(tags) >= MAX_TAGS_PER_JOKE:
            break
    return tags


def tag_summary(batch: Batch) -> List[Dict[str, Any]]:
    counts = Counter(tag for joke in batch.jokes for tag in (joke.tags or []))
    return [
        {"tag": tag, "count": count}
        for tag, count in sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    ]


class BatchManager(StoreManager):
    """Batch production, the grading queue and compare-and-swap grading."""

    # ------------------------------------------------------------------
    # Production
    # ------------------------------------------------------------------
    def _check_size(self, round_number: int, limit: int, count: int) -> None:
        if count <= 0:
            valid = False
        elif round_number == 1:
            valid = count == limit
        else:
            valid = count <= limit
        if not valid:
            raise ValidationFailed(
                "INVALID_BATCH_SIZE",
                "Invalid batch size for this round.",
                {"round_number": round_number, "batch_size": limit, "received": count},
            )

    def submit_batch(
        self,
        round_id: int,
        team_id: int,
        jokes: Sequence[Any],
        caller: Participant,
    ) -> Batch:
        if caller.role != Role.PRODUCER.value or caller.team_id != team_id:
            raise Forbidden("FORBIDDEN", "Only this team's joke maker can submit batches.")
        texts = [str(text if text is not None else "").strip() for text in jokes or []]
        if any(not text for text in texts):
            raise invalid_request("Jokes cannot be empty.")
        if any(len(text) > MAX_JOKE_LENGTH for text in texts):
            raise invalid_request(f"Jokes must be at most {MAX_JOKE_LENGTH} characters.")

        with self.store.mutation(round_lock(round_id)):
            game_round = self.store.require_active(round_id)
            self._check_size(game_round.round_number, game_round.batch_size, len(texts))
            self.store.get_team(team_id)

            batch = Batch(
                round_id=round_id,
                team_id=team_id,
                submitted_by=caller.user_id,
                status=BatchStatus.SUBMITTED.value,
                submitted_at=utcnow(),
            )
            self.db.add(batch)
            self.db.flush()
            for position, text in enumerate(texts):
                self.db.add(
                    Joke(
                        joke_id=joke_id_for(batch.batch_id, position),
                        batch_id=batch.batch_id,
                        position=position,
                        joke_text=text,
                        tags=[],
                    )
                )
        logger.info(
            "Team %s submitted batch %s (%s jokes) in round %s",
            team_id,
            batch.batch_id,
            len(texts),
            round_id,
        )
        return batch

    # ------------------------------------------------------------------
    # Grading queue
    # ------------------------------------------------------------------
    def queue_size(self, round_id: int) -> int:
        self.store.ensure_seeded()
        return int(
            self.db.query(func.count(Batch.batch_id))
            .filter(
                Batch.round_id == round_id,
                Batch.status == BatchStatus.SUBMITTED.value,
            )
            .scalar()
            or 0
        )

    def next_for_grading(self, round_id: int) -> Optional[Tuple[Batch, int]]:
        """
        Peek at the oldest SUBMITTED batch of the round.

        Nothing is reserved: every grader sees the same head until one of them
        rates it.
        """
        self.store.ensure_seeded()
        batch = (
            self.db.query(Batch)
            .filter(
                Batch.round_id == round_id,
                Batch.status == BatchStatus.SUBMITTED.value,
            )
            .order_by(Batch.batch_id)
            .populate_existing()
            .first()
        )
        if batch is None:
            return None
        return batch, self.queue_size(round_id)

    # ------------------------------------------------------------------
    # Grading
    # ------------------------------------------------------------------
    def _clamp(self, value: Any) -> float:
        rating = float(value)
        return max(self.settings["rating_min"], min(self.settings["rating_max"], rating))

    def submit_grading(
        self,
        batch_id: int,
        ratings: Sequence[Dict[str, Any]],
        feedback: Optional[str],
        caller: Participant,
    ) -> Dict[str, Any]:
        if caller.role != Role.QUALITY_CONTROL.value:
            raise Forbidden("FORBIDDEN", "Only quality control can grade batches.")
        self.store.ensure_seeded()
        batch = self.db.get(Batch, batch_id)
        if batch is None:
            raise not_found("Batch", batch_id=batch_id)
        cleaned_feedback = (feedback or "").strip()[:MAX_FEEDBACK_LENGTH] or None

        with self.store.mutation(batch_lock(batch_id)):
            self.store.require_active(batch.round_id)
            now = utcnow()
            swapped = self.db.execute(
                update(Batch)
                .where(
                    Batch.batch_id == batch_id,
                    Batch.status == BatchStatus.SUBMITTED.value,
                )
                .values(status=BatchStatus.RATED.value, rated_at=now)
                .execution_options(synchronize_session=False)
            )
            if swapped.rowcount != 1:
                raise Conflict(
                    "BATCH_ALREADY_RATED",
                    "This batch was already rated.",
                    {"batch_id": batch_id},
                )
            self.db.refresh(batch)

            known = {joke.joke_id: joke for joke in batch.jokes}
            entries: Dict[int, Dict[str, Any]] = {}
            for entry in ratings or []:
                joke_id = entry.get("joke_id")
                rating = entry.get("rating")
                if joke_id not in known or rating is None or not math.isfinite(float(rating)):
                    continue
                entries[joke_id] = entry

            rating_min = self.settings["rating_min"]
            rating_max = self.settings["rating_max"]
            scores: List[float] = []
            for joke in batch.jokes:
                entry = entries.get(joke.joke_id)
                score = self._clamp(entry["rating"]) if entry else rating_min
                scores.append(score)
                joke.rating = score
                if entry:
                    raw_tags = list(entry.get("tags") or [])
                    if entry.get("tag"):
                        raw_tags.append(entry["tag"])
                    joke.tags = _clean_tags(raw_tags)
                    title = str(entry.get("joke_title") or "").strip()[:120]
                    joke.joke_title = title if title and score == rating_max else None

            passes = sum(1 for score in scores if score >= self.settings["pass_threshold"])
            batch.avg_score = round(sum(scores) / len(scores), 2) if scores else 0.0
            batch.passes_count = passes
            batch.feedback = cleaned_feedback
            published = [joke.joke_id for joke in batch.jokes[:passes]]
            result = {
                "batch_id": batch.batch_id,
                "status": BatchStatus.RATED.value,
                "rated_at": now,
                "avg_score": batch.avg_score,
                "passes_count": passes,
                "published_joke_ids": published,
            }
        logger.info(
            "Batch %s rated: avg=%.2f passes=%s",
            batch_id,
            result["avg_score"],
            passes,
        )
        return result

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------
    def team_batches(self, round_id: int, team_id: int) -> List[Dict[str, Any]]:
        """Batch history for a team; joke texts are left to the client's cache."""
        self.store.ensure_seeded()
        batches = (
            self.db.query(Batch)
            .filter(Batch.round_id == round_id, Batch.team_id == team_id)
            .order_by(Batch.batch_id)
            .all()
        )
        return [
            {
                "batch_id": batch.batch_id,
                "round_id": batch.round_id,
                "team_id": batch.team_id,
                "status": batch.status,
                "jokes_count": len(batch.jokes),
                "submitted_at": batch.submitted_at,
                "rated_at": batch.rated_at,
                "avg_score": batch.avg_score,
                "passes_count": batch.passes_count,
                "feedback": batch.feedback,
                "tag_summary": tag_summary(batch),
            }
            for batch in batches
        ]


def get_batch_manager(db: Session = Depends(get_db)) -> BatchManager:
    """Dependency provider for BatchManager."""
    return BatchManager(db=db)
