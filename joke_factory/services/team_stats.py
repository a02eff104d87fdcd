"""Read-only team statistics derived from the batch and purchase ledgers."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, List

from sqlalchemy.orm import selectinload

from joke_factory.data.game_store import StoreManager
from joke_factory.models import Batch, Purchase, Team


@dataclass
class TeamTally:
    team_id: int
    name: str
    points: int = 0
    batches_created: int = 0
    batches_rated: int = 0
    total_jokes: int = 0
    rated_jokes: int = 0
    accepted_jokes: int = 0
    scores: List[float] = field(default_factory=list)

    @property
    def total_sales(self) -> int:
        return self.points

    @property
    def unrated_batches(self) -> int:
        return self.batches_created - self.batches_rated

    @property
    def avg_score_overall(self) -> float:
        return round(sum(self.scores) / len(self.scores), 2) if self.scores else 0.0

    @property
    def acceptance_rate(self) -> float:
        if not self.rated_jokes:
            return 0.0
        return round(self.accepted_jokes / self.rated_jokes, 4)

    @property
    def rejection_rate(self) -> float:
        if not self.rated_jokes:
            return 0.0
        return round(max(0, self.rated_jokes - self.accepted_jokes) / self.rated_jokes, 4)

    def team(self) -> Dict[str, Any]:
        return {"id": self.team_id, "name": self.name}


class TeamStats(StoreManager):
    """Computes every figure on demand; nothing here is ever stored."""

    def _load(self, round_id: int):
        self.store.ensure_seeded()
        teams = self.db.query(Team).order_by(Team.team_id).all()
        batches = (
            self.db.query(Batch)
            .options(selectinload(Batch.jokes))
            .filter(Batch.round_id == round_id)
            .order_by(Batch.batch_id)
            .all()
        )
        purchases = (
            self.db.query(Purchase)
            .filter(Purchase.round_id == round_id, Purchase.returned_at.is_(None))
            .order_by(Purchase.purchase_id)
            .all()
        )
        return teams, batches, purchases

    @staticmethod
    def _tally(teams, batches, purchases) -> Dict[int, TeamTally]:
        tallies = {team.team_id: TeamTally(team.team_id, team.name) for team in teams}
        for batch in batches:
            tally = tallies.get(batch.team_id)
            if tally is None:
                continue
            tally.batches_created += 1
            tally.total_jokes += len(batch.jokes)
            if batch.is_rated:
                tally.batches_rated += 1
                tally.rated_jokes += len(batch.jokes)
                tally.accepted_jokes += batch.passes_count or 0
                tally.scores.append(batch.avg_score or 0.0)
        for purchase in purchases:
            tally = tallies.get(purchase.team_id)
            if tally is not None:
                tally.points += 1
        return tallies

    @staticmethod
    def _ranked(tallies: Dict[int, TeamTally]) -> List[TeamTally]:
        return sorted(tallies.values(), key=lambda t: (-t.points, t.team_id))

    @staticmethod
    def _leaderboard_row(rank: int, tally: TeamTally) -> Dict[str, Any]:
        return {
            "rank": rank,
            "team": tally.team(),
            "points": tally.points,
            "total_sales": tally.total_sales,
            "batches_rated": tally.batches_rated,
            "avg_score_overall": tally.avg_score_overall,
            "accepted_jokes": tally.accepted_jokes,
        }

    def team_summary(self, round_id: int, team_id: int) -> Dict[str, Any]:
        self.store.get_round(round_id)
        self.store.get_team(team_id)
        teams, batches, purchases = self._load(round_id)
        ranked = self._ranked(self._tally(teams, batches, purchases))
        rank = next(i + 1 for i, tally in enumerate(ranked) if tally.team_id == team_id)
        tally = ranked[rank - 1]
        return {
            "team": tally.team(),
            "round_id": round_id,
            "rank": rank,
            "points": tally.points,
            "total_sales": tally.total_sales,
            "batches_created": tally.batches_created,
            "batches_rated": tally.batches_rated,
            "accepted_jokes": tally.accepted_jokes,
            "avg_score_overall": tally.avg_score_overall,
            "unrated_batches": tally.unrated_batches,
            "acceptance_rate": tally.acceptance_rate,
        }

    def instructor_stats(self, round_id: int) -> Dict[str, Any]:
        self.store.get_round(round_id)
        teams, batches, purchases = self._load(round_id)
        tallies = self._tally(teams, batches, purchases)
        ranked = self._ranked(tallies)
        names = {team.team_id: team.name for team in teams}

        def team_name(team_id: int) -> str:
            return names.get(team_id, f"Team {team_id}")

        running: Dict[int, int] = defaultdict(int)
        cumulative_sales = []
        for index, purchase in enumerate(purchases, start=1):
            running[purchase.team_id] += 1
            cumulative_sales.append(
                {
                    "event_index": index,
                    "timestamp": purchase.created_at,
                    "team_id": purchase.team_id,
                    "team_name": team_name(purchase.team_id),
                    "total_sales": running[purchase.team_id],
                }
            )

        rated = [batch for batch in batches if batch.is_rated]
        batch_quality_by_size = [
            {
                "batch_id": batch.batch_id,
                "team_id": batch.team_id,
                "team_name": team_name(batch.team_id),
                "submitted_at": batch.submitted_at,
                "batch_size": len(batch.jokes),
                "avg_score": batch.avg_score or 0.0,
            }
            for batch in rated
        ]

        order: Dict[int, int] = defaultdict(int)
        learning_curve = []
        for batch in rated:
            order[batch.team_id] += 1
            learning_curve.append(
                {
                    "team_id": batch.team_id,
                    "team_name": team_name(batch.team_id),
                    "batch_order": order[batch.team_id],
                    "avg_score": batch.avg_score or 0.0,
                }
            )

        output_vs_rejection = [
            {
                "team_id": tally.team_id,
                "team_name": tally.name,
                "total_jokes": tally.total_jokes,
                "rated_jokes": tally.rated_jokes,
                "accepted_jokes": tally.accepted_jokes,
                "rejection_rate": tally.rejection_rate,
            }
            for tally in tallies.values()
        ]
        revenue_vs_acceptance = [
            {
                "team_id": tally.team_id,
                "team_name": tally.name,
                "total_sales": tally.total_sales,
                "accepted_jokes": tally.accepted_jokes,
                "acceptance_rate": tally.acceptance_rate,
            }
            for tally in tallies.values()
        ]
        return {
            "round_id": round_id,
            "leaderboard": [
                self._leaderboard_row(index + 1, tally) for index, tally in enumerate(ranked)
            ],
            "cumulative_sales": cumulative_sales,
            "batch_quality_by_size": batch_quality_by_size,
            "learning_curve": learning_curve,
            "output_vs_rejection": output_vs_rejection,
            "revenue_vs_acceptance": revenue_vs_acceptance,
        }
