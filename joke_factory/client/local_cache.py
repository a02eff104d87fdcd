"""Client-side fallback memory for data the server does not echo back."""

from __future__ import annotations

from collections import OrderedDict
from typing import Any, Dict, List, Optional, Sequence, Tuple

CacheKey = Tuple[int, int]

DEFAULT_MAX_ENTRIES = 200

# Fields the server owns; cached records never replace them.
SERVER_FIELDS = ("batch_id", "round_id", "team_id", "status", "avg_score", "passes_count", "rated_at")


class LocalCache:
    """
    Bounded caches keyed by (round_id, batch_id).

    ``jokes`` remembers the texts a producer submitted so the batch history can
    show them; ``gradings`` remembers the ratings this quality-control player
    handed out. Oldest entries are evicted first once ``max_entries`` is hit.
    """

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self._jokes: "OrderedDict[CacheKey, List[Dict[str, Any]]]" = OrderedDict()
        self._gradings: "OrderedDict[CacheKey, Dict[str, Any]]" = OrderedDict()

    def _store(self, bucket: OrderedDict, key: CacheKey, value: Any) -> None:
        bucket[key] = value
        bucket.move_to_end(key)
        while len(bucket) > self.max_entries:
            bucket.popitem(last=False)

    def clear(self) -> None:
        self._jokes.clear()
        self._gradings.clear()

    # --- Producer side ------------------------------------------------------

    def remember_batch(
        self,
        round_id: int,
        batch_id: int,
        texts: Sequence[str],
        joke_ids: Optional[Sequence[int]] = None,
    ) -> None:
        ids = list(joke_ids or [None] * len(texts))
        jokes = [
            {"joke_id": joke_id, "joke_text": text} for joke_id, text in zip(ids, texts)
        ]
        self._store(self._jokes, (round_id, batch_id), jokes)

    def batch_jokes(self, round_id: int, batch_id: int) -> Optional[List[Dict[str, Any]]]:
        jokes = self._jokes.get((round_id, batch_id))
        return [dict(joke) for joke in jokes] if jokes is not None else None

    def merge_batches(
        self, round_id: int, batches: Sequence[Dict[str, Any]]
    ) -> List[Dict[str, Any]]:
        """Attach cached joke texts to the server's batch history."""
        merged = []
        for batch in batches:
            record = dict(batch)
            jokes = self.batch_jokes(round_id, batch["batch_id"])
            if jokes is not None and "jokes" not in record:
                record["jokes"] = jokes
            merged.append(record)
        return merged

    # --- Quality-control side ---------------------------------------------------

    def remember_grading(
        self,
        round_id: int,
        batch_id: int,
        ratings: Sequence[Dict[str, Any]],
        feedback: Optional[str],
        result: Optional[Dict[str, Any]] = None,
    ) -> None:
        record: Dict[str, Any] = {
            "round_id": round_id,
            "batch_id": batch_id,
            "ratings": [dict(entry) for entry in ratings],
            "feedback": feedback,
        }
        if result:
            for field in SERVER_FIELDS:
                if field in result:
                    record[field] = result[field]
        self._store(self._gradings, (round_id, batch_id), record)

    def grading_history(self, round_id: int) -> List[Dict[str, Any]]:
        return [
            dict(record)
            for (cached_round, _), record in sorted(self._gradings.items())
            if cached_round == round_id
        ]

    def merge_grading(
        self, round_id: int, server_record: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Fill a server grading record with cached ratings; server fields win."""
        cached = self._gradings.get((round_id, server_record["batch_id"]))
        record = dict(cached or {})
        record.update(server_record)
        return record

    def __len__(self) -> int:
        return len(self._jokes) + len(self._gradings)
