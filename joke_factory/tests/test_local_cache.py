import pytest

from joke_factory.client.local_cache import LocalCache


def test_cache_is_bounded():
    cache = LocalCache(max_entries=2)
    cache.remember_batch(1, 1, ["a"])
    cache.remember_batch(1, 2, ["b"])
    cache.remember_batch(1, 3, ["c"])

    assert cache.batch_jokes(1, 1) is None
    assert cache.batch_jokes(1, 3) == [{"joke_id": None, "joke_text": "c"}]
    assert len(cache) == 2


def test_cache_rejects_silly_bounds():
    with pytest.raises(ValueError):
        LocalCache(max_entries=0)


def test_keys_include_the_round():
    cache = LocalCache()
    cache.remember_batch(1, 5, ["round one"])
    cache.remember_batch(2, 5, ["round two"])

    assert cache.batch_jokes(2, 5)[0]["joke_text"] == "round two"
    merged = cache.merge_batches(1, [{"batch_id": 5, "status": "SUBMITTED"}])
    assert merged[0]["jokes"][0]["joke_text"] == "round one"


def test_merge_never_overrides_server_fields():
    cache = LocalCache()
    cache.remember_grading(
        1, 9, [{"joke_id": 900, "rating": 2}], "meh", {"status": "SUBMITTED", "avg_score": 1.0}
    )

    record = cache.merge_grading(1, {"batch_id": 9, "status": "RATED", "avg_score": 2.0})

    assert record["status"] == "RATED"
    assert record["avg_score"] == 2.0
    assert record["feedback"] == "meh"


def test_merge_batches_keeps_server_jokes():
    cache = LocalCache()
    cache.remember_batch(1, 1, ["cached"])

    merged = cache.merge_batches(1, [{"batch_id": 1, "jokes": [{"joke_text": "server"}]}])

    assert merged[0]["jokes"] == [{"joke_text": "server"}]


def test_grading_history_is_per_round_and_sorted():
    cache = LocalCache()
    cache.remember_grading(1, 8, [], None)
    cache.remember_grading(2, 1, [], None)
    cache.remember_grading(1, 3, [], None)

    assert [entry["batch_id"] for entry in cache.grading_history(1)] == [3, 8]
    cache.clear()
    assert cache.grading_history(1) == []
