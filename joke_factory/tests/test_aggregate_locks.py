import threading
import time

import pytest

from joke_factory.services.aggregate_locks import AggregateLocks


def test_same_key_serialises_writers():
    locks = AggregateLocks()
    active = []
    overlaps = []

    def writer():
        with locks.hold(("batch", 1)):
            active.append(1)
            if len(active) > 1:
                overlaps.append(True)
            time.sleep(0.01)
            active.pop()

    threads = [threading.Thread(target=writer) for _ in range(5)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert overlaps == []


def test_distinct_keys_do_not_block_each_other():
    locks = AggregateLocks()
    entered = threading.Event()
    release = threading.Event()

    def holder():
        with locks.hold(("buyer", 1, 1)):
            entered.set()
            release.wait(timeout=5)

    thread = threading.Thread(target=holder)
    thread.start()
    entered.wait(timeout=5)
    try:
        with locks.hold(("buyer", 1, 2)):
            acquired = True
    finally:
        release.set()
        thread.join()

    assert acquired


def test_overlapping_key_sets_do_not_deadlock():
    locks = AggregateLocks()
    done = []

    def forward():
        for _ in range(50):
            with locks.hold(("game",), ("roster",)):
                pass
        done.append("forward")

    def backward():
        for _ in range(50):
            with locks.hold(("roster",), ("game",)):
                pass
        done.append("backward")

    threads = [threading.Thread(target=forward), threading.Thread(target=backward)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=5)

    assert sorted(done) == ["backward", "forward"]


def test_locks_release_on_error_and_clear():
    locks = AggregateLocks()
    with pytest.raises(RuntimeError):
        with locks.hold(("round", 1), ("round", 1)):
            raise RuntimeError("boom")

    with locks.hold(("round", 1)):
        assert len(locks) == 1
    locks.clear()
    assert len(locks) == 0


def test_game_reset_forgets_idle_locks(db_session):
    from joke_factory.data.game_store import GameStore, batch_lock, buyer_lock

    locks = AggregateLocks()
    store = GameStore(db_session, locks=locks)
    with store.mutation(batch_lock(7), buyer_lock(1, 2)):
        pass
    assert len(locks) >= 2

    store.reset()

    assert len(locks) == 0
