import threading

import pytest

from goal_planner.server.errors import PlanNotFound
from goal_planner.server.status_store import InMemoryPlanStatusStore, PlanStatus


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_lifecycle_pending_then_completed_once():
    store = InMemoryPlanStatusStore()
    plan_id = store.create_pending()
    assert store.get(plan_id).to_dict() == {"status": "pending"}

    store.complete(plan_id, [{"id": "task-0"}])
    assert store.get(plan_id).to_dict() == {"status": "completed", "plan": [{"id": "task-0"}]}

    # second transition is ignored
    store.fail(plan_id, "too late")
    assert store.get(plan_id).status == "completed"


def test_ids_are_unique():
    store = InMemoryPlanStatusStore()
    ids = {store.create_pending() for _ in range(50)}
    assert len(ids) == 50


def test_unknown_id_raises_not_found():
    store = InMemoryPlanStatusStore()
    with pytest.raises(PlanNotFound) as info:
        store.get("nope")
    assert info.value.to_body() == {"error": "Invalid planId"}
    assert info.value.status_code == 404


def test_entries_expire_after_ttl():
    clock = FakeClock()
    store = InMemoryPlanStatusStore(ttl=10, clock=clock)
    plan_id = store.create_pending()

    clock.now += 9
    store.complete(plan_id, [])
    assert store.get(plan_id).status == "completed"

    # completing does not extend the lifetime
    clock.now += 2
    with pytest.raises(PlanNotFound):
        store.get(plan_id)


def test_finishing_an_expired_entry_is_a_no_op():
    clock = FakeClock()
    store = InMemoryPlanStatusStore(ttl=1, clock=clock)
    plan_id = store.create_pending()
    clock.now += 5

    store.fail(plan_id, "boom")
    assert len(store) == 0


def test_size_bound_evicts_oldest():
    store = InMemoryPlanStatusStore(max_entries=3)
    ids = [store.create_pending() for _ in range(5)]

    assert len(store) == 3
    with pytest.raises(PlanNotFound):
        store.get(ids[0])
    assert store.get(ids[-1]).status == "pending"


def test_set_and_delete():
    store = InMemoryPlanStatusStore()
    store.set("abc", PlanStatus(status="error", error="x"))
    assert store.get("abc").error == "x"
    store.delete("abc")
    store.delete("abc")
    with pytest.raises(PlanNotFound):
        store.get("abc")


class CountingLock:
    def __init__(self):
        self._lock = threading.Lock()
        self.acquired = 0

    def __enter__(self):
        self._lock.acquire()
        self.acquired += 1
        return self

    def __exit__(self, *exc):
        self._lock.release()


@pytest.mark.parametrize("finish", ["complete", "fail"])
def test_finishing_checks_and_writes_under_one_lock(finish):
    store = InMemoryPlanStatusStore()
    plan_id = store.create_pending()
    store._lock = CountingLock()

    if finish == "complete":
        store.complete(plan_id, [])
    else:
        store.fail(plan_id, "boom")

    assert store._lock.acquired == 1
    assert store.get(plan_id).status in ("completed", "error")


def test_finishing_keeps_the_original_creation_time():
    clock = FakeClock()
    store = InMemoryPlanStatusStore(ttl=10, clock=clock)
    plan_id = store.create_pending()

    clock.now += 5
    store.complete(plan_id, [])
    assert store.get(plan_id).created_at == 1000.0
