"""Unit tests for bitacora.services.phase_tracker.

Covers the derived status rule, load defaults and masking, save success
and failure, idempotent saves, and queued saves landing in call order.
"""

import asyncio

import pytest

from bitacora.core.domain import PhaseStatus
from bitacora.core.exceptions import SaveError, ValidationError
from bitacora.services.phase_tracker import PhaseTracker, derive_status


# ═════════════════════════════════════════════════════════════════════════════
# derive_status
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.parametrize("committed,expected", [
    (1, ["current", "upcoming", "upcoming", "upcoming"]),
    (2, ["done", "current", "upcoming", "upcoming"]),
    (4, ["done", "done", "done", "current"]),
    (None, ["pending", "pending", "pending", "pending"]),
])
def test_derive_status_orders_phases_around_committed(committed, expected):
    assert [derive_status(p, committed).value for p in (1, 2, 3, 4)] == expected


def test_status_labels():
    assert PhaseStatus.DONE.label == "Completed"
    assert PhaseStatus.CURRENT.label == "In progress"
    assert PhaseStatus.UPCOMING.label == "Next phase"


# ═════════════════════════════════════════════════════════════════════════════
# load
# ═════════════════════════════════════════════════════════════════════════════


def test_load_reads_stored_phase(fake_store):
    tracker = PhaseTracker(fake_store)
    assert asyncio.run(tracker.load("Alpha")) == 3
    assert tracker.committed_phase == 3
    assert tracker.pending_phase == 3
    assert tracker.loading is False


def test_load_without_row_defaults_to_first_phase(fake_store):
    tracker = PhaseTracker(fake_store)
    assert asyncio.run(tracker.load("Beta")) == 1
    statuses = [s["status"] for s in tracker.statuses()]
    assert statuses == ["current", "upcoming", "upcoming", "upcoming"]


def test_load_failure_is_masked_to_first_phase(fake_store):
    fake_store.fail("select", "project_phase")
    tracker = PhaseTracker(fake_store)
    assert asyncio.run(tracker.load("Alpha")) == 1
    assert tracker.error is None


def test_load_ignores_out_of_range_stored_value(fake_store):
    fake_store.rows("project_phase")[0]["current_phase"] = 9
    tracker = PhaseTracker(fake_store)
    assert asyncio.run(tracker.load("Alpha")) == 1


def test_committed_is_unset_before_first_load(fake_store):
    tracker = PhaseTracker(fake_store)
    assert tracker.committed_phase is None
    assert {s["status"] for s in tracker.statuses()} == {"pending"}


# ═════════════════════════════════════════════════════════════════════════════
# select_pending / save
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.parametrize("bad", [0, 5, "2", True, None])
def test_select_pending_rejects_out_of_range(fake_store, bad):
    tracker = PhaseTracker(fake_store)
    with pytest.raises(ValidationError):
        tracker.select_pending(bad)


def test_pending_does_not_change_committed_until_saved(fake_store):
    tracker = PhaseTracker(fake_store)
    asyncio.run(tracker.load("Alpha"))
    tracker.select_pending(4)
    assert tracker.committed_phase == 3
    assert tracker.derived_status(4) == PhaseStatus.UPCOMING


def test_save_updates_existing_row(fake_store):
    tracker = PhaseTracker(fake_store)

    async def scenario():
        await tracker.load("Alpha")
        tracker.select_pending(4)
        return await tracker.save()

    assert asyncio.run(scenario()) == 4
    assert tracker.committed_phase == 4
    assert fake_store.rows("project_phase") == [{"project_name": "Alpha", "current_phase": 4}]
    assert fake_store.writes("insert", "project_phase") == []


def test_save_inserts_row_when_absent(fake_store):
    tracker = PhaseTracker(fake_store)

    async def scenario():
        await tracker.load("Beta")
        tracker.select_pending(2)
        await tracker.save()

    asyncio.run(scenario())
    beta = [r for r in fake_store.rows("project_phase") if r["project_name"] == "Beta"]
    assert len(beta) == 1
    assert {k: beta[0][k] for k in ("project_name", "current_phase")} == {"project_name": "Beta", "current_phase": 2}
    assert len(fake_store.writes("insert", "project_phase")) == 1
    assert tracker.committed_phase == 2


def test_save_is_idempotent(fake_store):
    tracker = PhaseTracker(fake_store)

    async def scenario():
        await tracker.load("Beta")
        tracker.select_pending(3)
        await tracker.save()
        await tracker.save()

    asyncio.run(scenario())
    beta = [r for r in fake_store.rows("project_phase") if r["project_name"] == "Beta"]
    assert len(beta) == 1
    assert beta[0]["current_phase"] == 3
    assert tracker.committed_phase == 3


def test_save_failure_keeps_pending_and_committed(fake_store):
    fake_store.fail("update", "project_phase")
    tracker = PhaseTracker(fake_store)

    async def scenario():
        await tracker.load("Alpha")
        tracker.select_pending(4)
        with pytest.raises(SaveError):
            await tracker.save()

    asyncio.run(scenario())
    assert tracker.committed_phase == 3
    assert tracker.pending_phase == 4
    assert tracker.error is not None
    assert tracker.error.code == "SAVE_FAILED"
    assert tracker.saving is False


def test_save_recovers_after_failure(fake_store):
    fake_store.fail("update", "project_phase")
    tracker = PhaseTracker(fake_store)

    async def scenario():
        await tracker.load("Alpha")
        tracker.select_pending(2)
        with pytest.raises(SaveError):
            await tracker.save()
        fake_store.heal("update", "project_phase")
        return await tracker.save()

    assert asyncio.run(scenario()) == 2
    assert tracker.error is None
    assert tracker.committed_phase == 2


def test_save_without_project_is_rejected(fake_store):
    tracker = PhaseTracker(fake_store)
    with pytest.raises(ValidationError):
        asyncio.run(tracker.save())


def test_queued_saves_land_in_call_order(fake_store):
    tracker = PhaseTracker(fake_store)

    async def scenario():
        await tracker.load("Alpha")
        gate = fake_store.hold("update", "project_phase")
        tracker.select_pending(2)
        first = asyncio.create_task(tracker.save())
        await asyncio.sleep(0)
        tracker.select_pending(4)
        second = asyncio.create_task(tracker.save())
        await asyncio.sleep(0)
        gate.set()
        return await asyncio.gather(first, second)

    assert asyncio.run(scenario()) == [2, 4]
    writes = [r for r in fake_store.calls if r[0] == "update" and r[1] == "project_phase"]
    assert len(writes) == 2
    assert tracker.committed_phase == 4
    assert fake_store.rows("project_phase")[0]["current_phase"] == 4


def test_stale_load_result_is_discarded(fake_store):
    tracker = PhaseTracker(fake_store)

    async def scenario():
        gate = fake_store.hold("select", "project_phase", project_name="Alpha")
        slow = asyncio.create_task(tracker.load("Alpha"))
        await asyncio.sleep(0)
        fast = await tracker.load("Beta")
        gate.set()
        return await slow, fast

    slow, fast = asyncio.run(scenario())
    assert slow is None
    assert fast == 1
    assert tracker.project_name == "Beta"
    assert tracker.committed_phase == 1


def test_to_dict_shape(fake_store):
    tracker = PhaseTracker(fake_store)
    asyncio.run(tracker.load("Alpha"))
    body = tracker.to_dict()
    assert body["committed"] == 3
    assert body["committed_label"] == "Implementation"
    assert body["total"] == 4
    assert [p["status"] for p in body["phases"]] == ["done", "done", "current", "upcoming"]
