"""
Tests for optimistic sync: local mode, confirmation, rollback.
"""
import asyncio

import pytest

from hireboard.schema import Applicant, ApplicantDraft, EvaluationProgress
from hireboard.store import ApplicantStore, ColumnRuleViolation, StageStore
from hireboard.sync import SyncCoordinator, SyncStatus
from conftest import FakeRowStore


def _ids(applicants):
    return [a.id for a in applicants]


def _server_view(remote):
    """What a fresh list_all would give the store."""
    return [Applicant.from_row(r) for r in remote.list_all("applicants")]


@pytest.fixture
def coordinator(applicants, stages, fake_remote):
    return SyncCoordinator(applicants, stages, fake_remote)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Local-only mode
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_local_mode_operations_are_final(applicants, stages):
    sync = SyncCoordinator(applicants, stages, remote=None)
    assert not sync.remote_configured

    record = asyncio.run(sync.move_applicant("A1", "hired"))
    assert record.status == SyncStatus.LOCAL
    assert applicants.get_by_id("A1").stage == "hired"

    record = asyncio.run(sync.add_applicant(ApplicantDraft("Yoon", "application")))
    assert record.status == SyncStatus.LOCAL
    assert applicants.get_by_id(record.entity_ids[0]).name == "Yoon"
    assert not sync.pending
    assert asyncio.run(sync.reload()) is True


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Applicant operations
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_move_confirmed(coordinator, applicants, fake_remote):
    record = asyncio.run(coordinator.move_applicant("A1", "hired"))
    assert record.status == SyncStatus.CONFIRMED
    assert applicants.get_by_id("A1").stage == "hired"
    assert fake_remote.calls[-1] == ("update_fields", "applicants", "A1", {"stage": "hired"})


def test_move_failure_rolls_back_to_server_state(coordinator, applicants, fake_remote):
    """A failed update replaces local state with a fresh list_all"""
    fake_remote.fail.add("update_fields")
    record = asyncio.run(coordinator.move_applicant("A1", "hired"))
    assert record.status == SyncStatus.ROLLED_BACK
    assert applicants.get_by_id("A1").stage == "application"
    assert applicants.get_all() == _server_view(fake_remote)


def test_move_to_same_stage_makes_no_remote_call(coordinator, fake_remote):
    assert asyncio.run(coordinator.move_applicant("A1", "application")) is None
    assert fake_remote.calls == []


def test_bulk_move_persists_only_changed_ids(coordinator, applicants, fake_remote):
    record = asyncio.run(coordinator.move_applicants({"A1", "A2", "H1"}, "hired"))
    assert record.status == SyncStatus.CONFIRMED
    name, entity, ids, fields = fake_remote.calls[-1]
    assert name == "update_fields_for_ids"
    assert sorted(ids) == ["A1", "A2"]
    assert fields == {"stage": "hired"}


def test_bulk_move_failure_rolls_back_all(coordinator, applicants, fake_remote):
    fake_remote.fail.add("update_fields_for_ids")
    record = asyncio.run(coordinator.move_applicants(["A1", "B1"], "hired"))
    assert record.status == SyncStatus.ROLLED_BACK
    assert applicants.get_by_id("A1").stage == "application"
    assert applicants.get_by_id("B1").stage == "screen_call"


def test_add_replaces_temporary_id_in_place(coordinator, applicants, fake_remote):
    record = asyncio.run(coordinator.add_applicant(ApplicantDraft("Yoon", "screen_call")))
    assert record.status == SyncStatus.CONFIRMED
    server_id = record.entity_ids[0]
    assert server_id.startswith("SRV-")
    assert _ids(applicants.get_by_stage("screen_call"))[0] == server_id
    assert not any(i.startswith("NEW") for i in _ids(applicants.get_all()))
    inserted = fake_remote.calls[-1][2]
    assert "id" not in inserted
    assert inserted["evaluation_current"] == 0 and inserted["evaluation_total"] == 1


def test_add_failure_drops_temporary_applicant(coordinator, applicants, fake_remote):
    fake_remote.fail.add("insert")
    record = asyncio.run(coordinator.add_applicant(ApplicantDraft("Yoon", "screen_call")))
    assert record.status == SyncStatus.ROLLED_BACK
    assert applicants.get_all() == _server_view(fake_remote)


def test_delete_failure_restores_applicant(coordinator, applicants, fake_remote):
    fake_remote.fail.add("delete")
    record = asyncio.run(coordinator.delete_applicant("B2"))
    assert record.status == SyncStatus.ROLLED_BACK
    assert applicants.get_by_id("B2") is not None


def test_delete_unknown_applicant_is_noop(coordinator, fake_remote):
    assert asyncio.run(coordinator.delete_applicant("ghost")) is None
    assert fake_remote.calls == []


def test_update_applicant_maps_fields(coordinator, applicants, fake_remote):
    record = asyncio.run(coordinator.update_applicant(
        "A3", evaluation_progress=EvaluationProgress(1, 2)
    ))
    assert record.status == SyncStatus.CONFIRMED
    assert fake_remote.calls[-1] == (
        "update_fields", "applicants", "A3", {"evaluation_current": 1, "evaluation_total": 2}
    )
    assert applicants.get_by_id("A3").evaluation_progress.is_in_progress


def test_reorder_persists_stage_positions(coordinator, applicants, fake_remote):
    record = asyncio.run(coordinator.reorder("application", "A3", "A1"))
    assert record.status == SyncStatus.CONFIRMED
    assert fake_remote.calls[-1] == ("update_positions", "applicants", [
        {"id": "A3", "position": 0},
        {"id": "A1", "position": 1},
        {"id": "A2", "position": 2},
    ])


def test_reorder_failure_refetches(coordinator, applicants, fake_remote):
    fake_remote.fail.add("update_positions")
    record = asyncio.run(coordinator.reorder("application", "A3", "A1"))
    assert record.status == SyncStatus.ROLLED_BACK
    assert _ids(applicants.get_by_stage("application")) == ["A1", "A2", "A3"]


def test_reorder_noop_makes_no_remote_call(coordinator, fake_remote):
    assert asyncio.run(coordinator.reorder("application", "A1", "B1")) is None
    assert fake_remote.calls == []


def test_remote_exception_counts_as_failure(applicants, stages, fake_remote):
    class Exploding(FakeRowStore):
        def update_fields(self, *args):
            raise ConnectionError("network down")

    remote = Exploding(applicants.get_all())
    sync = SyncCoordinator(applicants, stages, remote)
    record = asyncio.run(sync.move_applicant("A1", "hired"))
    assert record.status == SyncStatus.ROLLED_BACK
    assert applicants.get_by_id("A1").stage == "application"


def test_failed_refetch_keeps_local_state(coordinator, applicants, fake_remote):
    fake_remote.fail.update({"update_fields", "list_all"})
    record = asyncio.run(coordinator.move_applicant("A1", "hired"))
    assert record.status == SyncStatus.ROLLED_BACK
    assert applicants.get_by_id("A1").stage == "hired"


def test_async_remote_and_pending_state(applicants, stages, sample_applicants):
    """Optimistic state is visible while the remote call is still in flight"""
    release = None

    class SlowRemote(FakeRowStore):
        async def update_fields(self, entity, row_id, fields):
            await release.wait()
            return super().update_fields(entity, row_id, fields)

    remote = SlowRemote(sample_applicants)
    sync = SyncCoordinator(applicants, stages, remote)

    async def scenario():
        nonlocal release
        release = asyncio.Event()
        task = asyncio.create_task(sync.move_applicant("A1", "hired"))
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        assert applicants.get_by_id("A1").stage == "hired"
        assert sync.pending_ids() == {"A1"}
        assert sync.pending[0].status == SyncStatus.PENDING
        release.set()
        return await task

    record = asyncio.run(scenario())
    assert record.status == SyncStatus.CONFIRMED
    assert sync.pending == []


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Column operations
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_add_column_confirmed(coordinator, stages, fake_remote):
    record = asyncio.run(coordinator.add_column("Take-home", "#EF4444"))
    assert record.status == SyncStatus.CONFIRMED
    assert stages.ids()[-1] == "hired"
    assert stages.ids()[-2] == record.entity_ids[0]
    assert fake_remote.call_names()[-2:] == ["insert", "update_positions"]


def test_add_column_failure_refetches_stages(coordinator, stages, fake_remote):
    fake_remote.fail.add("insert")
    before = len(stages.ids())
    record = asyncio.run(coordinator.add_column("Take-home"))
    assert record.status == SyncStatus.ROLLED_BACK
    assert len(stages.ids()) == before


def test_rename_column_is_best_effort(coordinator, stages, fake_remote):
    fake_remote.fail.add("update_fields")
    record = asyncio.run(coordinator.rename_column("coding_test", "Live coding"))
    assert record.status == SyncStatus.FAILED
    assert stages.title("coding_test") == "Live coding"
    assert "list_all" not in fake_remote.call_names()


def test_delete_fixed_column_refused(coordinator, stages, fake_remote):
    before = stages.get_all()
    with pytest.raises(ColumnRuleViolation):
        asyncio.run(coordinator.delete_column("hired"))
    assert stages.get_all() == before
    assert fake_remote.calls == []


def test_delete_non_empty_column_refused(coordinator, stages, applicants, fake_remote):
    before = applicants.get_all()
    with pytest.raises(ColumnRuleViolation):
        asyncio.run(coordinator.delete_column("screen_call"))
    assert "screen_call" in stages
    assert applicants.get_all() == before


def test_delete_column_confirmed(coordinator, stages, fake_remote):
    record = asyncio.run(coordinator.delete_column("coding_test"))
    assert record.status == SyncStatus.CONFIRMED
    assert "coding_test" not in stages


def test_delete_column_failure_refetches_stages(coordinator, stages, fake_remote):
    fake_remote.fail.add("delete")
    record = asyncio.run(coordinator.delete_column("coding_test"))
    assert record.status == SyncStatus.ROLLED_BACK
    assert "coding_test" in stages


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Change feed and reload
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_push_replaces_local_collection(coordinator, applicants, fake_remote):
    coordinator.attach()
    fake_remote.rows["applicants"] = [r for r in fake_remote.rows["applicants"] if r["id"] != "A1"]
    fake_remote.push("applicants")
    assert applicants.get_by_id("A1") is None

    coordinator.detach()
    fake_remote.rows["applicants"] = []
    fake_remote.push("applicants")
    assert len(applicants) == 5


def test_stage_push_regroups_applicants(coordinator, applicants, stages, fake_remote):
    coordinator.attach()
    rows = fake_remote.rows["stages"]
    for row in rows:
        if row["id"] == "screen_call":
            row["position"] = -1
    fake_remote.push("stages")
    assert stages.ids()[0] == "screen_call"
    assert _ids(applicants.get_all())[:2] == ["B1", "B2"]


def test_reload_takes_server_state(applicants, stages):
    remote = FakeRowStore([Applicant.from_row({"id": "S1", "name": "Server", "stage": "hired"})])
    sync = SyncCoordinator(applicants, stages, remote)
    assert asyncio.run(sync.reload()) is True
    assert _ids(applicants.get_all()) == ["S1"]


def test_history_records_every_operation(coordinator):
    asyncio.run(coordinator.move_applicant("A1", "hired"))
    asyncio.run(coordinator.rename_column("hired", "Offer accepted"))
    assert [r.operation for r in coordinator.history] == ["move", "rename_column"]
    assert coordinator.history[0].to_dict()["status"] == "confirmed"
