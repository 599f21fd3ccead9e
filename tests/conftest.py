"""Shared test fixtures for the board tests."""

import sys
import tempfile
from pathlib import Path

import pytest

# Ensure the project root (board_server.py) is importable
sys.path.insert(0, str(Path(__file__).parent.parent))

from hireboard.schema import Applicant, EvaluationProgress, RegistrationType, StageId
from hireboard.store import ApplicantStore, StageStore


def make_applicant(applicant_id, stage, name=None, current=0, total=1,
                   applied="2025. 09. 01", registration=RegistrationType.DIRECT):
    return Applicant(
        id=applicant_id,
        name=name or f"Applicant {applicant_id}",
        stage=StageId(stage),
        registration_type=registration,
        applied_date=applied,
        evaluation_progress=EvaluationProgress(current, total),
    )


class FakeRowStore:
    """
    In-memory persistence double. Methods listed in `fail` report failure;
    every call is recorded in `calls`.
    """

    def __init__(self, applicants=(), stages=None):
        from hireboard.schema import DEFAULT_STAGES
        self.rows = {
            "applicants": [a.to_row(i) for i, a in enumerate(applicants)],
            "stages": [s.to_row(i) for i, s in enumerate(DEFAULT_STAGES if stages is None else stages)],
        }
        self.fail = set()
        self.calls = []
        self.subscribers = {}
        self._next = 100

    def _record(self, name, *args):
        self.calls.append((name,) + args)
        return name not in self.fail

    def list_all(self, entity):
        if not self._record("list_all", entity):
            return None
        return sorted((dict(r) for r in self.rows[entity]), key=lambda r: r.get("position", 0))

    def insert(self, entity, fields):
        if not self._record("insert", entity, dict(fields)):
            return None
        row = dict(fields)
        if not row.get("id"):
            self._next += 1
            row["id"] = f"SRV-{self._next}"
        self.rows[entity].append(row)
        return dict(row)

    def delete(self, entity, row_id):
        if not self._record("delete", entity, row_id):
            return False
        self.rows[entity] = [r for r in self.rows[entity] if r["id"] != row_id]
        return True

    def update_fields(self, entity, row_id, fields):
        if not self._record("update_fields", entity, row_id, dict(fields)):
            return False
        for row in self.rows[entity]:
            if row["id"] == row_id:
                row.update(fields)
        return True

    def update_fields_for_ids(self, entity, ids, fields):
        if not self._record("update_fields_for_ids", entity, list(ids), dict(fields)):
            return False
        for row in self.rows[entity]:
            if row["id"] in ids:
                row.update(fields)
        return True

    def update_positions(self, entity, updates):
        if not self._record("update_positions", entity, [dict(u) for u in updates]):
            return False
        by_id = {u["id"]: u["position"] for u in updates}
        for row in self.rows[entity]:
            if row["id"] in by_id:
                row["position"] = by_id[row["id"]]
        return True

    def subscribe_to_changes(self, entity, callback):
        self.subscribers.setdefault(entity, []).append(callback)
        return lambda: self.subscribers[entity].remove(callback)

    def push(self, entity):
        for callback in list(self.subscribers.get(entity, [])):
            callback(self.list_all(entity))

    def call_names(self):
        return [c[0] for c in self.calls]


@pytest.fixture
def stages():
    return StageStore()


@pytest.fixture
def sample_applicants():
    return [
        make_applicant("A1", "application", name="Kim", current=1, total=2),
        make_applicant("A2", "application", name="Lee", current=2, total=2),
        make_applicant("A3", "application", name="Park"),
        make_applicant("B1", "screen_call", name="Choi", current=1, total=1),
        make_applicant("B2", "screen_call", name="Jung"),
        make_applicant("H1", "hired", name="Kang", current=1, total=1),
    ]


@pytest.fixture
def applicants(stages, sample_applicants):
    return ApplicantStore(stages, sample_applicants)


@pytest.fixture
def fake_remote(sample_applicants):
    return FakeRowStore(sample_applicants)


@pytest.fixture
def db_path():
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as tmp:
        path = tmp.name
    try:
        yield path
    finally:
        for suffix in ("", "-wal", "-shm"):
            Path(path + suffix).unlink(missing_ok=True)
