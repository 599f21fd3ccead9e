"""
Optimistic sync between the local board state and the persistence layer.

Every operation:
  1. applies the change to the local stores right away,
  2. calls the matching persistence method,
  3. on failure, throws the local result away and refetches the full list.

Without a persistence layer steps 2-3 are skipped and the local change is
final. Persistence failures never reach the caller; the returned SyncRecord
says what happened. A rollback from an older failed call can overwrite a newer
optimistic change that is still in flight; nothing orders them.
"""
import asyncio
import inspect
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Deque, Dict, Iterable, List, Optional, Set

from .schema import (
    Applicant,
    ApplicantDraft,
    StageInfo,
    applicant_changes_to_row,
)
from .store import ApplicantStore, ColumnRuleViolation, StageStore

logger = logging.getLogger(__name__)


class SyncStatus(Enum):
    """Lifecycle of one optimistic mutation."""
    LOCAL = "local"              # No persistence configured; local result is final
    PENDING = "pending"          # Applied locally, remote call in flight
    CONFIRMED = "confirmed"      # Remote call succeeded
    ROLLED_BACK = "rolled_back"  # Remote call failed; local state refetched
    FAILED = "failed"            # Remote call failed; best-effort, local state kept


@dataclass(eq=False)
class SyncRecord:
    """One mutation as seen by the sync layer."""
    operation: str
    entity_ids: List[str]
    status: SyncStatus = SyncStatus.PENDING
    started_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    finished_at: Optional[str] = None

    def resolve(self, status: SyncStatus) -> "SyncRecord":
        self.status = status
        self.finished_at = datetime.now(timezone.utc).isoformat()
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operation": self.operation,
            "entity_ids": list(self.entity_ids),
            "status": self.status.value,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
        }


class SyncCoordinator:
    """Wraps store mutations with optimistic update, remote call and rollback."""

    def __init__(
        self,
        applicants: ApplicantStore,
        stages: StageStore,
        remote: Optional[Any] = None,
        history_limit: int = 200,
    ):
        self.applicants = applicants
        self.stages = stages
        self.remote = remote
        self.history: Deque[SyncRecord] = deque(maxlen=history_limit)
        self.pending: List[SyncRecord] = []
        self._unsubscribers: List[Callable[[], None]] = []

    @property
    def remote_configured(self) -> bool:
        return self.remote is not None

    # ── plumbing ─────────────────────────────────────────────────────────────

    def _begin(self, operation: str, entity_ids: Iterable[str]) -> SyncRecord:
        record = SyncRecord(operation=operation, entity_ids=list(entity_ids))
        if not self.remote_configured:
            record.resolve(SyncStatus.LOCAL)
        else:
            self.pending.append(record)
        self.history.append(record)
        return record

    def _finish(self, record: SyncRecord, status: SyncStatus) -> SyncRecord:
        if record in self.pending:
            self.pending.remove(record)
        return record.resolve(status)

    async def _call(self, method: str, *args) -> Any:
        """Invoke a persistence method; exceptions count as failure (None)."""
        # Let the optimistic state be observed before the remote call runs.
        await asyncio.sleep(0)
        try:
            result = getattr(self.remote, method)(*args)
            if inspect.isawaitable(result):
                result = await result
            return result
        except Exception as e:
            logger.error(f"Persistence call {method} failed: {e}")
            return None

    async def _refetch_applicants(self) -> bool:
        rows = await self._call("list_all", "applicants")
        if rows is None:
            logger.error("Applicant refetch failed; keeping local state")
            return False
        self.applicants.replace_all([Applicant.from_row(r) for r in rows])
        return True

    async def _refetch_stages(self) -> bool:
        rows = await self._call("list_all", "stages")
        if rows is None:
            logger.error("Stage refetch failed; keeping local state")
            return False
        self.stages.replace_all([StageInfo.from_row(r) for r in rows])
        self.applicants.regroup()
        return True

    async def _settle(self, record: SyncRecord, ok: bool, refetch) -> SyncRecord:
        if ok:
            return self._finish(record, SyncStatus.CONFIRMED)
        logger.warning(f"{record.operation} {record.entity_ids} failed remotely; rolling back")
        await refetch()
        return self._finish(record, SyncStatus.ROLLED_BACK)

    # ── change feed ──────────────────────────────────────────────────────────

    def apply_push(self, entity: str, rows: List[Dict[str, Any]]) -> None:
        """Replace the local collection with a pushed table."""
        if entity == "applicants":
            self.applicants.replace_all([Applicant.from_row(r) for r in rows])
        elif entity == "stages":
            self.stages.replace_all([StageInfo.from_row(r) for r in rows])
            self.applicants.regroup()

    def attach(self) -> None:
        """Subscribe to the persistence change feed for both tables."""
        if not self.remote_configured or self._unsubscribers:
            return
        for entity in ("stages", "applicants"):
            self._unsubscribers.append(
                self.remote.subscribe_to_changes(
                    entity, lambda rows, entity=entity: self.apply_push(entity, rows)
                )
            )

    def detach(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    async def reload(self) -> bool:
        """Initial load: stages first, then applicants. False if either fetch failed."""
        if not self.remote_configured:
            return True
        stages_ok = await self._refetch_stages()
        applicants_ok = await self._refetch_applicants()
        return stages_ok and applicants_ok

    # ── applicant operations ─────────────────────────────────────────────────

    async def add_applicant(self, draft: ApplicantDraft) -> SyncRecord:
        local = self.applicants.add(draft)
        record = self._begin("add", [local.id])
        if not self.remote_configured:
            return record

        fields = local.to_row(position=0)
        del fields["id"]
        row = await self._call("insert", "applicants", fields)
        if row:
            confirmed = Applicant.from_row(row)
            self.applicants.replace_id(local.id, confirmed)
            record.entity_ids = [confirmed.id]
        return await self._settle(record, bool(row), self._refetch_applicants)

    async def delete_applicant(self, applicant_id: str) -> Optional[SyncRecord]:
        if self.applicants.remove(applicant_id) is None:
            return None
        record = self._begin("delete", [applicant_id])
        if not self.remote_configured:
            return record
        ok = await self._call("delete", "applicants", applicant_id)
        return await self._settle(record, bool(ok), self._refetch_applicants)

    async def update_applicant(self, applicant_id: str, **changes) -> Optional[SyncRecord]:
        before = self.applicants.get_by_id(applicant_id)
        after = self.applicants.update_fields(applicant_id, **changes)
        if after is None or after == before:
            return None
        record = self._begin("update", [applicant_id])
        if not self.remote_configured:
            return record
        ok = await self._call(
            "update_fields", "applicants", applicant_id, applicant_changes_to_row(changes)
        )
        return await self._settle(record, bool(ok), self._refetch_applicants)

    async def move_applicant(self, applicant_id: str, stage_id: str) -> Optional[SyncRecord]:
        """Move one card; None when it is already in stage_id (no remote call)."""
        if not self.applicants.set_stage(applicant_id, stage_id):
            return None
        record = self._begin("move", [applicant_id])
        if not self.remote_configured:
            return record
        ok = await self._call("update_fields", "applicants", applicant_id, {"stage": stage_id})
        return await self._settle(record, bool(ok), self._refetch_applicants)

    async def move_applicants(self, applicant_ids: Iterable[str], stage_id: str) -> Optional[SyncRecord]:
        """Bulk move. Only applicants that actually change stage are persisted."""
        changed = self.applicants.set_stage_for_set(applicant_ids, stage_id)
        if not changed:
            return None
        record = self._begin("move_set", changed)
        if not self.remote_configured:
            return record
        ok = await self._call("update_fields_for_ids", "applicants", changed, {"stage": stage_id})
        return await self._settle(record, bool(ok), self._refetch_applicants)

    async def reorder(self, stage_id: str, active_id: str, over_id: str) -> Optional[SyncRecord]:
        """Reorder within a column and persist the column's position indexes."""
        if not self.applicants.reorder(stage_id, active_id, over_id):
            return None
        positions = self.applicants.positions(stage_id)
        record = self._begin("reorder", [p["id"] for p in positions])
        if not self.remote_configured:
            return record
        ok = await self._call("update_positions", "applicants", positions)
        return await self._settle(record, bool(ok), self._refetch_applicants)

    # ── column operations ────────────────────────────────────────────────────

    async def add_column(self, title: str, color: Optional[str] = None) -> SyncRecord:
        """Create a column just before the fixed one."""
        local = self.stages.add(self.stages.new_stage(title, color))
        record = self._begin("add_column", [local.id])
        if not self.remote_configured:
            return record

        position = self.stages.ids().index(local.id)
        row = await self._call("insert", "stages", local.to_row(position))
        if not row:
            return await self._settle(record, False, self._refetch_stages)
        confirmed = StageInfo.from_row(row)
        self.stages.replace_id(local.id, confirmed)
        record.entity_ids = [confirmed.id]
        ok = await self._call("update_positions", "stages", self.stages.positions())
        return await self._settle(record, bool(ok), self._refetch_stages)

    async def rename_column(self, stage_id: str, title: str) -> Optional[SyncRecord]:
        """Best-effort: a failed remote rename is logged, not rolled back."""
        if not self.stages.rename(stage_id, title):
            return None
        record = self._begin("rename_column", [stage_id])
        if not self.remote_configured:
            return record
        ok = await self._call("update_fields", "stages", stage_id, {"title": title})
        if ok:
            return self._finish(record, SyncStatus.CONFIRMED)
        logger.warning(f"Rename of column {stage_id} was not persisted")
        return self._finish(record, SyncStatus.FAILED)

    async def delete_column(self, stage_id: str) -> SyncRecord:
        """
        Delete an empty, non-fixed column.

        Raises ColumnRuleViolation (nothing changed) for fixed or non-empty
        columns.
        """
        try:
            self.stages.remove(stage_id, self.applicants)
        except ColumnRuleViolation as e:
            logger.warning(f"Refused to delete column {stage_id}: {e}")
            raise
        record = self._begin("delete_column", [stage_id])
        if not self.remote_configured:
            return record
        ok = await self._call("delete", "stages", stage_id)
        return await self._settle(record, bool(ok), self._refetch_stages)

    def pending_ids(self) -> Set[str]:
        """Ids touched by mutations still waiting on the remote."""
        return {i for record in self.pending for i in record.entity_ids}
