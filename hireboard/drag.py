"""
Drag gesture events → board mutations.

The gesture layer reports drag_start / drag_over / drag_end. drag_over only
computes a preview (which cards would land in which column); nothing changes
until drag_end commits through the sync layer. A drop target is either a
column id (column background or empty column) or another applicant id.
"""
import logging
from dataclasses import dataclass
from typing import FrozenSet, List, Optional

from .projection import SortState
from .schema import Applicant, StageId
from .selection import SelectionController
from .store import ApplicantStore, StageStore
from .sync import SyncCoordinator, SyncRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DropTarget:
    stage_id: StageId
    over_applicant_id: Optional[str] = None   # None when dropped on the column itself


@dataclass(frozen=True)
class DragPreview:
    """What a drop at the current hover target would do."""
    move_set: FrozenSet[str]
    target: DropTarget
    crosses_stage: bool


class DragController:
    """Turns gesture events into previews and committed moves/reorders."""

    def __init__(
        self,
        applicants: ApplicantStore,
        stages: StageStore,
        selection: SelectionController,
        sync: SyncCoordinator,
        sort: Optional[SortState] = None,
    ):
        self.applicants = applicants
        self.stages = stages
        self.selection = selection
        self.sync = sync
        self.sort = sort or SortState()
        self.active_id: Optional[str] = None

    @property
    def enabled(self) -> bool:
        """Dragging is off while a sort is applied."""
        return not self.sort.is_active

    def resolve_target(self, over_id: Optional[str]) -> Optional[DropTarget]:
        if not over_id:
            return None
        if over_id in self.stages:
            return DropTarget(StageId(over_id))
        over = self.applicants.get_by_id(over_id)
        if over is None:
            return None
        return DropTarget(over.stage, over.id)

    def drag_start(self, active_id: str) -> Optional[Applicant]:
        if not self.enabled:
            return None
        applicant = self.applicants.get_by_id(active_id)
        if applicant is None:
            return None
        self.active_id = active_id
        if self.selection.multi_select_mode and active_id not in self.selection.selected_ids:
            self.selection.add(active_id)
        return applicant

    def drag_over(self, active_id: str, over_id: Optional[str]) -> Optional[DragPreview]:
        if not self.enabled:
            return None
        active = self.applicants.get_by_id(active_id)
        target = self.resolve_target(over_id)
        if active is None or target is None:
            return None
        return DragPreview(
            move_set=self.selection.resolve_move_set(active_id),
            target=target,
            crosses_stage=active.stage != target.stage_id,
        )

    async def drag_end(self, active_id: str, over_id: Optional[str]) -> List[SyncRecord]:
        """
        Commit the drop. Cancelled drops (no target) and drops onto the
        dragged card itself change nothing.
        """
        self.active_id = None
        if not self.enabled or not over_id or active_id == over_id:
            return []
        active = self.applicants.get_by_id(active_id)
        target = self.resolve_target(over_id)
        if active is None or target is None:
            return []

        records: List[SyncRecord] = []
        move_set = self.selection.resolve_move_set(active_id)
        if len(move_set) > 1:
            record = await self.sync.move_applicants(move_set, target.stage_id)
        else:
            record = await self.sync.move_applicant(active_id, target.stage_id)
        if record is not None:
            records.append(record)

        if target.over_applicant_id is not None:
            record = await self.sync.reorder(target.stage_id, active_id, target.over_applicant_id)
            if record is not None:
                records.append(record)
        logger.debug(f"Drop of {active_id} on {over_id}: {[r.operation for r in records]}")
        return records
