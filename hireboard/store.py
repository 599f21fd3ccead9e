"""
In-memory board state: the authoritative applicant list and the stage registry.

All state changes go through these methods. Every applicant mutation leaves
the flat list grouped by canonical stage order.
"""
import itertools
import logging
import time
from dataclasses import replace
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set

from .ordering import group_by_stage_order, reorder_within_stage, stage_positions
from .schema import (
    APPLICANT_UPDATE_FIELDS,
    DEFAULT_STAGES,
    STAGE_COLORS,
    Applicant,
    ApplicantDraft,
    EvaluationProgress,
    StageId,
    StageInfo,
    format_applied_date,
)

logger = logging.getLogger(__name__)


class ColumnRuleViolation(Exception):
    """Raised when a column operation breaks a board rule (fixed or non-empty column)."""
    pass


class UnknownStageError(ValueError):
    """Raised when an applicant is placed into a stage the registry does not hold."""
    pass


def _temporary_id(prefix: str, taken: Iterable[str]) -> str:
    """Time-based local id, suffixed when the millisecond is already taken."""
    base = f"{prefix}{int(time.time() * 1000)}"
    taken = set(taken)
    if base not in taken:
        return base
    for n in itertools.count(1):
        candidate = f"{base}-{n}"
        if candidate not in taken:
            return candidate


class StageStore:
    """Ordered registry of pipeline columns."""

    def __init__(self, stages: Optional[Sequence[StageInfo]] = None):
        self._stages: List[StageInfo] = list(DEFAULT_STAGES if stages is None else stages)
        self.version = 0

    def get_all(self) -> List[StageInfo]:
        return list(self._stages)

    def ids(self) -> List[StageId]:
        """Canonical stage order."""
        return [s.id for s in self._stages]

    def get(self, stage_id: str) -> Optional[StageInfo]:
        for stage in self._stages:
            if stage.id == stage_id:
                return stage
        return None

    def __contains__(self, stage_id: object) -> bool:
        return any(s.id == stage_id for s in self._stages)

    def title(self, stage_id: str) -> str:
        stage = self.get(stage_id)
        return stage.title if stage else ""

    def next_color(self) -> str:
        """Cycle through the palette by column count."""
        return STAGE_COLORS[len(self._stages) % len(STAGE_COLORS)]

    def new_stage(self, title: str, color: Optional[str] = None) -> StageInfo:
        """Build a custom column with a local id; does not insert it."""
        return StageInfo(
            id=StageId(_temporary_id("custom_", self.ids())),
            title=title,
            color=color or self.next_color(),
        )

    def add(self, stage: StageInfo) -> StageInfo:
        """Insert immediately before the first fixed column (append when none)."""
        if stage.id in self:
            raise ValueError(f"Stage {stage.id} already exists")
        index = next((i for i, s in enumerate(self._stages) if s.is_fixed), len(self._stages))
        self._stages.insert(index, stage)
        self.version += 1
        return stage

    def replace_id(self, local_id: str, confirmed: StageInfo) -> bool:
        """Swap a locally created column for its server record, keeping its slot."""
        for index, stage in enumerate(self._stages):
            if stage.id == local_id:
                self._stages[index] = confirmed
                self.version += 1
                return True
        return False

    def rename(self, stage_id: str, title: str) -> bool:
        """Change a column title. Returns False when unknown or unchanged."""
        for index, stage in enumerate(self._stages):
            if stage.id == stage_id:
                if stage.title == title:
                    return False
                self._stages[index] = replace(stage, title=title)
                self.version += 1
                return True
        return False

    def check_removable(self, stage_id: str, applicants: "ApplicantStore") -> StageInfo:
        """Return the column if it may be deleted, raise ColumnRuleViolation otherwise."""
        stage = self.get(stage_id)
        if stage is None:
            raise ColumnRuleViolation(f"Column {stage_id} does not exist.")
        if stage.is_fixed:
            raise ColumnRuleViolation(f"Column '{stage.title}' is fixed and cannot be deleted.")
        if applicants.get_by_stage(stage.id):
            raise ColumnRuleViolation(
                f"Column '{stage.title}' still has applicants. Move them out first."
            )
        return stage

    def remove(self, stage_id: str, applicants: "ApplicantStore") -> StageInfo:
        """Delete a column. Refused (state untouched) for fixed or non-empty columns."""
        stage = self.check_removable(stage_id, applicants)
        self._stages = [s for s in self._stages if s.id != stage.id]
        self.version += 1
        return stage

    def positions(self) -> List[Dict[str, object]]:
        return [{"id": s.id, "position": index} for index, s in enumerate(self._stages)]

    def replace_all(self, stages: Sequence[StageInfo]) -> None:
        """Take a full stage list from the server as-is."""
        self._stages = list(stages)
        self.version += 1


class ApplicantStore:
    """
    Authoritative applicant collection.

    Removal listeners receive the id of every applicant that leaves the
    collection (delete or full replace); rename listeners receive
    (local_id, confirmed_id) when a server id replaces a temporary one.
    """

    def __init__(self, stages: StageStore, applicants: Optional[Sequence[Applicant]] = None):
        self.stages = stages
        self._applicants: List[Applicant] = group_by_stage_order(applicants or [], stages.ids())
        self.version = 0
        self._remove_listeners: List[Callable[[str], None]] = []
        self._rename_listeners: List[Callable[[str, str], None]] = []

    # ── listeners ────────────────────────────────────────────────────────────

    def on_remove(self, callback: Callable[[str], None]) -> None:
        self._remove_listeners.append(callback)

    def on_rename(self, callback: Callable[[str, str], None]) -> None:
        self._rename_listeners.append(callback)

    def _removed(self, ids: Iterable[str]) -> None:
        for applicant_id in ids:
            for callback in self._remove_listeners:
                callback(applicant_id)

    # ── queries ──────────────────────────────────────────────────────────────

    def get_all(self) -> List[Applicant]:
        return list(self._applicants)

    def get_by_stage(self, stage_id: str) -> List[Applicant]:
        return [a for a in self._applicants if a.stage == stage_id]

    def get_by_id(self, applicant_id: str) -> Optional[Applicant]:
        for applicant in self._applicants:
            if applicant.id == applicant_id:
                return applicant
        return None

    def __len__(self) -> int:
        return len(self._applicants)

    def positions(self, stage_id: str) -> List[Dict[str, object]]:
        return stage_positions(self._applicants, StageId(stage_id))

    # ── mutations ────────────────────────────────────────────────────────────

    def _commit(self, applicants: Sequence[Applicant]) -> None:
        self._applicants = group_by_stage_order(applicants, self.stages.ids())
        self.version += 1

    def _require_stage(self, stage_id: str) -> None:
        if stage_id not in self.stages:
            raise UnknownStageError(f"Unknown stage: {stage_id}")

    def add(self, draft: ApplicantDraft) -> Applicant:
        """Create an applicant with a temporary id, first in its column."""
        self._require_stage(draft.stage)
        applicant = Applicant(
            id=_temporary_id("NEW", (a.id for a in self._applicants)),
            name=draft.name,
            stage=draft.stage,
            registration_type=draft.registration_type,
            applied_date=format_applied_date(),
            evaluation_progress=EvaluationProgress(0, 1),
        )
        self._commit([applicant] + self._applicants)
        return applicant

    def replace_id(self, local_id: str, confirmed: Applicant) -> bool:
        """Swap in the server record for a temporary id without moving it."""
        for index, applicant in enumerate(self._applicants):
            if applicant.id == local_id:
                updated = list(self._applicants)
                updated[index] = confirmed
                self._commit(updated)
                for callback in self._rename_listeners:
                    callback(local_id, confirmed.id)
                return True
        return False

    def remove(self, applicant_id: str) -> Optional[Applicant]:
        applicant = self.get_by_id(applicant_id)
        if applicant is None:
            return None
        self._commit([a for a in self._applicants if a.id != applicant_id])
        self._removed([applicant_id])
        return applicant

    def update_fields(self, applicant_id: str, **changes) -> Optional[Applicant]:
        """Apply a partial update (name, registration_type, applied_date, evaluation_progress)."""
        unknown = set(changes) - set(APPLICANT_UPDATE_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update fields: {sorted(unknown)}")
        current = self.get_by_id(applicant_id)
        if current is None:
            return None
        updated = replace(current, **changes)
        if updated == current:
            return current
        self._commit([updated if a.id == applicant_id else a for a in self._applicants])
        return updated

    def set_stage(self, applicant_id: str, stage_id: str) -> bool:
        """Move one applicant. Returns False (no mutation) when already there or unknown."""
        return bool(self.set_stage_for_set([applicant_id], stage_id))

    def set_stage_for_set(self, applicant_ids: Iterable[str], stage_id: str) -> List[str]:
        """Move several applicants at once. Returns the ids that actually changed stage."""
        self._require_stage(stage_id)
        wanted: Set[str] = set(applicant_ids)
        changed = [a.id for a in self._applicants if a.id in wanted and a.stage != stage_id]
        if not changed:
            return []
        moving = set(changed)
        self._commit([
            a.with_stage(StageId(stage_id)) if a.id in moving else a
            for a in self._applicants
        ])
        return changed

    def reorder(self, stage_id: str, active_id: str, over_id: str) -> bool:
        """Reorder within a column. Returns False when nothing moved."""
        result = reorder_within_stage(
            self._applicants, self.stages.ids(), StageId(stage_id), active_id, over_id
        )
        if result is self._applicants or list(result) == self._applicants:
            return False
        self._commit(result)
        return True

    def replace_all(self, applicants: Sequence[Applicant]) -> None:
        """Take a full applicant list (server fetch or push) and regroup it."""
        before = {a.id for a in self._applicants}
        self._commit(applicants)
        self._removed(before - {a.id for a in self._applicants})

    def regroup(self) -> None:
        """Re-apply canonical stage order after the stage list changed."""
        self._commit(self._applicants)
