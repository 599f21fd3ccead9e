"""
Board: wires configuration, stores, persistence, sync, selection,
filter/sort and drag handling into one object owned by the caller.
"""
import logging
from typing import Any, Dict, Optional

from .config import BoardConfig
from .drag import DragController
from .persistence import SqliteRowStore
from .projection import FilterState, SortState
from .sample_data import initial_applicants
from .schema import FIXED_STAGE_ID, RegistrationType
from .selection import SelectionController
from .store import ApplicantStore, StageStore
from .sync import SyncCoordinator

logger = logging.getLogger(__name__)


def _percent(part: int, whole: int) -> float:
    return round(part / whole * 100, 1) if whole else 0.0


class Board:
    """One recruiting board and everything that mutates or projects it."""

    def __init__(self, config: Optional[BoardConfig] = None, remote: Optional[Any] = None):
        self.config = config or BoardConfig()
        if remote is None and self.config.remote_configured:
            seed = initial_applicants() if self.config.seed_sample_data else None
            remote = SqliteRowStore(self.config.db_path, seed_applicants=seed)

        self.stages = StageStore()
        # Local-only boards start from sample data; remote boards from load().
        self.applicants = ApplicantStore(self.stages, [] if remote is not None else initial_applicants())
        self.sync = SyncCoordinator(self.applicants, self.stages, remote)
        self.selection = SelectionController(self.applicants)
        self.filter = FilterState()
        self.sort = SortState()
        self.drag = DragController(self.applicants, self.stages, self.selection, self.sync, self.sort)

        if remote is not None and self.config.subscribe_to_changes:
            self.sync.attach()
        logger.info(
            f"Board ready ({'database ' + self.config.db_path if remote is not None else 'local-only'})"
        )

    @property
    def remote_configured(self) -> bool:
        return self.sync.remote_configured

    async def load(self) -> bool:
        """Fetch stages and applicants; sample data stays when the fetch fails."""
        ok = await self.sync.reload()
        if not ok and not len(self.applicants):
            logger.warning("Initial load failed; showing sample data")
            self.applicants.replace_all(initial_applicants())
        return ok

    # ── projections ──────────────────────────────────────────────────────────

    def highlighted(self) -> set:
        return self.filter.highlighted(self.applicants.get_all())

    def column(self, stage_id: str) -> Dict[str, Any]:
        """Display data for one column: sorted cards plus highlight flags."""
        stage = self.stages.get(stage_id)
        if stage is None:
            raise KeyError(stage_id)
        highlighted = self.highlighted() if self.filter.is_active else set()
        cards = self.sort.apply(self.applicants.get_by_stage(stage_id))
        return {
            "stage": stage.to_dict(),
            "count": len(cards),
            "applicants": [
                dict(a.to_dict(),
                     highlighted=a.id in highlighted,
                     selected=a.id in self.selection.selected_ids)
                for a in cards
            ],
        }

    def stats(self) -> Dict[str, Any]:
        """Dashboard numbers."""
        applicants = self.applicants.get_all()
        total = len(applicants)
        hired = sum(1 for a in applicants if a.stage == FIXED_STAGE_ID)
        completed = sum(1 for a in applicants if a.evaluation_progress.is_completed)
        in_progress = sum(1 for a in applicants if a.evaluation_progress.is_in_progress)
        not_started = sum(1 for a in applicants if a.evaluation_progress.is_not_started)
        direct = sum(1 for a in applicants if a.registration_type == RegistrationType.DIRECT)
        posted = sum(1 for a in applicants if a.registration_type == RegistrationType.POSTED)

        return {
            "total": total,
            "by_stage": [
                dict(stage.to_dict(), count=len(self.applicants.get_by_stage(stage.id)))
                for stage in self.stages.get_all()
            ],
            "hired": hired,
            "conversion_rate": _percent(hired, total),
            "evaluation": {
                "completed": completed,
                "in_progress": in_progress,
                "not_started": not_started,
                "completion_rate": _percent(completed, total),
            },
            "registration": {
                "direct": direct,
                "posted": posted,
                "direct_percent": _percent(direct, total),
                "posted_percent": _percent(posted, total),
            },
            "in_pipeline": total - hired,
        }

    def snapshot(self) -> Dict[str, Any]:
        """Full board state for the JSON API."""
        return {
            "stages": [s.to_dict() for s in self.stages.get_all()],
            "columns": [self.column(s.id) for s in self.stages.get_all()],
            "filter": {
                "query": self.filter.query,
                "evaluation_filter": self.filter.evaluation_filter.value,
                "active": self.filter.is_active,
            },
            "sort": {
                "field": self.sort.field.value,
                "order": self.sort.order.value,
                "active": self.sort.is_active,
            },
            "selection": {
                "multi_select_mode": self.selection.multi_select_mode,
                "selected_ids": sorted(self.selection.selected_ids),
            },
            "remote": self.remote_configured,
            "pending": sorted(self.sync.pending_ids()),
        }
