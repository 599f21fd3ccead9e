"""
Multi-select state and move-set resolution for drag operations.
"""
from typing import FrozenSet, Optional, Set

from .store import ApplicantStore


class SelectionController:
    """Tracks multi-select mode and the selected applicant ids."""

    def __init__(self, applicants: Optional[ApplicantStore] = None):
        self.multi_select_mode = False
        self.selected_ids: Set[str] = set()
        if applicants is not None:
            applicants.on_remove(self.prune)
            applicants.on_rename(self._renamed)

    def toggle_mode(self) -> bool:
        """Flip multi-select mode. Both directions start from an empty selection."""
        self.set_mode(not self.multi_select_mode)
        return self.multi_select_mode

    def set_mode(self, enabled: bool) -> None:
        if enabled != self.multi_select_mode:
            self.selected_ids = set()
        self.multi_select_mode = enabled

    def toggle(self, applicant_id: str) -> bool:
        """Select/deselect one card. Ignored outside multi-select mode."""
        if not self.multi_select_mode:
            return False
        if applicant_id in self.selected_ids:
            self.selected_ids.discard(applicant_id)
        else:
            self.selected_ids.add(applicant_id)
        return True

    def add(self, applicant_id: str) -> None:
        self.selected_ids.add(applicant_id)

    def discard(self, applicant_id: str) -> None:
        self.selected_ids.discard(applicant_id)

    def clear(self) -> None:
        self.selected_ids = set()

    def prune(self, applicant_id: str) -> None:
        """Drop a deleted applicant, whatever the mode."""
        self.selected_ids.discard(applicant_id)

    def _renamed(self, local_id: str, confirmed_id: str) -> None:
        if local_id in self.selected_ids:
            self.selected_ids.discard(local_id)
            self.selected_ids.add(confirmed_id)

    def resolve_move_set(self, dragged_id: str) -> FrozenSet[str]:
        """
        Ids that move with a dragged card.

        In multi-select mode with a non-empty selection the whole selection
        moves, and the dragged card joins it if it was not selected.
        Otherwise only the dragged card moves. Used for both drag-over and
        drag-end so preview and commit agree.
        """
        if self.multi_select_mode and self.selected_ids:
            self.selected_ids.add(dragged_id)
            return frozenset(self.selected_ids)
        return frozenset({dragged_id})

    @property
    def count(self) -> int:
        return len(self.selected_ids)
