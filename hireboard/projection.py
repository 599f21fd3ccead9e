"""
Filter and sort projections over the applicant list.

Nothing here mutates the board: highlighting returns an id set, sorting
returns a new list.
"""
import locale
from dataclasses import dataclass
from enum import Enum
from functools import cmp_to_key
from typing import Iterable, List, Sequence, Set, Tuple

from .schema import Applicant


class EvaluationFilter(Enum):
    """Evaluation-progress category filter."""
    ALL = "all"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    NOT_STARTED = "not_started"

    @classmethod
    def from_str(cls, value: str) -> "EvaluationFilter":
        try:
            return cls(value)
        except ValueError:
            return cls.ALL


class SortField(Enum):
    NAME = "name"
    APPLIED_DATE = "appliedDate"
    EVALUATION_PROGRESS = "evaluationProgress"

    @classmethod
    def from_str(cls, value: str) -> "SortField":
        try:
            return cls(value)
        except ValueError:
            return cls.APPLIED_DATE


class SortOrder(Enum):
    ASC = "asc"
    DESC = "desc"

    @classmethod
    def from_str(cls, value: str) -> "SortOrder":
        try:
            return cls(value)
        except ValueError:
            return cls.DESC


SORT_FIELD_LABELS = {
    SortField.NAME: "Name",
    SortField.APPLIED_DATE: "Applied date",
    SortField.EVALUATION_PROGRESS: "Evaluation progress",
}


def matches_evaluation(applicant: Applicant, evaluation_filter: EvaluationFilter) -> bool:
    progress = applicant.evaluation_progress
    if evaluation_filter == EvaluationFilter.COMPLETED:
        return progress.is_completed
    if evaluation_filter == EvaluationFilter.IN_PROGRESS:
        return progress.is_in_progress
    if evaluation_filter == EvaluationFilter.NOT_STARTED:
        return progress.is_not_started
    return True


def is_filter_active(query: str, evaluation_filter: EvaluationFilter) -> bool:
    return query.strip() != "" or evaluation_filter != EvaluationFilter.ALL


def compute_highlighted(
    applicants: Iterable[Applicant],
    query: str = "",
    evaluation_filter: EvaluationFilter = EvaluationFilter.ALL,
) -> Set[str]:
    """Ids matching the search query (name or id, case-insensitive) and the evaluation filter."""
    needle = query.strip().lower()
    highlighted = set()
    for applicant in applicants:
        if needle and needle not in applicant.name.lower() and needle not in applicant.id.lower():
            continue
        if not matches_evaluation(applicant, evaluation_filter):
            continue
        highlighted.add(applicant.id)
    return highlighted


def _name_key(name: str) -> Tuple[str, str]:
    """Collation key: case-insensitive first, then the active LC_COLLATE rules."""
    return locale.strxfrm(name.casefold()), locale.strxfrm(name)


def _compare(a: Applicant, b: Applicant, sort_field: SortField) -> float:
    if sort_field == SortField.NAME:
        key_a, key_b = _name_key(a.name), _name_key(b.name)
        return (key_a > key_b) - (key_a < key_b)
    if sort_field == SortField.APPLIED_DATE:
        return (a.applied_date > b.applied_date) - (a.applied_date < b.applied_date)
    return a.evaluation_progress.ratio - b.evaluation_progress.ratio


def sort_for_display(
    applicants: Sequence[Applicant],
    sort_field: SortField,
    order: SortOrder,
    is_sort_active: bool,
) -> List[Applicant]:
    """Sorted copy of the list; original order when sorting is off."""
    if not is_sort_active:
        return list(applicants)
    sign = 1 if order == SortOrder.ASC else -1

    def compare(a: Applicant, b: Applicant) -> float:
        return sign * _compare(a, b, sort_field)

    return sorted(applicants, key=cmp_to_key(compare))


@dataclass
class FilterState:
    """Current search box and evaluation filter."""
    query: str = ""
    evaluation_filter: EvaluationFilter = EvaluationFilter.ALL

    @property
    def is_active(self) -> bool:
        return is_filter_active(self.query, self.evaluation_filter)

    def clear(self) -> None:
        self.query = ""
        self.evaluation_filter = EvaluationFilter.ALL

    def highlighted(self, applicants: Iterable[Applicant]) -> Set[str]:
        return compute_highlighted(applicants, self.query, self.evaluation_filter)


@dataclass
class SortState:
    """Current sort menu selection. Dragging is disabled while active."""
    field: SortField = SortField.APPLIED_DATE
    order: SortOrder = SortOrder.DESC
    is_active: bool = False

    def activate(self, sort_field: SortField) -> None:
        self.field = sort_field
        self.is_active = True

    def deactivate(self) -> None:
        self.is_active = False

    def toggle_order(self) -> SortOrder:
        self.order = SortOrder.ASC if self.order == SortOrder.DESC else SortOrder.DESC
        return self.order

    @staticmethod
    def label(sort_field: SortField) -> str:
        return SORT_FIELD_LABELS[sort_field]

    def apply(self, applicants: Sequence[Applicant]) -> List[Applicant]:
        return sort_for_display(applicants, self.field, self.order, self.is_active)
