"""
Partitioned reordering of the flat applicant list.

The board keeps every applicant in one ordered list. A card's position inside
its column is its relative order among same-stage entries, and the list as a
whole is always grouped by stage in canonical stage order.
"""
from typing import Dict, List, Sequence, Tuple, TypeVar

from .schema import Applicant, StageId

T = TypeVar("T")


def array_move(items: Sequence[T], old_index: int, new_index: int) -> List[T]:
    """Remove the element at old_index and insert it at new_index."""
    moved = list(items)
    moved.insert(new_index, moved.pop(old_index))
    return moved


def partition_by_stage(
    applicants: Sequence[Applicant], stage_id: StageId
) -> Tuple[List[Applicant], List[Applicant]]:
    """Split into (stage slice, everything else), both in original relative order."""
    stage_slice = [a for a in applicants if a.stage == stage_id]
    others = [a for a in applicants if a.stage != stage_id]
    return stage_slice, others


def group_by_stage_order(
    applicants: Sequence[Applicant], stage_order: Sequence[StageId]
) -> List[Applicant]:
    """
    Stable regroup: for each stage in stage_order, emit its applicants in
    their current relative order.

    Applicants whose stage is not in stage_order are kept at the end (in
    order) so nothing is ever dropped.
    """
    buckets: Dict[StageId, List[Applicant]] = {stage_id: [] for stage_id in stage_order}
    orphans: List[Applicant] = []
    for applicant in applicants:
        bucket = buckets.get(applicant.stage)
        if bucket is None:
            orphans.append(applicant)
        else:
            bucket.append(applicant)

    grouped: List[Applicant] = []
    for stage_id in stage_order:
        grouped.extend(buckets[stage_id])
    grouped.extend(orphans)
    return grouped


def reorder_within_stage(
    full_list: Sequence[Applicant],
    stage_order: Sequence[StageId],
    stage_id: StageId,
    active_id: str,
    over_id: str,
) -> Sequence[Applicant]:
    """
    Move `active_id` to the slot of `over_id` inside `stage_id`'s column.

    Returns `full_list` itself (unchanged) when the move is a no-op: same ids,
    either id missing from the stage slice, or the card is already there.
    Otherwise returns a new list regrouped by `stage_order`; other stages keep
    their relative order.
    """
    if active_id == over_id:
        return full_list

    stage_slice, others = partition_by_stage(full_list, stage_id)
    ids = [a.id for a in stage_slice]
    try:
        old_index = ids.index(active_id)
        new_index = ids.index(over_id)
    except ValueError:
        return full_list

    reordered = array_move(stage_slice, old_index, new_index)
    return group_by_stage_order(reordered + others, stage_order)


def stage_positions(applicants: Sequence[Applicant], stage_id: StageId) -> List[Dict[str, object]]:
    """Position index per applicant of one column, as persisted after a reorder."""
    return [
        {"id": a.id, "position": index}
        for index, a in enumerate(a for a in applicants if a.stage == stage_id)
    ]
