"""Positional placement of a step inside a deployment process.

A step lands immediately before the step matching ``before_id`` when there
is one, otherwise immediately after the step matching ``after_id``, otherwise
at the end. A matching before-reference wins over a matching after-reference.
Steps are matched by their ``id`` attribute.
"""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple, TypeVar

T = TypeVar("T")


def _step_id(step: object) -> Optional[str]:
    return getattr(step, "id", None)


def insertion_index(
    step_ids: Sequence[Optional[str]],
    before_id: Optional[str] = None,
    after_id: Optional[str] = None,
) -> int:
    """Index at which a new step is inserted into ``step_ids``."""
    if before_id:
        for index, step_id in enumerate(step_ids):
            if step_id == before_id:
                return index
    if after_id:
        for index, step_id in enumerate(step_ids):
            if step_id == after_id:
                return index + 1
    return len(step_ids)


def insert_step(
    steps: Sequence[T],
    new_step: T,
    before_id: Optional[str] = None,
    after_id: Optional[str] = None,
) -> Tuple[List[T], int]:
    """Return a new list with ``new_step`` placed, and the index it landed at."""
    index = insertion_index([_step_id(s) for s in steps], before_id, after_id)
    result = list(steps)
    result.insert(index, new_step)
    return result, index


def remove_step(steps: Sequence[T], step_id: str) -> List[T]:
    """Return ``steps`` without the step whose id is ``step_id``."""
    return [s for s in steps if _step_id(s) != step_id]


def replace_step(
    steps: Sequence[T],
    step_id: str,
    new_step: T,
    before_id: Optional[str] = None,
    after_id: Optional[str] = None,
) -> Tuple[List[T], int]:
    """Take out the step ``step_id`` and place ``new_step`` by the usual rule."""
    return insert_step(remove_step(steps, step_id), new_step, before_id, after_id)


def neighbours(
    steps: Sequence[T], step_id: str
) -> Tuple[int, Optional[str], Optional[str]]:
    """Position of ``step_id`` with the ids of the steps around it.

    Returns ``(-1, None, None)`` when the step is not in the list.
    """
    for index, step in enumerate(steps):
        if _step_id(step) == step_id:
            previous_id = _step_id(steps[index - 1]) if index > 0 else None
            next_id = _step_id(steps[index + 1]) if index + 1 < len(steps) else None
            return index, previous_id, next_id
    return -1, None, None
