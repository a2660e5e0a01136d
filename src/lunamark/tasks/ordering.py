"""Fractional ordering of tasks within a column.

Each task carries a float ``order``. Inserting between two neighbours takes
their midpoint, so a move rewrites one file instead of the whole column.
Repeated splits of one gap eventually run out of float precision; when that
happens the column is renumbered to evenly spaced integers instead.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Sequence

from lunamark import log
from lunamark.errors import OrderingExhaustionError

ORDER_STEP = 10
MIN_GAP = 1e-9


def calculate_new_order(
    prev_order: float | None = None,
    next_order: float | None = None,
    step: float = ORDER_STEP,
) -> float:
    """Return an order key strictly between *prev_order* and *next_order*.

    * both absent (empty column): ``step``
    * only *prev_order* (append): ``prev_order + step``
    * only *next_order* (prepend): ``next_order - step``, or the midpoint of
      ``[0, next_order]`` when that would go negative or round onto
      *next_order*
    * both present: the midpoint

    Raises :class:`OrderingExhaustionError` when no distinct key fits.
    """
    if prev_order is None and next_order is None:
        return float(step)

    if next_order is None:
        candidate = float(prev_order) + step
        if not candidate > prev_order:
            raise OrderingExhaustionError(prev_order, next_order)
        return candidate

    if prev_order is None:
        candidate = float(next_order) - step
        if 0 <= candidate < next_order:
            return candidate
        prev_order = 0.0

    low, high = float(prev_order), float(next_order)
    if high - low < MIN_GAP:
        raise OrderingExhaustionError(prev_order, next_order)
    mid = (low + high) / 2
    if not low < mid < high:
        raise OrderingExhaustionError(prev_order, next_order)
    return mid


def renumber_orders(task_ids: Sequence[str], step: float = ORDER_STEP) -> dict[str, float]:
    """Assign ``step, 2*step, ...`` to *task_ids* in sequence."""
    return {tid: float((i + 1) * step) for i, tid in enumerate(task_ids)}


@dataclass(frozen=True)
class OrderPlan:
    """Where a task lands after a move.

    ``renumbered`` is empty on the fast path. When the gap was exhausted it
    maps every task in the column (the moved one included) to its new key.
    """

    new_order: float
    renumbered: dict[str, float] = field(default_factory=dict)

    @property
    def needs_renumber(self) -> bool:
        return bool(self.renumbered)


def neighbour_orders(
    column_ids: Sequence[str],
    orders: Mapping[str, float],
    task_id: str,
) -> tuple[float | None, float | None]:
    """Order keys of the tasks immediately before and after *task_id*."""
    index = list(column_ids).index(task_id)
    prev_id = column_ids[index - 1] if index > 0 else None
    next_id = column_ids[index + 1] if index + 1 < len(column_ids) else None
    prev_order = orders.get(prev_id) if prev_id is not None else None
    next_order = orders.get(next_id) if next_id is not None else None
    return prev_order, next_order


def resolve_insert_order(
    column_ids: Sequence[str],
    orders: Mapping[str, float],
    task_id: str,
    step: float = ORDER_STEP,
) -> OrderPlan:
    """Compute the order for *task_id* at its position in *column_ids*.

    *column_ids* is the column's final id sequence, already containing
    *task_id*; *orders* maps the other ids to their current keys.
    """
    prev_order, next_order = neighbour_orders(column_ids, orders, task_id)
    if prev_order is not None and next_order is not None and prev_order >= next_order:
        # Neighbours already collide or are out of sequence.
        renumbered = renumber_orders(column_ids, step)
        log.debug(f"Neighbour keys {prev_order} >= {next_order}; renumbering column")
        return OrderPlan(new_order=renumbered[task_id], renumbered=renumbered)
    try:
        return OrderPlan(new_order=calculate_new_order(prev_order, next_order, step))
    except OrderingExhaustionError as exc:
        log.debug(f"{exc.message}; renumbering {len(column_ids)} tasks")
        renumbered = renumber_orders(column_ids, step)
        return OrderPlan(new_order=renumbered[task_id], renumbered=renumbered)
