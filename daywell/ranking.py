"""Most-recently-used ordering of plans."""
from __future__ import annotations

from operator import attrgetter
from typing import Callable, Iterable, Iterator, List, Optional, TypeVar

from daywell import config
from daywell.models import RunningSessionView

T = TypeVar("T")


class SessionHistory:
    """
    Plan ids in the order they were last started, most recent first.

    The list changes only through ``record`` ("plan X started") and is
    capped at ``limit`` entries.  It is a display aid: the sessions in the
    store remain the record of what happened, and ``seed`` rebuilds the
    list from them.
    """

    def __init__(self, limit: Optional[int] = None, plan_ids: Iterable[int] = ()) -> None:
        self.limit = limit if limit is not None else config.HISTORY_LIMIT
        self._ids: List[int] = []
        self.seed(plan_ids)

    def record(self, plan_id: int) -> None:
        if plan_id in self._ids:
            self._ids.remove(plan_id)
        self._ids.insert(0, plan_id)
        del self._ids[self.limit:]

    def seed(self, plan_ids: Iterable[int]) -> None:
        """Replace the list with ``plan_ids`` (most recent first)."""
        ids: List[int] = []
        for pid in plan_ids:
            if pid not in ids:
                ids.append(pid)
        self._ids = ids[: self.limit]

    def index(self, plan_id: int) -> Optional[int]:
        try:
            return self._ids.index(plan_id)
        except ValueError:
            return None

    def as_list(self) -> List[int]:
        return list(self._ids)

    def __iter__(self) -> Iterator[int]:
        return iter(list(self._ids))

    def __len__(self) -> int:
        return len(self._ids)

    def __contains__(self, plan_id: object) -> bool:
        return plan_id in self._ids


def rank_plans(
    plans: Iterable[T],
    running: Optional[RunningSessionView] = None,
    history: Iterable[int] = (),
    key: Callable[[T], int] = attrgetter("id"),
) -> List[T]:
    """
    Order ``plans`` for display.

    The running plan comes first, then plans by how recently they were
    started, then plans that were never started in their given order.
    ``running`` should be ``None`` when viewing a past day.  ``key``
    extracts the plan id from each item.
    """
    positions = {}
    for idx, pid in enumerate(history):
        positions.setdefault(pid, idx)
    running_id = running.plan_id if running is not None else None

    def priority(item: T) -> tuple:
        pid = key(item)
        if running_id is not None and pid == running_id:
            return (0, 0)
        if pid in positions:
            return (1, positions[pid])
        return (2, 0)

    # sorted() is stable, so equal priorities keep their input order.
    return sorted(plans, key=priority)
