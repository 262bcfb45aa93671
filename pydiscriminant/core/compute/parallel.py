"""
Ordered parallel map.

Independent units of work (groups, candidate variables, group pairs) are
fanned out to a thread pool and collected back in input order. Workers
only read shared state; every task returns an owned value.
"""

from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')
R = TypeVar('R')


def resolve_n_jobs(n_jobs: int | None, n_tasks: int) -> int:
    """
    Number of worker threads to use for n_tasks.

    Args:
        n_jobs: 1 for sequential, None or -1 for one per CPU, otherwise
            an explicit worker count
        n_tasks: Number of tasks to schedule

    Returns:
        Worker count in [1, n_tasks] (1 when there is nothing to do)
    """
    if n_jobs is not None and n_jobs != -1 and n_jobs < 1:
        raise ValueError(f"n_jobs must be -1, None or >= 1, got {n_jobs}")
    if n_jobs is None or n_jobs == -1:
        n_jobs = os.cpu_count() or 4
    return max(1, min(n_jobs, n_tasks))


def ordered_map(
    func: Callable[[T], R],
    items: Iterable[T],
    *,
    n_jobs: int | None = 1,
) -> list[R]:
    """
    Apply func to every item, returning results in input order.

    With a single worker this is a plain loop. Otherwise a
    ThreadPoolExecutor runs the tasks; Executor.map yields results in
    submission order, so callers can sort the output with a stable sort
    and get the same answer as the sequential path.

    Exceptions raised by func propagate to the caller.
    """
    items = list(items)
    workers = resolve_n_jobs(n_jobs, len(items))
    if workers == 1:
        return [func(item) for item in items]

    logger.debug("ordered_map: %d tasks on %d threads", len(items), workers)
    with ThreadPoolExecutor(max_workers=workers) as executor:
        return list(executor.map(func, items))
