"""
Fan-out helpers for CPU kernels.

Kernels in this package split independent index ranges across the worker
pool of the active `EngineContext` and join before returning. Each output
index is written by exactly one task, so tasks never race on the output.

NumPy releases the GIL inside its ufunc and BLAS loops, so thread-level
fan-out gives real parallelism for the sizes where it is enabled.
"""

from __future__ import annotations

from typing import Callable, List, Optional, Sequence, Tuple, TypeVar

from ..tensor._engine_context import EngineContext, get_default_context

R = TypeVar("R")


def split_ranges(total: int, parts: int) -> List[Tuple[int, int]]:
    """
    Split ``[0, total)`` into at most `parts` contiguous, non-empty ranges.

    Parameters
    ----------
    total : int
        Number of items to split.
    parts : int
        Desired number of ranges. Clamped to ``[1, total]``.

    Returns
    -------
    list[tuple[int, int]]
        Half-open ``(start, stop)`` ranges covering ``[0, total)`` in order.
    """
    total = int(total)
    if total <= 0:
        return []
    parts = max(1, min(int(parts), total))
    base, extra = divmod(total, parts)
    ranges = []
    start = 0
    for i in range(parts):
        stop = start + base + (1 if i < extra else 0)
        ranges.append((start, stop))
        start = stop
    return ranges


def run_tasks(
    tasks: Sequence[Callable[[], R]], ctx: Optional[EngineContext] = None
) -> List[R]:
    """
    Run zero-argument callables on the worker pool and join them in order.

    A single task runs inline on the calling thread. Exceptions raised inside
    a task are re-raised here by ``Future.result()``; remaining futures are
    still joined so no task outlives the call.
    """
    if len(tasks) == 0:
        return []
    if len(tasks) == 1:
        return [tasks[0]()]

    ctx = ctx or get_default_context()
    pool = ctx.executor()
    futures = [pool.submit(task) for task in tasks]

    results: List[R] = []
    first_error: Optional[BaseException] = None
    for fut in futures:
        try:
            results.append(fut.result())
        except Exception as e:
            if first_error is None:
                first_error = e
    if first_error is not None:
        raise first_error
    return results


def parallel_ranges(
    fn: Callable[[int, int], R],
    total: int,
    ctx: Optional[EngineContext] = None,
    *,
    work: Optional[int] = None,
) -> List[R]:
    """
    Apply ``fn(start, stop)`` over ``[0, total)``, fanning out when large.

    Parameters
    ----------
    fn : Callable[[int, int], R]
        Range worker. Must only write output indices inside its range.
    total : int
        Number of items in the index space.
    ctx : EngineContext, optional
        Context providing the pool and threshold. Defaults to the active one.
    work : int, optional
        Element count used against ``ctx.parallel_threshold``. Defaults to
        `total`; pass the real element count when each item covers a row.

    Returns
    -------
    list[R]
        Per-range results in range order (a single entry when run serially).
    """
    ctx = ctx or get_default_context()
    work = total if work is None else work
    if total <= 1 or work <= ctx.parallel_threshold or ctx.num_workers == 1:
        return [fn(0, total)] if total > 0 else []

    ranges = split_ranges(total, ctx.num_workers)
    return run_tasks([(lambda a=a, b=b: fn(a, b)) for a, b in ranges], ctx)
