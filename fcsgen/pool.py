"""Ordered fan-out over a process pool.

Workers only compute; the caller merges results in input order and does all
writing itself.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from concurrent.futures import FIRST_COMPLETED, Future, ProcessPoolExecutor, wait
from typing import TypeVar

T = TypeVar("T")
R = TypeVar("R")

logger = logging.getLogger("fcsgen.pool")

WINDOW_PER_THREAD = 2


def run_ordered(
    fn: Callable[[T], R],
    items: Sequence[T],
    threads: int = 1,
    cancel: Callable[[R], bool] | None = None,
) -> list[R | None]:
    """Apply ``fn`` to every item and return results in input order.

    ``fn`` must be a picklable module-level function when ``threads > 1``.
    Once ``cancel(result)`` returns True no new item is started; items already
    in flight still finish. Items that never ran are left as ``None``.
    """
    items = list(items)
    results: list[R | None] = [None] * len(items)

    if threads <= 1 or len(items) <= 1:
        for i, item in enumerate(items):
            results[i] = fn(item)
            if cancel is not None and cancel(results[i]):
                logger.info(f"Cancelled after item {i + 1}/{len(items)}")
                break
        return results

    window = WINDOW_PER_THREAD * threads
    cancelled = False
    next_index = 0
    with ProcessPoolExecutor(max_workers=threads) as ex:
        pending: dict[Future, int] = {}
        while True:
            while not cancelled and next_index < len(items) and len(pending) < window:
                pending[ex.submit(fn, items[next_index])] = next_index
                next_index += 1
            if not pending:
                break
            done, _ = wait(pending, return_when=FIRST_COMPLETED)
            for fut in done:
                i = pending.pop(fut)
                results[i] = fut.result()
                if not cancelled and cancel is not None and cancel(results[i]):
                    cancelled = True
                    logger.info(f"Cancelled; {len(pending)} in-flight item(s) will finish")
    return results
