"""
Parallel execution for per-scanbody registration.

Scanbodies are registered independently over read-only inputs, so they can
be fanned out to a thread pool without synchronization. Results always come
back in input order.
"""

from __future__ import annotations

import logging
import os
import time
from multiprocessing.pool import ThreadPool
from typing import Any, Callable, List, Optional, Sequence

logger = logging.getLogger(__name__)


class ScanbodyParallelExecutor:
    """
    Thread-pool executor mapping a function over scanbodies.

    Example:
        executor = ScanbodyParallelExecutor(n_workers=4)
        results = executor.map(register_one, scanbodies)
    """

    def __init__(self, n_workers: Optional[int] = None):
        """
        Args:
            n_workers: Number of worker threads. If None, uses cpu_count - 1.
                Minimum is 1.
        """
        if n_workers is None:
            n_workers = max(1, (os.cpu_count() or 2) - 1)
        else:
            n_workers = max(1, int(n_workers))
        self.n_workers = n_workers

    def map(self, worker_fn: Callable[[Any], Any], items: Sequence[Any]) -> List[Any]:
        """
        Apply ``worker_fn`` to every item and return results in input order.

        Exceptions raised by ``worker_fn`` propagate to the caller; per-item
        failures that should not abort the batch must be handled inside it.
        """
        n_items = len(items)
        if n_items == 0:
            return []

        n_threads = min(self.n_workers, n_items)
        if n_threads == 1:
            return [worker_fn(item) for item in items]

        logger.info("Registering %d scanbodies on %d threads", n_items, n_threads)
        start_time = time.time()
        with ThreadPool(processes=n_threads) as pool:
            results = pool.map(worker_fn, items)
        logger.debug("Parallel registration finished in %.3f s", time.time() - start_time)
        return results
