"""Fixed-size worker pool draining a shared node queue."""

from __future__ import annotations

import logging
import os
import queue
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable

logger = logging.getLogger(__name__)


def default_thread_count() -> int:
    """Processors times two."""
    return (os.cpu_count() or 1) * 2


class NodeQueue:
    """FIFO of host identifiers; each is handed to exactly one worker."""

    def __init__(self, hosts: Iterable[str] = ()):
        self._queue: queue.SimpleQueue = queue.SimpleQueue()
        for host in hosts:
            self._queue.put(host)

    def pop(self) -> str | None:
        """Return the next host, or None once the queue is exhausted."""
        try:
            return self._queue.get_nowait()
        except queue.Empty:
            return None

    def __len__(self) -> int:
        return self._queue.qsize()

    def empty(self) -> bool:
        return self._queue.empty()


def _drain(node_queue: NodeQueue, per_node: Callable[[str], None]) -> int:
    processed = 0
    host = node_queue.pop()
    while host is not None:
        per_node(host)
        processed += 1
        host = node_queue.pop()
    return processed


def run_pool(
        node_queue: NodeQueue,
        worker_count: int,
        per_node: Callable[[str], None],
) -> int:
    """Run *worker_count* workers until *node_queue* is empty.

    Each worker pops hosts and calls ``per_node(host)`` until the queue is
    exhausted. Blocks until every worker has returned.

    Returns:
        Number of hosts processed.
    """
    if worker_count < 0:
        raise ValueError("worker_count must be >= 0, got %d" % worker_count)
    if worker_count == 0 or node_queue.empty():
        return 0

    t0 = time.monotonic()
    with ThreadPoolExecutor(max_workers=worker_count, thread_name_prefix="bulk-worker") as executor:
        futures = [executor.submit(_drain, node_queue, per_node) for _ in range(worker_count)]
        # propagate anything per_node failed to contain
        processed = sum(future.result() for future in futures)

    logger.debug("Worker pool (%d workers) processed %d hosts in %.1fs",
                 worker_count, processed, time.monotonic() - t0)
    return processed
