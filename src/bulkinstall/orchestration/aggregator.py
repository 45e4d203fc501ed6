"""Thread-safe collection of per-node outcomes."""

from __future__ import annotations

import threading

from bulkinstall.models import AggregateResult, NodeFailed, NodeOutcome, NodeSucceeded


class ResultAggregator:
    """Collects succeeded and failed outcomes from concurrent workers.

    Order within each list is completion order.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._succeeded: list[NodeSucceeded] = []
        self._failed: list[NodeFailed] = []

    def record_success(self, outcome: NodeSucceeded) -> None:
        with self._lock:
            self._succeeded.append(outcome)

    def record_failure(self, outcome: NodeFailed) -> None:
        with self._lock:
            self._failed.append(outcome)

    def record(self, outcome: NodeOutcome) -> None:
        if isinstance(outcome, NodeSucceeded):
            self.record_success(outcome)
        elif isinstance(outcome, NodeFailed):
            self.record_failure(outcome)
        else:
            raise TypeError("Not a node outcome: %r" % (outcome,))

    def __len__(self) -> int:
        with self._lock:
            return len(self._succeeded) + len(self._failed)

    def snapshot(self) -> AggregateResult:
        """Immutable copy of what has been recorded so far.

        Only complete once the pool has joined.
        """
        with self._lock:
            return AggregateResult(
                succeeded=tuple(self._succeeded),
                failed=tuple(self._failed),
            )
