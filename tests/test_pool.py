"""Tests for bulkinstall.orchestration.pool and aggregator."""

from __future__ import annotations

import threading
import time

import pytest

from bulkinstall.models import NodeFailed, NodeSucceeded
from bulkinstall.orchestration.aggregator import ResultAggregator
from bulkinstall.orchestration.pool import NodeQueue, default_thread_count, run_pool


# ---------------------------------------------------------------------------
# NodeQueue
# ---------------------------------------------------------------------------


def test_node_queue_pops_in_order_then_none():
    q = NodeQueue(["a", "b", "c"])

    assert len(q) == 3
    assert [q.pop(), q.pop(), q.pop()] == ["a", "b", "c"]
    assert q.pop() is None
    assert q.empty()


def test_node_queue_keeps_duplicates():
    q = NodeQueue(["a", "a"])
    assert [q.pop(), q.pop(), q.pop()] == ["a", "a", None]


def test_default_thread_count(monkeypatch):
    monkeypatch.setattr("bulkinstall.orchestration.pool.os.cpu_count", lambda: 4)
    assert default_thread_count() == 8


def test_default_thread_count_unknown_cpus(monkeypatch):
    monkeypatch.setattr("bulkinstall.orchestration.pool.os.cpu_count", lambda: None)
    assert default_thread_count() == 2


# ---------------------------------------------------------------------------
# run_pool
# ---------------------------------------------------------------------------


def test_run_pool_processes_every_host_once():
    hosts = ["h%d" % i for i in range(50)]
    seen = []
    lock = threading.Lock()

    def per_node(host):
        with lock:
            seen.append(host)

    processed = run_pool(NodeQueue(hosts), 8, per_node)

    assert processed == 50
    assert sorted(seen) == sorted(hosts)


def test_run_pool_more_workers_than_hosts():
    seen = []
    processed = run_pool(NodeQueue(["a", "b"]), 16, seen.append)

    assert processed == 2
    assert sorted(seen) == ["a", "b"]


@pytest.mark.parametrize("hosts,workers", [([], 4), (["a"], 0)])
def test_run_pool_trivial(hosts, workers):
    seen = []
    assert run_pool(NodeQueue(hosts), workers, seen.append) == 0
    assert seen == []


def test_run_pool_rejects_negative_workers():
    with pytest.raises(ValueError):
        run_pool(NodeQueue(["a"]), -1, lambda host: None)


def test_run_pool_runs_workers_concurrently():
    """Four slow hosts on four workers overlap instead of running serially."""
    barrier = threading.Barrier(4, timeout=5)

    def per_node(host):
        barrier.wait()

    t0 = time.monotonic()
    run_pool(NodeQueue(["a", "b", "c", "d"]), 4, per_node)

    # a serial run would hit the barrier timeout
    assert time.monotonic() - t0 < 5


def test_run_pool_uses_exactly_worker_count_threads():
    names = set()
    lock = threading.Lock()

    def per_node(host):
        time.sleep(0.01)
        with lock:
            names.add(threading.current_thread().name)

    run_pool(NodeQueue(["h%d" % i for i in range(20)]), 3, per_node)

    assert 1 <= len(names) <= 3


# ---------------------------------------------------------------------------
# ResultAggregator
# ---------------------------------------------------------------------------


def test_aggregator_partitions_outcomes():
    agg = ResultAggregator()
    agg.record(NodeSucceeded("a", 0))
    agg.record(NodeFailed("b", 1))
    agg.record_success(NodeSucceeded("c", 0))
    agg.record_failure(NodeFailed("d", "timeout"))

    result = agg.snapshot()

    assert [o.host for o in result.succeeded] == ["a", "c"]
    assert [o.host for o in result.failed] == ["b", "d"]
    assert len(agg) == 4
    assert len(result) == 4


def test_aggregator_rejects_non_outcomes():
    with pytest.raises(TypeError):
        ResultAggregator().record(("a", 0))


def test_aggregator_snapshot_is_frozen():
    agg = ResultAggregator()
    agg.record(NodeSucceeded("a", 0))
    snap = agg.snapshot()
    agg.record(NodeSucceeded("b", 0))

    assert len(snap) == 1
    assert len(agg.snapshot()) == 2


def test_aggregator_concurrent_appends():
    agg = ResultAggregator()

    def writer(prefix):
        for i in range(500):
            agg.record(NodeSucceeded("%s-%d" % (prefix, i), 0))

    threads = [threading.Thread(target=writer, args=(str(n),)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    result = agg.snapshot()
    assert len(result.succeeded) == 4000
    assert len({o.host for o in result.succeeded}) == 4000
