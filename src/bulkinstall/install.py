"""Bulk install orchestration: queue the nodes, run the pool, collect results."""

from __future__ import annotations

import functools
import logging
import time
from typing import Sequence

from bulkinstall.config import ConnectionConfig
from bulkinstall.log_sink import LoggingSink
from bulkinstall.models import AggregateResult, BulkInstallError
from bulkinstall.orchestration.aggregator import ResultAggregator
from bulkinstall.orchestration.classifier import LineClassifier
from bulkinstall.orchestration.pool import NodeQueue, run_pool
from bulkinstall.orchestration.ssh import SSHTransport
from bulkinstall.orchestration.worker import EventSink, InstallOptions, Transport, run_one

logger = logging.getLogger(__name__)

__all__ = ["InstallOptions", "NoNodesError", "install"]


class NoNodesError(BulkInstallError, ValueError):
    """No nodes were given to install on."""

    pass


def _install_node(
        host: str,
        config: ConnectionConfig,
        options: InstallOptions,
        transport: Transport,
        sink: EventSink,
        classifier: LineClassifier | None,
        aggregator: ResultAggregator,
) -> None:
    outcome = run_one(host, config, options, transport=transport, sink=sink, classifier=classifier)
    aggregator.record(outcome)


def install(
        hosts: Sequence[str],
        config: ConnectionConfig,
        options: InstallOptions | None = None,
        transport: Transport | None = None,
        sink: EventSink | None = None,
        classifier: LineClassifier | None = None,
) -> AggregateResult:
    """Install on every host in *hosts* and return the aggregated result.

    Every occurrence of a host yields exactly one outcome. Per-host failures
    never abort the run.

    Raises:
        NoNodesError: if *hosts* is empty.
    """
    if not hosts:
        raise NoNodesError("Please provide at least one node via arg or [--nodes NODES_FILE]")

    options = options or InstallOptions()
    transport = transport or SSHTransport(dry_run=options.dry_run)
    sink = sink or LoggingSink()

    logger.debug("Nodes: %s", list(hosts))
    logger.debug("Options: %s", options)
    logger.info("Installing on %d node(s) with %d thread(s)", len(hosts), options.threads)

    aggregator = ResultAggregator()
    per_node = functools.partial(
        _install_node,
        config=config,
        options=options,
        transport=transport,
        sink=sink,
        classifier=classifier,
        aggregator=aggregator,
    )

    t0 = time.monotonic()
    run_pool(NodeQueue(hosts), options.threads, per_node)
    result = aggregator.snapshot()

    logger.info("%d/%d nodes installed (%.1fs)",
                len(result.succeeded), len(result), time.monotonic() - t0)
    return result
