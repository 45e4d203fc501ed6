"""Node list acquisition.

Nodes come from a file, from stdin (``-``), or from positional arguments.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import IO, Iterable, Sequence

from bulkinstall.models import BulkInstallError

logger = logging.getLogger(__name__)

DEFAULT_NODES_FILE = "nodes.txt"
STDIN_MARKER = "-"


class HostResolutionError(BulkInstallError):
    """Error during host resolution."""

    pass


def parse_node_lines(lines: Iterable[str]) -> list[str]:
    """Split lines into host identifiers.

    Each line may hold several whitespace-separated hosts. Comments (#)
    and blank lines are ignored. Order is preserved and duplicates kept.
    """
    hosts = []
    for line in lines:
        if "#" in line:
            line = line[: line.index("#")]
        hosts.extend(line.split())
    return hosts


def parse_hosts_file(path: str | Path) -> list[str]:
    """Parse a nodes file.

    Raises:
        HostResolutionError: If file not found or unreadable
    """
    file_path = Path(path)
    if not file_path.exists():
        raise HostResolutionError("Hosts file not found: %s" % file_path)

    try:
        with file_path.open("r") as f:
            hosts = parse_node_lines(f)
    except OSError as e:
        raise HostResolutionError("Could not read hosts file %s: %s" % (file_path, e)) from e

    logger.debug("Parsed %d hosts from file: %s", len(hosts), file_path)
    return hosts


def read_nodes(
    nodes_source: str | None = DEFAULT_NODES_FILE,
    args: Sequence[str] = (),
    stdin: IO[str] | None = None,
) -> list[str]:
    """Resolve the node list.

    Priority:
    1. ``nodes_source == "-"``: one or more hosts per line on stdin
    2. ``nodes_source`` names an existing file: read it
    3. positional ``args``

    Returns:
        List of host strings (possibly empty; caller decides whether to error)
    """
    if nodes_source == STDIN_MARKER:
        stream = stdin if stdin is not None else sys.stdin
        hosts = parse_node_lines(stream)
        logger.debug("Resolved %d hosts from stdin", len(hosts))
        return hosts

    if nodes_source and Path(nodes_source).is_file():
        return parse_hosts_file(nodes_source)

    hosts = parse_node_lines(args)
    logger.debug("Resolved %d hosts from arguments", len(hosts))
    return hosts
