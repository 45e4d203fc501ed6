"""Presentation layer formatting functions for bulkinstall CLI."""

import click

from bulkinstall.models import AggregateResult

MIN_COLUMN_WIDTH = 40
PADDING = "  "


def format_results_table(result: AggregateResult, *, color: bool = False) -> str:
    """Format an install result as a ``Hostname / Exit Status`` table.

    Succeeded hosts come first, then failed ones; each section is sorted by
    hostname. With *color*, failed rows are red and succeeded rows
    alternate between bright and normal white.

    Returns:
        Formatted multi-line string (no trailing newline).
    """
    if not len(result):
        return "No nodes processed."

    succeeded = sorted((o.host, o.status) for o in result.succeeded)
    failed = sorted((o.host, o.status) for o in result.failed)
    rows = succeeded + failed

    w_host = max(MIN_COLUMN_WIDTH, len("Hostname"), *(len(h) for h, _ in rows))
    w_status = max(MIN_COLUMN_WIDTH, len("Exit Status"), *(len(s) for _, s in rows))

    def _row(host, status):
        return f"{host:<{w_host}}{PADDING}{status:<{w_status}}".rstrip()

    header = _row("Hostname", "Exit Status")
    lines = [click.style(header, underline=True) if color else header]
    for i, (host, status) in enumerate(rows):
        line = _row(host, status)
        if color:
            if i >= len(succeeded):
                line = click.style(line, fg="red")
            else:
                line = click.style(line, fg="bright_white" if i % 2 == 0 else "white")
        lines.append(line)

    return "\n".join(lines)


def format_summary(result: AggregateResult) -> str:
    """One-line summary, e.g. ``3 succeeded, 1 failed``."""
    return "%d succeeded, %d failed" % (len(result.succeeded), len(result.failed))
