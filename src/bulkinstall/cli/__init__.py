"""bulkinstall CLI: bulk agent installs over SSH."""

from __future__ import annotations

import click

from bulkinstall import __version__
from ._common import _setup_logging
from ._install import install


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose/debug output")
@click.version_option(__version__, prog_name="bulkinstall")
@click.pass_context
def main(ctx, verbose):
    """bulkinstall: install agents on many nodes at a time."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    _setup_logging(verbose)


main.add_command(install)
