"""bulkinstall install command."""

from __future__ import annotations

import logging
import sys

import click

from bulkinstall.config import DEFAULT_CREDENTIALS_FILE
from bulkinstall.hosts import DEFAULT_NODES_FILE
from bulkinstall.orchestration.pool import default_thread_count
from bulkinstall.orchestration.worker import DEFAULT_SCRIPT

from ._common import dry_run_option

logger = logging.getLogger(__name__)


@click.command()
@click.argument("nodes", nargs=-1)
@click.option("--credentials", default=DEFAULT_CREDENTIALS_FILE, show_default=True,
              help="A JSON file that contains the bulk agent configuration")
@click.option("--nodes", "nodes_file", default=DEFAULT_NODES_FILE, show_default=True,
              help="Path to a newline separated file containing nodes, or - for stdin")
@click.option("--threads", type=click.IntRange(min=1), default=None,
              help="Number of threads to use [default: processors times 2]")
@click.option("--sudo", is_flag=True,
              help="Use sudo to run commands on remote systems. Sudo is automatically "
                   "used if the credentials contain a sudo_password key or a non root username")
@click.option("--script", default=DEFAULT_SCRIPT, show_default=True,
              help="The install script to fetch from the master")
@click.option("--syslog", is_flag=True, help="Also send remote output to syslog")
@dry_run_option
@click.pass_context
def install(ctx, nodes, credentials, nodes_file, threads, sudo, script, syslog, dry_run):
    """Perform a bulk agent installation.

    Triggers a simplified (curl | bash) install on every node, several
    nodes at a time, and prints a table of exit statuses.

    Examples:

      bulkinstall install node1.example.com node2.example.com

      bulkinstall install --nodes nodes.txt --threads 16

      cat nodes.txt | bulkinstall install --nodes - --sudo
    """
    from bulkinstall.config import ConfigError, load_credentials
    from bulkinstall.hosts import HostResolutionError, read_nodes
    from bulkinstall.install import InstallOptions, NoNodesError
    from bulkinstall.install import install as run_install
    from bulkinstall.log_sink import add_syslog_destination
    from bulkinstall.utils.cli_formatters import format_results_table, format_summary

    try:
        config = load_credentials(credentials)
    except ConfigError as e:
        click.echo("Error: %s" % e, err=True)
        sys.exit(1)

    try:
        host_list = read_nodes(nodes_file, nodes, stdin=click.get_text_stream("stdin"))
    except HostResolutionError as e:
        click.echo("Error: %s" % e, err=True)
        sys.exit(1)

    if syslog:
        add_syslog_destination()

    options = InstallOptions(
        threads=threads or default_thread_count(),
        sudo=sudo,
        script=script,
        dry_run=dry_run,
    )

    try:
        result = run_install(host_list, config, options)
    except NoNodesError as e:
        click.echo("Error: %s" % e, err=True)
        sys.exit(1)

    click.echo("")
    click.echo(format_results_table(result, color=sys.stdout.isatty()))
    click.echo("")
    click.echo(format_summary(result))

    if not result.ok:
        sys.exit(1)
