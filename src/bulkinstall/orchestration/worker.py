"""Per-node install lifecycle: connect, build command, execute, classify."""

from __future__ import annotations

import logging
import re
import shlex
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Mapping, Protocol

from bulkinstall.config import ConnectionConfig
from bulkinstall.log_sink import LoggingSink
from bulkinstall.models import ExecutionEvent, NodeFailed, NodeOutcome, NodeSucceeded, Severity
from bulkinstall.orchestration.classifier import LineClassifier, default_classifier
from bulkinstall.orchestration.pool import default_thread_count
from bulkinstall.orchestration.ssh import ConnectionStatus, SSHTransport

logger = logging.getLogger(__name__)

DEFAULT_SCRIPT = "install.bash"
PACKAGES_PORT = 8140
PACKAGES_URL = "https://%s:%d/packages/current/%s"

# characters still special inside bash -c "..."
_DOUBLE_QUOTE_SPECIAL = re.compile(r'([\\"$`])')

EventSink = Callable[[str, Severity, str], None]


class Execution(Protocol):
    exit_status: int | None

    def __iter__(self) -> Iterator[ExecutionEvent]: ...


class Transport(Protocol):
    def connect(self, host: str, config: ConnectionConfig) -> Any: ...

    def execute(self, connection: Any, command: str, sudo: bool = False) -> Execution: ...


@dataclass(frozen=True)
class InstallOptions:
    """Caller-supplied options for a bulk install."""

    threads: int = field(default_factory=default_thread_count)
    sudo: bool = False
    script: str = DEFAULT_SCRIPT
    dry_run: bool = False

    def __post_init__(self):
        if self.threads < 1:
            raise ValueError("threads must be >= 1, got %d" % self.threads)


def resolve_sudo(config: ConnectionConfig, requested: bool) -> bool:
    """Sudo is forced by a sudo password or a non-root user."""
    if config.sudo_password or not config.is_root:
        return True
    return bool(requested)


def format_script_arguments(arguments: Mapping[str, Mapping[str, Any]] | None) -> str:
    """Render ``{key: {subkey: value}}`` as ``-s key:subkey=value ...``.

    Used to pass e.g. csr_attributes through to the install script:
    ``custom_attributes:challengePassword=S3cr3tP@ssw0rd``. Each token is
    shell-quoted when it holds whitespace or shell metacharacters.
    """
    if not arguments:
        return ""
    tokens = [
        shlex.quote("%s:%s=%s" % (key, subkey, value))
        for key, sub in arguments.items()
        for subkey, value in sub.items()
    ]
    return " ".join(["-s"] + tokens)


def build_install_command(
        master: str,
        script: str = DEFAULT_SCRIPT,
        arguments: Mapping[str, Mapping[str, Any]] | None = None,
) -> str:
    """Build the ``curl | bash`` bootstrap command.

    ``-k`` disables TLS verification: agents have no CA cert yet.
    """
    url = PACKAGES_URL % (master, PACKAGES_PORT, script)
    script_args = format_script_arguments(arguments)
    shell = "bash %s" % script_args if script_args else "bash"
    pipeline = "curl -k %s | %s" % (url, shell)
    return 'bash -c "%s"' % _DOUBLE_QUOTE_SPECIAL.sub(r"\\\1", pipeline)


def run_one(
        host: str,
        config: ConnectionConfig,
        options: InstallOptions | None = None,
        transport: Transport | None = None,
        sink: EventSink | None = None,
        classifier: LineClassifier | None = None,
) -> NodeOutcome:
    """Install on a single host and return its outcome.

    Never raises for per-host problems: connection errors, non-zero exit
    statuses and unexpected exceptions all become :class:`NodeFailed`.
    Each line of remote output is classified and sent to *sink* as soon as
    it arrives.
    """
    options = options or InstallOptions()
    transport = transport or SSHTransport(dry_run=options.dry_run)
    sink = sink or LoggingSink()
    classifier = classifier or default_classifier

    connection = None
    try:
        sink(host, Severity.NOTICE, "Processing target: %s" % host)
        connection = transport.connect(host, config)
        status = ConnectionStatus(connection.status)
        logger.debug("SSH status for %s: %s", host, status.value)
        if status in (ConnectionStatus.ERROR, ConnectionStatus.DISCONNECTED):
            reason = getattr(connection, "description", "") or status.value
            sink(host, Severity.ERR, "%s connection failed: %s" % (host, reason))
            return NodeFailed(host, reason)

        sudo = resolve_sudo(config, options.sudo)
        command = build_install_command(config.master, options.script, config.arguments)
        logger.debug("Running on %s (sudo=%s): %s", host, sudo, command)

        execution = transport.execute(connection, command, sudo=sudo)
        escalated = 0
        for event in execution:
            severity = classifier.classify(event.message, event.severity)
            if severity != event.severity:
                escalated += 1
            sink(host, severity, "%s %s" % (host, event.message))

        exit_status = execution.exit_status
        if exit_status == 0:
            if escalated:
                # outcome follows the shell's exit status, not the scraped text
                logger.warning("%s: exit 0 but %d transport error line(s) were reported",
                               host, escalated)
            return NodeSucceeded(host, exit_status)

        sink(host, Severity.ERR, "Node: %s failed" % host)
        return NodeFailed(host, exit_status)
    except Exception as e:
        logger.error("target:%s error:%s", host, e)
        return NodeFailed(host, str(e) or type(e).__name__)
    finally:
        if connection is not None and hasattr(connection, "close"):
            connection.close()
