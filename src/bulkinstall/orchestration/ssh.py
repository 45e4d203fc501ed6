"""SSH transport built on the system ``ssh`` client.

Connections are probed with ``ssh <host> true`` and commands are run as
``ssh <host> <command>`` with stdout/stderr streamed back line by line.
"""

from __future__ import annotations

import logging
import os
import queue
import shlex
import subprocess
import threading
import time
from enum import Enum
from typing import IO, Iterator

from bulkinstall.config import ConnectionConfig
from bulkinstall.models import ExecutionEvent, Severity

logger = logging.getLogger(__name__)

DEFAULT_CONNECT_TIMEOUT = 10

_EOF = object()


class ConnectionStatus(str, Enum):
    CONNECTED = "connected"
    ERROR = "error"
    DISCONNECTED = "disconnected"


def build_ssh_cmd(
        host: str,
        ssh_user: str | None = None,
        ssh_key: str | None = None,
        ssh_port: int | None = None,
        ssh_options: list[str] | None = None,
        connect_timeout: int = DEFAULT_CONNECT_TIMEOUT,
        password_auth: bool = False,
) -> list[str]:
    """Build the base SSH command with standard options.

    Args:
        host: Remote hostname or IP address.
        ssh_user: Optional SSH username (prepended as user@host).
        ssh_key: Optional path to SSH private key file.
        ssh_port: Optional port; omitted when it is the default 22.
        ssh_options: Additional SSH command-line options.
        connect_timeout: SSH connection timeout in seconds.
        password_auth: Wrap in ``sshpass -e`` (password read from
            ``$SSHPASS``) instead of forcing BatchMode.

    Returns:
        List of command parts suitable for subprocess.
    """
    if password_auth:
        cmd = ["sshpass", "-e", "ssh", "-o", f"ConnectTimeout={connect_timeout}"]
    else:
        cmd = ["ssh", "-o", "BatchMode=yes", "-o", f"ConnectTimeout={connect_timeout}"]
    if ssh_key:
        cmd.extend(["-i", ssh_key])
    if ssh_port and ssh_port != 22:
        cmd.extend(["-p", str(ssh_port)])
    if ssh_options:
        cmd.extend(ssh_options)
    target = f"{ssh_user}@{host}" if ssh_user else host
    cmd.append(target)
    return cmd


def wrap_sudo(command: str, sudo_password: str | None = None) -> str:
    """Prefix *command* with sudo.

    With a password, ``sudo -S`` reads it from stdin and prints no prompt;
    without one, ``sudo -n`` fails fast instead of hanging on a prompt.
    """
    if sudo_password:
        return "sudo -S -p '' %s" % command
    return "sudo -n %s" % command


class SSHConnection:
    """A host that answered the connection probe."""

    def __init__(
            self,
            host: str,
            config: ConnectionConfig,
            status: ConnectionStatus = ConnectionStatus.DISCONNECTED,
            description: str = "",
            connect_timeout: int = DEFAULT_CONNECT_TIMEOUT,
            dry_run: bool = False,
    ):
        self.host = host
        self.config = config
        self.status = status
        self.description = description
        self.connect_timeout = connect_timeout
        self.dry_run = dry_run

    def __repr__(self):
        return "SSHConnection(%s, %s)" % (self.host, self.status.value)

    @property
    def password_auth(self) -> bool:
        return bool(self.config.password) and not self.config.ssh_key

    def base_cmd(self) -> list[str]:
        return build_ssh_cmd(
            self.host,
            connect_timeout=self.connect_timeout,
            password_auth=self.password_auth,
            **self.config.ssh_kwargs,
        )

    def env(self) -> dict | None:
        if not self.password_auth:
            return None
        env = dict(os.environ)
        env["SSHPASS"] = self.config.password
        return env

    def close(self) -> None:
        if self.status == ConnectionStatus.CONNECTED:
            self.status = ConnectionStatus.DISCONNECTED

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False


def connect(
        host: str,
        config: ConnectionConfig,
        connect_timeout: int = DEFAULT_CONNECT_TIMEOUT,
        dry_run: bool = False,
) -> SSHConnection:
    """Probe *host* and return a connection in ``connected`` or ``error`` state."""
    conn = SSHConnection(host, config, connect_timeout=connect_timeout, dry_run=dry_run)
    if dry_run:
        logger.info("[dry-run] Would connect to %s@%s", config.username, host)
        conn.status = ConnectionStatus.CONNECTED
        return conn

    cmd = conn.base_cmd() + ["true"]
    logger.debug("SSH probe: %s", " ".join(cmd))

    t0 = time.monotonic()
    try:
        proc = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=connect_timeout + 5,
            env=conn.env(),
        )
    except subprocess.TimeoutExpired:
        conn.status = ConnectionStatus.ERROR
        conn.description = "Connection timed out after %ds" % connect_timeout
        logger.debug("  SSH probe <- %s TIMEOUT", host)
        return conn
    except OSError as e:
        conn.status = ConnectionStatus.ERROR
        conn.description = "Could not start ssh: %s" % e
        return conn

    elapsed = time.monotonic() - t0
    if proc.returncode == 0:
        conn.status = ConnectionStatus.CONNECTED
        logger.debug("  SSH probe <- %s OK (%.1fs)", host, elapsed)
    else:
        conn.status = ConnectionStatus.ERROR
        lines = [line for line in proc.stderr.strip().splitlines() if line.strip()]
        conn.description = lines[-1] if lines else "ssh exited with status %d" % proc.returncode
        logger.debug("  SSH probe <- %s FAILED rc=%d (%.1fs): %s",
                     host, proc.returncode, elapsed, conn.description)
    return conn


def _pump(stream: IO[str], severity: Severity, sink: queue.Queue) -> None:
    try:
        for line in stream:
            sink.put(ExecutionEvent(severity, line.rstrip("\r\n")))
    finally:
        stream.close()
        sink.put(_EOF)


def _terminate(proc: subprocess.Popen) -> None:
    proc.kill()
    proc.wait()


class Execution:
    """A running remote command.

    Iterating yields :class:`ExecutionEvent` objects as lines arrive
    (stdout as ``info``, stderr as ``warning``). Once iteration finishes,
    :attr:`exit_status` holds the remote exit code (``-1`` on timeout).
    """

    def __init__(
            self,
            connection: SSHConnection,
            command: str,
            sudo: bool = False,
            sudo_password: str | None = None,
            timeout: float | None = None,
    ):
        self.connection = connection
        self.command = command
        self.sudo = sudo
        self.sudo_password = sudo_password if sudo else None
        self.timeout = timeout
        self.exit_status: int | None = None

    @property
    def remote_command(self) -> str:
        if self.sudo:
            return wrap_sudo(self.command, self.sudo_password)
        return self.command

    @property
    def success(self) -> bool:
        return self.exit_status == 0

    def __iter__(self) -> Iterator[ExecutionEvent]:
        if self.connection.dry_run:
            yield ExecutionEvent(Severity.INFO, "[dry-run] Would run: %s" % self.remote_command)
            self.exit_status = 0
            return

        cmd = self.connection.base_cmd() + [self.remote_command]
        logger.debug("SSH command: %s", " ".join(shlex.quote(c) for c in cmd))

        proc = subprocess.Popen(
            cmd,
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            env=self.connection.env(),
        )
        if self.sudo_password:
            try:
                proc.stdin.write(self.sudo_password + "\n")
                proc.stdin.flush()
            except BrokenPipeError:
                pass
        proc.stdin.close()

        events: queue.Queue = queue.Queue()
        readers = [
            threading.Thread(target=_pump, args=(proc.stdout, Severity.INFO, events), daemon=True),
            threading.Thread(target=_pump, args=(proc.stderr, Severity.WARNING, events), daemon=True),
        ]
        for reader in readers:
            reader.start()

        try:
            deadline = time.monotonic() + self.timeout if self.timeout else None
            open_streams = len(readers)
            while open_streams:
                wait = None if deadline is None else max(deadline - time.monotonic(), 0)
                try:
                    item = events.get(timeout=wait)
                except queue.Empty:
                    _terminate(proc)
                    self.exit_status = -1
                    yield ExecutionEvent(
                        Severity.ERR, "Execution timed out after %.0fs" % self.timeout
                    )
                    return
                if item is _EOF:
                    open_streams -= 1
                    continue
                yield item

            self.exit_status = proc.wait()
            for reader in readers:
                reader.join()
        finally:
            # iteration abandoned early: do not leave the command running
            if proc.poll() is None:
                logger.debug("Killing unfinished command on %s", self.connection.host)
                _terminate(proc)


def execute(
        connection: SSHConnection,
        command: str,
        sudo: bool = False,
        timeout: float | None = None,
) -> Execution:
    """Start *command* on *connection*; iterate the result for live output."""
    if connection.status != ConnectionStatus.CONNECTED:
        raise RuntimeError(
            "Cannot execute on %s: connection is %s" % (connection.host, connection.status.value)
        )
    return Execution(
        connection,
        command,
        sudo=sudo,
        sudo_password=connection.config.sudo_password,
        timeout=timeout,
    )


class SSHTransport:
    """Default transport used by the node workers."""

    def __init__(
            self,
            connect_timeout: int = DEFAULT_CONNECT_TIMEOUT,
            command_timeout: float | None = None,
            dry_run: bool = False,
    ):
        self.connect_timeout = connect_timeout
        self.command_timeout = command_timeout
        self.dry_run = dry_run

    def connect(self, host: str, config: ConnectionConfig) -> SSHConnection:
        return connect(host, config, connect_timeout=self.connect_timeout, dry_run=self.dry_run)

    def execute(self, connection: SSHConnection, command: str, sudo: bool = False) -> Execution:
        return execute(connection, command, sudo=sudo, timeout=self.command_timeout)
