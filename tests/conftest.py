"""Shared pytest fixtures for bulkinstall tests."""

from __future__ import annotations

import threading
from pathlib import Path

import pytest

from bulkinstall.config import ConnectionConfig
from bulkinstall.models import ExecutionEvent, Severity
from bulkinstall.orchestration.ssh import ConnectionStatus


class FakeConnection:
    def __init__(self, host, status=ConnectionStatus.CONNECTED, description=""):
        self.host = host
        self.status = status
        self.description = description
        self.closed = False

    def close(self):
        self.closed = True


class FakeExecution:
    def __init__(self, events, exit_status):
        self._events = events
        self._final_status = exit_status
        self.exit_status = None

    def __iter__(self):
        for event in self._events:
            yield event
        self.exit_status = self._final_status


class FakeTransport:
    """In-memory transport.

    Per-host behaviour is configured through dicts; hosts without an entry
    connect fine, print one line and exit 0.
    """

    def __init__(self, connect_errors=None, exit_statuses=None, outputs=None,
                 raise_on_connect=None, raise_on_execute=None):
        self.connect_errors = connect_errors or {}
        self.exit_statuses = exit_statuses or {}
        self.outputs = outputs or {}
        self.raise_on_connect = raise_on_connect or {}
        self.raise_on_execute = raise_on_execute or {}
        self.lock = threading.Lock()
        self.connected: list[str] = []
        self.commands: list[tuple[str, str, bool]] = []
        self.connections: list[FakeConnection] = []

    def connect(self, host, config):
        with self.lock:
            self.connected.append(host)
        if host in self.raise_on_connect:
            raise self.raise_on_connect[host]
        if host in self.connect_errors:
            conn = FakeConnection(host, ConnectionStatus.ERROR, self.connect_errors[host])
        else:
            conn = FakeConnection(host)
        with self.lock:
            self.connections.append(conn)
        return conn

    def execute(self, connection, command, sudo=False):
        host = connection.host
        with self.lock:
            self.commands.append((host, command, sudo))
        if host in self.raise_on_execute:
            raise self.raise_on_execute[host]
        events = self.outputs.get(host, [ExecutionEvent(Severity.INFO, "Installation complete")])
        return FakeExecution(events, self.exit_statuses.get(host, 0))


class RecordingSink:
    def __init__(self):
        self.lock = threading.Lock()
        self.events: list[tuple[str, Severity, str]] = []

    def __call__(self, host, severity, message):
        with self.lock:
            self.events.append((host, severity, message))

    def for_host(self, host):
        return [(sev, msg) for h, sev, msg in self.events if h == host]


@pytest.fixture
def make_transport() -> type[FakeTransport]:
    """The fake transport class, for tests that need per-host behaviour."""
    return FakeTransport


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def root_config() -> ConnectionConfig:
    return ConnectionConfig(master="puppet.example.com", username="root")


@pytest.fixture
def credentials_file(tmp_path: Path) -> Path:
    """Create a credentials file for a root user."""
    f = tmp_path / "bulk_install.json"
    f.write_text('{"username": "root", "ssh_key": "/keys/id_rsa", "master": "puppet.example.com"}')
    return f


@pytest.fixture
def hosts_file(tmp_path: Path) -> Path:
    """Create a temporary nodes file with sample hosts."""
    f = tmp_path / "nodes.txt"
    f.write_text("10.0.0.1\n10.0.0.2\n10.0.0.3\n")
    return f
