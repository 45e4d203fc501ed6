"""Value types shared by the transport, the workers and the renderer."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, Union


class BulkInstallError(Exception):
    """Base class for errors raised by bulkinstall."""

    pass


class Severity(str, Enum):
    """Severity of a line of remote output, ordered debug < ... < err."""

    DEBUG = "debug"
    INFO = "info"
    NOTICE = "notice"
    WARNING = "warning"
    ERR = "err"

    @property
    def rank(self) -> int:
        return _SEVERITY_ORDER.index(self)

    def __ge__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank >= other.rank

    def __gt__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank > other.rank

    def __le__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank <= other.rank

    def __lt__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank


_SEVERITY_ORDER = [
    Severity.DEBUG,
    Severity.INFO,
    Severity.NOTICE,
    Severity.WARNING,
    Severity.ERR,
]


@dataclass(frozen=True)
class ExecutionEvent:
    """A single line of output reported by the transport."""

    severity: Severity
    message: str


@dataclass(frozen=True)
class NodeSucceeded:
    """Install finished on *host* with a zero exit status."""

    host: str
    exit_status: int = 0

    @property
    def status(self) -> str:
        return str(self.exit_status)


@dataclass(frozen=True)
class NodeFailed:
    """Install did not complete on *host*.

    ``reason`` is either the non-zero exit status of the install command or
    a text description of the connection/transport error.
    """

    host: str
    reason: Union[int, str, None]

    @property
    def status(self) -> str:
        return "unknown" if self.reason is None else str(self.reason)


NodeOutcome = Union[NodeSucceeded, NodeFailed]


@dataclass(frozen=True)
class AggregateResult:
    """Final partition of all processed hosts (completion order)."""

    succeeded: tuple[NodeSucceeded, ...] = field(default_factory=tuple)
    failed: tuple[NodeFailed, ...] = field(default_factory=tuple)

    @property
    def outcomes(self) -> tuple[NodeOutcome, ...]:
        return self.succeeded + self.failed

    @property
    def ok(self) -> bool:
        return not self.failed

    def __len__(self) -> int:
        return len(self.succeeded) + len(self.failed)

    def as_pairs(self) -> Iterator[tuple[str, str]]:
        """Yield ``(host, status)`` pairs, succeeded first."""
        for outcome in self.outcomes:
            yield outcome.host, outcome.status
