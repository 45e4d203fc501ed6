"""Escalate remote output lines that reveal a masked transport failure.

The install command is ``curl ... | bash``: the exit status seen over SSH is
the shell's, so a failed download only shows up as text on the stream.
"""

from __future__ import annotations

import re
from typing import Iterable, Pattern

from bulkinstall.models import Severity

TRANSPORT_FAILURE_PATTERNS: tuple[Pattern[str], ...] = (
    re.compile(r"Could not resolve host:.*; Name or service not known"),
    re.compile(r"^.*curl.*(E|e)rror"),
)


class LineClassifier:
    """Maps ``(message, reported severity)`` to an effective severity."""

    def __init__(self, patterns: Iterable[str | Pattern[str]] = TRANSPORT_FAILURE_PATTERNS):
        self.patterns: tuple[Pattern[str], ...] = tuple(
            p if isinstance(p, re.Pattern) else re.compile(p) for p in patterns
        )

    def extend(self, *patterns: str | Pattern[str]) -> LineClassifier:
        """Return a new classifier with *patterns* added."""
        return LineClassifier(self.patterns + tuple(patterns))

    def matches(self, message: str) -> bool:
        return any(p.search(message) for p in self.patterns)

    def classify(self, message: str, reported: Severity) -> Severity:
        if isinstance(message, str) and self.matches(message):
            return Severity.ERR
        return reported


default_classifier = LineClassifier()


def classify(message: str, reported: Severity) -> Severity:
    """Classify with the default pattern set."""
    return default_classifier.classify(message, reported)
