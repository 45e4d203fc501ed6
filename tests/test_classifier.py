"""Tests for bulkinstall.orchestration.classifier."""

from __future__ import annotations

import re

import pytest

from bulkinstall.models import Severity
from bulkinstall.orchestration.classifier import (
    TRANSPORT_FAILURE_PATTERNS,
    LineClassifier,
    classify,
)


def test_dns_failure_escalates_to_err():
    msg = "curl: (6) Could not resolve host: x; Name or service not known"
    assert classify(msg, Severity.NOTICE) is Severity.ERR


def test_plain_line_keeps_reported_severity():
    assert classify("Installation complete", Severity.NOTICE) is Severity.NOTICE


@pytest.mark.parametrize("msg", [
    "curl: (7) Failed to connect: Connection refused error",
    "something curl Error happened",
    "Could not resolve host: puppet; Name or service not known",
])
def test_transport_failure_lines(msg):
    assert classify(msg, Severity.INFO) is Severity.ERR


def test_match_ignores_reported_severity():
    msg = "curl error"
    for severity in Severity:
        assert classify(msg, severity) is Severity.ERR


def test_unrelated_error_word_is_not_escalated():
    """Only curl-related errors are scraped; generic 'error' text passes through."""
    assert classify("error: package not found", Severity.WARNING) is Severity.WARNING


def test_classify_is_deterministic():
    msg = "curl: (6) Could not resolve host: x; Name or service not known"
    assert classify(msg, Severity.INFO) == classify(msg, Severity.INFO)
    assert classify("hello", Severity.DEBUG) == classify("hello", Severity.DEBUG)


def test_empty_message_unchanged():
    assert classify("", Severity.DEBUG) is Severity.DEBUG


def test_patterns_are_exposed_as_data():
    assert all(isinstance(p, re.Pattern) for p in TRANSPORT_FAILURE_PATTERNS)
    assert len(TRANSPORT_FAILURE_PATTERNS) == 2


def test_extend_adds_patterns_without_mutating_default():
    custom = LineClassifier().extend(r"wget: unable to resolve")

    assert custom.classify("wget: unable to resolve host", Severity.INFO) is Severity.ERR
    assert classify("wget: unable to resolve host", Severity.INFO) is Severity.INFO
    # default patterns are kept
    assert custom.classify("curl error", Severity.INFO) is Severity.ERR


def test_custom_pattern_set():
    classifier = LineClassifier([r"^FATAL"])

    assert classifier.classify("FATAL: disk full", Severity.INFO) is Severity.ERR
    assert classifier.classify("curl error", Severity.INFO) is Severity.INFO
