"""Forward classified remote output to Python logging."""

from __future__ import annotations

import logging
import logging.handlers
import os

from bulkinstall.models import Severity

NOTICE = 25
logging.addLevelName(NOTICE, "NOTICE")

EVENTS_LOGGER = "bulkinstall.events"

SEVERITY_LEVELS = {
    Severity.DEBUG: logging.DEBUG,
    Severity.INFO: logging.INFO,
    Severity.NOTICE: NOTICE,
    Severity.WARNING: logging.WARNING,
    Severity.ERR: logging.ERROR,
}


def level_for(severity: Severity) -> int:
    return SEVERITY_LEVELS.get(severity, logging.INFO)


class LoggingSink:
    """Callable sink ``(host, severity, message)`` writing to a logger.

    The host and severity ride along as ``extra`` record attributes so
    handlers can filter or format on them.
    """

    def __init__(self, logger: logging.Logger | None = None):
        self.logger = logger or logging.getLogger(EVENTS_LOGGER)

    def __call__(self, host: str, severity: Severity, message: str) -> None:
        self.logger.log(
            level_for(severity),
            message,
            extra={"host": host, "severity": severity.value},
        )


class NoticeAwareSysLogHandler(logging.handlers.SysLogHandler):
    """SysLogHandler that maps the NOTICE level to syslog ``notice``."""

    def mapPriority(self, levelName):
        if levelName == "NOTICE":
            return "notice"
        return super().mapPriority(levelName)


def add_syslog_destination(
        address: str | tuple[str, int] | None = None,
        logger_name: str = EVENTS_LOGGER,
) -> logging.Handler:
    """Attach a syslog handler to the events logger and return it."""
    if address is None:
        address = "/dev/log" if os.path.exists("/dev/log") else ("localhost", 514)
    handler = NoticeAwareSysLogHandler(address=address)
    handler.setFormatter(logging.Formatter("bulkinstall: %(message)s"))
    logging.getLogger(logger_name).addHandler(handler)
    return handler
