# provisioner/audit_log.py
# -*- coding: utf-8 -*-
"""
Append-only audit log of a provisioning run.

Every entry is kept in memory, in order, and emitted through the
``provisioner.audit`` logger so it reaches whatever sinks the caller has
configured (console, text log file, JSON-lines audit file). All handlers in
the logger chain are flushed after each entry, so nothing is held back in a
buffer if the process dies.
"""

import logging
from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from common.logging_config import JSONFormatter

AUDIT_LOGGER_NAME = "provisioner.audit"

Severity = Literal["info", "ok", "error"]

_LEVELS = {
    "info": logging.INFO,
    "ok": logging.INFO,
    "error": logging.ERROR,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LogEntry(BaseModel):
    """One timestamped audit record."""

    timestamp: datetime = Field(default_factory=_utcnow)
    severity: Severity
    text: str
    step: Optional[str] = None
    kind: Optional[str] = None
    output: Optional[str] = None


class AuditLog:
    """
    Write-only record of what a run attempted and what happened.

    Args:
        sink: Logger that receives each entry. Defaults to the
            ``provisioner.audit`` logger, which propagates to the root
            handlers installed by setup_logging().
        audit_file: Optional path of a JSON-lines file. The handler for it
            is owned by this log and closed by close().
    """

    def __init__(
        self,
        sink: Optional[logging.Logger] = None,
        audit_file: Optional[str] = None,
    ):
        self._entries: List[LogEntry] = []
        self._logger = sink or logging.getLogger(AUDIT_LOGGER_NAME)
        self._owned_handlers: List[logging.Handler] = []
        if self._logger.level == logging.NOTSET:
            self._logger.setLevel(logging.INFO)

        if audit_file:
            handler = logging.FileHandler(audit_file, mode="a", encoding="utf-8")
            handler.setFormatter(JSONFormatter())
            handler.setLevel(logging.INFO)
            self._logger.addHandler(handler)
            self._owned_handlers.append(handler)

    @property
    def entries(self) -> List[LogEntry]:
        """A copy of the entries recorded so far, oldest first."""
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def record(
        self,
        severity: Severity,
        text: str,
        step: Optional[str] = None,
        kind: Optional[str] = None,
        output: Optional[str] = None,
    ) -> LogEntry:
        """Append one entry, emit it to the sinks and flush them."""
        entry = LogEntry(
            severity=severity, text=text, step=step, kind=kind, output=output
        )
        self._entries.append(entry)
        self._emit(entry)
        return entry

    def info(self, text: str, step: Optional[str] = None) -> LogEntry:
        return self.record("info", text, step=step)

    def ok(self, text: str, step: Optional[str] = None) -> LogEntry:
        return self.record("ok", text, step=step)

    def error(
        self,
        text: str,
        step: Optional[str] = None,
        kind: Optional[str] = None,
        output: Optional[str] = None,
    ) -> LogEntry:
        return self.record("error", text, step=step, kind=kind, output=output)

    def _emit(self, entry: LogEntry) -> None:
        message = f"[{entry.severity.upper()}] {entry.text}"
        if entry.output:
            message += f"\n   {entry.output}"

        self._logger.log(
            _LEVELS[entry.severity],
            message,
            extra={
                "severity": entry.severity,
                "step": entry.step,
                "kind": entry.kind,
                "output": entry.output,
                "entry_timestamp": entry.timestamp.isoformat(),
            },
        )
        self.flush()

    def _handler_chain(self) -> List[logging.Handler]:
        handlers: List[logging.Handler] = []
        current: Optional[logging.Logger] = self._logger
        while isinstance(current, logging.Logger):
            handlers.extend(current.handlers)
            if not current.propagate:
                break
            current = current.parent
        return handlers

    def flush(self) -> None:
        """Flush every handler that can receive audit entries."""
        for handler in self._handler_chain():
            handler.flush()

    def close(self) -> None:
        """Flush all sinks and close the ones this log opened."""
        self.flush()
        for handler in self._owned_handlers:
            self._logger.removeHandler(handler)
            handler.close()
        self._owned_handlers = []
