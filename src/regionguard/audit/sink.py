"""Durable audit sinks.

An :class:`AuditSink` receives events from the audit emitter's drain
thread.  Sinks signal failure by raising :class:`AuditSinkUnavailable`; the
emitter retries and finally falls back to the process log.

Example
-------
>>> from pathlib import Path
>>> sink = JsonlAuditSink(Path("/tmp/regionguard-audit.jsonl"))
>>> sink.write(event)
>>> len(sink.read_all())
1
"""
from __future__ import annotations

import json
import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Iterator
from pathlib import Path

from regionguard.audit.events import AuditEvent
from regionguard.errors import AuditSinkUnavailable

logger = logging.getLogger(__name__)


class AuditSink(ABC):
    """Destination for audit events outside process memory."""

    @abstractmethod
    def write(self, event: AuditEvent) -> None:
        """Persist *event*.

        Raises
        ------
        AuditSinkUnavailable
            If the event could not be written.
        """

    def close(self) -> None:
        """Release any resources held by the sink."""


class JsonlAuditSink(AuditSink):
    """Append-only JSONL audit file.

    Parameters
    ----------
    log_path:
        Path to the ``.jsonl`` file.  Parent directories are created on
        first write.
    """

    def __init__(self, log_path: str | Path) -> None:
        self._log_path = Path(log_path)
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Write API
    # ------------------------------------------------------------------

    def write(self, event: AuditEvent) -> None:
        line = json.dumps(event.to_dict(), default=str)
        try:
            with self._lock:
                self._log_path.parent.mkdir(parents=True, exist_ok=True)
                with self._log_path.open("a", encoding="utf-8") as fh:
                    fh.write(line + "\n")
        except OSError as exc:
            raise AuditSinkUnavailable(f"Cannot write audit log {self._log_path}: {exc}") from exc

    # ------------------------------------------------------------------
    # Read API
    # ------------------------------------------------------------------

    def read_all(self) -> list[AuditEvent]:
        """Return every event in the file, oldest first."""
        return list(self._iter_events())

    def count(self) -> int:
        return sum(1 for _ in self._iter_events())

    def _iter_events(self) -> Iterator[AuditEvent]:
        if not self._log_path.exists():
            return
        with self._lock:
            with self._log_path.open("r", encoding="utf-8") as fh:
                lines = fh.readlines()
        for number, line in enumerate(lines, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                yield AuditEvent.from_dict(json.loads(line))
            except (json.JSONDecodeError, KeyError, ValueError) as exc:
                logger.warning("Skipping malformed audit line %d in %s: %s", number, self._log_path, exc)

    @property
    def log_path(self) -> Path:
        return self._log_path


__all__ = ["AuditSink", "JsonlAuditSink"]
