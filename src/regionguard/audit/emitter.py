"""In-memory audit trail with an optional durable sink.

AuditEmitter keeps the most recent ``max_events`` events in a bounded
deque (oldest evicted first) and serves queries, statistics and exports
from it.  When a durable :class:`~regionguard.audit.sink.AuditSink` is
configured, every event is also queued for a background drain thread that
writes it to the sink, retrying a bounded number of times.  Events the sink
cannot take are written to the ``regionguard.audit.fallback`` logger.

:meth:`AuditEmitter.record` never raises and never waits on the sink.

Example
-------
>>> emitter = AuditEmitter(max_events=100)
>>> emitter.record(AuditEvent.create("u-1", AuditEventType.REGION_ACCESS_GRANTED, True, "ok"))
>>> len(emitter)
1
"""
from __future__ import annotations

import json
import logging
import queue
import threading
from collections import Counter, deque

from tenacity import Retrying, before_sleep_log, retry_if_exception_type, stop_after_attempt, wait_fixed

from regionguard.audit.events import AuditEvent, AuditEventType, AuditFilter, AuditStats
from regionguard.audit.exporter import events_to_csv, events_to_json
from regionguard.audit.sink import AuditSink

logger = logging.getLogger(__name__)
fallback_logger = logging.getLogger("regionguard.audit.fallback")

DEFAULT_MAX_EVENTS: int = 10_000


class AuditEmitter:
    """Bounded, thread-safe audit trail.

    Parameters
    ----------
    max_events:
        Number of events retained in memory.
    sink:
        Optional durable sink.
    retry_attempts:
        Attempts per event before falling back to the process log.
    queue_size:
        Capacity of the queue feeding the drain thread.  Events arriving
        while the queue is full go straight to the fallback log.
    async_drain:
        When ``False`` sink writes happen inline in :meth:`record`.
    retry_delay_seconds:
        Pause between attempts on the drain thread.
    """

    def __init__(
        self,
        max_events: int = DEFAULT_MAX_EVENTS,
        sink: AuditSink | None = None,
        retry_attempts: int = 3,
        queue_size: int = 1000,
        async_drain: bool = True,
        retry_delay_seconds: float = 0.05,
    ) -> None:
        if max_events <= 0:
            raise ValueError(f"max_events must be positive; got {max_events!r}.")
        if retry_attempts <= 0:
            raise ValueError(f"retry_attempts must be positive; got {retry_attempts!r}.")
        self._events: deque[AuditEvent] = deque(maxlen=max_events)
        self._lock = threading.Lock()
        self._sink = sink
        self._retry_attempts = retry_attempts
        self._retry_delay = retry_delay_seconds
        self._async = async_drain
        self._queue: queue.Queue[AuditEvent] = queue.Queue(maxsize=queue_size)
        self._running = False
        self._worker: threading.Thread | None = None
        self._worker_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Write API
    # ------------------------------------------------------------------

    def record(self, event: AuditEvent) -> None:
        """Append *event* and hand it to the durable sink, if any."""
        try:
            with self._lock:
                self._events.append(event)
            logger.debug(
                "Audit %s subject=%s region=%s success=%s",
                event.event_type.value,
                event.subject,
                event.region,
                event.success,
            )
            if self._sink is None:
                return
            if not self._async:
                self._deliver(event)
                return
            self.start()
            try:
                self._queue.put_nowait(event)
            except queue.Full:
                logger.error("Audit queue full; writing event %s to fallback log", event.event_id)
                self._fallback(event)
        except Exception:
            fallback_logger.exception("Failed to record audit event %s", getattr(event, "event_id", "?"))

    def start(self) -> None:
        """Start the drain thread.  No-op without a sink or when running."""
        if self._sink is None or not self._async or self._running:
            return
        with self._worker_lock:
            if self._running:
                return
            self._running = True
            self._worker = threading.Thread(
                target=self._drain_loop,
                daemon=True,
                name="regionguard-audit-drain",
            )
            self._worker.start()
        logger.info("Audit drain started")

    def flush(self) -> None:
        """Block until every queued event has been delivered or given up on."""
        if self._running:
            self._queue.join()
        else:
            self._drain_pending()

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the drain thread, deliver what is left and close the sink."""
        self._running = False
        if self._worker is not None:
            self._worker.join(timeout=timeout)
            self._worker = None
        self._drain_pending()
        if self._sink is not None:
            self._sink.close()

    # ------------------------------------------------------------------
    # Read API
    # ------------------------------------------------------------------

    def query(self, audit_filter: AuditFilter | None = None) -> list[AuditEvent]:
        """Return matching events, oldest first."""
        with self._lock:
            snapshot = list(self._events)
        if audit_filter is None:
            return snapshot
        return [event for event in snapshot if audit_filter.matches(event)]

    def export_csv(self, audit_filter: AuditFilter | None = None) -> bytes:
        return events_to_csv(self.query(audit_filter))

    def export_json(self, audit_filter: AuditFilter | None = None) -> str:
        return events_to_json(self.query(audit_filter))

    def stats(self, audit_filter: AuditFilter | None = None) -> AuditStats:
        events = self.query(audit_filter)
        successful = sum(1 for e in events if e.success)
        return AuditStats(
            total=len(events),
            successful=successful,
            failed=len(events) - successful,
            by_type=dict(Counter(e.event_type.value for e in events)),
            by_region=dict(Counter(e.region for e in events if e.region)),
            by_subject=dict(Counter(e.subject for e in events)),
        )

    def recent_denials(self, region: str | None = None, limit: int = 20) -> list[AuditEvent]:
        """Latest region access denials, newest first."""
        denials = self.query(AuditFilter(event_type=AuditEventType.REGION_ACCESS_DENIED, region=region))
        return list(reversed(denials))[:limit]

    def subject_activity(self, subject: str) -> dict[str, object]:
        """Summarize what *subject* has done."""
        events = self.query(AuditFilter(subject=subject))
        regions = sorted(
            {e.region for e in events if e.region and e.success and e.event_type == AuditEventType.REGION_ACCESS_GRANTED}
        )
        return {
            "subject": subject,
            "total_actions": len(events),
            "successful": sum(1 for e in events if e.success),
            "failed": sum(1 for e in events if not e.success),
            "regions_accessed": regions,
            "by_type": dict(Counter(e.event_type.value for e in events)),
            "last_activity": events[-1].timestamp.isoformat() if events else None,
        }

    @property
    def max_events(self) -> int:
        return self._events.maxlen or DEFAULT_MAX_EVENTS

    @property
    def sink(self) -> AuditSink | None:
        return self._sink

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _drain_loop(self) -> None:
        while self._running:
            try:
                event = self._queue.get(timeout=0.5)
            except queue.Empty:
                continue
            try:
                self._deliver(event)
            finally:
                self._queue.task_done()

    def _drain_pending(self) -> None:
        while True:
            try:
                event = self._queue.get_nowait()
            except queue.Empty:
                break
            try:
                self._deliver(event)
            finally:
                self._queue.task_done()

    def _deliver(self, event: AuditEvent) -> None:
        sink = self._sink
        if sink is None:
            raise RuntimeError("AuditEmitter has no sink to deliver to.")
        # Inline delivery never sleeps on the caller's thread.
        retrying = Retrying(
            stop=stop_after_attempt(self._retry_attempts),
            wait=wait_fixed(self._retry_delay if self._async else 0),
            retry=retry_if_exception_type(Exception),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        try:
            retrying(sink.write, event)
        except Exception as exc:
            logger.error(
                "Audit sink write failed for %s after %d attempt(s): %s",
                event.event_id,
                self._retry_attempts,
                exc,
            )
            self._fallback(event)

    def _fallback(self, event: AuditEvent) -> None:
        fallback_logger.warning("AUDIT %s", json.dumps(event.to_dict(), default=str))


__all__ = ["DEFAULT_MAX_EVENTS", "AuditEmitter", "fallback_logger"]
