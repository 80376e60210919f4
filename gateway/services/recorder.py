"""Request telemetry recording (fire-and-forget).

Callers enqueue records without waiting; a single consumer task drains the
bounded queue, acquiring its own connection per record. When the queue is
full the record is dropped and a warning is logged, so sustained load can
never stall request handling or grow memory without bound. Write failures
are logged and swallowed: telemetry is best-effort and never retried.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from gateway.db import api_keys as db_api_keys
from gateway.db import requests as db_requests
from gateway.db.pool import get_connection, with_timeout
from gateway.errors import RecordingError

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass(frozen=True)
class PendingRecord:
    """One completed request waiting to be written.

    Exactly one of ``api_key_id`` and ``api_key`` identifies the principal;
    a raw ``api_key`` is resolved by the consumer.
    """

    endpoint: str
    method: str
    status_code: int
    response_time_ms: int | None
    api_key_id: str | None = None
    api_key: str | None = field(default=None, repr=False)
    created_at: datetime = field(default_factory=_utcnow)


class RequestRecorder:
    """Bounded queue of telemetry records with one writer task."""

    def __init__(self, max_queue_size: int = 10_000, connection_factory=None):
        self._queue: asyncio.Queue[PendingRecord] = asyncio.Queue(maxsize=max_queue_size)
        self._connection_factory = connection_factory or get_connection
        self._consumer: asyncio.Task | None = None
        self.dropped = 0
        self.written = 0

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def running(self) -> bool:
        return self._consumer is not None and not self._consumer.done()

    def record(
        self,
        api_key_id: str,
        endpoint: str,
        method: str,
        status_code: int,
        elapsed_ms: int | None,
    ) -> bool:
        """Queue a record for an already-resolved principal.

        Returns False when the record was dropped.
        """
        return self._enqueue(
            PendingRecord(
                endpoint=endpoint,
                method=method,
                status_code=status_code,
                response_time_ms=elapsed_ms,
                api_key_id=api_key_id,
            )
        )

    def record_for_key(
        self,
        api_key: str,
        endpoint: str,
        method: str,
        status_code: int,
        elapsed_ms: int | None,
    ) -> bool:
        """Queue a record identified by a raw key, resolved off the request path."""
        return self._enqueue(
            PendingRecord(
                endpoint=endpoint,
                method=method,
                status_code=status_code,
                response_time_ms=elapsed_ms,
                api_key=api_key,
            )
        )

    def _enqueue(self, record: PendingRecord) -> bool:
        try:
            self._queue.put_nowait(record)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                "Telemetry queue full, dropping record for %s %s (%d dropped so far)",
                record.method,
                record.endpoint,
                self.dropped,
            )
            return False
        return True

    async def start(self) -> None:
        """Start the consumer task on the running loop."""
        if self.running:
            return
        self._consumer = asyncio.create_task(self._consume(), name="request-recorder")

    async def stop(self, timeout: float = 5.0) -> None:
        """Drain queued records for up to ``timeout`` seconds, then stop."""
        if self._consumer is None:
            return
        try:
            await asyncio.wait_for(self._queue.join(), timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Telemetry drain timed out with %d records still queued", self._queue.qsize()
            )
        self._consumer.cancel()
        try:
            await self._consumer
        except asyncio.CancelledError:
            pass
        self._consumer = None

    async def flush(self) -> None:
        """Wait until every queued record has been processed."""
        await self._queue.join()

    async def _consume(self) -> None:
        while True:
            record = await self._queue.get()
            try:
                await self._write(record)
            finally:
                self._queue.task_done()

    async def _write(self, record: PendingRecord) -> None:
        """Persist one record. Never raises."""
        try:
            async with self._connection_factory() as conn:
                await with_timeout(self._insert(conn, record))
        except Exception:
            logger.exception(
                "Failed to record request %s %s (status %s)",
                record.method,
                record.endpoint,
                record.status_code,
            )

    async def _insert(self, conn, record: PendingRecord) -> None:
        api_key_id = record.api_key_id
        if api_key_id is None:
            if record.api_key is None:
                raise RecordingError("Record carries no principal")
            api_key_id = await db_api_keys.get_api_key_id(conn, record.api_key)
            if api_key_id is None:
                logger.debug("Skipping telemetry for unknown API key")
                return

        await db_requests.insert_request_record(
            conn,
            api_key_id=api_key_id,
            endpoint=record.endpoint,
            method=record.method,
            status_code=record.status_code,
            response_time_ms=record.response_time_ms,
            created_at=record.created_at,
        )
        self.written += 1
