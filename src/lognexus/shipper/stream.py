"""Rotating, compressing, uploading log stream."""

from __future__ import annotations

import asyncio
import threading
import time
from collections import deque
from datetime import datetime, timezone
from typing import Callable, Deque, Dict, List, Optional, Union

from lognexus.config.settings import ShipperConfig
from lognexus.core.compression import gzip_bytes
from lognexus.core.models import (
    ActiveSegment,
    RotationReason,
    ShipperState,
    ShutdownReport,
    UploadTask,
)
from lognexus.core.naming import ObjectKeyNamer
from lognexus.errors import ShipperClosedError, TransientTransferError, UploadExhaustedError
from lognexus.monitoring.metrics import (
    PENDING_UPLOADS,
    SEGMENT_UPLOADS,
    SEGMENTS_SEALED,
    SHIPPER_BYTES_WRITTEN,
    UPLOAD_LATENCY,
    UPLOAD_RETRIES,
)
from lognexus.shipper.storage import ObjectStore, S3ObjectStore
from lognexus.utils.logging import get_logger, log_context
from lognexus.utils.retry import async_retry

logger = get_logger(__name__)

ErrorCallback = Callable[[UploadExhaustedError], None]

GZIP_CONTENT_TYPE = "application/gzip"
TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"
_REPORT_HISTORY = 1000


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _running_in(loop: asyncio.AbstractEventLoop) -> bool:
    try:
        return asyncio.get_running_loop() is loop
    except RuntimeError:
        return False


class LogShipper:
    """
    Writable sink that ships log segments to object storage.

    ``write()`` only appends to the active segment and never touches the
    network. A segment is sealed once it holds ``max_file_size_bytes`` or
    when the rotation timer fires with data buffered; sealed segments are
    uploaded by ``max_in_flight`` workers in seal order while new writes
    keep accumulating. Transient upload failures are retried with bounded
    exponential backoff; a segment that still fails is reported through
    logging, metrics and ``on_error`` and ingestion carries on.

    Usage::

        async with LogShipper(config) as shipper:
            shipper.write("line\\n")
    """

    def __init__(
        self,
        config: ShipperConfig,
        *,
        store: Optional[ObjectStore] = None,
        on_error: Optional[ErrorCallback] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        config.s3.require()

        self.config = config
        self.policy = config.policy
        self.app_id = config.app_id
        self.bucket: str = config.s3.bucket or ""
        self.store: ObjectStore = store or S3ObjectStore.from_settings(config.s3)
        self.on_error = on_error
        self._clock = clock

        self._namer = ObjectKeyNamer(
            self.policy.name_template,
            self.policy.folder,
            self.app_id,
            self.policy.compress,
        )
        self._lock = threading.RLock()
        self._segment = self._open_segment()
        self._sequence = 0
        self._state = ShipperState.ACCUMULATING
        self._closed = False

        self._queue: asyncio.Queue[UploadTask] = asyncio.Queue()
        self._pending: Dict[int, UploadTask] = {}
        self._key_locks: Dict[str, asyncio.Lock] = {}
        self._workers: List[asyncio.Task[None]] = []
        self._timers: List[asyncio.Task[None]] = []
        self._loop: Optional[asyncio.AbstractEventLoop] = None

        self._uploaded: Deque[str] = deque(maxlen=_REPORT_HISTORY)
        self._failed: Deque[str] = deque(maxlen=_REPORT_HISTORY)
        self._final_report: Optional[ShutdownReport] = None

        self._put = async_retry(
            max_attempts=config.upload_max_attempts,
            backoff_base=config.upload_backoff_base,
            max_wait=config.upload_backoff_max,
            exceptions=(TransientTransferError,),
            on_retry=self._record_retry,
        )(self._put_once)

    # ------------------------------------------------------------------
    # Lifecycle

    async def start(self) -> None:
        """Bind to the running loop and start upload workers and timers."""
        if self._closed:
            raise ShipperClosedError("shipper is closed")
        if self._workers:
            return
        self._loop = asyncio.get_running_loop()
        self._spawn_workers()
        self._timers.append(
            asyncio.create_task(self._rotation_loop(), name="lognexus-rotate")
        )
        if self.config.upload_every:
            self._timers.append(
                asyncio.create_task(
                    self._checkpoint_loop(self.config.upload_every),
                    name="lognexus-checkpoint",
                )
            )
        logger.info(
            "shipper_started",
            bucket=self.bucket,
            app_id=self.app_id,
            rotate_every=self.policy.rotate_every,
            max_file_size_bytes=self.policy.max_file_size_bytes,
            compress=self.policy.compress,
            max_in_flight=self.config.max_in_flight,
        )

    def _spawn_workers(self) -> None:
        for index in range(self.config.max_in_flight):
            self._workers.append(
                asyncio.create_task(self._upload_worker(), name=f"lognexus-upload-{index}")
            )

    async def close(self, timeout: Optional[float] = None) -> ShutdownReport:
        """
        Seal the final partial segment and wait for every upload.

        With ``timeout`` set, uploads still running when it expires are
        cancelled and their keys are listed in ``ShutdownReport.unconfirmed``.
        """
        if self._final_report is not None:
            return self._final_report

        with self._lock:
            final = self._seal(RotationReason.SHUTDOWN)
            self._closed = True
        if final is not None:
            self._log_sealed(final, RotationReason.SHUTDOWN)

        for timer in self._timers:
            timer.cancel()
        await asyncio.gather(*self._timers, return_exceptions=True)
        self._timers.clear()

        if not self._workers:
            self._loop = asyncio.get_running_loop()
            self._spawn_workers()

        # let enqueues scheduled from other threads land before joining
        await asyncio.sleep(0)
        timed_out = False
        try:
            if timeout is None:
                await self._queue.join()
            else:
                await asyncio.wait_for(self._queue.join(), timeout=timeout)
        except asyncio.TimeoutError:
            timed_out = True
        finally:
            for worker in self._workers:
                worker.cancel()
            await asyncio.gather(*self._workers, return_exceptions=True)
            self._workers.clear()

        report = ShutdownReport(
            uploaded=list(self._uploaded),
            failed=list(self._failed),
            unconfirmed=[self._pending[seq].key for seq in sorted(self._pending)],
            timed_out=timed_out,
        )
        self._state = ShipperState.CLOSED
        self._final_report = report

        if timed_out:
            logger.warning(
                "shipper_close_timeout",
                timeout_seconds=timeout,
                unconfirmed=report.unconfirmed,
            )
        logger.info(
            "shipper_closed",
            uploaded=len(report.uploaded),
            failed=len(report.failed),
            unconfirmed=len(report.unconfirmed),
        )
        return report

    async def __aenter__(self) -> "LogShipper":
        await self.start()
        return self

    async def __aexit__(self, *_exc: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Write path

    def write(self, data: Union[bytes, bytearray, str]) -> None:
        """Append one chunk (typically one log record) to the active segment."""
        chunk = data.encode("utf-8") if isinstance(data, str) else bytes(data)
        if not chunk:
            return
        with self._lock:
            if self._closed:
                raise ShipperClosedError("write on closed shipper")
            self._segment.append(chunk)
            sealed = None
            if self._segment.bytes_written >= self.policy.max_file_size_bytes:
                sealed = self._seal(RotationReason.SIZE)
        SHIPPER_BYTES_WRITTEN.labels(app_id=self.app_id).inc(len(chunk))
        if sealed is not None:
            self._log_sealed(sealed, RotationReason.SIZE)

    def rotate(self, reason: RotationReason = RotationReason.MANUAL) -> Optional[UploadTask]:
        """Seal the active segment now. Returns None when there is nothing buffered."""
        with self._lock:
            if self._closed:
                return None
            sealed = self._seal(reason)
        if sealed is not None:
            self._log_sealed(sealed, reason)
        return sealed

    def checkpoint(self) -> Optional[UploadTask]:
        """Upload a snapshot of the active segment to its key without sealing it."""
        with self._lock:
            segment = self._segment
            if self._closed or segment.checkpointed_bytes == segment.bytes_written:
                return None
            segment.checkpointed_bytes = segment.bytes_written
            self._sequence += 1
            task = UploadTask(
                sequence=self._sequence,
                bucket=self.bucket,
                key=segment.key,
                payload=bytes(segment.buffer),
                compressed=self.policy.compress,
                checkpoint=True,
                sealed_at=self._clock(),
            )
            self._enqueue(task)
        logger.debug("segment_checkpointed", key=task.key, bytes=task.content_length)
        return task

    def _open_segment(self) -> ActiveSegment:
        now = self._clock()
        return ActiveSegment(key=self._namer.next_key(now), created_at=now)

    def _seal(self, reason: RotationReason) -> Optional[UploadTask]:
        # caller holds self._lock
        segment = self._segment
        if segment.is_empty:
            return None

        self._state = ShipperState.ROTATING
        self._sequence += 1
        task = UploadTask(
            sequence=self._sequence,
            bucket=self.bucket,
            key=segment.key,
            payload=bytes(segment.buffer),
            compressed=self.policy.compress,
            sealed_at=self._clock(),
        )
        self._segment = self._open_segment()
        self._pending[task.sequence] = task
        self._enqueue(task)
        self._state = ShipperState.UPLOADING

        SEGMENTS_SEALED.labels(app_id=self.app_id, reason=reason.value).inc()
        PENDING_UPLOADS.labels(app_id=self.app_id).set(len(self._pending))
        return task

    def _enqueue(self, task: UploadTask) -> None:
        loop = self._loop
        if loop is not None and not _running_in(loop):
            loop.call_soon_threadsafe(self._queue.put_nowait, task)
        else:
            self._queue.put_nowait(task)

    def _log_sealed(self, task: UploadTask, reason: RotationReason) -> None:
        logger.info(
            "segment_sealed",
            key=task.key,
            sequence=task.sequence,
            bytes=task.content_length,
            reason=reason.value,
        )

    # ------------------------------------------------------------------
    # Upload path

    async def _rotation_loop(self) -> None:
        while True:
            await asyncio.sleep(self.policy.rotate_every)
            self.rotate(RotationReason.INTERVAL)

    async def _checkpoint_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            self.checkpoint()

    async def _upload_worker(self) -> None:
        while True:
            task = await self._queue.get()
            try:
                await self._upload(task)
            finally:
                self._queue.task_done()

    async def _upload(self, task: UploadTask) -> None:
        # Checkpoints and the sealed segment share a key; serialise them so
        # an older snapshot can never land after the final object.
        lock = self._key_locks.setdefault(task.key, asyncio.Lock())
        async with lock:
            start = time.perf_counter()
            with log_context(segment_key=task.key, sequence=task.sequence):
                try:
                    body = await self._encode(task)
                    await self._put(task, body)
                except Exception as exc:  # noqa: BLE001 - contained, reported below
                    self._handle_failure(task, exc)
                else:
                    self._handle_success(task, time.perf_counter() - start)
        if not task.checkpoint:
            self._key_locks.pop(task.key, None)

    async def _encode(self, task: UploadTask) -> bytes:
        if not task.compressed:
            return task.payload
        return await asyncio.to_thread(gzip_bytes, task.payload)

    async def _put_once(self, task: UploadTask, body: bytes) -> None:
        task.attempt += 1
        content_type = GZIP_CONTENT_TYPE if task.compressed else TEXT_CONTENT_TYPE
        await self.store.put(task.key, body, content_type=content_type)

    def _record_retry(self, _attempt: int, _exc: BaseException) -> None:
        UPLOAD_RETRIES.labels(app_id=self.app_id).inc()

    def _handle_success(self, task: UploadTask, elapsed: float) -> None:
        if task.checkpoint:
            SEGMENT_UPLOADS.labels(app_id=self.app_id, outcome="checkpoint").inc()
            logger.debug("checkpoint_uploaded", key=task.key, bytes=task.content_length)
            return

        self._pending.pop(task.sequence, None)
        self._uploaded.append(task.key)
        self._settle()
        SEGMENT_UPLOADS.labels(app_id=self.app_id, outcome="uploaded").inc()
        UPLOAD_LATENCY.observe(elapsed)
        logger.info(
            "segment_uploaded",
            key=task.key,
            bytes=task.content_length,
            attempts=task.attempt,
            elapsed_seconds=round(elapsed, 3),
        )

    def _handle_failure(self, task: UploadTask, exc: Exception) -> None:
        if task.checkpoint:
            SEGMENT_UPLOADS.labels(app_id=self.app_id, outcome="checkpoint_failed").inc()
            logger.warning("checkpoint_upload_failed", key=task.key, error=str(exc))
            return

        error = UploadExhaustedError(task.key, task.content_length, task.attempt, exc)
        self._pending.pop(task.sequence, None)
        self._failed.append(task.key)
        self._settle()
        SEGMENT_UPLOADS.labels(app_id=self.app_id, outcome="failed").inc()
        logger.error(
            "segment_upload_failed",
            key=task.key,
            bytes=task.content_length,
            attempts=task.attempt,
            error=str(exc),
            exc_info=exc,
        )
        if self.on_error is not None:
            try:
                self.on_error(error)
            except Exception as callback_exc:  # noqa: BLE001 - never break the worker
                logger.error("upload_error_callback_failed", exc_info=callback_exc)

    def _settle(self) -> None:
        PENDING_UPLOADS.labels(app_id=self.app_id).set(len(self._pending))
        if not self._pending and self._state is ShipperState.UPLOADING:
            self._state = ShipperState.ACCUMULATING

    # ------------------------------------------------------------------
    # Introspection

    @property
    def state(self) -> ShipperState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def active_segment(self) -> ActiveSegment:
        return self._segment

    @property
    def pending(self) -> List[UploadTask]:
        """Sealed segments not yet confirmed uploaded, in seal order."""
        return [self._pending[seq] for seq in sorted(self._pending)]


class NullSink:
    """Drop-in replacement for LogShipper when S3 logging is disabled."""

    closed = False

    def write(self, data: Union[bytes, bytearray, str]) -> None:
        return None

    async def start(self) -> None:
        return None

    async def close(self, timeout: Optional[float] = None) -> ShutdownReport:
        return ShutdownReport()


_shared: Optional[LogShipper] = None


def create_shipper(
    config: Optional[ShipperConfig] = None,
    *,
    reuse: bool = False,
    store: Optional[ObjectStore] = None,
    on_error: Optional[ErrorCallback] = None,
) -> LogShipper:
    """
    Build a new LogShipper.

    With ``reuse=True`` the most recently created shipper is returned
    instead, as long as it has not been closed.
    """
    global _shared
    if reuse and _shared is not None and not _shared.closed:
        return _shared
    shipper = LogShipper(config or ShipperConfig.from_env(), store=store, on_error=on_error)
    _shared = shipper
    return shipper


__all__ = ["LogShipper", "NullSink", "create_shipper", "ErrorCallback"]
