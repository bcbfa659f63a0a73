from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone

from livestream_clipper.application.retry_policy import retry
from livestream_clipper.domain.errors import MediaErrorCode, VideoConversionError
from livestream_clipper.domain.models import (
    Clip,
    ClipQueueItem,
    ConversionOptions,
    ConversionResult,
    ExportFormat,
    NotificationEnvelope,
    Quality,
    QueueStatus,
)
from livestream_clipper.domain.notifications import queue_updated
from livestream_clipper.domain.protocols import MediaConverter, NotificationSink, ProcessingStore
from livestream_clipper.infrastructure.storage.artifact_store import ArtifactStore
from livestream_clipper.utils.logger import get_logger


@dataclass(slots=True)
class ProcessorOptions:
    concurrency: int = 1
    polling_interval_sec: float = 5.0
    replay_buffer_seconds: float = 300.0
    conversion_retries: int = 0
    retry_delay_sec: float = 1.0
    quality: Quality = Quality.MEDIUM


@dataclass(frozen=True, slots=True)
class BufferWindow:
    start_offset: float
    end_offset: float

    @property
    def clip_duration(self) -> float:
        return self.end_offset - self.start_offset


def calculate_buffer_offsets(
    t0: float,
    t1: float,
    session_started_at: datetime,
    buffer_saved_at: datetime,
    buffer_duration: float,
) -> BufferWindow:
    """Locate a session-relative clip window inside a saved replay buffer.

    The buffer holds the ``buffer_duration`` seconds that ended at
    ``buffer_saved_at``. Offsets are clamped to the buffer; a window that
    falls entirely outside it raises ``INVALID_TIMESTAMPS``.
    """
    buffer_start = buffer_saved_at.timestamp() - buffer_duration
    clip_start = session_started_at.timestamp() + t0
    clip_end = session_started_at.timestamp() + t1

    start_offset = max(0.0, clip_start - buffer_start)
    end_offset = min(buffer_duration, clip_end - buffer_start)
    details = {"t0": t0, "t1": t1, "start_offset": start_offset, "end_offset": end_offset}

    if start_offset >= buffer_duration:
        raise VideoConversionError(
            "Clip start time is beyond the replay buffer",
            MediaErrorCode.INVALID_TIMESTAMPS,
            {**details, "buffer_duration": buffer_duration},
        )
    if end_offset <= 0:
        raise VideoConversionError(
            "Clip end time is before the replay buffer starts",
            MediaErrorCode.INVALID_TIMESTAMPS,
            {**details, "buffer_duration": buffer_duration},
        )
    if start_offset >= end_offset:
        raise VideoConversionError(
            "Invalid clip timestamps: start must be before end",
            MediaErrorCode.INVALID_TIMESTAMPS,
            details,
        )
    return BufferWindow(start_offset=start_offset, end_offset=end_offset)


def _is_conversion_failure(exc: Exception) -> bool:
    return isinstance(exc, VideoConversionError) and exc.code == MediaErrorCode.CONVERSION_FAILED


class ClipQueueProcessor:
    """Drains PENDING clip queue items through the media converter.

    Each item is claimed with a conditional status update, so several
    processors may share one store. Failures are recorded on the item and
    never raised to the caller.
    """

    def __init__(
        self,
        store: ProcessingStore,
        converter: MediaConverter,
        artifacts: ArtifactStore,
        sink: NotificationSink,
        options: ProcessorOptions | None = None,
        logger=None,
    ) -> None:
        self.store = store
        self.converter = converter
        self.artifacts = artifacts
        self.sink = sink
        self.options = options or ProcessorOptions()
        self.logger = logger or get_logger()
        self._task: asyncio.Task | None = None
        self._stopping = asyncio.Event()
        self._in_flight: set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._stopping = asyncio.Event()
        self._task = asyncio.create_task(self._run_loop())
        self.logger.info(
            "processor.started",
            concurrency=self.options.concurrency,
            polling_interval_sec=self.options.polling_interval_sec,
        )

    async def stop(self) -> None:
        self._stopping.set()
        if self._task is not None:
            await self._task
            self._task = None
        if self._in_flight:
            await asyncio.gather(*self._in_flight, return_exceptions=True)
        self.logger.info("processor.stopped")

    async def run_once(self) -> ClipQueueItem | None:
        """Claim and process the oldest PENDING item. None when the queue is empty."""
        while True:
            item = await self.store.next_pending_item()
            if item is None:
                return None
            result = await self._process(item.id)
            if result is not None:
                return result

    async def process_by_id(self, item_id: str) -> ClipQueueItem | None:
        item = await self.store.get_clip_queue_item(item_id)
        if item is None:
            raise KeyError(f"Clip queue item not found: {item_id}")
        if item.status == QueueStatus.FAILED:
            await self.store.retry_clip_queue_item(item_id)
        elif item.status != QueueStatus.PENDING:
            raise ValueError(f"Cannot process item in status {item.status}")
        return await self._process(item_id)

    async def _run_loop(self) -> None:
        semaphore = asyncio.Semaphore(max(1, self.options.concurrency))
        while not self._stopping.is_set():
            await semaphore.acquire()
            try:
                item = await self.store.next_pending_item()
            except Exception as exc:
                semaphore.release()
                self.logger.error("processor.poll_failed", error=str(exc))
                await self._idle()
                continue

            if item is None:
                semaphore.release()
                await self._idle()
                continue

            task = asyncio.create_task(self._process(item.id))
            self._in_flight.add(task)
            task.add_done_callback(self._in_flight.discard)
            task.add_done_callback(lambda _: semaphore.release())
            task.add_done_callback(self._log_task_failure)

    def _log_task_failure(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self.logger.error("processor.task_failed", error=repr(exc))

    async def _idle(self) -> None:
        try:
            await asyncio.wait_for(self._stopping.wait(), timeout=self.options.polling_interval_sec)
        except asyncio.TimeoutError:
            pass

    async def _process(self, item_id: str) -> ClipQueueItem | None:
        if not await self.store.start_processing(item_id):
            self.logger.debug("processor.claim_lost", item_id=item_id)
            return None

        # Past the claim, every failure must land the row in FAILED.
        try:
            item = await self.store.get_clip_queue_item(item_id)
            if item is None:
                raise KeyError(f"Clip queue item not found: {item_id}")
            self.logger.info("processor.claimed", item_id=item.id, session_id=item.session_id)
            self._publish(queue_updated(item))

            clip, result = await self._produce_clip(item)
            done = await self.store.complete_processing(
                item.id,
                clip.id,
                str(result.thumbnail_path) if result.thumbnail_path else None,
            )
        except Exception as exc:
            self.logger.error("processor.failed", item_id=item_id, error=str(exc))
            try:
                done = await self.store.fail_processing(item_id, str(exc))
            except Exception as store_exc:
                self.logger.error("processor.fail_record_failed", item_id=item_id, error=str(store_exc))
                return None
        else:
            self.logger.info(
                "processor.completed",
                item_id=item.id,
                clip_id=clip.id,
                output=str(result.output_path),
                file_size=result.file_size,
            )

        self._publish(queue_updated(done))
        return done

    async def _produce_clip(self, item: ClipQueueItem) -> tuple[Clip, ConversionResult]:
        if item.t1 is None:
            raise VideoConversionError(
                "Clip has no end time",
                MediaErrorCode.INVALID_TIMESTAMPS,
                {"t0": item.t0},
            )

        session = await self.store.get_session(item.session_id)
        if session is None:
            raise LookupError(f"Session not found: {item.session_id}")

        replay_path = self.artifacts.find_replay_buffer(item.session_id)
        if replay_path is None:
            raise VideoConversionError(
                "No replay buffer found for session",
                MediaErrorCode.REPLAY_NOT_FOUND,
                {"session_id": item.session_id},
            )

        info = await self.converter.probe(replay_path)
        saved_at = datetime.fromtimestamp(replay_path.stat().st_mtime, tz=timezone.utc)
        window = calculate_buffer_offsets(
            t0=item.t0,
            t1=item.t1,
            session_started_at=session.started_at,
            buffer_saved_at=saved_at,
            buffer_duration=info.duration_sec or self.options.replay_buffer_seconds,
        )

        options = ConversionOptions(
            input_path=replay_path,
            output_path=self.artifacts.clip_path(item.session_id, item.id),
            format=ExportFormat.MP4,
            quality=self.options.quality,
            generate_thumbnail=True,
            thumbnail_path=self.artifacts.thumbnail_path(item.session_id, item.id),
            start_sec=window.start_offset,
            duration_sec=window.clip_duration,
        )
        self.logger.info(
            "processor.converting",
            item_id=item.id,
            replay=str(replay_path),
            start_offset=round(window.start_offset, 3),
            duration=round(window.clip_duration, 3),
        )
        result = await retry(
            lambda: self.converter.convert(options),
            retries=self.options.conversion_retries,
            delay_sec=self.options.retry_delay_sec,
            retry_on=_is_conversion_failure,
        )
        clip = await self.store.create_clip(
            session_id=item.session_id,
            path=result.output_path,
            t0=item.t0,
            t1=item.t1,
            thumbnail_path=result.thumbnail_path,
        )
        return clip, result

    def _publish(self, envelope: NotificationEnvelope) -> None:
        try:
            self.sink.publish(envelope)
        except Exception as exc:
            self.logger.warning("processor.publish_failed", type=envelope.type, error=str(exc))
