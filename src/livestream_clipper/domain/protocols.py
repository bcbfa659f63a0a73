from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Protocol

from .models import (
    Clip,
    ClipQueueItem,
    ConversionOptions,
    ConversionResult,
    MediaInfo,
    NotificationEnvelope,
    QueueStatus,
    Session,
    TriggerConfig,
    TriggerType,
)


class ClipQueueStore(Protocol):
    async def get_session(self, session_id: str) -> Session | None:
        """Return the session or None."""

    async def create_clip_queue_item(
        self,
        session_id: str,
        trigger_type: TriggerType,
        t0: float,
        trigger_source: str | None = None,
        trigger_confidence: float | None = None,
        title: str | None = None,
    ) -> ClipQueueItem:
        """Insert a RECORDING row and return it."""

    async def get_clip_queue_item(self, item_id: str) -> ClipQueueItem | None:
        """Return the row or None."""

    async def end_recording(self, item_id: str, t1: float) -> ClipQueueItem:
        """RECORDING -> PENDING with the end time."""

    async def delete_clip_queue_item(self, item_id: str) -> None:
        """Remove a RECORDING, PENDING or FAILED row."""

    async def list_clip_queue_items(
        self,
        session_id: str | None = None,
        status: QueueStatus | list[QueueStatus] | None = None,
    ) -> list[ClipQueueItem]:
        """Status-filtered listing."""


class ProcessingStore(ClipQueueStore, Protocol):
    async def next_pending_item(self) -> ClipQueueItem | None:
        """Oldest PENDING row."""

    async def start_processing(self, item_id: str) -> bool:
        """Atomically claim a PENDING row. False when another worker won."""

    async def complete_processing(
        self, item_id: str, clip_id: str, thumbnail_path: str | None = None
    ) -> ClipQueueItem:
        """PROCESSING -> COMPLETED."""

    async def fail_processing(self, item_id: str, error_message: str) -> ClipQueueItem:
        """PROCESSING -> FAILED."""

    async def retry_clip_queue_item(self, item_id: str) -> ClipQueueItem:
        """FAILED -> PENDING, clearing the error."""

    async def create_clip(
        self,
        session_id: str,
        path: Path,
        t0: float,
        t1: float,
        thumbnail_path: Path | None = None,
    ) -> Clip:
        """Insert the final artifact row."""


class TriggerConfigSource(Protocol):
    async def get_trigger_config(self, workflow: str) -> TriggerConfig | None:
        """Return the workflow's config or None."""


class MediaConverter(Protocol):
    async def probe(self, path: Path) -> MediaInfo:
        """Inspect a media file."""

    async def convert(self, options: ConversionOptions) -> ConversionResult:
        """Encode according to options."""

    async def generate_thumbnail(self, video_path: Path, output_path: Path, timestamp_sec: float) -> Path:
        """Grab a single frame as a JPEG."""


class NotificationSink(Protocol):
    def publish(self, envelope: NotificationEnvelope) -> None:
        """Deliver an envelope to subscribers."""


class TimerHandle(Protocol):
    def cancel(self) -> None:
        """Cancel the pending callback."""


class Scheduler(Protocol):
    def call_later(self, delay_sec: float, callback: Callable[[], object]) -> TimerHandle:
        """Run callback after delay_sec; return a cancellable handle."""
