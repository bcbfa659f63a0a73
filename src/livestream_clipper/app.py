from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from livestream_clipper.application.auto_clip_manager import AutoClipManager, create_auto_clip_manager
from livestream_clipper.application.exporter import PlatformExporter
from livestream_clipper.application.queue_processor import ClipQueueProcessor, ProcessorOptions
from livestream_clipper.domain.models import ClipQueueItem, Quality, Session, utc_now
from livestream_clipper.domain.triggers import ManualPress, normalize
from livestream_clipper.infrastructure.media.ffmpeg_builder import FFmpegCommandBuilder
from livestream_clipper.infrastructure.media.ffmpeg_converter import FFmpegMediaConverter
from livestream_clipper.infrastructure.notify.hub import NotificationHub
from livestream_clipper.infrastructure.storage.artifact_store import ArtifactStore
from livestream_clipper.infrastructure.storage.sqlite_repo import SQLiteClipQueueRepository
from livestream_clipper.utils.config import Settings, load_settings
from livestream_clipper.utils.logger import configure_logger, get_logger


@dataclass(slots=True)
class Services:
    settings: Settings
    repo: SQLiteClipQueueRepository
    artifacts: ArtifactStore
    converter: FFmpegMediaConverter
    hub: NotificationHub
    processor: ClipQueueProcessor
    exporter: PlatformExporter

    async def start_session_manager(self, workflow: str | None = None) -> AutoClipManager:
        manager = create_auto_clip_manager(self.repo, self.hub)
        await manager.initialize(workflow or self.settings.app.default_workflow)
        await manager.recover()
        return manager


async def manual_press(manager: AutoClipManager, session: Session) -> ClipQueueItem | None:
    """Start a manual clip, or end the one already recording in this session."""
    now = (utc_now() - session.started_at).total_seconds()
    active = manager.get_active_clip_for_session(session.id)
    if active is not None:
        return await manager.end_clip(active.queue_item_id, max(active.t0, now))
    return await manager.handle_trigger(normalize(ManualPress(session.id, now)))


def default_root_dir() -> Path:
    return Path(__file__).resolve().parents[2]


def build_services(root_dir: Path) -> Services:
    load_dotenv(root_dir / ".env")
    settings = load_settings(root_dir)
    configure_logger(settings.app.log_level)
    logger = get_logger()

    repo = SQLiteClipQueueRepository(settings.app.db_path)
    artifacts = ArtifactStore(settings.app.session_dir)
    converter = FFmpegMediaConverter(
        config=settings.media,
        command_builder=FFmpegCommandBuilder(settings.media),
        logger=logger,
    )
    hub = NotificationHub(logger=logger)
    processor = ClipQueueProcessor(
        store=repo,
        converter=converter,
        artifacts=artifacts,
        sink=hub,
        options=ProcessorOptions(
            concurrency=settings.processor.concurrency,
            polling_interval_sec=settings.processor.polling_interval_sec,
            replay_buffer_seconds=settings.processor.replay_buffer_seconds,
            conversion_retries=settings.processor.conversion_retries,
            quality=Quality(settings.media.default_quality),
        ),
        logger=logger,
    )
    exporter = PlatformExporter(converter=converter, logger=logger)

    return Services(
        settings=settings,
        repo=repo,
        artifacts=artifacts,
        converter=converter,
        hub=hub,
        processor=processor,
        exporter=exporter,
    )
