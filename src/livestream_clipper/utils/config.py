from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path


@dataclass(slots=True)
class AppConfig:
    db_path: Path
    session_dir: Path
    log_level: str = "INFO"
    default_workflow: str = "streamer"


@dataclass(slots=True)
class ProcessorConfig:
    concurrency: int = 1
    polling_interval_sec: float = 5.0
    replay_buffer_seconds: float = 300.0
    conversion_retries: int = 0


@dataclass(slots=True)
class MediaConfig:
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"
    probe_timeout_sec: float = 30.0
    conversion_timeout_sec: float = 600.0
    thumbnail_timeout_sec: float = 10.0
    thumbnail_width: int = 640
    thumbnail_quality: int = 5
    default_quality: str = "medium"


@dataclass(slots=True)
class Settings:
    app: AppConfig
    processor: ProcessorConfig
    media: MediaConfig
    root_dir: Path


def _resolve(root_dir: Path, value: str) -> Path:
    path = Path(value).expanduser()
    return path if path.is_absolute() else root_dir / path


def load_settings(root_dir: Path) -> Settings:
    config_path = root_dir / "config" / "default.toml"
    with config_path.open("rb") as fh:
        raw = tomllib.load(fh)

    app = raw.get("app", {})
    proc = raw.get("processor", {})
    media = raw.get("media", {})

    return Settings(
        app=AppConfig(
            db_path=_resolve(
                root_dir,
                os.getenv("LIVESTREAM_CLIPPER_DB", str(app.get("db_path", "runs/clip_queue.db"))),
            ),
            session_dir=_resolve(root_dir, os.getenv("SESSION_DIR", str(app.get("session_dir", "sessions")))),
            log_level=os.getenv("LOG_LEVEL", str(app.get("log_level", "INFO"))),
            default_workflow=str(app.get("default_workflow", "streamer")),
        ),
        processor=ProcessorConfig(
            concurrency=max(1, int(proc.get("concurrency", 1))),
            polling_interval_sec=float(proc.get("polling_interval_sec", 5.0)),
            replay_buffer_seconds=float(
                os.getenv("REPLAY_BUFFER_SECONDS", proc.get("replay_buffer_seconds", 300))
            ),
            conversion_retries=max(0, int(proc.get("conversion_retries", 0))),
        ),
        media=MediaConfig(
            ffmpeg_path=os.getenv("FFMPEG_PATH", str(media.get("ffmpeg_path", "ffmpeg"))),
            ffprobe_path=os.getenv("FFPROBE_PATH", str(media.get("ffprobe_path", "ffprobe"))),
            probe_timeout_sec=float(media.get("probe_timeout_sec", 30)),
            conversion_timeout_sec=float(media.get("conversion_timeout_sec", 600)),
            thumbnail_timeout_sec=float(media.get("thumbnail_timeout_sec", 10)),
            thumbnail_width=int(media.get("thumbnail_width", 640)),
            thumbnail_quality=int(media.get("thumbnail_quality", 5)),
            default_quality=str(media.get("default_quality", "medium")),
        ),
        root_dir=root_dir,
    )
