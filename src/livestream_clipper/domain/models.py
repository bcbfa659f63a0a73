from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from pathlib import Path
from typing import Any


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class QueueStatus(StrEnum):
    PENDING = "PENDING"
    RECORDING = "RECORDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class TriggerType(StrEnum):
    AUDIO = "AUDIO"
    VISUAL = "VISUAL"
    MANUAL = "MANUAL"


class ExportFormat(StrEnum):
    MP4 = "MP4"
    WEBM = "WEBM"
    GIF = "GIF"
    MOV = "MOV"


class Quality(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    ORIGINAL = "original"


@dataclass(slots=True)
class ClipQueueItem:
    id: str
    session_id: str
    trigger_type: TriggerType
    t0: float
    status: QueueStatus = QueueStatus.RECORDING
    trigger_source: str | None = None
    trigger_confidence: float | None = None
    t1: float | None = None
    clip_id: str | None = None
    thumbnail_path: str | None = None
    title: str | None = None
    error_message: str | None = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @property
    def duration(self) -> float | None:
        if self.t1 is None:
            return None
        return self.t1 - self.t0


@dataclass(slots=True)
class Session:
    id: str
    workflow: str
    started_at: datetime = field(default_factory=utc_now)
    title: str | None = None
    ended_at: datetime | None = None


@dataclass(slots=True)
class Clip:
    id: str
    session_id: str
    path: Path
    t0: float
    t1: float
    thumbnail_path: Path | None = None
    created_at: datetime = field(default_factory=utc_now)


@dataclass(slots=True)
class AudioTrigger:
    id: str
    phrase: str
    enabled: bool = True
    case_sensitive: bool = False


@dataclass(slots=True)
class VisualTrigger:
    id: str
    label: str
    image_id: str
    threshold: float = 0.8
    enabled: bool = True


@dataclass(slots=True)
class TriggerConfig:
    workflow: str
    audio_enabled: bool = False
    audio_triggers: list[AudioTrigger] = field(default_factory=list)
    visual_enabled: bool = False
    visual_triggers: list[VisualTrigger] = field(default_factory=list)
    frame_sample_rate: int = 5
    auto_clip_enabled: bool = False
    auto_clip_duration: int = 60
    trigger_cooldown: int = 30
    id: str = ""
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)


@dataclass(slots=True)
class MediaInfo:
    duration_sec: float
    width: int
    height: int
    codec: str = "unknown"
    fps: str = "30/1"
    bitrate: int = 0
    format_name: str = "unknown"


@dataclass(slots=True)
class ConversionOptions:
    input_path: Path
    output_path: Path
    format: ExportFormat
    quality: Quality = Quality.MEDIUM
    target_aspect_ratio: str | None = None
    max_size_mb: float | None = None
    max_duration_sec: float | None = None
    watermark_text: str | None = None
    generate_thumbnail: bool = False
    thumbnail_path: Path | None = None
    start_sec: float | None = None
    duration_sec: float | None = None


@dataclass(slots=True)
class ConversionResult:
    output_path: Path
    file_size: int
    duration: float
    thumbnail_path: Path | None = None


@dataclass(slots=True)
class NotificationEnvelope:
    id: str
    session_id: str
    ts: int
    type: str
    payload: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "sessionId": self.session_id,
            "ts": self.ts,
            "type": self.type,
            "payload": self.payload,
        }
