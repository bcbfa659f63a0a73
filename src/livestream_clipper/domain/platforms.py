from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

from .errors import MediaErrorCode, VideoConversionError
from .models import ExportFormat


class SocialPlatform(StrEnum):
    TWITTER = "TWITTER"
    LINKEDIN = "LINKEDIN"
    INSTAGRAM = "INSTAGRAM"
    TIKTOK = "TIKTOK"
    YOUTUBE = "YOUTUBE"
    FACEBOOK = "FACEBOOK"
    THREADS = "THREADS"
    BLUESKY = "BLUESKY"


@dataclass(frozen=True, slots=True)
class PlatformConstraints:
    max_length: int
    supports_threads: bool
    supports_hashtags: bool
    supports_markdown: bool
    supports_emojis: bool
    video_max_size_mb: float | None = None
    video_formats: tuple[ExportFormat, ...] = field(default_factory=tuple)
    video_max_duration_sec: float | None = None
    aspect_ratios: tuple[str, ...] = field(default_factory=tuple)


_MP4_MOV = (ExportFormat.MP4, ExportFormat.MOV)

PLATFORM_CONSTRAINTS: dict[SocialPlatform, PlatformConstraints] = {
    SocialPlatform.TWITTER: PlatformConstraints(
        max_length=280,
        supports_threads=True,
        supports_hashtags=True,
        supports_markdown=False,
        supports_emojis=True,
        video_max_size_mb=512,
        video_formats=_MP4_MOV,
        video_max_duration_sec=140,
        aspect_ratios=("16:9", "1:1", "9:16"),
    ),
    SocialPlatform.LINKEDIN: PlatformConstraints(
        max_length=3000,
        supports_threads=False,
        supports_hashtags=True,
        supports_markdown=False,
        supports_emojis=True,
        video_max_size_mb=5120,
        video_formats=_MP4_MOV,
        video_max_duration_sec=600,
        aspect_ratios=("16:9", "1:1", "9:16"),
    ),
    SocialPlatform.INSTAGRAM: PlatformConstraints(
        max_length=2200,
        supports_threads=False,
        supports_hashtags=True,
        supports_markdown=False,
        supports_emojis=True,
        video_max_size_mb=100,
        video_formats=_MP4_MOV,
        video_max_duration_sec=60,
        aspect_ratios=("1:1", "4:5", "9:16"),
    ),
    SocialPlatform.TIKTOK: PlatformConstraints(
        max_length=2200,
        supports_threads=False,
        supports_hashtags=True,
        supports_markdown=False,
        supports_emojis=True,
        video_max_size_mb=500,
        video_formats=(ExportFormat.MP4, ExportFormat.WEBM, ExportFormat.MOV),
        video_max_duration_sec=600,
        aspect_ratios=("9:16",),
    ),
    SocialPlatform.YOUTUBE: PlatformConstraints(
        max_length=5000,
        supports_threads=False,
        supports_hashtags=True,
        supports_markdown=False,
        supports_emojis=True,
        video_max_size_mb=256000,
        video_formats=(ExportFormat.MP4, ExportFormat.MOV, ExportFormat.WEBM),
        video_max_duration_sec=43200,
        aspect_ratios=("16:9", "9:16", "1:1"),
    ),
    SocialPlatform.FACEBOOK: PlatformConstraints(
        max_length=63206,
        supports_threads=False,
        supports_hashtags=True,
        supports_markdown=False,
        supports_emojis=True,
        video_max_size_mb=10240,
        video_formats=_MP4_MOV,
        video_max_duration_sec=7200,
        aspect_ratios=("16:9", "1:1", "9:16"),
    ),
    SocialPlatform.THREADS: PlatformConstraints(
        max_length=500,
        supports_threads=False,
        supports_hashtags=True,
        supports_markdown=False,
        supports_emojis=True,
        video_max_size_mb=500,
        video_formats=_MP4_MOV,
        video_max_duration_sec=300,
        aspect_ratios=("1:1", "4:5", "9:16"),
    ),
    SocialPlatform.BLUESKY: PlatformConstraints(
        max_length=300,
        supports_threads=True,
        supports_hashtags=True,
        supports_markdown=False,
        supports_emojis=True,
        video_max_size_mb=50,
        video_formats=(ExportFormat.MP4,),
        video_max_duration_sec=60,
        aspect_ratios=("16:9", "1:1", "9:16"),
    ),
}


def constraints_for(platform: SocialPlatform | str) -> PlatformConstraints:
    return PLATFORM_CONSTRAINTS[SocialPlatform(str(platform).upper())]


def select_format(platform: SocialPlatform | str, requested: ExportFormat | str | None = None) -> ExportFormat:
    constraints = constraints_for(platform)
    if requested is None:
        return constraints.video_formats[0] if constraints.video_formats else ExportFormat.MP4

    try:
        fmt = ExportFormat(str(requested).upper())
    except ValueError as exc:
        raise VideoConversionError(
            f"Unsupported format: {requested}",
            MediaErrorCode.UNSUPPORTED_FORMAT,
            {"format": str(requested), "platform": str(platform)},
        ) from exc
    if constraints.video_formats and fmt not in constraints.video_formats:
        raise VideoConversionError(
            f"Format {fmt} not supported by {platform}",
            MediaErrorCode.UNSUPPORTED_FORMAT_FOR_PLATFORM,
            {
                "format": fmt.value,
                "platform": str(platform),
                "supported_formats": [f.value for f in constraints.video_formats],
            },
        )
    return fmt


def select_aspect_ratio(platform: SocialPlatform | str) -> str | None:
    ratios = constraints_for(platform).aspect_ratios
    if not ratios:
        return None
    if "9:16" in ratios:
        return "9:16"
    if "16:9" in ratios:
        return "16:9"
    return ratios[0]
