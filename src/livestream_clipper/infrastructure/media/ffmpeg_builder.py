from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from livestream_clipper.domain.errors import MediaErrorCode, VideoConversionError
from livestream_clipper.domain.models import ConversionOptions, ExportFormat, Quality
from livestream_clipper.utils.config import MediaConfig


@dataclass(frozen=True, slots=True)
class QualityPreset:
    video_bitrate: str | None
    audio_bitrate: str | None
    max_height: int | None


QUALITY_PRESETS: dict[Quality, QualityPreset] = {
    Quality.LOW: QualityPreset("500k", "64k", 720),
    Quality.MEDIUM: QualityPreset("1500k", "128k", 1080),
    Quality.HIGH: QualityPreset("3000k", "192k", 1080),
    Quality.ORIGINAL: QualityPreset(None, None, None),
}

ASPECT_CANVAS: dict[str, tuple[int, int]] = {
    "16:9": (1920, 1080),
    "9:16": (1080, 1920),
    "1:1": (1080, 1080),
    "4:5": (1080, 1350),
}

FORMAT_CODEC_ARGS: dict[ExportFormat, list[str]] = {
    ExportFormat.MP4: [
        "-c:v", "libx264",
        "-c:a", "aac",
        "-preset", "medium",
        "-profile:v", "main",
        "-pix_fmt", "yuv420p",
        "-movflags", "+faststart",
    ],
    ExportFormat.WEBM: [
        "-c:v", "libvpx-vp9",
        "-c:a", "libopus",
        "-deadline", "good",
        "-cpu-used", "2",
    ],
    ExportFormat.MOV: [
        "-c:v", "libx264",
        "-c:a", "aac",
        "-preset", "medium",
        "-profile:v", "main",
        "-pix_fmt", "yuv420p",
    ],
}

GIF_FILTER = "fps=15,scale=480:-1:flags=lanczos,split[s0][s1];[s0]palettegen[p];[s1][p]paletteuse"


def aspect_ratio_filter(aspect_ratio: str) -> str | None:
    canvas = ASPECT_CANVAS.get(aspect_ratio)
    if canvas is None:
        return None
    width, height = canvas
    return (
        f"scale={width}:{height}:force_original_aspect_ratio=decrease,"
        f"pad={width}:{height}:(ow-iw)/2:(oh-ih)/2"
    )


def escape_drawtext(text: str) -> str:
    return (
        text.replace("\\", r"\\")
        .replace(":", r"\:")
        .replace(",", r"\,")
        .replace("'", r"\'")
        .replace("%", r"\%")
    )


def watermark_filter(text: str) -> str:
    return (
        f"drawtext=text='{escape_drawtext(text)}':fontsize=24:fontcolor=white@0.8:"
        "x=(w-text_w-10):y=(h-text_h-10):shadowcolor=black@0.5:shadowx=2:shadowy=2"
    )


class FFmpegCommandBuilder:
    def __init__(self, config: MediaConfig) -> None:
        self.config = config

    def build_convert(self, options: ConversionOptions) -> list[str]:
        fmt = self._resolve_format(options.format)
        cmd = [self.config.ffmpeg_path, "-y", "-hide_banner", "-nostats"]
        if options.start_sec is not None:
            cmd += ["-ss", f"{max(0.0, options.start_sec):.3f}"]
        cmd += ["-i", str(options.input_path)]
        if options.duration_sec is not None:
            cmd += ["-t", f"{options.duration_sec:.3f}"]

        if fmt == ExportFormat.GIF:
            cmd += ["-filter_complex", GIF_FILTER, "-an", str(options.output_path)]
            return cmd

        cmd += FORMAT_CODEC_ARGS[fmt]

        quality = Quality(options.quality)
        preset = QUALITY_PRESETS[quality]
        filters: list[str] = []
        if quality != Quality.ORIGINAL:
            if preset.video_bitrate:
                cmd += ["-b:v", preset.video_bitrate]
            if preset.audio_bitrate:
                cmd += ["-b:a", preset.audio_bitrate]
            if preset.max_height:
                filters.append(f"scale=-2:{preset.max_height}")

        if options.target_aspect_ratio:
            aspect = aspect_ratio_filter(options.target_aspect_ratio)
            if aspect:
                filters.append(aspect)

        if options.watermark_text:
            filters.append(watermark_filter(options.watermark_text))

        if filters:
            cmd += ["-vf", ",".join(filters)]

        cmd += ["-avoid_negative_ts", "make_zero", str(options.output_path)]
        return cmd

    def build_thumbnail(self, video_path: Path, output_path: Path, timestamp_sec: float) -> list[str]:
        return [
            self.config.ffmpeg_path,
            "-y",
            "-hide_banner",
            "-ss",
            f"{max(0.0, timestamp_sec):.3f}",
            "-i",
            str(video_path),
            "-frames:v",
            "1",
            "-vf",
            f"scale={self.config.thumbnail_width}:-1",
            "-q:v",
            str(self.config.thumbnail_quality),
            str(output_path),
        ]

    def _resolve_format(self, value: ExportFormat | str) -> ExportFormat:
        try:
            return ExportFormat(str(value).upper())
        except ValueError:
            raise VideoConversionError(
                f"Unsupported format: {value}",
                MediaErrorCode.UNSUPPORTED_FORMAT,
                {"format": str(value)},
            ) from None
