from __future__ import annotations

from collections.abc import Awaitable, Callable
from pathlib import Path

from livestream_clipper.domain.errors import MediaErrorCode, VideoConversionError
from livestream_clipper.domain.models import ConversionOptions, ConversionResult, ExportFormat, MediaInfo
from livestream_clipper.infrastructure.media.ffmpeg_builder import FFmpegCommandBuilder
from livestream_clipper.utils.config import MediaConfig
from livestream_clipper.utils.logger import get_logger
from livestream_clipper.utils.media import (
    CommandError,
    CommandOutput,
    CommandTimeoutError,
    build_ffprobe_command,
    parse_ffprobe_output,
    run_command,
)

CommandRunner = Callable[..., Awaitable[CommandOutput]]

BYTES_PER_MB = 1024 * 1024


class FFmpegMediaConverter:
    """Probe, convert and thumbnail media through ffmpeg/ffprobe subprocesses.

    Every subprocess is bounded by a timeout from ``MediaConfig``; a hung
    encoder is killed and surfaces as ``CONVERSION_FAILED``.
    """

    def __init__(
        self,
        config: MediaConfig,
        command_builder: FFmpegCommandBuilder | None = None,
        runner: CommandRunner = run_command,
        logger=None,
    ) -> None:
        self.config = config
        self.command_builder = command_builder or FFmpegCommandBuilder(config)
        self.runner = runner
        self.logger = logger or get_logger()

    async def probe(self, path: Path) -> MediaInfo:
        path = Path(path)
        if not path.exists():
            raise VideoConversionError(
                f"Input file not found: {path}",
                MediaErrorCode.INPUT_NOT_FOUND,
                {"input_path": str(path)},
            )

        cmd = build_ffprobe_command(self.config.ffprobe_path, str(path))
        try:
            output = await self.runner(cmd, timeout_sec=self.config.probe_timeout_sec)
            return parse_ffprobe_output(output.stdout)
        except (CommandError, ValueError, KeyError) as exc:
            raise VideoConversionError(
                f"Failed to probe video: {exc}",
                MediaErrorCode.PROBE_FAILED,
                {"input_path": str(path)},
            ) from exc

    async def convert(self, options: ConversionOptions) -> ConversionResult:
        input_path = Path(options.input_path)
        output_path = Path(options.output_path)
        if not input_path.exists():
            raise VideoConversionError(
                "Input file not found",
                MediaErrorCode.INPUT_NOT_FOUND,
                {"input_path": str(input_path)},
            )

        cmd = self.command_builder.build_convert(options)
        metadata = await self.probe(input_path)
        expected_duration = self._effective_duration(metadata, options)

        if options.max_duration_sec and expected_duration > options.max_duration_sec:
            raise VideoConversionError(
                f"Video duration ({expected_duration:.2f}s) exceeds maximum ({options.max_duration_sec}s)",
                MediaErrorCode.DURATION_EXCEEDED,
                {"duration": expected_duration, "max_duration": options.max_duration_sec},
            )

        output_path.parent.mkdir(parents=True, exist_ok=True)
        self.logger.info("converter.start", command=" ".join(cmd), format=str(options.format))
        try:
            await self.runner(cmd, timeout_sec=self.config.conversion_timeout_sec)
        except CommandTimeoutError as exc:
            self._discard(output_path)
            raise VideoConversionError(
                "Video conversion timed out",
                MediaErrorCode.CONVERSION_FAILED,
                {"error": str(exc), "timeout": True},
            ) from exc
        except CommandError as exc:
            self._discard(output_path)
            raise VideoConversionError(
                "Video conversion failed",
                MediaErrorCode.CONVERSION_FAILED,
                {"error": str(exc)},
            ) from exc

        try:
            file_size = output_path.stat().st_size
        except OSError as exc:
            raise VideoConversionError(
                "Failed to process conversion result",
                MediaErrorCode.POST_CONVERSION_ERROR,
                {"error": str(exc)},
            ) from exc

        if options.max_size_mb and file_size > options.max_size_mb * BYTES_PER_MB:
            self._discard(output_path)
            raise VideoConversionError(
                f"Output file size ({file_size / BYTES_PER_MB:.2f}MB) exceeds maximum ({options.max_size_mb}MB)",
                MediaErrorCode.SIZE_EXCEEDED,
                {"file_size": file_size, "max_size_mb": options.max_size_mb},
            )

        duration = await self._output_duration(output_path, expected_duration)

        thumbnail_path: Path | None = None
        if options.generate_thumbnail and ExportFormat(str(options.format).upper()) != ExportFormat.GIF:
            target = options.thumbnail_path or output_path.with_name(f"{output_path.stem}_thumb.jpg")
            try:
                thumbnail_path = await self.generate_thumbnail(output_path, target, duration / 2)
            except (VideoConversionError, CommandError, OSError) as exc:
                self.logger.warning("converter.thumbnail_failed", output=str(output_path), error=str(exc))

        self.logger.info(
            "converter.done",
            output=str(output_path),
            file_size=file_size,
            duration=round(duration, 3),
        )
        return ConversionResult(
            output_path=output_path,
            file_size=file_size,
            duration=duration,
            thumbnail_path=thumbnail_path,
        )

    async def generate_thumbnail(self, video_path: Path, output_path: Path, timestamp_sec: float) -> Path:
        video_path = Path(video_path)
        output_path = Path(output_path)
        if not video_path.exists():
            raise VideoConversionError(
                f"Video file not found: {video_path}",
                MediaErrorCode.INPUT_NOT_FOUND,
                {"video_path": str(video_path)},
            )
        output_path.parent.mkdir(parents=True, exist_ok=True)
        cmd = self.command_builder.build_thumbnail(video_path, output_path, timestamp_sec)
        await self.runner(cmd, timeout_sec=self.config.thumbnail_timeout_sec)
        return output_path

    def _effective_duration(self, metadata: MediaInfo, options: ConversionOptions) -> float:
        available = max(0.0, metadata.duration_sec - (options.start_sec or 0.0))
        if options.duration_sec is not None:
            return min(options.duration_sec, available) if available > 0 else options.duration_sec
        return available

    async def _output_duration(self, output_path: Path, fallback: float) -> float:
        try:
            return (await self.probe(output_path)).duration_sec or fallback
        except VideoConversionError as exc:
            self.logger.warning("converter.output_probe_failed", output=str(output_path), error=str(exc))
            return fallback

    def _discard(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            self.logger.warning("converter.cleanup_failed", path=str(path), error=str(exc))

