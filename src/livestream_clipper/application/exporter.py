from __future__ import annotations

from math import gcd
from pathlib import Path

from livestream_clipper.domain.models import ConversionOptions, ConversionResult, ExportFormat, Quality
from livestream_clipper.domain.platforms import SocialPlatform, constraints_for, select_aspect_ratio, select_format
from livestream_clipper.domain.protocols import MediaConverter
from livestream_clipper.utils.logger import get_logger
from livestream_clipper.utils.paths import ensure_dir


class PlatformExporter:
    def __init__(self, converter: MediaConverter, logger=None) -> None:
        self.converter = converter
        self.logger = logger or get_logger()

    async def optimize_for_platform(
        self,
        input_path: Path,
        output_dir: Path,
        platform: SocialPlatform | str,
        format: ExportFormat | str | None = None,
    ) -> ConversionResult:
        platform = SocialPlatform(str(platform).upper())
        constraints = constraints_for(platform)
        fmt = select_format(platform, format)
        input_path = Path(input_path)
        output_path = ensure_dir(Path(output_dir)) / f"{input_path.stem}_{platform.value.lower()}.{fmt.value.lower()}"

        options = ConversionOptions(
            input_path=input_path,
            output_path=output_path,
            format=fmt,
            quality=Quality.HIGH,
            target_aspect_ratio=select_aspect_ratio(platform),
            max_size_mb=constraints.video_max_size_mb,
            max_duration_sec=constraints.video_max_duration_sec,
            generate_thumbnail=True,
        )
        self.logger.info(
            "exporter.optimize",
            platform=platform.value,
            format=fmt.value,
            aspect_ratio=options.target_aspect_ratio,
            output=str(output_path),
        )
        return await self.converter.convert(options)

    async def batch_convert(
        self,
        input_path: Path,
        output_dir: Path,
        formats: list[ExportFormat | str],
    ) -> list[tuple[ExportFormat, ConversionResult]]:
        """Convert to each format in turn; failed formats are logged and left out."""
        input_path = Path(input_path)
        output_dir = ensure_dir(Path(output_dir))
        results: list[tuple[ExportFormat, ConversionResult]] = []
        for value in formats:
            try:
                fmt = ExportFormat(str(value).upper())
                result = await self.converter.convert(
                    ConversionOptions(
                        input_path=input_path,
                        output_path=output_dir / f"{input_path.stem}.{fmt.value.lower()}",
                        format=fmt,
                        quality=Quality.HIGH,
                        generate_thumbnail=True,
                    )
                )
            except Exception as exc:
                self.logger.error("exporter.batch_failed", format=str(value), input=str(input_path), error=str(exc))
                continue
            results.append((fmt, result))
        return results

    async def video_info(self, path: Path) -> dict:
        path = Path(path)
        info = await self.converter.probe(path)
        divisor = gcd(info.width, info.height) or 1
        return {
            "duration": info.duration_sec,
            "width": info.width,
            "height": info.height,
            "aspect_ratio": f"{info.width // divisor}:{info.height // divisor}",
            "size": path.stat().st_size,
            "codec": info.codec,
            "bitrate": info.bitrate,
        }
