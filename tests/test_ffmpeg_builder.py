from pathlib import Path

import pytest

from livestream_clipper.domain.errors import MediaErrorCode, VideoConversionError
from livestream_clipper.domain.models import ConversionOptions, ExportFormat, Quality
from livestream_clipper.infrastructure.media.ffmpeg_builder import FFmpegCommandBuilder, escape_drawtext
from livestream_clipper.utils.config import MediaConfig


def _options(**kwargs):
    values = {"input_path": Path("in.mp4"), "output_path": Path("out.mp4"), "format": ExportFormat.MP4}
    values.update(kwargs)
    return ConversionOptions(**values)


def test_mp4_command_applies_quality_aspect_and_watermark():
    builder = FFmpegCommandBuilder(MediaConfig(ffmpeg_path="/opt/ffmpeg"))

    cmd = builder.build_convert(
        _options(quality=Quality.LOW, target_aspect_ratio="9:16", watermark_text="@me: live")
    )

    assert cmd[0] == "/opt/ffmpeg"
    assert "libx264" in cmd
    assert cmd[cmd.index("-b:v") + 1] == "500k"
    assert cmd[cmd.index("-b:a") + 1] == "64k"
    vf = cmd[cmd.index("-vf") + 1]
    assert vf.startswith("scale=-2:720,")
    assert "pad=1080:1920" in vf
    assert r"@me\: live" in vf
    assert cmd.count("-vf") == 1
    assert cmd[-1] == "out.mp4"


def test_trim_window_seeks_before_input():
    builder = FFmpegCommandBuilder(MediaConfig())

    cmd = builder.build_convert(_options(start_sec=12.5, duration_sec=30))

    assert cmd.index("-ss") < cmd.index("-i")
    assert cmd[cmd.index("-ss") + 1] == "12.500"
    assert cmd.index("-t") > cmd.index("-i")
    assert cmd[cmd.index("-t") + 1] == "30.000"


def test_original_quality_skips_bitrate_and_scale():
    builder = FFmpegCommandBuilder(MediaConfig())

    cmd = builder.build_convert(_options(quality=Quality.ORIGINAL, format=ExportFormat.WEBM))

    assert "libvpx-vp9" in cmd
    assert "-b:v" not in cmd
    assert "-vf" not in cmd


def test_gif_uses_palette_and_drops_audio():
    builder = FFmpegCommandBuilder(MediaConfig())

    cmd = builder.build_convert(
        _options(format="gif", output_path=Path("out.gif"), quality=Quality.HIGH, watermark_text="x")
    )

    graph = cmd[cmd.index("-filter_complex") + 1]
    assert "palettegen" in graph
    assert "fps=15" in graph
    assert "-an" in cmd
    assert "-b:v" not in cmd
    assert "-vf" not in cmd


def test_unknown_format_is_rejected():
    builder = FFmpegCommandBuilder(MediaConfig())

    with pytest.raises(VideoConversionError) as exc_info:
        builder.build_convert(_options(format="AVI"))

    assert exc_info.value.code == MediaErrorCode.UNSUPPORTED_FORMAT


def test_thumbnail_command():
    builder = FFmpegCommandBuilder(MediaConfig(thumbnail_width=640, thumbnail_quality=5))

    cmd = builder.build_thumbnail(Path("clip.mp4"), Path("thumb.jpg"), 7.25)

    assert cmd[cmd.index("-ss") + 1] == "7.250"
    assert cmd[cmd.index("-frames:v") + 1] == "1"
    assert cmd[cmd.index("-vf") + 1] == "scale=640:-1"
    assert cmd[cmd.index("-q:v") + 1] == "5"


def test_escape_drawtext():
    assert escape_drawtext("a:b,c'd%") == r"a\:b\,c\'d\%"
