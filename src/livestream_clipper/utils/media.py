from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass

from livestream_clipper.domain.models import MediaInfo


class CommandError(RuntimeError):
    pass


class CommandTimeoutError(CommandError):
    pass


@dataclass(slots=True)
class CommandOutput:
    returncode: int
    stdout: str
    stderr: str


async def run_command(cmd: list[str], timeout_sec: float | None = None, check: bool = True) -> CommandOutput:
    """Run ``cmd`` without blocking the loop.

    The process is killed when ``timeout_sec`` elapses and
    ``CommandTimeoutError`` is raised.
    """
    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as exc:
        raise CommandError(f"Executable not found: {cmd[0]}") from exc

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout_sec)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        raise CommandTimeoutError(f"Command timed out after {timeout_sec}s: {' '.join(cmd)}") from None
    except asyncio.CancelledError:
        if proc.returncode is None:
            proc.kill()
            await proc.wait()
        raise

    output = CommandOutput(
        returncode=proc.returncode if proc.returncode is not None else -1,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )
    if check and output.returncode != 0:
        raise CommandError(f"Command failed: {' '.join(cmd)}\n{output.stderr}")
    return output


def build_ffprobe_command(ffprobe_path: str, input_path: str) -> list[str]:
    return [
        ffprobe_path,
        "-v",
        "error",
        "-show_streams",
        "-show_format",
        "-of",
        "json",
        input_path,
    ]


def parse_ffprobe_output(raw: str) -> MediaInfo:
    payload = json.loads(raw)
    streams = payload.get("streams") or []
    video = next((s for s in streams if s.get("codec_type") == "video"), None)
    if video is None:
        raise ValueError("No video stream found in file")

    fmt = payload.get("format") or {}
    duration = fmt.get("duration")
    if duration is None:
        duration = video.get("duration", 0.0)

    bitrate = fmt.get("bit_rate")
    if bitrate is None:
        bitrate = video.get("bit_rate", 0)

    return MediaInfo(
        duration_sec=float(duration or 0.0),
        width=int(video.get("width") or 1920),
        height=int(video.get("height") or 1080),
        codec=str(video.get("codec_name") or "unknown"),
        fps=str(video.get("r_frame_rate") or video.get("avg_frame_rate") or "30/1"),
        bitrate=int(bitrate or 0),
        format_name=str(fmt.get("format_name") or "unknown"),
    )
