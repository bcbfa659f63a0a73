from __future__ import annotations

import argparse
import asyncio
import json
import signal
import sys
from pathlib import Path

from livestream_clipper.app import Services, build_services, default_root_dir, manual_press
from livestream_clipper.domain.errors import VideoConversionError
from livestream_clipper.domain.models import QueueStatus
from livestream_clipper.domain.notifications import to_json
from livestream_clipper.domain.platforms import PLATFORM_CONSTRAINTS


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="livestream-clipper", description="Livestream clip queue tools")
    sub = parser.add_subparsers(dest="command", required=True)

    worker_cmd = sub.add_parser("worker", help="Run the clip queue processor")
    worker_cmd.add_argument("--once", action="store_true", help="Process at most one PENDING item and exit")

    queue_cmd = sub.add_parser("queue", help="List clip queue items")
    queue_cmd.add_argument("--session", default="", help="Filter by session id")
    queue_cmd.add_argument(
        "--status",
        default="",
        choices=["", *(s.value.lower() for s in QueueStatus)],
        help="Filter by status",
    )
    queue_cmd.add_argument("--limit", type=int, default=50, help="Maximum rows (default: 50)")

    retry_cmd = sub.add_parser("retry", help="Move a FAILED item back to PENDING")
    retry_cmd.add_argument("--id", required=True, help="Clip queue item id")

    cancel_cmd = sub.add_parser("cancel", help="Delete an item that has not started processing")
    cancel_cmd.add_argument("--id", required=True, help="Clip queue item id")

    session_cmd = sub.add_parser("session", help="Run a capture session with manual clip presses")
    session_cmd.add_argument("--workflow", default="", help="Trigger workflow (default: from config)")
    session_cmd.add_argument("--title", default="", help="Session title")
    session_cmd.add_argument("--id", default="", help="Resume an existing session instead of opening one")

    probe_cmd = sub.add_parser("probe", help="Print media information for a file")
    probe_cmd.add_argument("path", help="Video file")

    export_cmd = sub.add_parser("export", help="Convert a clip for a social platform")
    export_cmd.add_argument("path", help="Input video")
    export_cmd.add_argument("--platform", required=True, help="Target platform, e.g. TIKTOK")
    export_cmd.add_argument("--format", default="", help="Output format (default: platform's first)")
    export_cmd.add_argument("--output-dir", default="", help="Output directory (default: next to input)")

    sub.add_parser("platforms", help="List platform export constraints")
    return parser


def _stop_on_signals() -> asyncio.Event:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            pass
    return stop


async def _cmd_worker(services: Services, args: argparse.Namespace) -> int:
    processor = services.processor
    if args.once:
        item = await processor.run_once()
        if item is None:
            print("No pending items.")
            return 0
        print(f"{item.id} -> {item.status.value}")
        return 0 if item.status == QueueStatus.COMPLETED else 1

    services.hub.subscribe(lambda envelope: print(to_json(envelope)))
    stop = _stop_on_signals()
    processor.start()
    try:
        await stop.wait()
    finally:
        await processor.stop()
    return 0


async def _cmd_queue(services: Services, args: argparse.Namespace) -> int:
    items = await services.repo.list_clip_queue_items(
        session_id=args.session or None,
        status=QueueStatus(args.status.upper()) if args.status else None,
        limit=max(1, args.limit),
    )
    if not items:
        print("No clip queue items.")
        return 0
    for item in items:
        window = f"{item.t0:.1f}-{item.t1:.1f}" if item.t1 is not None else f"{item.t0:.1f}-"
        line = f"{item.id}  {item.session_id}  {item.status.value:<10}  {item.trigger_type.value:<6}  {window}"
        if item.error_message:
            line += f"  error={item.error_message}"
        print(line)
    return 0


async def _cmd_retry(services: Services, args: argparse.Namespace) -> int:
    item = await services.repo.retry_clip_queue_item(args.id)
    print(f"{item.id} -> {item.status.value}")
    return 0


async def _cmd_cancel(services: Services, args: argparse.Namespace) -> int:
    await services.repo.delete_clip_queue_item(args.id)
    print(f"{args.id} cancelled")
    return 0


async def _cmd_session(services: Services, args: argparse.Namespace) -> int:
    if args.id:
        session = await services.repo.get_session(args.id)
        if session is None:
            raise KeyError(f"Session not found: {args.id}")
    else:
        session = await services.repo.create_session(
            args.workflow or services.settings.app.default_workflow,
            title=args.title or None,
        )

    manager = await services.start_session_manager(session.workflow)
    services.hub.subscribe(lambda envelope: print(to_json(envelope)))
    stop = _stop_on_signals()
    loop = asyncio.get_running_loop()
    presses: set[asyncio.Task] = set()

    def on_input() -> None:
        if not sys.stdin.readline():
            stop.set()
            return
        task = asyncio.ensure_future(manual_press(manager, session))
        presses.add(task)
        task.add_done_callback(presses.discard)

    reading = True
    try:
        loop.add_reader(sys.stdin.fileno(), on_input)
    except NotImplementedError:
        reading = False

    print(f"Session {session.id} ({session.workflow}): press Enter to start or end a clip, Ctrl+D to finish.")
    services.processor.start()
    try:
        await stop.wait()
    finally:
        if reading:
            loop.remove_reader(sys.stdin.fileno())
        if presses:
            await asyncio.gather(*presses, return_exceptions=True)
        await manager.stop_all()
        await services.processor.stop()
        if not args.id:
            await services.repo.end_session(session.id)
    return 0


async def _cmd_probe(services: Services, args: argparse.Namespace) -> int:
    info = await services.exporter.video_info(Path(args.path))
    print(json.dumps(info, ensure_ascii=False, indent=2))
    return 0


async def _cmd_export(services: Services, args: argparse.Namespace) -> int:
    input_path = Path(args.path)
    output_dir = Path(args.output_dir) if args.output_dir else input_path.parent
    result = await services.exporter.optimize_for_platform(
        input_path,
        output_dir,
        args.platform,
        args.format or None,
    )
    print(f"Exported: {result.output_path} ({result.file_size} bytes, {result.duration:.2f}s)")
    if result.thumbnail_path:
        print(f"Thumbnail: {result.thumbnail_path}")
    return 0


def _cmd_platforms() -> int:
    for platform, constraints in PLATFORM_CONSTRAINTS.items():
        formats = ",".join(f.value for f in constraints.video_formats) or "-"
        ratios = ",".join(constraints.aspect_ratios) or "-"
        print(
            f"{platform.value:<10} formats={formats} ratios={ratios} "
            f"max_size_mb={constraints.video_max_size_mb} max_duration_sec={constraints.video_max_duration_sec}"
        )
    return 0


COMMANDS = {
    "worker": _cmd_worker,
    "queue": _cmd_queue,
    "retry": _cmd_retry,
    "cancel": _cmd_cancel,
    "session": _cmd_session,
    "probe": _cmd_probe,
    "export": _cmd_export,
}


def main() -> None:
    parser = _build_parser()
    args = parser.parse_args()
    if args.command == "platforms":
        raise SystemExit(_cmd_platforms())

    services = build_services(default_root_dir())
    handler = COMMANDS.get(args.command)
    if handler is None:
        raise SystemExit("unsupported command")
    try:
        raise SystemExit(asyncio.run(handler(services, args)))
    except (VideoConversionError, KeyError, ValueError) as exc:
        raise SystemExit(f"error: {exc}") from exc


if __name__ == "__main__":
    main()
