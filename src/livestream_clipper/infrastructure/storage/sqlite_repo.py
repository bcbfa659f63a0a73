from __future__ import annotations

import asyncio
import json
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Any
from uuid import uuid4

from livestream_clipper.domain.errors import InvalidTransitionError
from livestream_clipper.domain.models import (
    AudioTrigger,
    Clip,
    ClipQueueItem,
    QueueStatus,
    Session,
    TriggerConfig,
    TriggerType,
    VisualTrigger,
    utc_now,
)
from livestream_clipper.domain.queue_rules import CANCELLABLE, ensure_transition, sources_for, validate_window

_ITEM_COLUMNS = (
    "id, session_id, clip_id, status, trigger_type, trigger_source, trigger_confidence, "
    "t0, t1, thumbnail_path, title, error_message, created_at, updated_at"
)
_CONFIG_COLUMNS = (
    "id, workflow, audio_enabled, audio_triggers, visual_enabled, visual_triggers, frame_sample_rate, "
    "auto_clip_enabled, auto_clip_duration, trigger_cooldown, created_at, updated_at"
)
_CONFIG_FIELDS = {
    "audio_enabled",
    "audio_triggers",
    "visual_enabled",
    "visual_triggers",
    "frame_sample_rate",
    "auto_clip_enabled",
    "auto_clip_duration",
    "trigger_cooldown",
}
_ORDERABLE = {"created_at", "t0"}


def _now() -> str:
    return utc_now().isoformat()


def _parse_dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _row_to_item(row: sqlite3.Row) -> ClipQueueItem:
    return ClipQueueItem(
        id=row["id"],
        session_id=row["session_id"],
        clip_id=row["clip_id"],
        status=QueueStatus(row["status"]),
        trigger_type=TriggerType(row["trigger_type"]),
        trigger_source=row["trigger_source"],
        trigger_confidence=row["trigger_confidence"],
        t0=float(row["t0"]),
        t1=float(row["t1"]) if row["t1"] is not None else None,
        thumbnail_path=row["thumbnail_path"],
        title=row["title"],
        error_message=row["error_message"],
        created_at=_parse_dt(row["created_at"]),
        updated_at=_parse_dt(row["updated_at"]),
    )


def _row_to_config(row: sqlite3.Row) -> TriggerConfig:
    return TriggerConfig(
        id=row["id"],
        workflow=row["workflow"],
        audio_enabled=bool(row["audio_enabled"]),
        audio_triggers=[AudioTrigger(**t) for t in json.loads(row["audio_triggers"] or "[]")],
        visual_enabled=bool(row["visual_enabled"]),
        visual_triggers=[VisualTrigger(**t) for t in json.loads(row["visual_triggers"] or "[]")],
        frame_sample_rate=int(row["frame_sample_rate"]),
        auto_clip_enabled=bool(row["auto_clip_enabled"]),
        auto_clip_duration=int(row["auto_clip_duration"]),
        trigger_cooldown=int(row["trigger_cooldown"]),
        created_at=_parse_dt(row["created_at"]),
        updated_at=_parse_dt(row["updated_at"]),
    )


def _status_list(status: QueueStatus | list[QueueStatus] | None) -> list[str]:
    if status is None:
        return []
    if isinstance(status, (list, tuple, set, frozenset)):
        return [QueueStatus(s).value for s in status]
    return [QueueStatus(status).value]


class SQLiteClipQueueRepository:
    """Durable store for sessions, trigger configs, clip queue items and clips.

    The sqlite work is synchronous; every public coroutine hands it to a
    worker thread so the event loop is never blocked. Status changes are
    conditional updates keyed on the current status, which keeps concurrent
    claimers from both winning the same row.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.db_path, timeout=30)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS sessions (
                    id TEXT PRIMARY KEY,
                    workflow TEXT NOT NULL,
                    title TEXT,
                    started_at TEXT NOT NULL,
                    ended_at TEXT
                );

                CREATE TABLE IF NOT EXISTS trigger_configs (
                    id TEXT PRIMARY KEY,
                    workflow TEXT NOT NULL UNIQUE,
                    audio_enabled INTEGER NOT NULL DEFAULT 0,
                    audio_triggers TEXT NOT NULL DEFAULT '[]',
                    visual_enabled INTEGER NOT NULL DEFAULT 0,
                    visual_triggers TEXT NOT NULL DEFAULT '[]',
                    frame_sample_rate INTEGER NOT NULL DEFAULT 5,
                    auto_clip_enabled INTEGER NOT NULL DEFAULT 0,
                    auto_clip_duration INTEGER NOT NULL DEFAULT 60,
                    trigger_cooldown INTEGER NOT NULL DEFAULT 30,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS clip_queue_items (
                    id TEXT PRIMARY KEY,
                    session_id TEXT NOT NULL REFERENCES sessions(id) ON DELETE CASCADE,
                    clip_id TEXT,
                    status TEXT NOT NULL DEFAULT 'PENDING',
                    trigger_type TEXT NOT NULL,
                    trigger_source TEXT,
                    trigger_confidence REAL,
                    t0 REAL NOT NULL,
                    t1 REAL,
                    thumbnail_path TEXT,
                    title TEXT,
                    error_message TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    CHECK (t1 IS NULL OR t1 >= t0)
                );

                CREATE INDEX IF NOT EXISTS clip_queue_items_session_idx ON clip_queue_items(session_id);
                CREATE INDEX IF NOT EXISTS clip_queue_items_status_idx ON clip_queue_items(status);

                CREATE TABLE IF NOT EXISTS clips (
                    id TEXT PRIMARY KEY,
                    session_id TEXT NOT NULL REFERENCES sessions(id) ON DELETE CASCADE,
                    path TEXT NOT NULL,
                    t0 REAL NOT NULL,
                    t1 REAL NOT NULL,
                    thumbnail_path TEXT,
                    created_at TEXT NOT NULL
                );
                """
            )

    # sessions

    async def create_session(
        self,
        workflow: str,
        title: str | None = None,
        session_id: str | None = None,
        started_at: datetime | None = None,
    ) -> Session:
        session = Session(
            id=session_id or uuid4().hex,
            workflow=workflow,
            title=title,
            started_at=started_at or utc_now(),
        )

        def op() -> None:
            with self._connect() as conn:
                conn.execute(
                    "INSERT INTO sessions (id, workflow, title, started_at) VALUES (?, ?, ?, ?)",
                    (session.id, session.workflow, session.title, session.started_at.isoformat()),
                )

        await asyncio.to_thread(op)
        return session

    async def get_session(self, session_id: str) -> Session | None:
        def op() -> Session | None:
            with self._connect() as conn:
                row = conn.execute(
                    "SELECT id, workflow, title, started_at, ended_at FROM sessions WHERE id = ?",
                    (session_id,),
                ).fetchone()
            if not row:
                return None
            return Session(
                id=row["id"],
                workflow=row["workflow"],
                title=row["title"],
                started_at=_parse_dt(row["started_at"]),
                ended_at=_parse_dt(row["ended_at"]),
            )

        return await asyncio.to_thread(op)

    async def end_session(self, session_id: str) -> None:
        def op() -> None:
            with self._connect() as conn:
                conn.execute("UPDATE sessions SET ended_at = ? WHERE id = ?", (_now(), session_id))

        await asyncio.to_thread(op)

    async def delete_session(self, session_id: str) -> None:
        def op() -> None:
            with self._connect() as conn:
                conn.execute("DELETE FROM sessions WHERE id = ?", (session_id,))

        await asyncio.to_thread(op)

    # clip queue items

    async def create_clip_queue_item(
        self,
        session_id: str,
        trigger_type: TriggerType,
        t0: float,
        trigger_source: str | None = None,
        trigger_confidence: float | None = None,
        title: str | None = None,
    ) -> ClipQueueItem:
        trigger_type = TriggerType(trigger_type)
        if trigger_type == TriggerType.MANUAL:
            trigger_confidence = None
        now = utc_now()
        item = ClipQueueItem(
            id=uuid4().hex,
            session_id=session_id,
            trigger_type=trigger_type,
            t0=float(t0),
            status=QueueStatus.RECORDING,
            trigger_source=trigger_source,
            trigger_confidence=trigger_confidence,
            title=title,
            created_at=now,
            updated_at=now,
        )

        def op() -> None:
            with self._connect() as conn:
                conn.execute(
                    f"INSERT INTO clip_queue_items ({_ITEM_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        item.id,
                        item.session_id,
                        None,
                        item.status.value,
                        item.trigger_type.value,
                        item.trigger_source,
                        item.trigger_confidence,
                        item.t0,
                        None,
                        None,
                        item.title,
                        None,
                        now.isoformat(),
                        now.isoformat(),
                    ),
                )

        await asyncio.to_thread(op)
        return item

    def _get_item(self, conn: sqlite3.Connection, item_id: str) -> ClipQueueItem | None:
        row = conn.execute(f"SELECT {_ITEM_COLUMNS} FROM clip_queue_items WHERE id = ?", (item_id,)).fetchone()
        return _row_to_item(row) if row else None

    async def get_clip_queue_item(self, item_id: str) -> ClipQueueItem | None:
        def op() -> ClipQueueItem | None:
            with self._connect() as conn:
                return self._get_item(conn, item_id)

        return await asyncio.to_thread(op)

    async def update_clip_queue_item(self, item_id: str, **fields: Any) -> ClipQueueItem:
        """Update non-status fields (title, thumbnail path)."""
        allowed = {"title", "thumbnail_path"}
        unknown = set(fields) - allowed
        if unknown:
            raise ValueError(f"Cannot update fields: {sorted(unknown)}")

        def op() -> ClipQueueItem:
            with self._connect() as conn:
                if fields:
                    assignments = ", ".join(f"{name} = ?" for name in fields)
                    conn.execute(
                        f"UPDATE clip_queue_items SET {assignments}, updated_at = ? WHERE id = ?",
                        (*fields.values(), _now(), item_id),
                    )
                item = self._get_item(conn, item_id)
            if item is None:
                raise KeyError(f"Clip queue item not found: {item_id}")
            return item

        return await asyncio.to_thread(op)

    def _transition(
        self,
        item_id: str,
        requested: QueueStatus,
        sources: list[QueueStatus] | None = None,
        **fields: Any,
    ) -> tuple[bool, ClipQueueItem]:
        sources = [s.value for s in (sources or sources_for(requested))]
        assignments = "".join(f", {name} = ?" for name in fields)
        placeholders = ", ".join("?" for _ in sources)
        with self._connect() as conn:
            cursor = conn.execute(
                f"UPDATE clip_queue_items SET status = ?{assignments}, updated_at = ? "
                f"WHERE id = ? AND status IN ({placeholders})",
                (requested.value, *fields.values(), _now(), item_id, *sources),
            )
            changed = cursor.rowcount == 1
            item = self._get_item(conn, item_id)
        if item is None:
            raise KeyError(f"Clip queue item not found: {item_id}")
        return changed, item

    def _require_transition(
        self,
        item_id: str,
        requested: QueueStatus,
        sources: list[QueueStatus] | None = None,
        **fields: Any,
    ) -> ClipQueueItem:
        changed, item = self._transition(item_id, requested, sources, **fields)
        if not changed:
            ensure_transition(item.status, requested)
            raise InvalidTransitionError(f"Concurrent update on {item_id}: now {item.status}")
        return item

    async def end_recording(self, item_id: str, t1: float) -> ClipQueueItem:
        def op() -> ClipQueueItem:
            with self._connect() as conn:
                current = self._get_item(conn, item_id)
            if current is None:
                raise KeyError(f"Clip queue item not found: {item_id}")
            validate_window(current.t0, t1)
            return self._require_transition(item_id, QueueStatus.PENDING, [QueueStatus.RECORDING], t1=float(t1))

        return await asyncio.to_thread(op)

    async def start_processing(self, item_id: str) -> bool:
        def op() -> bool:
            changed, _ = self._transition(item_id, QueueStatus.PROCESSING)
            return changed

        return await asyncio.to_thread(op)

    async def complete_processing(
        self, item_id: str, clip_id: str, thumbnail_path: str | None = None
    ) -> ClipQueueItem:
        return await asyncio.to_thread(
            self._require_transition,
            item_id,
            QueueStatus.COMPLETED,
            clip_id=clip_id,
            thumbnail_path=thumbnail_path,
        )

    async def fail_processing(self, item_id: str, error_message: str) -> ClipQueueItem:
        return await asyncio.to_thread(
            self._require_transition,
            item_id,
            QueueStatus.FAILED,
            error_message=error_message,
        )

    async def retry_clip_queue_item(self, item_id: str) -> ClipQueueItem:
        def op() -> ClipQueueItem:
            with self._connect() as conn:
                current = self._get_item(conn, item_id)
            if current is None:
                raise KeyError(f"Clip queue item not found: {item_id}")
            if current.status != QueueStatus.FAILED:
                raise InvalidTransitionError(f"Only FAILED items can be retried: {current.status}")
            return self._require_transition(item_id, QueueStatus.PENDING, [QueueStatus.FAILED], error_message=None)

        return await asyncio.to_thread(op)

    async def delete_clip_queue_item(self, item_id: str) -> None:
        """Remove a row that has not started processing (the cancel path)."""
        cancellable = [s.value for s in CANCELLABLE]
        placeholders = ", ".join("?" for _ in cancellable)

        def op() -> None:
            with self._connect() as conn:
                deleted = conn.execute(
                    f"DELETE FROM clip_queue_items WHERE id = ? AND status IN ({placeholders})",
                    (item_id, *cancellable),
                ).rowcount
                current = self._get_item(conn, item_id) if deleted == 0 else None
            if deleted:
                return
            if current is None:
                raise KeyError(f"Clip queue item not found: {item_id}")
            raise InvalidTransitionError(f"Cannot delete item in status {current.status}")

        await asyncio.to_thread(op)

    async def list_clip_queue_items(
        self,
        session_id: str | None = None,
        status: QueueStatus | list[QueueStatus] | None = None,
        trigger_type: TriggerType | None = None,
        limit: int = 50,
        offset: int = 0,
        order_by: str = "created_at",
        descending: bool = True,
    ) -> list[ClipQueueItem]:
        if order_by not in _ORDERABLE:
            raise ValueError(f"Cannot order by {order_by}")
        where, params = self._filters(session_id, status, trigger_type)
        direction = "DESC" if descending else "ASC"

        def op() -> list[ClipQueueItem]:
            with self._connect() as conn:
                rows = conn.execute(
                    f"SELECT {_ITEM_COLUMNS} FROM clip_queue_items{where} "
                    f"ORDER BY {order_by} {direction}, rowid {direction} LIMIT ? OFFSET ?",
                    (*params, limit, offset),
                ).fetchall()
            return [_row_to_item(r) for r in rows]

        return await asyncio.to_thread(op)

    async def get_session_clip_queue(self, session_id: str) -> list[ClipQueueItem]:
        return await self.list_clip_queue_items(
            session_id=session_id, limit=-1, order_by="t0", descending=False
        )

    async def count_clip_queue_items(
        self,
        session_id: str | None = None,
        status: QueueStatus | list[QueueStatus] | None = None,
    ) -> int:
        where, params = self._filters(session_id, status, None)

        def op() -> int:
            with self._connect() as conn:
                return int(conn.execute(f"SELECT COUNT(*) FROM clip_queue_items{where}", params).fetchone()[0])

        return await asyncio.to_thread(op)

    async def get_clip_queue_stats(self, session_id: str) -> dict[str, int]:
        def op() -> dict[str, int]:
            with self._connect() as conn:
                rows = conn.execute(
                    "SELECT status, COUNT(*) FROM clip_queue_items WHERE session_id = ? GROUP BY status",
                    (session_id,),
                ).fetchall()
            stats = {status.value.lower(): 0 for status in QueueStatus}
            for status, count in rows:
                stats[status.lower()] = int(count)
            stats["total"] = sum(stats.values())
            return stats

        return await asyncio.to_thread(op)

    async def get_recording_item(self, session_id: str) -> ClipQueueItem | None:
        items = await self.list_clip_queue_items(session_id=session_id, status=QueueStatus.RECORDING, limit=1)
        return items[0] if items else None

    async def next_pending_item(self) -> ClipQueueItem | None:
        items = await self.list_clip_queue_items(status=QueueStatus.PENDING, limit=1, descending=False)
        return items[0] if items else None

    async def delete_session_clip_queue(self, session_id: str) -> int:
        def op() -> int:
            with self._connect() as conn:
                return conn.execute("DELETE FROM clip_queue_items WHERE session_id = ?", (session_id,)).rowcount

        return await asyncio.to_thread(op)

    def _filters(
        self,
        session_id: str | None,
        status: QueueStatus | list[QueueStatus] | None,
        trigger_type: TriggerType | None,
    ) -> tuple[str, tuple]:
        clauses: list[str] = []
        params: list[Any] = []
        if session_id:
            clauses.append("session_id = ?")
            params.append(session_id)
        if trigger_type:
            clauses.append("trigger_type = ?")
            params.append(TriggerType(trigger_type).value)
        statuses = _status_list(status)
        if statuses:
            clauses.append(f"status IN ({', '.join('?' for _ in statuses)})")
            params.extend(statuses)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        return where, tuple(params)

    # clips

    async def create_clip(
        self,
        session_id: str,
        path: Path,
        t0: float,
        t1: float,
        thumbnail_path: Path | None = None,
    ) -> Clip:
        validate_window(t0, t1)
        clip = Clip(
            id=uuid4().hex,
            session_id=session_id,
            path=Path(path),
            t0=float(t0),
            t1=float(t1),
            thumbnail_path=Path(thumbnail_path) if thumbnail_path else None,
        )

        def op() -> None:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO clips (id, session_id, path, t0, t1, thumbnail_path, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        clip.id,
                        clip.session_id,
                        str(clip.path),
                        clip.t0,
                        clip.t1,
                        str(clip.thumbnail_path) if clip.thumbnail_path else None,
                        clip.created_at.isoformat(),
                    ),
                )

        await asyncio.to_thread(op)
        return clip

    async def get_clip(self, clip_id: str) -> Clip | None:
        def op() -> Clip | None:
            with self._connect() as conn:
                row = conn.execute(
                    "SELECT id, session_id, path, t0, t1, thumbnail_path, created_at FROM clips WHERE id = ?",
                    (clip_id,),
                ).fetchone()
            if not row:
                return None
            return Clip(
                id=row["id"],
                session_id=row["session_id"],
                path=Path(row["path"]),
                t0=float(row["t0"]),
                t1=float(row["t1"]),
                thumbnail_path=Path(row["thumbnail_path"]) if row["thumbnail_path"] else None,
                created_at=_parse_dt(row["created_at"]),
            )

        return await asyncio.to_thread(op)

    # trigger configs

    def _fetch_config(self, conn: sqlite3.Connection, workflow: str) -> TriggerConfig | None:
        row = conn.execute(
            f"SELECT {_CONFIG_COLUMNS} FROM trigger_configs WHERE workflow = ?", (workflow,)
        ).fetchone()
        return _row_to_config(row) if row else None

    async def get_trigger_config(self, workflow: str) -> TriggerConfig | None:
        def op() -> TriggerConfig | None:
            with self._connect() as conn:
                return self._fetch_config(conn, workflow)

        return await asyncio.to_thread(op)

    async def create_trigger_config(self, workflow: str, **fields: Any) -> TriggerConfig:
        unknown = set(fields) - _CONFIG_FIELDS
        if unknown:
            raise ValueError(f"Unknown trigger config fields: {sorted(unknown)}")
        config = TriggerConfig(workflow=workflow, id=uuid4().hex, **fields)
        now = _now()

        def op() -> TriggerConfig:
            with self._connect() as conn:
                conn.execute(
                    f"INSERT INTO trigger_configs ({_CONFIG_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        config.id,
                        config.workflow,
                        int(config.audio_enabled),
                        json.dumps([asdict(t) for t in config.audio_triggers]),
                        int(config.visual_enabled),
                        json.dumps([asdict(t) for t in config.visual_triggers]),
                        int(config.frame_sample_rate),
                        int(config.auto_clip_enabled),
                        int(config.auto_clip_duration),
                        int(config.trigger_cooldown),
                        now,
                        now,
                    ),
                )
                return self._fetch_config(conn, workflow)

        return await asyncio.to_thread(op)

    async def get_or_create_trigger_config(self, workflow: str) -> TriggerConfig:
        existing = await self.get_trigger_config(workflow)
        if existing:
            return existing
        return await self.create_trigger_config(workflow)

    async def update_trigger_config(self, workflow: str, **fields: Any) -> TriggerConfig:
        unknown = set(fields) - _CONFIG_FIELDS
        if unknown:
            raise ValueError(f"Unknown trigger config fields: {sorted(unknown)}")

        values: dict[str, Any] = {}
        for name, value in fields.items():
            if name in {"audio_triggers", "visual_triggers"}:
                values[name] = json.dumps([asdict(t) for t in value])
            elif isinstance(value, bool):
                values[name] = int(value)
            else:
                values[name] = value

        def op() -> TriggerConfig:
            with self._connect() as conn:
                if values:
                    assignments = ", ".join(f"{name} = ?" for name in values)
                    conn.execute(
                        f"UPDATE trigger_configs SET {assignments}, updated_at = ? WHERE workflow = ?",
                        (*values.values(), _now(), workflow),
                    )
                config = self._fetch_config(conn, workflow)
            if config is None:
                raise KeyError(f"Trigger config not found: {workflow}")
            return config

        return await asyncio.to_thread(op)

    async def delete_trigger_config(self, workflow: str) -> None:
        def op() -> None:
            with self._connect() as conn:
                conn.execute("DELETE FROM trigger_configs WHERE workflow = ?", (workflow,))

        await asyncio.to_thread(op)

    async def list_trigger_configs(self) -> list[TriggerConfig]:
        def op() -> list[TriggerConfig]:
            with self._connect() as conn:
                rows = conn.execute(
                    f"SELECT {_CONFIG_COLUMNS} FROM trigger_configs ORDER BY workflow ASC"
                ).fetchall()
            return [_row_to_config(r) for r in rows]

        return await asyncio.to_thread(op)

    async def add_audio_trigger(self, workflow: str, phrase: str, case_sensitive: bool = False) -> TriggerConfig:
        config = await self.get_or_create_trigger_config(workflow)
        triggers = [*config.audio_triggers, AudioTrigger(id=uuid4().hex, phrase=phrase, case_sensitive=case_sensitive)]
        return await self.update_trigger_config(workflow, audio_triggers=triggers)

    async def remove_audio_trigger(self, workflow: str, trigger_id: str) -> TriggerConfig:
        config = await self.get_or_create_trigger_config(workflow)
        triggers = [t for t in config.audio_triggers if t.id != trigger_id]
        return await self.update_trigger_config(workflow, audio_triggers=triggers)

    async def toggle_audio_trigger(self, workflow: str, trigger_id: str, enabled: bool) -> TriggerConfig:
        config = await self.get_or_create_trigger_config(workflow)
        for trigger in config.audio_triggers:
            if trigger.id == trigger_id:
                trigger.enabled = enabled
        return await self.update_trigger_config(workflow, audio_triggers=config.audio_triggers)

    async def add_visual_trigger(
        self, workflow: str, label: str, image_id: str, threshold: float = 0.8
    ) -> TriggerConfig:
        config = await self.get_or_create_trigger_config(workflow)
        triggers = [
            *config.visual_triggers,
            VisualTrigger(id=uuid4().hex, label=label, image_id=image_id, threshold=threshold),
        ]
        return await self.update_trigger_config(workflow, visual_triggers=triggers)

    async def remove_visual_trigger(self, workflow: str, trigger_id: str) -> TriggerConfig:
        config = await self.get_or_create_trigger_config(workflow)
        triggers = [t for t in config.visual_triggers if t.id != trigger_id]
        return await self.update_trigger_config(workflow, visual_triggers=triggers)
