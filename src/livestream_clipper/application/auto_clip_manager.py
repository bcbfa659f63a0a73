from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass

from livestream_clipper.domain.models import (
    ClipQueueItem,
    NotificationEnvelope,
    QueueStatus,
    TriggerConfig,
    TriggerType,
    utc_now,
)
from livestream_clipper.domain.notifications import clip_intent_end, clip_intent_start, queue_updated
from livestream_clipper.domain.protocols import (
    ClipQueueStore,
    NotificationSink,
    Scheduler,
    TimerHandle,
    TriggerConfigSource,
)
from livestream_clipper.domain.triggers import TriggerEvent, default_title
from livestream_clipper.utils.logger import get_logger

SessionClock = Callable[[str], float]


class LoopScheduler:
    def call_later(self, delay_sec: float, callback: Callable[[], object]) -> TimerHandle:
        return asyncio.get_running_loop().call_later(delay_sec, callback)


@dataclass(slots=True)
class ActiveClip:
    queue_item_id: str
    session_id: str
    trigger_type: TriggerType
    t0: float
    end_timer: TimerHandle | None = None

    def cancel_timer(self) -> None:
        if self.end_timer is not None:
            self.end_timer.cancel()
            self.end_timer = None


class AutoClipManager:
    """Turns normalized triggers into clip queue items.

    Holds the in-memory set of clips currently recording (at most one per
    session), arms auto-end timers and broadcasts lifecycle notifications.
    The queue store stays the system of record; ``recover`` rebuilds the
    working set from its RECORDING rows.

    Persistence failures never escape: they are logged and the operation
    returns None.
    """

    def __init__(
        self,
        store: ClipQueueStore,
        sink: NotificationSink,
        scheduler: Scheduler | None = None,
        config_source: TriggerConfigSource | None = None,
        session_clock: SessionClock | None = None,
        logger=None,
    ) -> None:
        self.store = store
        self.sink = sink
        self.scheduler = scheduler or LoopScheduler()
        self.config_source = config_source or store
        self.session_clock = session_clock
        self.logger = logger or get_logger()
        self.workflow: str | None = None
        self.config = TriggerConfig(workflow="default")
        self._active: dict[str, ActiveClip] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._timer_tasks: set[asyncio.Task] = set()

    async def initialize(self, workflow: str) -> TriggerConfig:
        self.workflow = workflow
        return await self.reload_config()

    async def reload_config(self) -> TriggerConfig:
        if self.workflow is None:
            return self.config
        try:
            config = await self.config_source.get_trigger_config(self.workflow)
        except Exception as exc:
            self.logger.error("auto_clip.config_load_failed", workflow=self.workflow, error=str(exc))
            return self.config

        if config is None:
            self.logger.info("auto_clip.config_defaults", workflow=self.workflow)
            self.config = TriggerConfig(workflow=self.workflow)
        else:
            self.config = config
        self.logger.info(
            "auto_clip.config_loaded",
            workflow=self.workflow,
            auto_clip_enabled=self.config.auto_clip_enabled,
            auto_clip_duration=self.config.auto_clip_duration,
        )
        return self.config

    @property
    def duration(self) -> float:
        return float(self.config.auto_clip_duration)

    def get_active_clip_for_session(self, session_id: str) -> ActiveClip | None:
        for active in self._active.values():
            if active.session_id == session_id:
                return active
        return None

    def active_clips(self) -> list[ActiveClip]:
        return list(self._active.values())

    async def handle_trigger(self, event: TriggerEvent) -> ClipQueueItem | None:
        if not self.config.auto_clip_enabled and not event.is_manual:
            self.logger.debug("auto_clip.rejected_disabled", session_id=event.session_id, type=str(event.type))
            return None

        async with self._lock_for(event.session_id):
            existing = self.get_active_clip_for_session(event.session_id)
            if existing is not None:
                self.logger.info(
                    "auto_clip.rejected_active",
                    session_id=event.session_id,
                    active_item_id=existing.queue_item_id,
                )
                return None

            try:
                item = await self.store.create_clip_queue_item(
                    session_id=event.session_id,
                    trigger_type=event.type,
                    t0=event.t,
                    trigger_source=event.source_label,
                    trigger_confidence=None if event.is_manual else event.confidence,
                    title=default_title(event),
                )
            except Exception as exc:
                self.logger.error("auto_clip.create_failed", session_id=event.session_id, error=str(exc))
                return None

            active = ActiveClip(
                queue_item_id=item.id,
                session_id=item.session_id,
                trigger_type=item.trigger_type,
                t0=item.t0,
            )
            self._active[item.id] = active
            if self.config.auto_clip_enabled:
                active.end_timer = self._arm_timer(item.id, item.t0 + self.duration)

        self.logger.info(
            "auto_clip.created",
            item_id=item.id,
            session_id=item.session_id,
            trigger_type=str(item.trigger_type),
            t0=item.t0,
        )
        self._publish(clip_intent_start(item.session_id, item.t0, item.trigger_type, item.trigger_confidence))
        self._publish(queue_updated(item))
        return item

    async def end_clip(self, queue_item_id: str, t1: float | None = None) -> ClipQueueItem | None:
        active = self._active.get(queue_item_id)
        if active is None:
            self.logger.warning("auto_clip.end_unknown", item_id=queue_item_id)
            return None

        async with self._lock_for(active.session_id):
            # A timer and an explicit call may both get here; the loser finds no entry.
            active = self._active.get(queue_item_id)
            if active is None:
                return None
            active.cancel_timer()
            end = float(t1) if t1 is not None else active.t0 + self.duration
            try:
                item = await self.store.end_recording(queue_item_id, end)
            except Exception as exc:
                # The row is still RECORDING, so the session stays blocked.
                self.logger.error("auto_clip.end_failed", item_id=queue_item_id, t1=end, error=str(exc))
                return None
            self._active.pop(queue_item_id, None)

        self.logger.info("auto_clip.ended", item_id=item.id, session_id=item.session_id, t0=item.t0, t1=item.t1)
        self._publish(clip_intent_end(item.session_id, end, item.trigger_type))
        self._publish(queue_updated(item))
        return item

    async def cancel_clip(self, queue_item_id: str) -> bool:
        active = self._active.get(queue_item_id)
        if active is None:
            return False
        async with self._lock_for(active.session_id):
            active = self._active.get(queue_item_id)
            if active is None:
                return False
            active.cancel_timer()
            try:
                await self.store.delete_clip_queue_item(queue_item_id)
            except Exception as exc:
                self.logger.error("auto_clip.cancel_failed", item_id=queue_item_id, error=str(exc))
                return False
            self._active.pop(queue_item_id, None)
        self.logger.info("auto_clip.cancelled", item_id=queue_item_id, session_id=active.session_id)
        return True

    async def stop_all(self) -> None:
        for active in list(self._active.values()):
            active.cancel_timer()
            try:
                now = await self._session_now(active)
                await self.end_clip(active.queue_item_id, max(active.t0, now))
            except Exception as exc:
                self.logger.warning("auto_clip.stop_failed", item_id=active.queue_item_id, error=str(exc))
        self._active.clear()
        for task in list(self._timer_tasks):
            task.cancel()
        self._timer_tasks.clear()

    async def recover(self) -> list[ActiveClip]:
        """Rebuild the working set from RECORDING rows after a restart.

        Timers restart with the full configured duration; the original
        wall-clock start of each recording is not persisted.
        """
        try:
            rows = await self.store.list_clip_queue_items(status=QueueStatus.RECORDING)
        except Exception as exc:
            self.logger.error("auto_clip.recover_failed", error=str(exc))
            return []

        recovered: list[ActiveClip] = []
        for row in sorted(rows, key=lambda r: r.created_at):
            if row.id in self._active or self.get_active_clip_for_session(row.session_id):
                self.logger.warning("auto_clip.recover_skipped", item_id=row.id, session_id=row.session_id)
                continue
            active = ActiveClip(
                queue_item_id=row.id,
                session_id=row.session_id,
                trigger_type=row.trigger_type,
                t0=row.t0,
            )
            if self.config.auto_clip_enabled:
                active.end_timer = self._arm_timer(row.id, row.t0 + self.duration)
            self._active[row.id] = active
            recovered.append(active)

        self.logger.info("auto_clip.recovered", count=len(recovered))
        return recovered

    def _arm_timer(self, queue_item_id: str, t1: float) -> TimerHandle:
        def fire() -> asyncio.Task:
            task = asyncio.ensure_future(self.end_clip(queue_item_id, t1))
            self._timer_tasks.add(task)
            task.add_done_callback(self._timer_tasks.discard)
            return task

        return self.scheduler.call_later(self.duration, fire)

    async def _session_now(self, active: ActiveClip) -> float:
        if self.session_clock is not None:
            return float(self.session_clock(active.session_id))
        try:
            session = await self.store.get_session(active.session_id)
        except Exception as exc:
            self.logger.warning("auto_clip.session_lookup_failed", session_id=active.session_id, error=str(exc))
            session = None
        if session is not None and session.started_at is not None:
            return (utc_now() - session.started_at).total_seconds()
        return active.t0 + self.duration

    def _lock_for(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[session_id] = lock
        return lock

    def _publish(self, envelope: NotificationEnvelope) -> None:
        try:
            self.sink.publish(envelope)
        except Exception as exc:
            self.logger.warning("auto_clip.publish_failed", type=envelope.type, error=str(exc))


def create_auto_clip_manager(
    store: ClipQueueStore,
    sink: NotificationSink,
    scheduler: Scheduler | None = None,
    session_clock: SessionClock | None = None,
    logger=None,
) -> AutoClipManager:
    return AutoClipManager(
        store=store,
        sink=sink,
        scheduler=scheduler,
        session_clock=session_clock,
        logger=logger,
    )
