import asyncio

from livestream_clipper.application.auto_clip_manager import AutoClipManager, create_auto_clip_manager
from livestream_clipper.domain.models import QueueStatus, TriggerType
from livestream_clipper.domain.triggers import AudioMatch, ManualPress, VisualMatch, normalize
from livestream_clipper.infrastructure.notify.hub import NotificationHub
from livestream_clipper.infrastructure.storage.sqlite_repo import SQLiteClipQueueRepository


class FakeTimer:
    def __init__(self, delay_sec, callback):
        self.delay_sec = delay_sec
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeScheduler:
    def __init__(self):
        self.timers = []

    def call_later(self, delay_sec, callback):
        timer = FakeTimer(delay_sec, callback)
        self.timers.append(timer)
        return timer


class FailingCreateRepo(SQLiteClipQueueRepository):
    async def create_clip_queue_item(self, *args, **kwargs):
        raise RuntimeError("database is locked")


class FailingEndRepo(SQLiteClipQueueRepository):
    async def end_recording(self, item_id, t1):
        raise RuntimeError("disk full")


async def _setup(repo, auto_clip_enabled=True, duration=60, session_clock=None):
    await repo.update_trigger_config("streamer", auto_clip_enabled=auto_clip_enabled, auto_clip_duration=duration)
    hub = NotificationHub()
    events = []
    hub.subscribe(events.append)
    scheduler = FakeScheduler()
    manager = AutoClipManager(repo, hub, scheduler=scheduler, session_clock=session_clock)
    await manager.initialize("streamer")
    session = await repo.create_session("streamer")
    return manager, scheduler, events, session


def _prepare(repo):
    asyncio.run(repo.get_or_create_trigger_config("streamer"))


def test_timer_ends_clip_at_t0_plus_duration(tmp_path):
    repo = SQLiteClipQueueRepository(tmp_path / "q.db")
    _prepare(repo)

    async def scenario():
        manager, scheduler, events, session = await _setup(repo)
        item = await manager.handle_trigger(normalize(AudioMatch(session.id, "clip that", 0.9, 100.0)))
        timer = scheduler.timers[0]
        ended = await timer.callback()
        return item, timer, ended, events, manager

    item, timer, ended, events, manager = asyncio.run(scenario())

    assert item.status == QueueStatus.RECORDING
    assert item.title == "clip that clip"
    assert timer.delay_sec == 60
    assert ended.status == QueueStatus.PENDING
    assert ended.t1 == 160.0
    assert [e.type for e in events] == [
        "CLIP_INTENT_START",
        "CLIP_QUEUE_UPDATED",
        "CLIP_INTENT_END",
        "CLIP_QUEUE_UPDATED",
    ]
    assert events[0].payload == {"t": 100.0, "source": "voice", "confidence": 0.9}
    assert events[3].payload["status"] == "pending"
    assert manager.active_clips() == []


def test_second_trigger_rejected_while_recording(tmp_path):
    repo = SQLiteClipQueueRepository(tmp_path / "q.db")
    _prepare(repo)

    async def scenario():
        manager, _, _, session = await _setup(repo)
        first = await manager.handle_trigger(normalize(AudioMatch(session.id, "go", 0.9, 10.0)))
        second = await manager.handle_trigger(normalize(VisualMatch(session.id, "wave", 0.8, 12.0)))
        await manager.end_clip(first.id, 20.0)
        third = await manager.handle_trigger(normalize(ManualPress(session.id, 30.0)))
        rows = await repo.list_clip_queue_items(session_id=session.id)
        return first, second, third, rows

    first, second, third, rows = asyncio.run(scenario())

    assert first is not None
    assert second is None
    assert third is not None
    assert len(rows) == 2


def test_concurrent_triggers_create_one_item(tmp_path):
    repo = SQLiteClipQueueRepository(tmp_path / "q.db")
    _prepare(repo)

    async def scenario():
        manager, _, _, session = await _setup(repo)
        results = await asyncio.gather(
            *(manager.handle_trigger(normalize(ManualPress(session.id, float(t)))) for t in range(5))
        )
        rows = await repo.list_clip_queue_items(session_id=session.id, status=QueueStatus.RECORDING)
        return results, rows

    results, rows = asyncio.run(scenario())

    assert len([r for r in results if r is not None]) == 1
    assert len(rows) == 1


def test_end_clip_is_idempotent_and_cancels_timer(tmp_path):
    repo = SQLiteClipQueueRepository(tmp_path / "q.db")
    _prepare(repo)

    async def scenario():
        manager, scheduler, events, session = await _setup(repo)
        item = await manager.handle_trigger(normalize(AudioMatch(session.id, "go", 0.9, 5.0)))
        ended = await manager.end_clip(item.id, 25.0)
        again = await manager.end_clip(item.id, 30.0)
        late_timer = await scheduler.timers[0].callback()
        return ended, again, late_timer, scheduler.timers[0], events

    ended, again, late_timer, timer, events = asyncio.run(scenario())

    assert ended.t1 == 25.0
    assert again is None
    assert late_timer is None
    assert timer.cancelled
    assert [e.type for e in events].count("CLIP_INTENT_END") == 1


def test_manual_trigger_bypasses_disabled_auto_clip(tmp_path):
    repo = SQLiteClipQueueRepository(tmp_path / "q.db")
    _prepare(repo)

    async def scenario():
        manager, scheduler, events, session = await _setup(repo, auto_clip_enabled=False)
        audio = await manager.handle_trigger(normalize(AudioMatch(session.id, "go", 0.9, 5.0)))
        manual = await manager.handle_trigger(normalize(ManualPress(session.id, 6.0)))
        ended = await manager.end_clip(manual.id)
        return audio, manual, ended, scheduler.timers, events

    audio, manual, ended, timers, events = asyncio.run(scenario())

    assert audio is None
    assert manual.trigger_type == TriggerType.MANUAL
    assert manual.trigger_confidence is None
    assert manual.title == "Manual clip"
    assert timers == []
    assert ended.t1 == 66.0
    assert events[0].payload == {"t": 6.0, "source": "button"}


def test_cancel_clip_deletes_row(tmp_path):
    repo = SQLiteClipQueueRepository(tmp_path / "q.db")
    _prepare(repo)

    async def scenario():
        manager, scheduler, _, session = await _setup(repo)
        item = await manager.handle_trigger(normalize(ManualPress(session.id, 1.0)))
        cancelled = await manager.cancel_clip(item.id)
        unknown = await manager.cancel_clip("nope")
        return cancelled, unknown, await repo.get_clip_queue_item(item.id), scheduler.timers[0], manager

    cancelled, unknown, row, timer, manager = asyncio.run(scenario())

    assert cancelled is True
    assert unknown is False
    assert row is None
    assert timer.cancelled
    assert manager.get_active_clip_for_session("any") is None


def test_stop_all_ends_at_session_clock_and_swallows_errors(tmp_path):
    repo = FailingEndRepo(tmp_path / "q.db")
    _prepare(repo)

    async def scenario():
        manager, scheduler, _, session = await _setup(repo, session_clock=lambda session_id: 130.0)
        other = await repo.create_session("streamer")
        await manager.handle_trigger(normalize(ManualPress(session.id, 100.0)))
        await manager.handle_trigger(normalize(ManualPress(other.id, 110.0)))
        await manager.stop_all()
        return manager, scheduler

    manager, scheduler = asyncio.run(scenario())

    assert manager.active_clips() == []
    assert all(t.cancelled for t in scheduler.timers)


def test_stop_all_uses_session_clock_for_end_time(tmp_path):
    repo = SQLiteClipQueueRepository(tmp_path / "q.db")
    _prepare(repo)

    async def scenario():
        manager, _, _, session = await _setup(repo, session_clock=lambda session_id: 130.0)
        item = await manager.handle_trigger(normalize(ManualPress(session.id, 100.0)))
        await manager.stop_all()
        return await repo.get_clip_queue_item(item.id)

    row = asyncio.run(scenario())

    assert row.status == QueueStatus.PENDING
    assert row.t1 == 130.0


def test_persistence_failure_returns_none(tmp_path):
    repo = FailingCreateRepo(tmp_path / "q.db")
    _prepare(repo)

    async def scenario():
        manager, _, events, session = await _setup(repo)
        result = await manager.handle_trigger(normalize(ManualPress(session.id, 1.0)))
        return result, events, manager

    result, events, manager = asyncio.run(scenario())

    assert result is None
    assert events == []
    assert manager.active_clips() == []


def test_rejected_end_time_keeps_session_blocked(tmp_path):
    repo = SQLiteClipQueueRepository(tmp_path / "q.db")
    _prepare(repo)

    async def scenario():
        manager, _, events, session = await _setup(repo)
        item = await manager.handle_trigger(normalize(ManualPress(session.id, 100.0)))
        rejected_end = await manager.end_clip(item.id, 50.0)
        second = await manager.handle_trigger(normalize(ManualPress(session.id, 120.0)))
        recording = await repo.list_clip_queue_items(session_id=session.id, status=QueueStatus.RECORDING)
        still_active = manager.get_active_clip_for_session(session.id)
        ended = await manager.end_clip(item.id, 150.0)
        return rejected_end, second, recording, still_active, ended, events, manager

    rejected_end, second, recording, still_active, ended, events, manager = asyncio.run(scenario())

    assert rejected_end is None
    assert second is None
    assert len(recording) == 1
    assert still_active.queue_item_id == recording[0].id
    assert ended.status == QueueStatus.PENDING
    assert ended.t1 == 150.0
    assert [e.type for e in events].count("CLIP_INTENT_END") == 1
    assert manager.active_clips() == []


def test_end_failure_keeps_clip_tracked(tmp_path):
    repo = FailingEndRepo(tmp_path / "q.db")
    _prepare(repo)

    async def scenario():
        manager, scheduler, events, session = await _setup(repo)
        item = await manager.handle_trigger(normalize(ManualPress(session.id, 10.0)))
        from_timer = await scheduler.timers[0].callback()
        row = await repo.get_clip_queue_item(item.id)
        return item, from_timer, row, manager.get_active_clip_for_session(session.id), events

    item, from_timer, row, active, events = asyncio.run(scenario())

    assert from_timer is None
    assert row.status == QueueStatus.RECORDING
    assert active.queue_item_id == item.id
    assert "CLIP_INTENT_END" not in [e.type for e in events]


def test_end_unknown_clip_is_noop(tmp_path):
    repo = SQLiteClipQueueRepository(tmp_path / "q.db")
    manager = create_auto_clip_manager(repo, NotificationHub(), scheduler=FakeScheduler())

    assert asyncio.run(manager.end_clip("missing")) is None


def test_recover_rebuilds_working_set(tmp_path):
    repo = SQLiteClipQueueRepository(tmp_path / "q.db")
    _prepare(repo)

    async def scenario():
        session = await repo.create_session("streamer")
        row = await repo.create_clip_queue_item(session.id, TriggerType.AUDIO, 42.0, "go", 0.7)
        manager, scheduler, _, _ = await _setup(repo, duration=30)
        recovered = await manager.recover()
        rejected = await manager.handle_trigger(normalize(ManualPress(session.id, 50.0)))
        ended = await scheduler.timers[0].callback()
        return row, recovered, rejected, ended

    row, recovered, rejected, ended = asyncio.run(scenario())

    assert [a.queue_item_id for a in recovered] == [row.id]
    assert rejected is None
    assert ended.t1 == 72.0
