import asyncio

from livestream_clipper.app import build_services, manual_press
from livestream_clipper.domain.models import QueueStatus, TriggerType


def _services(tmp_path, monkeypatch):
    for name in ("LIVESTREAM_CLIPPER_DB", "SESSION_DIR", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    (config_dir / "default.toml").write_text(
        '[app]\ndb_path = "runs/q.db"\nsession_dir = "sessions"\ndefault_workflow = "streamer"\n',
        encoding="utf-8",
    )
    return build_services(tmp_path)


def test_build_services_uses_root_config(tmp_path, monkeypatch):
    services = _services(tmp_path, monkeypatch)

    assert services.settings.app.db_path == tmp_path / "runs" / "q.db"
    assert services.artifacts.sessions_root == tmp_path / "sessions"
    assert services.processor.store is services.repo


def test_session_manager_recovers_and_toggles_manual_clips(tmp_path, monkeypatch):
    services = _services(tmp_path, monkeypatch)
    repo = services.repo

    async def scenario():
        session = await repo.create_session("streamer")
        leftover = await repo.create_clip_queue_item(session.id, TriggerType.MANUAL, 5.0)
        manager = await services.start_session_manager()
        recovered = [a.queue_item_id for a in manager.active_clips()]
        ended = await manual_press(manager, session)
        started = await manual_press(manager, session)
        await manager.stop_all()
        rows = await repo.list_clip_queue_items(session_id=session.id, order_by="t0", descending=False)
        return leftover, manager, recovered, ended, started, rows

    leftover, manager, recovered, ended, started, rows = asyncio.run(scenario())

    assert manager.workflow == "streamer"
    assert recovered == [leftover.id]
    assert ended.id == leftover.id
    assert ended.status == QueueStatus.PENDING
    assert ended.t1 == 5.0
    assert started.status == QueueStatus.RECORDING
    assert started.trigger_type == TriggerType.MANUAL
    assert [r.status for r in rows] == [QueueStatus.PENDING, QueueStatus.PENDING]
    assert manager.active_clips() == []
