from pathlib import Path

from livestream_clipper.infrastructure.storage.artifact_store import ArtifactStore
from livestream_clipper.utils.config import load_settings

ROOT = Path(__file__).resolve().parents[1]


def test_load_settings_defaults(monkeypatch):
    names = ("LIVESTREAM_CLIPPER_DB", "SESSION_DIR", "FFMPEG_PATH", "FFPROBE_PATH", "REPLAY_BUFFER_SECONDS", "LOG_LEVEL")
    for name in names:
        monkeypatch.delenv(name, raising=False)

    settings = load_settings(ROOT)

    assert settings.app.db_path == ROOT / "runs" / "clip_queue.db"
    assert settings.app.session_dir == ROOT / "sessions"
    assert settings.processor.concurrency == 1
    assert settings.processor.replay_buffer_seconds == 300
    assert settings.media.ffmpeg_path == "ffmpeg"
    assert settings.media.thumbnail_width == 640


def test_env_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("LIVESTREAM_CLIPPER_DB", str(tmp_path / "custom.db"))
    monkeypatch.setenv("SESSION_DIR", "recordings")
    monkeypatch.setenv("FFMPEG_PATH", "/usr/local/bin/ffmpeg")
    monkeypatch.setenv("REPLAY_BUFFER_SECONDS", "120")

    settings = load_settings(ROOT)

    assert settings.app.db_path == tmp_path / "custom.db"
    assert settings.app.session_dir == ROOT / "recordings"
    assert settings.media.ffmpeg_path == "/usr/local/bin/ffmpeg"
    assert settings.processor.replay_buffer_seconds == 120.0


def test_replay_buffer_lookup(tmp_path):
    store = ArtifactStore(tmp_path / "sessions")
    session_dir = store.session_dir("s1")
    (session_dir / "replay_2026-01-01_10-00-00.mp4").write_bytes(b"")
    (session_dir / "replay_2026-01-01_11-00-00.mkv").write_bytes(b"")
    (session_dir / "notes.txt").write_text("x")

    assert store.find_replay_buffer("s1").name == "replay_2026-01-01_11-00-00.mkv"


def test_replay_buffer_falls_back_to_root(tmp_path):
    store = ArtifactStore(tmp_path / "sessions")
    (store.sessions_root / "replay_shared.mp4").write_bytes(b"")

    assert store.find_replay_buffer("s2").name == "replay_shared.mp4"
    assert ArtifactStore(tmp_path / "empty").find_replay_buffer("s3") is None
