from __future__ import annotations

from pathlib import Path

REPLAY_PREFIX = "replay"
REPLAY_SUFFIXES = (".mp4", ".mkv")


class ArtifactStore:
    def __init__(self, sessions_root: Path) -> None:
        self.sessions_root = sessions_root
        self.sessions_root.mkdir(parents=True, exist_ok=True)

    def session_dir(self, session_id: str) -> Path:
        path = self.sessions_root / session_id
        path.mkdir(parents=True, exist_ok=True)
        return path

    def clips_dir(self, session_id: str) -> Path:
        path = self.session_dir(session_id) / "clips"
        path.mkdir(parents=True, exist_ok=True)
        return path

    def thumbnails_dir(self, session_id: str) -> Path:
        path = self.session_dir(session_id) / "thumbnails"
        path.mkdir(parents=True, exist_ok=True)
        return path

    def exports_dir(self, session_id: str) -> Path:
        path = self.session_dir(session_id) / "exports"
        path.mkdir(parents=True, exist_ok=True)
        return path

    def clip_path(self, session_id: str, item_id: str) -> Path:
        return self.clips_dir(session_id) / f"clip_{item_id}.mp4"

    def thumbnail_path(self, session_id: str, item_id: str) -> Path:
        return self.thumbnails_dir(session_id) / f"clip_{item_id}.jpg"

    def find_replay_buffer(self, session_id: str) -> Path | None:
        """Newest replay-buffer file for the session.

        Looks in the session directory first, then in the sessions root.
        Replay files are named with a sortable timestamp, so the last name
        wins.
        """
        for directory in (self.sessions_root / session_id, self.sessions_root):
            if not directory.is_dir():
                continue
            candidates = sorted(
                p
                for p in directory.iterdir()
                if p.is_file() and p.name.startswith(REPLAY_PREFIX) and p.suffix.lower() in REPLAY_SUFFIXES
            )
            if candidates:
                return candidates[-1]
        return None
