"""Process-wide registry of temporary files created by jobs.

Every intermediate clip, concat list and preview output is registered here the
moment a job decides to create it, so it can be deleted when the job ends, when
the caller discards a preview, or at process shutdown.
"""

import logging
import threading
from pathlib import Path

from clipstudio.models import TempArtifact

logger = logging.getLogger(__name__)


def _delete(path: Path) -> bool:
    """Best-effort delete; a missing file counts as success."""
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning("Could not delete temp file %s: %s", path, e)
        return False
    return True


class TempArtifactRegistry:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: dict[Path, TempArtifact] = {}

    def register(self, path: Path, owner: str) -> TempArtifact:
        artifact = TempArtifact(path=Path(path), owner=owner)
        with self._lock:
            self._entries[artifact.path] = artifact
        logger.debug("Registered temp file %s (job %s)", artifact.path, owner)
        return artifact

    def unregister_and_delete(self, path: Path) -> bool:
        """Forget *path* and delete it from disk. Safe to call repeatedly."""
        path = Path(path)
        with self._lock:
            self._entries.pop(path, None)
        return _delete(path)

    def owned_by(self, owner: str) -> list[Path]:
        with self._lock:
            return [a.path for a in self._entries.values() if a.owner == owner]

    def release(self, owner: str, keep: tuple[Path, ...] = ()) -> int:
        """Delete every artifact of *owner* except those in *keep*.

        Returns the number of files removed.
        """
        keep_paths = {Path(p) for p in keep}
        with self._lock:
            doomed = [
                a.path for a in self._entries.values()
                if a.owner == owner and a.path not in keep_paths
            ]
            for path in doomed:
                del self._entries[path]
        return sum(_delete(path) for path in doomed)

    def purge_all(self) -> int:
        """Delete everything still registered. Never raises."""
        with self._lock:
            paths = list(self._entries)
            self._entries.clear()
        if paths:
            logger.info("Purging %d temp file(s)", len(paths))
        return sum(_delete(path) for path in paths)

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, (str, Path)):
            return False
        with self._lock:
            return Path(path) in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


default_registry = TempArtifactRegistry()
