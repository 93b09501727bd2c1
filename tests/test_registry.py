"""Tests for the temp artifact registry."""

import threading
from unittest.mock import patch

from clipstudio.registry import TempArtifactRegistry


def _touch(path):
    path.write_bytes(b"x")
    return path


class TestRegister:
    def test_register_tracks_path(self, registry, tmp_path):
        path = _touch(tmp_path / "a.mp4")
        artifact = registry.register(path, "job-1")
        assert artifact.owner == "job-1"
        assert path in registry
        assert str(path) in registry
        assert len(registry) == 1

    def test_register_before_file_exists(self, registry, tmp_path):
        registry.register(tmp_path / "later.mp4", "job-1")
        assert tmp_path / "later.mp4" in registry

    def test_non_path_not_contained(self, registry):
        assert 42 not in registry


class TestUnregisterAndDelete:
    def test_deletes_file(self, registry, tmp_path):
        path = _touch(tmp_path / "a.mp4")
        registry.register(path, "job-1")
        assert registry.unregister_and_delete(path) is True
        assert not path.exists()
        assert path not in registry

    def test_idempotent(self, registry, tmp_path):
        path = _touch(tmp_path / "a.mp4")
        registry.register(path, "job-1")
        assert registry.unregister_and_delete(path) is True
        assert registry.unregister_and_delete(path) is True

    def test_unknown_missing_path_is_success(self, registry, tmp_path):
        assert registry.unregister_and_delete(tmp_path / "never.mp4") is True

    def test_delete_failure_reported(self, registry, tmp_path):
        path = _touch(tmp_path / "a.mp4")
        registry.register(path, "job-1")
        with patch("pathlib.Path.unlink", side_effect=PermissionError("busy")):
            assert registry.unregister_and_delete(path) is False
        assert path not in registry


class TestRelease:
    def test_release_only_owner(self, registry, tmp_path):
        mine = _touch(tmp_path / "mine.mp4")
        other = _touch(tmp_path / "other.mp4")
        registry.register(mine, "job-1")
        registry.register(other, "job-2")

        assert registry.release("job-1") == 1
        assert not mine.exists()
        assert other.exists()
        assert registry.owned_by("job-2") == [other]

    def test_release_keeps_output(self, registry, tmp_path):
        part = _touch(tmp_path / "part1.mp4")
        out = _touch(tmp_path / "out.mp4")
        registry.register(part, "job-1")
        registry.register(out, "job-1")

        registry.release("job-1", keep=(out,))
        assert not part.exists()
        assert out.exists()
        assert out in registry

    def test_release_unknown_owner(self, registry):
        assert registry.release("nobody") == 0


class TestPurgeAll:
    def test_empty_registry(self, registry):
        assert registry.purge_all() == 0

    def test_purges_everything(self, registry, tmp_path):
        paths = [_touch(tmp_path / f"f{i}.mp4") for i in range(5)]
        for i, path in enumerate(paths):
            registry.register(path, f"job-{i % 2}")

        assert registry.purge_all() == 5
        assert len(registry) == 0
        assert not any(p.exists() for p in paths)

    def test_already_deleted_files_do_not_raise(self, registry, tmp_path):
        registry.register(tmp_path / "gone.mp4", "job-1")
        assert registry.purge_all() == 1

    def test_second_purge_is_noop(self, registry, tmp_path):
        registry.register(_touch(tmp_path / "a.mp4"), "job-1")
        registry.purge_all()
        assert registry.purge_all() == 0


class TestConcurrency:
    def test_parallel_jobs(self, tmp_path):
        registry = TempArtifactRegistry()
        errors = []

        def job(n):
            try:
                owner = f"job-{n}"
                for i in range(20):
                    registry.register(_touch(tmp_path / f"{owner}-{i}.mp4"), owner)
                registry.release(owner)
            except Exception as e:  # pragma: no cover
                errors.append(e)

        threads = [threading.Thread(target=job, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert len(registry) == 0
        assert list(tmp_path.iterdir()) == []
