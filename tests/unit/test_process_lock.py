"""
Cache Lock Tests
================
"""

import os

import pytest

from dailyfeed.utils.process_lock import CacheLock, LockUnavailableError


class TestCacheLock:
    def test_lock_file_sits_next_to_artifact(self, tmp_path):
        lock = CacheLock(tmp_path / "target" / "cache.json")

        assert lock.lock_file == tmp_path / "target" / "cache.json.lock"

    def test_acquire_and_release(self, tmp_path):
        lock = CacheLock(tmp_path / "cache.json")

        assert lock.acquire()
        assert lock.holder_pid() == os.getpid()

        lock.release()
        assert not lock.lock_file.exists()
        assert not lock.acquired

    def test_second_holder_is_refused(self, tmp_path):
        first = CacheLock(tmp_path / "cache.json")
        second = CacheLock(tmp_path / "cache.json")

        assert first.acquire()
        try:
            assert not second.acquire()
        finally:
            first.release()

        assert second.acquire()
        second.release()

    def test_context_manager_raises_when_held(self, tmp_path):
        holder = CacheLock(tmp_path / "cache.json")
        holder.acquire()
        try:
            with pytest.raises(LockUnavailableError) as exc_info:
                with CacheLock(tmp_path / "cache.json"):
                    pass
            assert exc_info.value.holder_pid == os.getpid()
            assert exc_info.value.recoverable
        finally:
            holder.release()

    def test_context_manager_releases(self, tmp_path):
        with CacheLock(tmp_path / "cache.json") as lock:
            assert lock.acquired

        assert not lock.acquired

    def test_release_without_acquire_is_noop(self, tmp_path):
        CacheLock(tmp_path / "cache.json").release()

    def test_retries_when_file_is_replaced_before_locking(self, tmp_path, monkeypatch):
        """A previous holder unlinking the file between open and flock."""
        from dailyfeed.utils import process_lock

        lock = CacheLock(tmp_path / "cache.json")
        real_flock = process_lock.fcntl.flock
        calls = []

        def flock_after_unlink(fd, operation):
            if not calls:
                lock.lock_file.unlink()
            calls.append(operation)
            return real_flock(fd, operation)

        monkeypatch.setattr(process_lock.fcntl, "flock", flock_after_unlink)

        assert lock.acquire()
        try:
            assert len(calls) == 2
            assert os.fstat(lock._handle.fileno()).st_ino == os.stat(lock.lock_file).st_ino
            assert not CacheLock(tmp_path / "cache.json").acquire()
        finally:
            lock.release()
