"""
Cache Lock
==========

Advisory file lock serializing builds that target the same artifact.

The cache engine itself does no cross-process locking; the CLI takes this
lock around a build so two invocations never interleave their
read-then-overwrite of ``cache.json``. The lock file sits next to the
artifact and holds the PID of the current holder.
"""

import fcntl
import os
from pathlib import Path
from typing import IO, Optional, Union

from .exceptions import DailyFeedError, ErrorCode
from .logging import get_logger_for_component

logger = get_logger_for_component("process_lock")


class LockUnavailableError(DailyFeedError):
    """Another build holds the lock."""

    default_code = ErrorCode.SYSTEM_PERMISSION_DENIED
    default_recoverable = True

    def __init__(self, message: str, holder_pid: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.holder_pid = holder_pid
        self._add_context(holder_pid=holder_pid)


class CacheLock:
    """Non-blocking exclusive ``flock`` on ``<artifact>.lock``."""

    def __init__(self, artifact_path: Union[str, Path]):
        self.artifact_path = Path(artifact_path)
        self.lock_file = self.artifact_path.with_name(f"{self.artifact_path.name}.lock")
        self._handle: Optional[IO[str]] = None

    @property
    def acquired(self) -> bool:
        return self._handle is not None

    def acquire(self) -> bool:
        """Take the lock if it is free. Returns False when another holder has it."""
        if self.acquired:
            return True

        self.lock_file.parent.mkdir(parents=True, exist_ok=True)
        while True:
            handle = open(self.lock_file, "a+", encoding="ascii")
            try:
                fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
            except BlockingIOError:
                handle.close()
                holder = self.holder_pid()
                logger.warning(
                    f"{self.artifact_path} is being built by "
                    f"{f'PID {holder}' if holder else 'another process'}"
                )
                return False
            if self._locks_current_file(handle):
                break
            # previous holder unlinked the file between our open and flock
            handle.close()

        handle.seek(0)
        handle.truncate()
        handle.write(f"{os.getpid()}\n")
        handle.flush()
        self._handle = handle
        logger.debug(f"Locked {self.lock_file}")
        return True

    def release(self) -> None:
        if self._handle is None:
            return
        handle, self._handle = self._handle, None
        try:
            # waiters holding the old inode retry in acquire()
            self.lock_file.unlink(missing_ok=True)
            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
        finally:
            handle.close()
        logger.debug(f"Unlocked {self.lock_file}")

    def _locks_current_file(self, handle: IO[str]) -> bool:
        """Whether ``handle`` is still the file at ``lock_file``."""
        try:
            on_disk = os.stat(self.lock_file)
        except FileNotFoundError:
            return False
        held = os.fstat(handle.fileno())
        return (held.st_dev, held.st_ino) == (on_disk.st_dev, on_disk.st_ino)

    def holder_pid(self) -> Optional[int]:
        """PID recorded by the current holder, if the lock file is readable."""
        try:
            return int(self.lock_file.read_text(encoding="ascii").strip())
        except (OSError, ValueError):
            return None

    def __enter__(self) -> "CacheLock":
        if not self.acquire():
            raise LockUnavailableError(
                f"Another build is writing {self.artifact_path}",
                holder_pid=self.holder_pid(),
                user_message=f"Another build is already writing {self.artifact_path}",
            )
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()
