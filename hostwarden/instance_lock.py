# hostwarden/instance_lock.py
import json
import os
import time

from . import logger

if os.name == "nt":
    import msvcrt

    def _try_lock(fd):
        os.lseek(fd, 0, os.SEEK_SET)
        msvcrt.locking(fd, msvcrt.LK_NBLCK, 1)

    def _unlock(fd):
        os.lseek(fd, 0, os.SEEK_SET)
        msvcrt.locking(fd, msvcrt.LK_UNLCK, 1)
else:
    import fcntl

    def _try_lock(fd):
        fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)

    def _unlock(fd):
        fcntl.flock(fd, fcntl.LOCK_UN)


class InstanceLockError(RuntimeError):
    pass


class SingleInstanceLock:
    """
    OS-level exclusive lock guarding the state file and cleanup targets
    against overlapping runs.

    Ownership is the lock held on the open file, not the file's contents:
    the PID written into it is informational, and the OS drops the lock when
    the owning process exits, so a crashed run never leaves a stale lock.
    The file itself is left in place on release.
    """

    def __init__(self, lock_path):
        self.lock_path = lock_path
        self.acquired = False
        self._fd = None

    def _owner_pid(self):
        try:
            with open(self.lock_path, "r", encoding="utf-8") as f:
                return int(json.load(f).get("pid", 0))
        except (OSError, ValueError, TypeError, AttributeError):
            return 0

    def _write_owner(self):
        info = json.dumps({"pid": os.getpid(), "started": time.time()}).encode("utf-8")
        os.ftruncate(self._fd, 0)
        os.lseek(self._fd, 0, os.SEEK_SET)
        os.write(self._fd, info)
        os.fsync(self._fd)

    def acquire(self):
        d = os.path.dirname(os.path.abspath(self.lock_path))
        os.makedirs(d, exist_ok=True)
        fd = os.open(self.lock_path, os.O_RDWR | os.O_CREAT, 0o644)
        try:
            _try_lock(fd)
        except OSError:
            os.close(fd)
            pid = self._owner_pid()
            raise InstanceLockError(f"another run is active (pid {pid or 'unknown'})")

        self._fd = fd
        self.acquired = True
        try:
            self._write_owner()
        except OSError as e:
            logger.log(f"[instance_lock] could not record owner in {self.lock_path}: {e}")
        return self

    def release(self):
        if not self.acquired:
            return
        self.acquired = False
        fd, self._fd = self._fd, None
        try:
            _unlock(fd)
        except OSError:
            pass
        finally:
            os.close(fd)

    def __enter__(self):
        return self.acquire()

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False
