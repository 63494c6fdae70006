""" Cross-process mutual exclusion for ledger roles.

Each role owns a directory below the locks root. Holding the lock means
having created `lock.pid` in that directory; the file carries the owner's pid
so a wedged setup can be traced back to the process holding it.
"""
from contextlib import asynccontextmanager, suppress
from pathlib import Path
from typing import Optional

from .errors import LockTimeout
from .utils import LOCK_TIMEOUT, LOCKS_DIR

import asyncio
import logging
import os
import time
import uuid


LOCK_FILE = "lock.pid"


class LockHandle(object):
    """Held ownership of one role's startup critical section."""

    def __init__(self, role: str, path: Path, pid: int, token: str):
        self.role = role
        self.path = path
        self.pid = pid
        self.token = token
        self.released = False

    def __repr__(self):
        return "LockHandle(role={}, pid={}, released={})".format(
            self.role, self.pid, self.released)


class LockManager(object):
    def __init__(self, locks_dir=LOCKS_DIR, timeout: float = LOCK_TIMEOUT):
        self.locks_dir = Path(locks_dir)
        self.timeout = timeout

    def lock_dir(self, role: str) -> Path:
        d = self.locks_dir / role
        os.makedirs(str(d), exist_ok=True)
        return d

    def _try_create(self, path: Path, token: str) -> bool:
        try:
            fd = os.open(str(path), flags=os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError:
            return False
        try:
            with os.fdopen(fd, 'w') as f:
                f.write("{} {}\n".format(os.getpid(), token))
        except BaseException:
            # An ownerless lock file would wedge the role until timeout.
            os.unlink(str(path))
            raise
        return True

    def holder(self, role: str) -> Optional[int]:
        """Pid recorded by the current holder of `role`, if any."""
        try:
            with open(str(self.lock_dir(role) / LOCK_FILE), 'r') as f:
                return int(f.read().split()[0])
        except (FileNotFoundError, IndexError, ValueError):
            return None

    async def acquire(self, role: str, timeout: Optional[float] = None) -> LockHandle:
        """Wait until nobody else holds `role`, then take it.

        Raises `LockTimeout` if that doesn't happen within `timeout` seconds.
        """
        if timeout is None:
            timeout = self.timeout
        path = self.lock_dir(role) / LOCK_FILE
        token = uuid.uuid4().hex
        start_time = time.time()
        interval = 0.01

        while not self._try_create(path, token):
            time_left = start_time + timeout - time.time()
            if time_left <= 0:
                logging.error("Timed out waiting for lock %s held by pid %s",
                              path, self.holder(role))
                raise LockTimeout(role, timeout)
            await asyncio.sleep(min(interval, time_left))
            interval = min(interval * 2, 1)

        logging.debug("Acquired lock for %s after %.2fs", role, time.time() - start_time)
        return LockHandle(role, path, os.getpid(), token)

    def release(self, handle: LockHandle) -> None:
        """Give up `handle`. Safe to call more than once."""
        if handle.released:
            return
        handle.released = True

        try:
            with open(str(handle.path), 'r') as f:
                content = f.read().split()
        except FileNotFoundError:
            logging.warning("Lock file %s vanished while held", handle.path)
            return

        if content[1:2] != [handle.token]:
            logging.warning("Lock file %s no longer ours, leaving it alone", handle.path)
            return

        with suppress(FileNotFoundError):
            os.unlink(str(handle.path))
        logging.debug("Released lock for %s", handle.role)

    @asynccontextmanager
    async def locked(self, role: str, timeout: Optional[float] = None):
        handle = await self.acquire(role, timeout)
        try:
            yield handle
        finally:
            self.release(handle)
