from pathlib import Path

from .lock import LOCK_FILE
from .utils import LOCKS_DIR, read_pidfile

import logging
import os
import shutil
import signal


def kill_nodes(locks_dir=LOCKS_DIR):
    """Send SIGTERM to every node and helper recorded below `locks_dir`.

    Returns the pids that were signalled.
    """
    killed = []
    for pidfile in sorted(Path(locks_dir).glob("*/*.pid")):
        # That one names the worker holding a lock, not a node.
        if pidfile.name == LOCK_FILE:
            continue
        pid = read_pidfile(str(pidfile))
        if pid is None:
            continue
        try:
            os.kill(pid, signal.SIGTERM)
        except ProcessLookupError:
            logging.debug("%s (pid %d) already gone", pidfile, pid)
            continue
        logging.info("Stopped %s (pid %d)", pidfile.stem, pid)
        killed.append(pid)
    return killed


def teardown(locks_dir=LOCKS_DIR):
    """Stop everything the orchestrator left running and forget its configs."""
    killed = kill_nodes(locks_dir)
    shutil.rmtree(str(locks_dir), ignore_errors=True)
    return killed
