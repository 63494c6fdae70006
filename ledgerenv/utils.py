from contextlib import suppress

import asyncio
import ephemeral_port_reserve  # type: ignore
import logging
import os
import re
import subprocess
import sys
import threading
import time


def env(name, default=None):
    """Access to environment variables

    Allows access to environment variables, falling back to config.vars (a
    `KEY=value` file in the current working directory), and finally falling
    back to a default value.

    """
    fname = 'config.vars'
    if os.path.exists(fname):
        with open(fname, 'r') as f:
            lines = [l for l in f.readlines() if '=' in l]
        config = dict([(line.rstrip().split('=', 1)) for line in lines])
    else:
        config = {}

    if name in os.environ:
        return os.environ[name]
    elif name in config:
        return config[name]
    else:
        return default


TEST_DEBUG = env("TEST_DEBUG", "0") == "1"
SLOW_MACHINE = env("SLOW_MACHINE", "0") == "1"
TIMEOUT = int(env("TIMEOUT", 180 if SLOW_MACHINE else 60))
LOCK_TIMEOUT = int(env("LOCK_TIMEOUT", 4 * TIMEOUT))
LOCKS_DIR = os.path.abspath(env("LEDGERENV_LOCKS_DIR", "locks"))
LOG_DIR = os.path.abspath(env("LEDGERENV_LOG_DIR", "log"))
TEARDOWN = env("LEDGERENV_TEARDOWN", "1") == "1"

LOG_FORMAT = "%(asctime)s %(levelname)5s: %(message)s"


def wait_for(success, timeout=TIMEOUT):
    start_time = time.time()
    interval = 0.25
    while not success():
        time_left = start_time + timeout - time.time()
        if time_left <= 0:
            raise TimeoutError("Timeout while waiting for {}".format(success))
        time.sleep(min(interval, time_left))
        interval *= 2
        if interval > 5:
            interval = 5


async def async_wait_for(success, timeout=TIMEOUT):
    """Like `wait_for`, but yields to the event loop between attempts."""
    start_time = time.time()
    interval = 0.25
    while not success():
        time_left = start_time + timeout - time.time()
        if time_left <= 0:
            raise TimeoutError("Timeout while waiting for {}".format(success))
        await asyncio.sleep(min(interval, time_left))
        interval *= 2
        if interval > 5:
            interval = 5


def write_config(filename, opts, regtest_opts=None, section_name='regtest'):
    with open(filename, 'w') as f:
        for k, v in opts.items():
            f.write("{}={}\n".format(k, v))
        if regtest_opts:
            f.write("[{}]\n".format(section_name))
            for k, v in regtest_opts.items():
                f.write("{}={}\n".format(k, v))


def write_pidfile(path, pid):
    with open(path, 'w') as f:
        f.write("{}\n".format(pid))


def read_pidfile(path):
    """Return the pid recorded in `path`, or None if there is no usable one."""
    try:
        with open(path, 'r') as f:
            return int(f.read().strip())
    except (FileNotFoundError, ValueError):
        return None


def configure_logging(log_dir, suite):
    """Attach a file handler logging to `<log_dir>/tests/<suite>/`.

    Returns the handler so the caller can detach it again on teardown.
    """
    directory = os.path.join(log_dir, "tests", suite)
    os.makedirs(directory, exist_ok=True)
    handler = logging.FileHandler(os.path.join(directory, "test_environment.log"))
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.setLevel(logging.DEBUG)
    root = logging.getLogger()
    root.addHandler(handler)
    if root.level > logging.DEBUG or root.level == logging.NOTSET:
        root.setLevel(logging.DEBUG)
    return handler


def shutdown_logging(handler):
    handler.flush()
    logging.getLogger().removeHandler(handler)
    handler.close()


unused_port_lock = threading.Lock()
unused_port_set = set()


def reserve_unused_port():
    """Get an unused port: avoids handing out the same port unless it's been
    returned"""
    with unused_port_lock:
        while True:
            port = ephemeral_port_reserve.reserve()
            if port not in unused_port_set:
                break
        unused_port_set.add(port)

    return port


def drop_unused_port(port):
    with unused_port_lock:
        unused_port_set.discard(port)


class TailableProc(object):
    """A monitorable process that we can start, stop and tail.

    This is the base class for the ledger daemons. It allows us to directly
    tail the processes and react to their output.

    Nodes are meant to outlive the test worker that started them, so the
    process is spawned in its own session and the pid is recorded in
    `pidfile` for the teardown collaborator.
    """

    def __init__(self, outputDir, pidfile=None, verbose=False):
        self.logs = []
        self.env = os.environ.copy()
        self.proc = None
        self.outputDir = outputDir
        self.pidfile = pidfile
        os.makedirs(outputDir, exist_ok=True)
        self.stdout_filename = os.path.join(outputDir, "log")
        self.stderr_filename = os.path.join(outputDir, "errlog")
        self.stdout_write = open(self.stdout_filename, "wt")
        self.stderr_write = open(self.stderr_filename, "wt")
        self.stdout_read = open(self.stdout_filename, "rt")
        self.stderr_read = open(self.stderr_filename, "rt")
        self.logsearch_start = 0
        self.err_logs = []
        self.prefix = ""
        self.verbose = verbose

    def start(self, stdin=None):
        """Start the underlying process and start monitoring it."""
        logging.debug("Starting '%s'", " ".join(self.cmd_line))
        self.proc = subprocess.Popen(self.cmd_line,
                                     stdin=stdin,
                                     stdout=self.stdout_write,
                                     stderr=self.stderr_write,
                                     env=self.env,
                                     start_new_session=True)
        if self.pidfile is not None:
            write_pidfile(self.pidfile, self.proc.pid)

    def stop(self, timeout=10):
        self.proc.terminate()

        try:
            self.proc.wait(timeout)
        except subprocess.TimeoutExpired:
            self.proc.kill()

        self.proc.wait()
        self._forget_pid()
        return self.proc.returncode

    def kill(self):
        """Kill process without giving it warning."""
        self.proc.kill()
        self.proc.wait()
        self._forget_pid()

    def _forget_pid(self):
        if self.pidfile is not None:
            with suppress(FileNotFoundError):
                os.unlink(self.pidfile)

    def logs_catchup(self):
        """Save the latest stdout / stderr contents; return true if we got anything.
        """
        new_stdout = self.stdout_read.readlines()
        if self.verbose:
            for line in new_stdout:
                sys.stdout.write("{}: {}".format(self.prefix, line))
        self.logs += [l.rstrip() for l in new_stdout]
        new_stderr = self.stderr_read.readlines()
        if self.verbose:
            for line in new_stderr:
                sys.stderr.write("{}-stderr: {}".format(self.prefix, line))
        self.err_logs += [l.rstrip() for l in new_stderr]
        return len(new_stdout) > 0 or len(new_stderr) > 0

    def is_in_log(self, regex, start=0):
        """Look for `regex` in the logs."""

        self.logs_catchup()
        ex = re.compile(regex)
        for l in self.logs[start:]:
            if ex.search(l):
                logging.debug("Found '%s' in logs", regex)
                return l

        logging.debug("Did not find '%s' in logs", regex)
        return None

    def wait_for_logs(self, regexs, timeout=TIMEOUT):
        """Look for `regexs` in the logs.

        The logs contain tailed stdout of the process. We look for each regex
        in `regexs`, starting from `logsearch_start` which normally is the
        position of the last found entry of a previous wait-for logs call.
        The ordering inside `regexs` doesn't matter.

        We fail if the timeout is exceeded or if the underlying process
        exits before all the `regexs` were found.
        """
        logging.debug("Waiting for %s in the logs", regexs)
        exs = [re.compile(r) for r in regexs]
        start_time = time.time()
        while True:
            if self.logsearch_start >= len(self.logs):
                if not self.logs_catchup():
                    if self.proc is not None and self.proc.poll() is not None:
                        raise RuntimeError('{} exited with code {} before logging "{}"'.format(
                            self.prefix, self.proc.returncode, regexs))
                    time.sleep(0.25)

                if timeout is not None and time.time() > start_time + timeout:
                    raise TimeoutError('Unable to find "{}" in logs.'.format(exs))
                continue

            line = self.logs[self.logsearch_start]
            self.logsearch_start += 1
            for r in exs.copy():
                if r.search(line):
                    logging.debug("Found '%s' in logs", r)
                    exs.remove(r)
                    if len(exs) == 0:
                        return line
                    # Don't match same line with different regexs!
                    break

    def wait_for_log(self, regex, timeout=TIMEOUT):
        """Look for `regex` in the logs.

        Convenience wrapper for the common case of only seeking a single entry.
        """
        return self.wait_for_logs([regex], timeout)
