from ledgerenv.utils import (
    TailableProc,
    async_wait_for,
    configure_logging,
    drop_unused_port,
    env,
    read_pidfile,
    reserve_unused_port,
    shutdown_logging,
    wait_for,
    write_pidfile,
)

import asyncio
import logging
import os
import pytest
import sys


class Script(TailableProc):
    def __init__(self, outputDir, script, pidfile=None):
        TailableProc.__init__(self, outputDir, pidfile=pidfile)
        self.cmd_line = [sys.executable, "-u", "-c", script]
        self.prefix = "script"


def test_env(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("LEDGERENV_TEST_VAR", raising=False)
    assert env("LEDGERENV_TEST_VAR", "fallback") == "fallback"

    with open("config.vars", "w") as f:
        f.write("LEDGERENV_TEST_VAR=from-file\nignored line\n")
    assert env("LEDGERENV_TEST_VAR") == "from-file"

    monkeypatch.setenv("LEDGERENV_TEST_VAR", "from-env")
    assert env("LEDGERENV_TEST_VAR") == "from-env"


def test_wait_for():
    calls = []

    def third_time():
        calls.append(1)
        return len(calls) >= 3

    wait_for(third_time, timeout=10)
    assert len(calls) == 3

    with pytest.raises(TimeoutError):
        wait_for(lambda: False, timeout=0.3)


def test_async_wait_for():
    with pytest.raises(TimeoutError):
        asyncio.run(async_wait_for(lambda: False, timeout=0.3))
    asyncio.run(async_wait_for(lambda: True, timeout=0.3))


def test_pidfiles(tmp_path):
    path = str(tmp_path / "node.pid")
    assert read_pidfile(path) is None
    write_pidfile(path, 4242)
    assert read_pidfile(path) == 4242
    with open(path, "w") as f:
        f.write("garbage")
    assert read_pidfile(path) is None


def test_configure_logging(tmp_path):
    handler = configure_logging(str(tmp_path), "test_suite")
    try:
        logging.info("Starting up test environment")
    finally:
        shutdown_logging(handler)

    logfile = tmp_path / "tests" / "test_suite" / "test_environment.log"
    with open(str(logfile)) as f:
        content = f.read()
    assert " INFO: Starting up test environment" in content
    assert handler not in logging.getLogger().handlers


def test_reserve_unused_port():
    a = reserve_unused_port()
    b = reserve_unused_port()
    assert a != b
    drop_unused_port(a)
    drop_unused_port(b)


def test_tailable_proc(tmp_path):
    pidfile = str(tmp_path / "script.pid")
    proc = Script(str(tmp_path / "out"),
                  "import time; print('Starting'); print('Done loading'); time.sleep(60)",
                  pidfile=pidfile)
    proc.start()
    try:
        assert proc.wait_for_log("Done loading", timeout=30) == "Done loading"
        assert proc.is_in_log("^Starting$") == "Starting"
        assert read_pidfile(pidfile) == proc.proc.pid
    finally:
        proc.stop()

    assert not os.path.exists(pidfile)


def test_tailable_proc_exits_early(tmp_path):
    proc = Script(str(tmp_path / "out"), "import sys; print('nope'); sys.exit(3)")
    proc.start()
    with pytest.raises(RuntimeError, match="exited with code 3"):
        proc.wait_for_log("Done loading", timeout=30)
