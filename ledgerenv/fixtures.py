from concurrent import futures
from ledgerenv.ledgers import LEDGER_CLASSES
from ledgerenv.orchestrator import LedgerOrchestrator
from ledgerenv.teardown import teardown
from ledgerenv.utils import LOCKS_DIR, LOG_DIR, TEARDOWN, TEST_DEBUG, configure_logging, shutdown_logging

import asyncio
import logging
import pytest  # type: ignore
import sys


def pytest_configure(config):
    config.addinivalue_line(
        "markers",
        "ledgers(*names): ledgers (bitcoin, ethereum, lightning) the module's tests need",
    )


def pytest_unconfigure(config):
    """
    Stop all shared nodes once the controlling process is done.
    xdist workers skip this, they share the controller's nodes.
    """
    if hasattr(config, "workerinput") or not TEARDOWN:
        return
    killed = teardown(LOCKS_DIR)
    if killed:
        print("Stopped {} ledger processes recorded in {}".format(len(killed), LOCKS_DIR))


def requested_ledgers(node):
    """All ledger names requested by `ledgers` markers on `node` and its parents."""
    names = []
    for marker in node.iter_markers("ledgers"):
        for name in marker.args:
            if name not in names:
                names.append(name)
    return names


@pytest.fixture(autouse=True)
def setup_logging():
    """Enable logging before a test, and remove all handlers afterwards.

    This "fixes" the issue with pytest swapping out sys.stdout and sys.stderr
    in order to capture the output, but then doesn't wait for the handlers to
    terminate before closing the buffers.

    """
    handler = None
    if TEST_DEBUG:
        handler = logging.StreamHandler(sys.stdout)
        logging.getLogger().addHandler(handler)
        logging.getLogger().setLevel(logging.DEBUG)

    yield

    if handler is not None:
        logging.getLogger().removeHandler(handler)


@pytest.fixture(scope="session")
def ledger_classes():
    return LEDGER_CLASSES


@pytest.fixture(scope="session")
def locks_dir():
    return LOCKS_DIR


@pytest.fixture(scope="session")
def log_dir():
    return LOG_DIR


@pytest.fixture(scope="module")
def test_environment(request, ledger_classes, locks_dir, log_dir):
    """Start or reuse the ledgers named by the module's `ledgers` marker.

    Yields a frozen `TestEnvironment`; a failed setup errors every test of
    the module with the failing roles and their causes.
    """
    handler = configure_logging(log_dir, request.module.__name__)
    executor = futures.ThreadPoolExecutor(max_workers=20)
    orchestrator = LedgerOrchestrator(
        locks_dir=locks_dir,
        log_dir=log_dir,
        ledger_classes=ledger_classes,
        executor=executor,
    )

    try:
        yield asyncio.run(orchestrator.setup(requested_ledgers(request.node)))
    finally:
        executor.shutdown(wait=False)
        shutdown_logging(handler)
