from ledgerenv.fixtures import setup_logging, test_environment, pytest_configure  # noqa: F401,F403
from fakes import EVENTS, FAKE_CLASSES

import pytest


@pytest.fixture(autouse=True)
def clear_events():
    del EVENTS[:]
    yield
    del EVENTS[:]


@pytest.fixture(scope="session")
def ledger_classes():
    return FAKE_CLASSES


@pytest.fixture(scope="session")
def locks_dir(tmp_path_factory):
    return str(tmp_path_factory.mktemp("locks"))


@pytest.fixture(scope="session")
def log_dir(tmp_path_factory):
    return str(tmp_path_factory.mktemp("log"))
