from concurrent import futures
from typing import Dict, Iterable, List, Optional, Tuple

from .asset import LedgerKind
from .bootstrap import WalletBootstrapper
from .cache import ConfigCache
from .environment import ALICE_LND, BITCOIN, BOB_LND, ETHEREUM, TestEnvironment
from .errors import DependencyUnmet, LedgerError, LedgerStartupFailed, SetupFailed
from .ledgers import BITCOIND, GETH, LEDGER_CLASSES, LND_ALICE, LND_BOB
from .lock import LockManager
from .utils import LOCK_TIMEOUT, LOCKS_DIR, LOG_DIR

import asyncio
import logging
import os


CHANNELS = "lightning-channels"


def independent_groups(requested: Iterable) -> List[Tuple[LedgerKind, ...]]:
    """Split the requested ledgers into groups that may start concurrently.

    Lightning needs bitcoin, so it drags bitcoin into its own group instead
    of bitcoin being started a second time on its own.
    """
    kinds = {LedgerKind.parse(r) for r in requested}
    groups = []
    if LedgerKind.ETHEREUM in kinds:
        groups.append((LedgerKind.ETHEREUM,))
    if LedgerKind.LIGHTNING in kinds:
        groups.append((LedgerKind.BITCOIN, LedgerKind.LIGHTNING))
    elif LedgerKind.BITCOIN in kinds:
        groups.append((LedgerKind.BITCOIN,))
    return groups


async def settle(aws) -> list:
    """Await all of `aws`, then raise one `SetupFailed` for every role that failed.

    Nothing is cancelled when one fails, so every role gets to release its
    lock before we report.
    """
    results = await asyncio.gather(*aws, return_exceptions=True)
    failures: List[LedgerError] = []
    for r in results:
        if isinstance(r, SetupFailed):
            failures.extend(r.failures)
        elif isinstance(r, LedgerError):
            failures.append(r)
        elif isinstance(r, BaseException):
            raise r
    if failures:
        raise SetupFailed(failures)
    return results


class LedgerOrchestrator(object):
    """Brings up the ledgers a test run needs, sharing them across workers.

    Every role goes through the same cache-or-create sequence in
    `_start_ledger`: take the role's lock, reuse its persisted config if one
    exists, otherwise start the node and persist what it reports, and always
    release the lock.
    """

    def __init__(self, locks_dir=LOCKS_DIR, log_dir=LOG_DIR, ledger_classes=None,
                 executor=None, lock_timeout=LOCK_TIMEOUT, bootstrapper=None):
        self.ledger_classes = dict(LEDGER_CLASSES)
        if ledger_classes is not None:
            self.ledger_classes.update(ledger_classes)
        self.log_dir = str(log_dir)
        self.owns_executor = executor is None
        self.executor = executor if executor is not None else futures.ThreadPoolExecutor(max_workers=20)
        self.locks = LockManager(locks_dir, timeout=lock_timeout)
        self.cache = ConfigCache(locks_dir)
        for role, kind in [(BITCOIND, LedgerKind.BITCOIN), (GETH, LedgerKind.ETHEREUM),
                           (LND_ALICE, LedgerKind.LIGHTNING), (LND_BOB, LedgerKind.LIGHTNING)]:
            self.cache.register_schema(role, self.ledger_classes[kind].schema)
        self.bootstrapper = bootstrapper if bootstrapper is not None else WalletBootstrapper(self.executor)

        self.ledger_configs: Dict[str, dict] = {}
        self.lightning_wallets: Dict[str, object] = {}

    def close(self):
        if self.owns_executor:
            self.executor.shutdown(wait=False)

    def data_dir(self, role: str) -> str:
        d = os.path.join(self.log_dir, role)
        os.makedirs(d, exist_ok=True)
        return d

    async def setup(self, requested: Iterable) -> TestEnvironment:
        """Start (or reuse) every requested ledger with as much parallelism as possible."""
        groups = independent_groups(requested)
        logging.info("Starting up test environment: %s",
                     ", ".join("+".join(k.value for k in g) for g in groups) or "no ledgers")

        tasks = []
        for group in groups:
            if LedgerKind.LIGHTNING in group:
                tasks.append(self.start_bitcoin_and_lightning())
            elif group == (LedgerKind.BITCOIN,):
                tasks.append(self.start_bitcoin())
            elif group == (LedgerKind.ETHEREUM,):
                tasks.append(self.start_ethereum())

        try:
            await settle(tasks)
        except SetupFailed as e:
            logging.error("%s", e)
            raise

        return TestEnvironment.freeze(self.ledger_configs, self.lightning_wallets)

    async def _start_ledger(self, role, new_instance):
        handle = await self.locks.acquire(role)
        try:
            try:
                instance = new_instance(str(self.locks.lock_dir(role)))
                config = self.cache.load_if_present(role)
                if config is None:
                    logging.info("No config file found for %s, starting ledger", role)
                    await instance.start()
                    config = await instance.derive_config()
                    self.cache.store(role, config)
                await instance.on_ready(config)
            except LedgerError:
                raise
            except Exception as e:
                logging.exception("Starting %s failed", role)
                raise LedgerStartupFailed(role, e) from e
            return config
        finally:
            self.locks.release(handle)

    async def start_bitcoin(self) -> dict:
        cls = self.ledger_classes[LedgerKind.BITCOIN]
        config = await self._start_ledger(
            BITCOIND,
            lambda lock_dir: cls(BITCOIND, self.data_dir(BITCOIND), lock_dir, self.executor),
        )
        self.ledger_configs[BITCOIN] = config
        return config

    async def start_ethereum(self) -> dict:
        cls = self.ledger_classes[LedgerKind.ETHEREUM]
        config = await self._start_ledger(
            GETH,
            lambda lock_dir: cls(GETH, self.data_dir(GETH), lock_dir, self.executor),
        )
        self.ledger_configs[ETHEREUM] = config
        return config

    async def start_lightning(self, role: str, actor: str, bitcoin_config: Optional[dict]) -> dict:
        if bitcoin_config is None:
            raise DependencyUnmet(role, BITCOIND)

        cls = self.ledger_classes[LedgerKind.LIGHTNING]
        config = await self._start_ledger(
            role,
            lambda lock_dir: cls(role, self.data_dir(role), lock_dir, self.executor,
                                 bitcoin_config=bitcoin_config),
        )
        try:
            wallet = cls.wallet(config, bitcoin_config)
        except Exception as e:
            raise LedgerStartupFailed(role, e) from e

        self.lightning_wallets[actor] = wallet
        self.ledger_configs[ALICE_LND if actor == "alice" else BOB_LND] = config
        return config

    async def start_bitcoin_and_lightning(self) -> None:
        """First starts bitcoin, then both lightning nodes, then wires them up."""
        bitcoin_config = await self.start_bitcoin()

        await settle([
            self.start_lightning(LND_ALICE, "alice", bitcoin_config),
            self.start_lightning(LND_BOB, "bob", bitcoin_config),
        ])

        await self.setup_lightning_channels()

    async def setup_lightning_channels(self) -> None:
        try:
            alice = self.lightning_wallets["alice"]
            bob = self.lightning_wallets["bob"]
        except KeyError as e:
            raise DependencyUnmet(CHANNELS, "lightning wallet {}".format(e))

        try:
            await self.bootstrapper.run(alice, bob)
        except LedgerError:
            raise
        except Exception as e:
            logging.exception("Setting up lightning channels failed")
            raise LedgerStartupFailed(CHANNELS, e) from e
