from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict

from ..asset import LedgerKind

import asyncio
import functools


BITCOIND = "bitcoind"
GETH = "geth"
LND_ALICE = "lnd-alice"
LND_BOB = "lnd-bob"


class LedgerInstance(ABC):
    """
    A node process for one ledger role, and the config it yields once started.

    Constructing an instance must not touch the node: the orchestrator builds
    one for every role it handles, even when a cached config means the node is
    already running elsewhere. `start` and `derive_config` only run for the
    single process that creates the role.
    """

    kind: LedgerKind
    # JSON schema the persisted config has to satisfy.
    schema: Dict[str, Any] = {"type": "object"}

    def __init__(self, role: str, data_dir, lock_dir, executor):
        self.role = role
        self.data_dir = Path(data_dir)
        self.lock_dir = Path(lock_dir)
        self.executor = executor

    async def _run(self, fn, *args, **kwargs):
        """Run blocking `fn` on the executor without stalling the event loop."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.executor, functools.partial(fn, *args, **kwargs))

    @abstractmethod
    async def start(self) -> None:
        """Spawn the node and return once it accepts requests."""
        pass

    @abstractmethod
    async def derive_config(self) -> Dict[str, Any]:
        """One-time setup against the running node; returns its connection config."""
        pass

    async def on_ready(self, config: Dict[str, Any]) -> None:
        """Called with the role's config, cached or fresh, while the lock is still held."""
        pass
