from .asset import Asset, AssetKind, LedgerKind
from .bootstrap import WalletBootstrapper, CHANNEL_CAPACITY
from .cache import ConfigCache
from .environment import TestEnvironment
from .errors import (
    ConfigCacheCorrupt,
    DependencyUnmet,
    LedgerError,
    LedgerStartupFailed,
    LockTimeout,
    SetupFailed,
)
from .lock import LockHandle, LockManager
from .orchestrator import LedgerOrchestrator

__version__ = "0.1.0"

__all__ = [
    "Asset",
    "AssetKind",
    "CHANNEL_CAPACITY",
    "ConfigCache",
    "ConfigCacheCorrupt",
    "DependencyUnmet",
    "LedgerError",
    "LedgerKind",
    "LedgerOrchestrator",
    "LedgerStartupFailed",
    "LockHandle",
    "LockManager",
    "LockTimeout",
    "SetupFailed",
    "TestEnvironment",
    "WalletBootstrapper",
    "__version__",
]
