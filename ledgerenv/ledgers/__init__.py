from ..asset import LedgerKind
from .base import LedgerInstance, BITCOIND, GETH, LND_ALICE, LND_BOB
from .bitcoind import BitcoindInstance
from .geth import GethInstance
from .lightningd import LightningInstance

# Instance class per ledger kind; projects may swap entries via the
# `ledger_classes` fixture.
LEDGER_CLASSES = {
    LedgerKind.BITCOIN: BitcoindInstance,
    LedgerKind.ETHEREUM: GethInstance,
    LedgerKind.LIGHTNING: LightningInstance,
}

__all__ = [
    "BITCOIND",
    "GETH",
    "LND_ALICE",
    "LND_BOB",
    "LEDGER_CLASSES",
    "BitcoindInstance",
    "GethInstance",
    "LedgerInstance",
    "LedgerKind",
    "LightningInstance",
]
