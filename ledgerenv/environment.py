from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional


BITCOIN = "bitcoin"
ETHEREUM = "ethereum"
ALICE_LND = "aliceLnd"
BOB_LND = "bobLnd"


def _freeze(mapping):
    return MappingProxyType({
        k: MappingProxyType(dict(v)) if isinstance(v, Mapping) else v
        for k, v in mapping.items()
    })


@dataclass(frozen=True)
class TestEnvironment:
    """Everything a test body may use from the ledgers set up for it.

    Built once `setup()` has finished and read-only from then on: configs are
    keyed by ledger group ("bitcoin", "ethereum", "aliceLnd", "bobLnd"),
    lightning wallets by actor ("alice", "bob").
    """
    __test__ = False

    ledger_configs: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)
    lightning_wallets: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def freeze(cls, ledger_configs, lightning_wallets) -> "TestEnvironment":
        return cls(ledger_configs=_freeze(ledger_configs),
                   lightning_wallets=MappingProxyType(dict(lightning_wallets)))

    @property
    def bitcoin(self) -> Optional[Mapping[str, Any]]:
        return self.ledger_configs.get(BITCOIN)

    @property
    def ethereum(self) -> Optional[Mapping[str, Any]]:
        return self.ledger_configs.get(ETHEREUM)

    @property
    def token_contract(self) -> Optional[str]:
        if self.ethereum is None:
            return None
        return self.ethereum['token_contract']
