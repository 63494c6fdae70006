from dataclasses import dataclass
from enum import Enum


class LedgerKind(Enum):
    BITCOIN = "bitcoin"
    ETHEREUM = "ethereum"
    LIGHTNING = "lightning"

    @classmethod
    def parse(cls, value) -> "LedgerKind":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError("Unknown ledger '{}', expected one of {}".format(
                value, ", ".join(k.value for k in cls)))


class AssetKind(Enum):
    BITCOIN = "bitcoin"
    ETHER = "ether"
    ERC20 = "erc20"


@dataclass(frozen=True)
class Asset:
    name: AssetKind
    ledger: LedgerKind
    quantity: int
