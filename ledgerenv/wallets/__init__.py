from .bitcoin import BitcoinWallet, SimpleBitcoinProxy, bitcoin_service_url
from .ethereum import EthereumWallet
from .lightning import LightningWallet

__all__ = [
    "BitcoinWallet",
    "EthereumWallet",
    "LightningWallet",
    "SimpleBitcoinProxy",
    "bitcoin_service_url",
]
