from bitcoin.core import COIN  # type: ignore
from bitcoin.rpc import RawProxy  # type: ignore
from typing import Optional

import logging


def bitcoin_service_url(config, wallet: Optional[str] = None) -> str:
    url = "http://{username}:{password}@{host}:{rpc_port}".format(**config)
    if wallet is not None:
        url += "/wallet/{}".format(wallet)
    return url


class SimpleBitcoinProxy:
    """Wrapper for BitcoinProxy to reconnect.

    Long wait times between calls to the Bitcoin RPC could result in
    `bitcoind` closing the connection, so here we just create
    throwaway connections. This is easier than to reach into the RPC
    library to close, reopen and reauth upon failure.
    """
    def __init__(self, service_url, *args, **kwargs):
        self.__service_url__ = service_url

    def __getattr__(self, name):
        if name.startswith('__') and name.endswith('__'):
            # Python internal stuff
            raise AttributeError

        # Create a callable to do the actual call
        proxy = RawProxy(service_url=self.__service_url__)

        def f(*args):
            logging.debug("Calling {name} with arguments {args}".format(
                name=name,
                args=args
            ))
            res = proxy._call(name, *args)
            logging.debug("Result for {name} call: {res}".format(
                name=name,
                res=res,
            ))
            return res

        # Make debuggers show <function bitcoin.rpc.name> rather than <function
        # bitcoin.rpc.<lambda>>
        f.__name__ = name
        return f


class BitcoinWallet(object):
    """The miner wallet of a running bitcoind, used to fund other wallets."""

    def __init__(self, config):
        self.config = config
        self.rpc = SimpleBitcoinProxy(bitcoin_service_url(config))
        self.wallet_rpc = SimpleBitcoinProxy(
            bitcoin_service_url(config, config['miner_wallet']))

    def new_address(self) -> str:
        return self.wallet_rpc.getnewaddress()

    def block_count(self) -> int:
        return self.rpc.getblockcount()

    def generate(self, numblocks=1, to_addr=None):
        if to_addr is None:
            to_addr = self.new_address()
        return self.wallet_rpc.generatetoaddress(numblocks, to_addr)

    def send_to_address(self, address: str, sats: int) -> str:
        txid = self.wallet_rpc.sendtoaddress(address, sats / COIN)
        logging.debug("Sent %d sat to %s in %s", sats, address, txid)
        return txid
