from decimal import Decimal
from typing import Any, Dict

from bitcoin.core import COIN  # type: ignore
from bitcoin.rpc import JSONRPCError  # type: ignore

from ..asset import LedgerKind
from ..cache import CONFIG_FILE
from ..utils import TailableProc, TIMEOUT, reserve_unused_port, write_config, write_pidfile
from ..wallets.bitcoin import SimpleBitcoinProxy, bitcoin_service_url
from .base import LedgerInstance

import logging
import os
import subprocess
import sys


BITCOIND_CONFIG = {
    "regtest": 1,
    "rpcuser": "rpcuser",
    "rpcpassword": "rpcpass",
    "fallbackfee": Decimal(1000) / COIN,
}

MINER_WALLET = "miner"

# Coinbase outputs need 100 confirmations before they can be spent.
MATURITY_BLOCKS = 101


class BitcoinD(TailableProc):

    def __init__(self, bitcoin_dir, rpcport, p2pport, pidfile=None):
        TailableProc.__init__(self, bitcoin_dir, pidfile=pidfile)

        self.bitcoin_dir = bitcoin_dir
        self.rpcport = rpcport
        self.p2pport = p2pport
        self.prefix = 'bitcoind'

        regtestdir = os.path.join(bitcoin_dir, 'regtest')
        os.makedirs(regtestdir, exist_ok=True)

        self.cmd_line = [
            'bitcoind',
            '-datadir={}'.format(bitcoin_dir),
            '-printtoconsole',
            '-server',
            '-logtimestamps',
            '-txindex',
            '-nowallet',
            '-addresstype=bech32',
            '-debug=rpc',
        ]
        # For after 0.16.1 the ports need their own [regtest] section.
        BITCOIND_REGTEST = {'rpcport': rpcport, 'port': p2pport, 'bind': '127.0.0.1'}
        self.conf_file = os.path.join(bitcoin_dir, 'bitcoin.conf')
        write_config(self.conf_file, BITCOIND_CONFIG, BITCOIND_REGTEST)

    def start(self):
        TailableProc.start(self)
        self.wait_for_log("Done loading", timeout=TIMEOUT)
        logging.info("BitcoinD started")


class BitcoindInstance(LedgerInstance):
    kind = LedgerKind.BITCOIN
    schema = {
        "type": "object",
        "required": ["network", "host", "rpc_port", "p2p_port", "username",
                     "password", "data_dir", "miner_wallet"],
        "properties": {
            "network": {"const": "regtest"},
            "host": {"type": "string"},
            "rpc_port": {"type": "integer"},
            "p2p_port": {"type": "integer"},
            "username": {"type": "string"},
            "password": {"type": "string"},
            "data_dir": {"type": "string"},
            "miner_wallet": {"type": "string"},
        },
    }

    def __init__(self, role, data_dir, lock_dir, executor):
        LedgerInstance.__init__(self, role, data_dir, lock_dir, executor)
        self.daemon = None

    @property
    def miner_pidfile(self):
        return self.lock_dir / "miner.pid"

    async def start(self):
        self.daemon = BitcoinD(
            str(self.data_dir),
            rpcport=reserve_unused_port(),
            p2pport=reserve_unused_port(),
            pidfile=str(self.lock_dir / "bitcoind.pid"),
        )
        await self._run(self.daemon.start)

    async def derive_config(self) -> Dict[str, Any]:
        config = {
            "network": "regtest",
            "host": "127.0.0.1",
            "rpc_port": self.daemon.rpcport,
            "p2p_port": self.daemon.p2pport,
            "username": BITCOIND_CONFIG['rpcuser'],
            "password": BITCOIND_CONFIG['rpcpassword'],
            "data_dir": str(self.data_dir),
            "miner_wallet": MINER_WALLET,
        }
        await self._run(self._create_miner_wallet, config)
        return config

    def _create_miner_wallet(self, config):
        rpc = SimpleBitcoinProxy(bitcoin_service_url(config))
        try:
            rpc.createwallet(MINER_WALLET)
        except JSONRPCError:
            rpc.loadwallet(MINER_WALLET)
        logging.info("Created miner wallet with name %s", MINER_WALLET)

        # Make sure we have some spendable funds
        wallet = SimpleBitcoinProxy(bitcoin_service_url(config, MINER_WALLET))
        wallet.generatetoaddress(MATURITY_BLOCKS, wallet.getnewaddress())

    async def on_ready(self, config):
        # Existence only: a stale pidfile means no miner until the next teardown.
        if self.miner_pidfile.exists():
            logging.debug("Miner already recorded in %s", self.miner_pidfile)
            return
        await self._run(self._start_miner)

    def _start_miner(self):
        os.makedirs(str(self.data_dir), exist_ok=True)
        log = open(str(self.data_dir / "miner.log"), "a")
        proc = subprocess.Popen(
            [sys.executable, "-m", "ledgerenv.miner", str(self.lock_dir / CONFIG_FILE)],
            stdout=log,
            stderr=subprocess.STDOUT,
            start_new_session=True,
        )
        log.close()
        write_pidfile(str(self.miner_pidfile), proc.pid)
        logging.info("Started bitcoin miner with pid %d", proc.pid)
