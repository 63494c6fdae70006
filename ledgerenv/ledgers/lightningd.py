from collections import OrderedDict
from typing import Any, Dict

from pyln.client import LightningRpc  # type: ignore

from ..asset import LedgerKind
from ..errors import DependencyUnmet
from ..utils import TailableProc, TIMEOUT, reserve_unused_port, wait_for
from ..wallets.bitcoin import BitcoinWallet
from ..wallets.lightning import LightningWallet
from .base import BITCOIND, LedgerInstance

import logging
import os


TEST_NETWORK = 'regtest'

LIGHTNINGD_CONFIG = OrderedDict({
    "log-level": "debug",
    "cltv-delta": 6,
    "cltv-final": 5,
    "watchtime-blocks": 5,
    "rescan": 1,
    'disable-dns': None,
})


class LightningD(TailableProc):
    def __init__(self, lightning_dir, bitcoin_config, port, pidfile=None):
        TailableProc.__init__(self, lightning_dir, pidfile=pidfile)
        self.executable = 'lightningd'
        self.lightning_dir = lightning_dir
        self.port = port
        self.prefix = 'lightningd-{}'.format(os.path.basename(lightning_dir.rstrip('/')))

        self.opts = LIGHTNINGD_CONFIG.copy()
        opts = {
            'lightning-dir': lightning_dir,
            'addr': '127.0.0.1:{}'.format(port),
            'network': TEST_NETWORK,
            'bitcoin-rpcconnect': bitcoin_config['host'],
            'bitcoin-rpcport': bitcoin_config['rpc_port'],
            'bitcoin-rpcuser': bitcoin_config['username'],
            'bitcoin-rpcpassword': bitcoin_config['password'],
            'bitcoin-datadir': bitcoin_config['data_dir'],
            'log-prefix': self.prefix + ' ',
            'dev-fast-gossip': None,
            'dev-bitcoind-poll': 1,
        }
        for k, v in opts.items():
            self.opts[k] = v

        os.makedirs(os.path.join(lightning_dir, TEST_NETWORK), exist_ok=True)
        # In case you want specific ordering!
        self.early_opts = ['--developer']

    @property
    def rpc_socket(self):
        return os.path.join(self.lightning_dir, TEST_NETWORK, 'lightning-rpc')

    @property
    def cmd_line(self):

        opts = []
        for k, v in self.opts.items():
            if v is None:
                opts.append("--{}".format(k))
            elif isinstance(v, list):
                for i in v:
                    opts.append("--{}={}".format(k, i))
            else:
                opts.append("--{}={}".format(k, v))

        return [self.executable] + self.early_opts + opts

    def start(self):
        TailableProc.start(self)
        self.wait_for_log("Server started with public key")
        logging.info("LightningD started")


class LightningInstance(LedgerInstance):
    kind = LedgerKind.LIGHTNING
    schema = {
        "type": "object",
        "required": ["network", "rpc_socket", "host", "p2p_port", "node_id", "data_dir"],
        "properties": {
            "network": {"const": TEST_NETWORK},
            "rpc_socket": {"type": "string"},
            "host": {"type": "string"},
            "p2p_port": {"type": "integer"},
            "node_id": {"type": "string", "pattern": "^0[23][0-9a-f]{64}$"},
            "data_dir": {"type": "string"},
        },
    }

    def __init__(self, role, data_dir, lock_dir, executor, bitcoin_config=None):
        LedgerInstance.__init__(self, role, data_dir, lock_dir, executor)
        if bitcoin_config is None or not os.path.isdir(bitcoin_config.get('data_dir', '')):
            raise DependencyUnmet(role, BITCOIND)
        self.bitcoin_config = bitcoin_config
        self.daemon = None

    @classmethod
    def wallet(cls, config, bitcoin_config):
        return LightningWallet(BitcoinWallet(bitcoin_config), config)

    async def start(self):
        self.daemon = LightningD(
            str(self.data_dir),
            self.bitcoin_config,
            port=reserve_unused_port(),
            pidfile=str(self.lock_dir / "lightningd.pid"),
        )
        await self._run(self.daemon.start)

    async def derive_config(self) -> Dict[str, Any]:
        return await self._run(self._wait_synced)

    def _wait_synced(self):
        rpc = LightningRpc(self.daemon.rpc_socket)
        height = BitcoinWallet(self.bitcoin_config).block_count()
        wait_for(lambda: rpc.getinfo()['blockheight'] >= height, timeout=TIMEOUT)

        return {
            "network": TEST_NETWORK,
            "rpc_socket": self.daemon.rpc_socket,
            "host": "127.0.0.1",
            "p2p_port": self.daemon.port,
            "node_id": rpc.getinfo()['id'],
            "data_dir": str(self.data_dir),
        }
