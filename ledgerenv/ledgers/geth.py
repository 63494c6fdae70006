from typing import Any, Dict

from eth_account import Account
from web3 import Web3

from ..asset import LedgerKind
from ..utils import TailableProc, TIMEOUT, reserve_unused_port, wait_for
from ..wallets.ethereum import EthereumWallet
from .base import LedgerInstance

import json
import logging
import os


# Chain id of a `geth --dev` chain.
CHAIN_ID = 1337


class GethD(TailableProc):
    def __init__(self, geth_dir, http_port, pidfile=None):
        TailableProc.__init__(self, geth_dir, pidfile=pidfile)
        self.geth_dir = geth_dir
        self.http_port = http_port
        self.prefix = 'geth'
        self.cmd_line = [
            'geth',
            '--dev',
            '--dev.period=1',
            '--datadir={}'.format(geth_dir),
            '--http',
            '--http.addr=127.0.0.1',
            '--http.port={}'.format(http_port),
            '--http.api=eth,net,web3,txpool',
            '--ipcdisable',
            '--nodiscover',
            '--maxpeers=0',
            '--port=0',
        ]

    @property
    def rpc_url(self):
        return "http://127.0.0.1:{}".format(self.http_port)

    def is_ready(self):
        try:
            return Web3(Web3.HTTPProvider(self.rpc_url)).eth.chain_id == CHAIN_ID
        except (ConnectionError, OSError, ValueError):
            if self.proc.poll() is not None:
                raise RuntimeError("geth exited with code {}".format(self.proc.returncode))
            return False

    def start(self):
        TailableProc.start(self)
        wait_for(self.is_ready, timeout=TIMEOUT)
        logging.info("Geth started")

    def dev_account_key(self):
        """Private key of the pre-funded developer account.

        `--dev` writes it to the keystore with an empty passphrase.
        """
        keystore = os.path.join(self.geth_dir, 'keystore')
        wait_for(lambda: os.path.isdir(keystore) and len(os.listdir(keystore)) > 0)
        keyfile = sorted(os.listdir(keystore))[0]
        with open(os.path.join(keystore, keyfile), 'r') as f:
            key = Account.decrypt(json.load(f), "")
        return Web3.to_hex(key)


class GethInstance(LedgerInstance):
    kind = LedgerKind.ETHEREUM
    schema = {
        "type": "object",
        "required": ["rpc_url", "chain_id", "dev_account_key", "token_contract", "data_dir"],
        "properties": {
            "rpc_url": {"type": "string"},
            "chain_id": {"type": "integer"},
            "dev_account_key": {"type": "string", "pattern": "^0x[0-9a-fA-F]{64}$"},
            "token_contract": {"type": "string", "pattern": "^0x[0-9a-fA-F]{40}$"},
            "data_dir": {"type": "string"},
        },
    }

    def __init__(self, role, data_dir, lock_dir, executor):
        LedgerInstance.__init__(self, role, data_dir, lock_dir, executor)
        self.daemon = None

    async def start(self):
        self.daemon = GethD(
            str(self.data_dir),
            http_port=reserve_unused_port(),
            pidfile=str(self.lock_dir / "geth.pid"),
        )
        await self._run(self.daemon.start)

    async def derive_config(self) -> Dict[str, Any]:
        dev_account_key = await self._run(self.daemon.dev_account_key)
        wallet = EthereumWallet(dev_account_key, self.daemon.rpc_url, CHAIN_ID)
        token_contract = await self._run(wallet.deploy_erc20_token_contract)

        return {
            "rpc_url": self.daemon.rpc_url,
            "chain_id": CHAIN_ID,
            "dev_account_key": dev_account_key,
            "token_contract": token_contract,
            "data_dir": str(self.data_dir),
        }
