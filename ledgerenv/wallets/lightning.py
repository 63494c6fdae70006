from pyln.client import LightningRpc  # type: ignore
from typing import Dict, List

from ..asset import Asset, AssetKind, LedgerKind
from ..utils import wait_for

import logging


class LightningWallet(object):
    """Wallet capabilities of one lightningd, funded through a `BitcoinWallet`.
    """

    def __init__(self, bitcoin_wallet, config):
        self.bitcoin = bitcoin_wallet
        self.config = config
        self.rpc = LightningRpc(config['rpc_socket'])
        self._pubkey = None

    def get_pubkey(self) -> str:
        if self._pubkey is None:
            self._pubkey = self.rpc.getinfo()['id']
        return self._pubkey

    def list_peers(self) -> List[Dict]:
        return self.rpc.listpeers()['peers']

    def connect_peer(self, other: "LightningWallet") -> None:
        self.rpc.connect(other.get_pubkey(), other.config['host'], other.config['p2p_port'])
        logging.info("Connected %s to peer %s", self.config['node_id'], other.get_pubkey())

    def confirmed_balance(self) -> int:
        outputs = self.rpc.listfunds()['outputs']
        return sum(int(o['amount_msat']) // 1000 for o in outputs if o['status'] == 'confirmed')

    def mint(self, asset: Asset) -> None:
        """Put `asset.quantity` satoshi into this node's on-chain wallet."""
        if asset.ledger != LedgerKind.LIGHTNING or asset.name != AssetKind.BITCOIN:
            raise ValueError("Cannot mint {} on {}".format(asset.name.value, asset.ledger.value))

        target = self.confirmed_balance() + asset.quantity
        addr = self.rpc.newaddr()['bech32']
        self.bitcoin.send_to_address(addr, asset.quantity)
        self.bitcoin.generate(1)
        wait_for(lambda: self.confirmed_balance() >= target)
        logging.info("Minted %d sat on-chain for %s", asset.quantity, self.config['node_id'])

    def _channel_state(self, peer_id, txid):
        for c in self.rpc.listpeerchannels(peer_id)['channels']:
            if c.get('funding_txid') == txid:
                return c['state']
        return None

    def open_channel(self, other: "LightningWallet", amount: int) -> str:
        """Fund a channel of `amount` satoshi to `other` and wait until it is usable."""
        peer_id = other.get_pubkey()
        txid = self.rpc.fundchannel(peer_id, amount)['txid']

        # The background miner confirms it eventually; don't wait on it.
        self.bitcoin.generate(6)
        wait_for(lambda: self._channel_state(peer_id, txid) == 'CHANNELD_NORMAL')
        logging.info("Opened %d sat channel %s -> %s in %s",
                     amount, self.config['node_id'], peer_id, txid)
        return txid
