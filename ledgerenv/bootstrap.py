from .asset import Asset, AssetKind, LedgerKind

import asyncio
import functools
import logging


CHANNEL_CAPACITY = 15000000
# On-chain headroom on top of the channel capacity, for the funding fee.
FUNDING_MARGIN = 1000000


class WalletBootstrapper(object):
    """Wires two fresh lightning wallets together.

    Peers alice with bob, funds both on-chain, then opens one channel in each
    direction. The wallets are blocking objects, so every call is pushed onto
    the executor.
    """

    def __init__(self, executor=None, capacity=CHANNEL_CAPACITY, margin=FUNDING_MARGIN):
        self.executor = executor
        self.capacity = capacity
        self.margin = margin

    async def _run(self, fn, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.executor, functools.partial(fn, *args))

    async def ensure_peered(self, alice, bob) -> bool:
        """Connect alice to bob unless they already are; True if we connected."""
        bob_pubkey = await self._run(bob.get_pubkey)
        peers = await self._run(alice.list_peers)

        if any(p['id'] == bob_pubkey and p.get('connected', True) for p in peers):
            logging.debug("alice already peered with bob (%s)", bob_pubkey)
            return False

        await self._run(alice.connect_peer, bob)
        return True

    async def run(self, alice, bob) -> None:
        await self.ensure_peered(alice, bob)

        asset = Asset(name=AssetKind.BITCOIN, ledger=LedgerKind.LIGHTNING,
                      quantity=self.capacity + self.margin)
        await asyncio.gather(self._run(alice.mint, asset), self._run(bob.mint, asset))

        await self._run(alice.open_channel, bob, self.capacity)
        await self._run(bob.open_channel, alice, self.capacity)
        logging.info("Lightning channels of %d sat open in both directions", self.capacity)
