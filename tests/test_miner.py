from bitcoin.rpc import JSONRPCError  # type: ignore
from ledgerenv import miner

import json


class StubWallet(object):
    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.generated = []

    def new_address(self):
        return "bcrt1qminer"

    def generate(self, numblocks=1, to_addr=None):
        self.generated.append((numblocks, to_addr))
        outcome = self.outcomes.pop(0) if self.outcomes else ConnectionRefusedError("bitcoind gone")
        if outcome is not None:
            raise outcome


def test_mine_gives_up_after_consecutive_failures():
    wallet = StubWallet([
        ConnectionRefusedError("restarting"),
        JSONRPCError({"code": -28, "message": "Loading block index"}),
        None,
        None,
    ])
    miner.mine(wallet, interval=0, max_failures=3)

    # Two failures, two blocks, then three failures in a row.
    assert len(wallet.generated) == 7
    assert all(g == (1, "bcrt1qminer") for g in wallet.generated)


def test_main(tmp_path, monkeypatch):
    config = {"host": "127.0.0.1", "rpc_port": 18443, "username": "u",
              "password": "p", "miner_wallet": "miner"}
    path = tmp_path / "config.json"
    with open(str(path), "w") as f:
        json.dump(config, f)

    calls = []
    monkeypatch.setattr(miner, "BitcoinWallet", lambda c: ("wallet", c))
    monkeypatch.setattr(miner, "mine", lambda w, interval: calls.append((w, interval)))

    assert miner.main([str(path), "--interval", "0.5"]) == 1
    assert calls == [(("wallet", config), 0.5)]
