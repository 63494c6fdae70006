"""Background block miner for the shared regtest bitcoind.

Usage:
    python -m ledgerenv.miner locks/bitcoind/config.json [--interval 1]

Runs until killed, or until bitcoind has been unreachable for a while.
"""

from bitcoin.rpc import JSONRPCError  # type: ignore

from .wallets.bitcoin import BitcoinWallet
from .utils import LOG_FORMAT

import argparse
import json
import logging
import sys
import time

MAX_FAILURES = 30


def mine(wallet, interval, max_failures=MAX_FAILURES):
    address = wallet.new_address()
    failures = 0
    while failures < max_failures:
        try:
            wallet.generate(1, address)
            failures = 0
        except (JSONRPCError, OSError) as e:
            failures += 1
            logging.warning("Mining failed (%d/%d): %s", failures, max_failures, e)
        time.sleep(interval)
    logging.error("Giving up after %d consecutive failures", failures)


def main(argv=None):
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("config", help="bitcoind config.json written by the orchestrator")
    parser.add_argument("--interval", type=float, default=1.0,
                        help="seconds between blocks")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT, stream=sys.stdout)

    with open(args.config, 'r', encoding='utf-8') as f:
        config = json.load(f)

    logging.info("Mining a block every %ss on %s:%s", args.interval, config['host'], config['rpc_port'])
    mine(BitcoinWallet(config), args.interval)
    return 1


if __name__ == "__main__":
    sys.exit(main())
