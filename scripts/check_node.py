"""
Node Check Script
Verifies configuration, node connectivity and giver balance before running main.py
"""

import asyncio
import os
import sys

from loguru import logger
from web3 import Web3

from ledger import Giver, LedgerError
from ledger.config import load_config
from utils.rpc_manager import RPCManager


def check_environment_variables(config: dict) -> bool:
    """Check if the giver key is available"""
    logger.info("Checking environment variables...")

    key_env = config['giver'].get('private_key_env', 'GIVER_PRIVATE_KEY')
    if not os.getenv(key_env):
        logger.error(f"Missing environment variable: {key_env}")
        return False

    logger.success("✓ Giver key set")
    return True


def check_artifacts(config: dict) -> bool:
    """Check that the demo contract was compiled"""
    logger.info("Checking contract artifacts...")

    missing = [path for path in config.get('contracts', {}).values() if not os.path.exists(path)]
    if missing:
        for path in missing:
            logger.error(f"  ✗ Artifact not found: {path}")
        logger.info("Compile contracts/Hello.sol first (hardhat or solc)")
        return False

    logger.success("✓ Contract artifacts present")
    return True


async def check_node(config: dict) -> bool:
    """Check node connectivity and giver balance"""
    logger.info("Checking node connection...")

    rpc_manager = RPCManager(config)

    try:
        network = await rpc_manager.connect()
    except LedgerError as e:
        logger.error(f"  ✗ {e}")
        return False

    try:
        block = await network.block_number()
        chain_id = await network.chain_id()
        logger.success(f"  ✓ {rpc_manager.current_endpoint}: chain {chain_id}, block {block}")

        try:
            giver = Giver.from_config(config)
        except LedgerError as e:
            logger.warning(f"  Giver not configured: {e}")
            return True

        snapshot = await network.fetch_account_state(giver.address)
        balance = Web3.from_wei(snapshot.balance, 'ether')
        logger.info(f"  Giver {giver.address}: {balance:.4f} ETH")

        if snapshot.balance < config['giver']['amount_wei']:
            logger.warning("  ⚠ Giver balance lower than one funding amount")
            return False

        logger.success("  ✓ Giver balance sufficient")
        return True

    finally:
        await rpc_manager.close()


def main() -> int:
    config = load_config()

    results = [
        check_environment_variables(config),
        check_artifacts(config),
        asyncio.run(check_node(config)),
    ]

    if all(results):
        logger.success("All checks passed")
        return 0

    logger.error(f"{results.count(False)} check(s) failed")
    return 1


if __name__ == "__main__":
    sys.exit(main())
