"""
Code Hash Script
Prints the code hash of a compiled contract, and of its on-chain copy when an address is given

Usage: python scripts/codehash.py <artifact.json> [address]
"""

import asyncio
import sys

from loguru import logger

from ledger import LedgerError, code_hash, load_artifact
from ledger.artifacts import fetch_code_hash
from ledger.config import load_config
from utils.rpc_manager import RPCManager


async def compare_on_chain(address: str, expected: str) -> bool:
    """Compare the artifact hash with the code deployed at `address`"""
    rpc_manager = RPCManager(load_config())
    network = await rpc_manager.connect()

    try:
        on_chain = await fetch_code_hash(network, address)
    finally:
        await rpc_manager.close()

    logger.info(f"On-chain code hash at {address}: {on_chain}")

    if on_chain != expected:
        logger.error("Deployed code does not match the artifact")
        return False

    logger.success("Deployed code matches the artifact")
    return True


def main() -> int:
    if len(sys.argv) < 2:
        logger.error("Usage: python scripts/codehash.py <artifact.json> [address]")
        return 2

    try:
        artifact = load_artifact(sys.argv[1])
        hash_code = code_hash(artifact)
        logger.info(f"{artifact.name} code hash: {hash_code}")

        if len(sys.argv) > 2:
            return 0 if asyncio.run(compare_on_chain(sys.argv[2], hash_code)) else 1

    except LedgerError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
