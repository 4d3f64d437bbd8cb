"""
Contract Lifecycle - Main Entry Point
Deploys the Hello contract, calls touch() and runs getTimestamp() locally
"""

import asyncio
import json
import signal
import sys

from loguru import logger

from ledger import (
    Abi,
    CallSet,
    DeploySet,
    EncodeParams,
    Giver,
    LedgerError,
    LocalExecutor,
    MessageEncoder,
    MessageProcessor,
    Signer,
    generate_keys,
    load_artifact,
    log_event,
    request_funds,
)
from ledger.config import load_config
from utils.rpc_manager import RPCManager

# Configure logging
logger.remove()
logger.add(
    sys.stderr,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>",
    level="INFO"
)
logger.add(
    "data/logs/ledger.log",
    rotation="1 day",
    retention="7 days",
    format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function} - {message}",
    level="DEBUG"
)


async def hello_lifecycle(config: dict):
    """
    Full contract lifecycle against the configured node

    keys -> encode deploy -> fund payer -> deploy -> touch -> local getTimestamp
    """
    rpc_manager = RPCManager(config)
    network = await rpc_manager.connect()

    try:
        encoder = MessageEncoder(network, config)
        processor = MessageProcessor.from_config(network, config)
        executor = LocalExecutor(network)

        artifact = load_artifact(config['contracts']['hello_artifact'])
        abi = Abi.from_json(artifact.abi)

        keys = generate_keys()
        signer = Signer.keys(keys)

        # Encode deploy message; its address is known before the contract exists
        deploy_message = await encoder.encode_message(EncodeParams(
            abi=abi,
            signer=signer,
            deploy_set=DeploySet(artifact.bytecode),
            call_set=CallSet('constructor'),
        ))
        logger.info(f"Future address of the contract will be: {deploy_message.address}")

        giver = Giver.from_config(config)
        funded = await request_funds(
            processor,
            encoder,
            giver,
            deploy_message.payer,
            config['giver']['amount_wei'],
            on_event=log_event,
        )

        deploy_result = await processor.process_message(deploy_message, abi, on_event=log_event, funded=funded)
        logger.info(f"Deploy transaction: {json.dumps(deploy_result.transaction, indent=2)}")
        logger.info(f"Deploy fees: {deploy_result.fees}")
        logger.success(f"Hello contract was deployed at address: {deploy_message.address}")

        touch_message = await encoder.encode_message(EncodeParams(
            abi=abi,
            signer=signer,
            address=deploy_message.address,
            call_set=CallSet('touch'),
        ))
        touch_result = await processor.process_message(touch_message, abi, on_event=log_event)
        logger.info(f"Touch transaction: {json.dumps(touch_result.transaction, indent=2)}")
        logger.info(f"Touch fees: {touch_result.fees}")
        logger.info(f"Touch events: {touch_result.decoded.out_events}")

        response = await executor.query(encoder, deploy_message.address, abi, 'getTimestamp')
        logger.info(f"Contract reacted to your getTimestamp: {response.output}")

    finally:
        await rpc_manager.close()


class LifecycleRunner:
    """Main runner with signal handling"""

    def __init__(self, config_path: str = None):
        """Initialize runner"""
        self.config_path = config_path
        self.task = None

    async def start(self) -> int:
        """
        Run the lifecycle

        Returns:
            Process exit code
        """
        logger.info("=" * 70)
        logger.info("Hello ledger node!")
        logger.info("=" * 70)

        loop = asyncio.get_running_loop()
        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(signum, self._signal_handler, signum)
            except NotImplementedError:
                pass

        self.task = asyncio.create_task(hello_lifecycle(load_config(self.config_path)))

        try:
            await self.task
        except asyncio.CancelledError:
            logger.warning("Lifecycle abandoned; messages already sent stay on-chain")
            return 130
        except LedgerError as e:
            logger.opt(exception=e).error(f"{type(e).__name__}: {e}")
            return 1

        logger.success("Lifecycle complete")
        return 0

    def _signal_handler(self, signum):
        """Handle shutdown signals"""
        logger.info(f"Received signal {signum}")

        if self.task and not self.task.done():
            self.task.cancel()


async def main() -> int:
    """Main entry point"""
    runner = LifecycleRunner(sys.argv[1] if len(sys.argv) > 1 else None)
    return await runner.start()


if __name__ == "__main__":
    try:
        exit_code = asyncio.run(main())
    except Exception as e:
        logger.opt(exception=e).error(f"Fatal error in main: {e}")
        exit_code = 1
    sys.exit(exit_code)
