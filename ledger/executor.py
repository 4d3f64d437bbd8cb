"""
Local Executor
Runs read-only calls against a fetched account state, without broadcasting
"""

import asyncio
from typing import Any, Dict, Optional

from loguru import logger

from .encoder import CallSet, EncodeParams
from .keys import Signer
from .types import AccountSnapshot, DecodedOutput, Message


class LocalExecutor:
    """
    Executes messages locally via eth_call

    No lifecycle events are emitted and nothing changes on-chain.
    """

    def __init__(self, network):
        """
        Initialize Local Executor

        Args:
            network: NetworkLayer implementation
        """
        self.network = network

    async def run(self, message: Message, account_state: AccountSnapshot, abi: Any) -> DecodedOutput:
        """
        Execute a message against an account snapshot

        Args:
            message: Encoded call
            account_state: Snapshot of the destination account
            abi: ABI used to decode the output

        Returns:
            DecodedOutput
        """
        decoded = await self.network.run_locally(message, account_state, abi)
        logger.debug(f"{message.function_name} at block {account_state.block_number}: {decoded.output}")
        return decoded

    async def query(
        self,
        encoder,
        address: str,
        abi: Any,
        function_name: str,
        input: Optional[Dict[str, Any]] = None,
    ) -> DecodedOutput:
        """
        Fetch the latest account state and run a getter on it

        The state fetch and the message encoding run concurrently.

        Args:
            encoder: MessageEncoder
            address: Contract address
            abi: Contract ABI
            function_name: Getter to run
            input: Getter arguments

        Returns:
            DecodedOutput
        """
        account_state, message = await asyncio.gather(
            self.network.fetch_account_state(address),
            encoder.encode_message(EncodeParams(
                abi=abi,
                signer=Signer.none(),
                address=address,
                call_set=CallSet(function_name, input or {}),
            )),
        )

        return await self.run(message, account_state, abi)
