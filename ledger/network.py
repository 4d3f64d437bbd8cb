"""
Network Layer
Node access used by the encoder, the orchestrator and the local executor
"""

import asyncio
from contextlib import contextmanager
from typing import Any, Dict, Optional, Protocol

import aiohttp
from hexbytes import HexBytes
from loguru import logger
from web3 import AsyncWeb3, Web3
from web3.exceptions import ContractLogicError, TransactionNotFound, Web3Exception

from .abi import Abi
from .errors import EncodingError, ExecutionError, NetworkError, SubmissionRejected
from .types import AccountSnapshot, DecodedOutput, Message, ShardLocator, TransactionResult

TRANSPORT_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, ConnectionError)

# Transport failures plus JSON-RPC errors answered by the node
NODE_ERRORS = TRANSPORT_ERRORS + (Web3Exception,)

# Node answers for a transaction already sitting in its pool
_DUPLICATE_MARKERS = ('already known', 'known transaction', 'already imported')


class NetworkLayer(Protocol):
    """Operations the orchestrator needs from a node"""

    async def submit(self, message: Message) -> ShardLocator: ...

    async def lookup_result(self, message: Message, abi: Any) -> Optional[TransactionResult]: ...

    async def block_number(self) -> int: ...

    async def fetch_account_state(self, address: str) -> AccountSnapshot: ...

    async def run_locally(self, message: Message, snapshot: AccountSnapshot, abi: Any) -> DecodedOutput: ...


def to_hex(value: Any) -> str:
    return '0x' + HexBytes(value).hex().removeprefix('0x')


@contextmanager
def node_call(action: str, address: Optional[str] = None, message_id: Optional[str] = None):
    """Raise NetworkError for transport and RPC failures inside the block"""
    try:
        yield
    except NODE_ERRORS as e:
        raise NetworkError(f"{action} failed: {e}", address=address, message_id=message_id) from e


def serialise(value: Any) -> Any:
    """Convert web3 return values (AttributeDict, HexBytes) into JSON-friendly data"""
    if isinstance(value, (bytes, bytearray)):
        return to_hex(value)
    if isinstance(value, dict) or hasattr(value, 'items'):
        return {k: serialise(v) for k, v in dict(value).items()}
    if isinstance(value, (list, tuple)):
        return [serialise(v) for v in value]
    return value


class Web3Network:
    """
    NetworkLayer backed by an AsyncWeb3 connection

    The connection is shared by concurrent orchestrations; no per-message
    state is kept here.
    """

    def __init__(self, w3: AsyncWeb3, endpoint: Optional[str] = None):
        """
        Initialize network layer

        Args:
            w3: AsyncWeb3 instance
            endpoint: Endpoint URL, recorded in shard locators
        """
        self.w3 = w3
        self.endpoint = endpoint

    async def submit(self, message: Message) -> ShardLocator:
        """
        Hand a signed message to the node

        Args:
            message: Signed message

        Returns:
            ShardLocator scoping the confirmation search
        """
        if not message.signed:
            raise EncodingError(
                "Unsigned messages can only be executed locally",
                address=message.address,
            )

        head = await self.block_number()

        try:
            await self.w3.eth.send_raw_transaction(message.raw)
        except TRANSPORT_ERRORS as e:
            raise NetworkError(f"Node unreachable while sending: {e}", address=message.address,
                               message_id=message.message_id) from e
        except (Web3Exception, ValueError) as e:
            if any(marker in str(e).lower() for marker in _DUPLICATE_MARKERS):
                logger.warning(f"Message {message.message_id} already known to the node")
                return ShardLocator(block_number=head, endpoint=self.endpoint)
            raise SubmissionRejected(f"Node rejected message: {e}", address=message.address,
                                     message_id=message.message_id) from e

        return ShardLocator(block_number=head, endpoint=self.endpoint)

    async def lookup_result(self, message: Message, abi: Any) -> Optional[TransactionResult]:
        """
        Look up the transaction produced by a message

        Returns:
            TransactionResult, or None while the message is not in a block
        """
        if not message.fingerprint:
            return None

        with node_call("Receipt lookup", address=message.address, message_id=message.message_id):
            try:
                receipt = await self.w3.eth.get_transaction_receipt(message.fingerprint)
            except TransactionNotFound:
                return None

        if receipt is None:
            return None

        receipt = serialise(receipt)
        gas_used = int(receipt.get('gasUsed', 0))
        gas_price = int(receipt.get('effectiveGasPrice') or message.gas_price)
        contract_address = receipt.get('contractAddress')
        destination = contract_address or receipt.get('to') or message.address

        return TransactionResult(
            transaction_hash=receipt.get('transactionHash', message.fingerprint),
            address=Web3.to_checksum_address(destination),
            block_number=int(receipt.get('blockNumber', 0)),
            success=int(receipt.get('status', 1)) == 1,
            gas_used=gas_used,
            fees=gas_used * gas_price,
            contract_address=Web3.to_checksum_address(contract_address) if contract_address else None,
            decoded=DecodedOutput(
                function_name=message.function_name,
                out_events=Abi.from_json(abi).decode_logs(receipt.get('logs', [])),
            ),
            transaction=receipt,
        )

    async def block_number(self) -> int:
        with node_call("Block number fetch"):
            return await self.w3.eth.block_number

    async def chain_id(self) -> int:
        with node_call("Chain id fetch"):
            return await self.w3.eth.chain_id

    async def gas_price(self) -> int:
        with node_call("Gas price fetch"):
            return await self.w3.eth.gas_price

    async def transaction_count(self, address: str) -> int:
        with node_call("Nonce fetch", address=address):
            return await self.w3.eth.get_transaction_count(address, 'pending')

    async def estimate_gas(self, tx: Dict) -> int:
        with node_call("Gas estimation", address=tx.get('to')):
            return await self.w3.eth.estimate_gas(tx)

    async def get_code(self, address: str) -> bytes:
        with node_call("Code fetch", address=address):
            return bytes(await self.w3.eth.get_code(Web3.to_checksum_address(address)))

    async def fetch_account_state(self, address: str) -> AccountSnapshot:
        """
        Fetch balance, nonce and code of an account at the current head

        Args:
            address: Account address

        Returns:
            AccountSnapshot pinned to the head block
        """
        address = Web3.to_checksum_address(address)

        with node_call("Account state fetch", address=address):
            block = await self.w3.eth.block_number
            balance, nonce, code = await asyncio.gather(
                self.w3.eth.get_balance(address, block_identifier=block),
                self.w3.eth.get_transaction_count(address, block_identifier=block),
                self.w3.eth.get_code(address, block_identifier=block),
            )

        return AccountSnapshot(
            address=address,
            balance=int(balance),
            nonce=int(nonce),
            code=bytes(code),
            block_number=int(block),
        )

    async def run_locally(self, message: Message, snapshot: AccountSnapshot, abi: Any) -> DecodedOutput:
        """
        Execute a call against the snapshot's block without broadcasting

        Args:
            message: Encoded call (signed or not)
            snapshot: Account state the call runs against
            abi: ABI used to decode the output

        Returns:
            DecodedOutput
        """
        if not message.function_name:
            raise ExecutionError("Only function calls can be executed locally", address=message.address)

        if not snapshot.is_active:
            raise ExecutionError(f"Account {snapshot.address} has no code", address=snapshot.address)

        tx = {
            'to': Web3.to_checksum_address(message.address),
            'data': to_hex(message.call_data),
        }
        if message.sender:
            tx['from'] = Web3.to_checksum_address(message.sender)

        try:
            data = await self.w3.eth.call(tx, block_identifier=snapshot.block_number)
        except ContractLogicError as e:
            raise ExecutionError(f"{message.function_name} reverted: {e}", address=message.address) from e
        except TRANSPORT_ERRORS as e:
            raise NetworkError(f"Local execution failed: {e}", address=message.address) from e
        except (Web3Exception, ValueError) as e:
            raise ExecutionError(f"{message.function_name} failed: {e}", address=message.address) from e

        output = Abi.from_json(abi).decode_output(message.function_name, data)
        return DecodedOutput(function_name=message.function_name, output=output)
