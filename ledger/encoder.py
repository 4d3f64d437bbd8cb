"""
Message Encoder
Turns an intended contract action into a signed message and its destination
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import rlp
from hexbytes import HexBytes
from loguru import logger
from web3 import Web3
from web3.exceptions import Web3Exception

from .abi import Abi
from .errors import EncodingError, NetworkError
from .keys import Signer
from .network import TRANSPORT_ERRORS, to_hex
from .types import Message


@dataclass(frozen=True)
class DeploySet:
    """Creation bytecode of the contract to deploy"""

    bytecode: str


@dataclass(frozen=True)
class CallSet:
    function_name: str
    input: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class EncodeParams:
    """
    Encoding request

    Exactly one of deploy_set or address is set. nonce, gas and gas_price
    are read from the node when omitted.
    """

    abi: Any
    signer: Signer
    deploy_set: Optional[DeploySet] = None
    address: Optional[str] = None
    call_set: Optional[CallSet] = None
    value: int = 0
    nonce: Optional[int] = None
    gas: Optional[int] = None
    gas_price: Optional[int] = None
    expire_in_blocks: Optional[int] = None


def create_address(sender: str, nonce: int) -> str:
    """
    Address of the contract created by `sender` at `nonce`

    Args:
        sender: Deployer address
        nonce: Deployer nonce used by the deploy transaction

    Returns:
        Checksummed contract address
    """
    encoded = rlp.encode([bytes(HexBytes(sender)), nonce])
    return Web3.to_checksum_address(bytes(Web3.keccak(encoded))[12:])


class MessageEncoder:
    """
    Encodes deploy, call and transfer messages

    Identical params (and an unchanged chain view for values read from the
    node) always produce identical bytes and destination address.
    """

    def __init__(self, network, config: Optional[Dict] = None):
        """
        Initialize Message Encoder

        Args:
            network: Web3Network (chain_id, gas_price, transaction_count, estimate_gas, block_number)
            config: Loaded configuration
        """
        config = config or {}
        encoding = config.get('encoding', {})

        self.network = network
        self.default_gas_limit = int(encoding.get('default_gas_limit', 3_000_000))
        self.gas_estimate_buffer = float(encoding.get('gas_estimate_buffer', 1.2))
        self.chain_id = config.get('network', {}).get('chain_id')

    async def encode_message(self, params: EncodeParams) -> Message:
        """
        Encode a message

        Args:
            params: Encoding request

        Returns:
            Message with its destination address
        """
        abi = Abi.from_json(params.abi)
        is_deploy = params.deploy_set is not None

        if is_deploy == (params.address is not None):
            raise EncodingError("Exactly one of deploy_set or address must be given")

        call_data, function_name = self._encode_body(abi, params, is_deploy)

        if params.signer.is_none:
            if is_deploy:
                raise EncodingError("Missing signer material for deployment")
            return Message(
                address=self._checksum(params.address),
                call_data=call_data,
                function_name=function_name,
                value=params.value,
            )

        sender = params.signer.address
        nonce, gas_price, chain_id = await self._chain_view(params, sender)

        address = create_address(sender, nonce) if is_deploy else self._checksum(params.address)

        tx = {
            'nonce': nonce,
            'gasPrice': gas_price,
            'value': params.value,
            'data': to_hex(call_data),
            'chainId': chain_id,
        }
        if not is_deploy:
            tx['to'] = address

        tx['gas'] = params.gas or await self._estimate_gas(tx, sender)

        raw = params.signer.sign_transaction(tx)

        expire_block = None
        if params.expire_in_blocks:
            expire_block = await self.network.block_number() + int(params.expire_in_blocks)

        message = Message(
            address=address,
            call_data=call_data,
            raw=raw,
            sender=sender,
            function_name=function_name,
            is_deploy=is_deploy,
            nonce=nonce,
            gas=tx['gas'],
            gas_price=gas_price,
            value=params.value,
            fingerprint=to_hex(Web3.keccak(raw)),
            expire_block=expire_block,
        )

        logger.debug(
            f"Encoded {'deploy' if is_deploy else function_name or 'transfer'} "
            f"message {message.message_id} -> {address}"
        )
        return message

    def _encode_body(self, abi: Abi, params: EncodeParams, is_deploy: bool):
        """Call data and function name of the message"""
        call_set = params.call_set

        if is_deploy:
            if call_set and call_set.function_name != 'constructor':
                raise EncodingError(f"Deploy call_set must target the constructor, got {call_set.function_name}")
            try:
                bytecode = bytes(HexBytes(params.deploy_set.bytecode))
            except (ValueError, TypeError) as e:
                raise EncodingError(f"Invalid deploy bytecode: {e}") from e
            if not bytecode:
                raise EncodingError("Deploy bytecode is empty")
            return bytecode + abi.encode_constructor(call_set.input if call_set else None), 'constructor'

        if call_set is None:
            if params.value <= 0:
                raise EncodingError("Nothing to send: no call_set and no value")
            return b'', None

        return abi.encode_call(call_set.function_name, call_set.input), call_set.function_name

    async def _chain_view(self, params: EncodeParams, sender: str):
        """Nonce, gas price and chain id, from params or the node"""
        try:
            nonce = params.nonce if params.nonce is not None else await self.network.transaction_count(sender)
            gas_price = params.gas_price or await self.network.gas_price()
            chain_id = self.chain_id or await self.network.chain_id()
        except TRANSPORT_ERRORS as e:
            raise NetworkError(f"Failed to read chain parameters: {e}", address=sender) from e

        return int(nonce), int(gas_price), int(chain_id)

    async def _estimate_gas(self, tx: Dict, sender: str) -> int:
        estimate_tx = {'from': sender, 'data': tx['data'], 'value': tx['value']}
        if 'to' in tx:
            estimate_tx['to'] = tx['to']

        try:
            gas_estimate = await self.network.estimate_gas(estimate_tx)
            return int(gas_estimate * self.gas_estimate_buffer)
        except TRANSPORT_ERRORS + (NetworkError, Web3Exception, ValueError) as e:
            logger.warning(f"Gas estimation failed: {e}, using default {self.default_gas_limit}")
            return self.default_gas_limit

    @staticmethod
    def _checksum(address: str) -> str:
        try:
            return Web3.to_checksum_address(address)
        except (ValueError, TypeError) as e:
            raise EncodingError(f"Invalid address {address!r}: {e}") from e
