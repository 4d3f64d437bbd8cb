"""
Funding Step
Tops up a not-yet-active payer from a giver before its deployment
"""

import json
import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from loguru import logger
from web3 import Web3

from .encoder import CallSet, EncodeParams
from .errors import FundingError, LedgerError
from .events import EventCallback
from .keys import KeyPair, Signer
from .types import TransactionResult

_FUNDING_KEY = object()


@dataclass(frozen=True)
class FundedAddress:
    """
    Proof that an address was funded by a confirmed giver transaction

    Only request_funds issues these.
    """

    address: str
    amount: int
    result: TransactionResult
    _key: object = field(default=None, repr=False, compare=False)

    def __post_init__(self):
        if self._key is not _FUNDING_KEY:
            raise TypeError("FundedAddress is only issued by request_funds")


class Giver:
    """
    Funding authority

    Either a funded account sending plain value transfers, or a giver
    contract (address + ABI) exposing a function taking (dest, amount).
    """

    def __init__(
        self,
        keys: KeyPair,
        address: Optional[str] = None,
        abi: Optional[List[Dict]] = None,
        function_name: str = 'sendGrams',
    ):
        if (address is None) != (abi is None):
            raise FundingError("Giver contract needs both an address and an ABI")

        self.keys = keys
        self.contract_address = Web3.to_checksum_address(address) if address else None
        self.abi = abi
        self.function_name = function_name

    @classmethod
    def from_config(cls, config: Dict) -> 'Giver':
        """
        Build the giver from the 'giver' config section

        The private key is read from the environment variable named by
        giver.private_key_env.
        """
        giver_config = config.get('giver', {})
        key_env = giver_config.get('private_key_env', 'GIVER_PRIVATE_KEY')
        secret = os.getenv(key_env)

        if not secret:
            raise FundingError(f"{key_env} must be set in .env to use the giver")

        abi = None
        abi_path = giver_config.get('abi_path')
        if abi_path:
            with open(abi_path, 'r') as f:
                abi = json.load(f)
            if isinstance(abi, dict):
                abi = abi.get('abi', abi)

        return cls(
            KeyPair.from_secret(secret),
            address=giver_config.get('address') if abi else None,
            abi=abi,
            function_name=giver_config.get('function_name', 'sendGrams'),
        )

    @property
    def address(self) -> str:
        return self.contract_address or self.keys.address

    def encode_params(self, to_address: str, amount: int) -> EncodeParams:
        """Encoding request for a transfer of `amount` to `to_address`"""
        signer = Signer.keys(self.keys)

        if self.contract_address is None:
            return EncodeParams(abi=[], signer=signer, address=to_address, value=amount)

        entry = next(
            (e for e in self.abi if e.get('type', 'function') == 'function' and e.get('name') == self.function_name),
            None,
        )
        if entry is None or len(entry.get('inputs', [])) != 2:
            raise FundingError(f"Giver ABI has no two-argument {self.function_name} function")

        dest_param, amount_param = entry['inputs']
        return EncodeParams(
            abi=self.abi,
            signer=signer,
            address=self.contract_address,
            call_set=CallSet(self.function_name, {dest_param['name']: to_address, amount_param['name']: amount}),
        )


async def request_funds(
    processor,
    encoder,
    giver: Giver,
    to_address: str,
    amount: int,
    on_event: Optional[EventCallback] = None,
) -> FundedAddress:
    """
    Ask the giver to transfer value to an address

    The transfer is itself a message processed by `processor`.

    Args:
        processor: MessageProcessor
        encoder: MessageEncoder
        giver: Funding authority
        to_address: Address to fund (it may not exist on-chain yet)
        amount: Amount in wei
        on_event: Observer for the giver message's lifecycle events

    Returns:
        FundedAddress token for the deployment that depends on it
    """
    if amount <= 0:
        raise FundingError("Funding amount must be positive", address=to_address)

    logger.info(f"Requesting {amount} wei from giver {giver.address} for {to_address}")

    try:
        message = await encoder.encode_message(giver.encode_params(to_address, amount))
        result = await processor.process_message(message, giver.abi or [], on_event)
    except FundingError:
        raise
    except LedgerError as e:
        raise FundingError(f"Giver failed to fund {to_address}: {e}", address=to_address) from e

    logger.success(f"Funds were transferred from giver to {to_address}")
    return FundedAddress(
        address=Web3.to_checksum_address(to_address),
        amount=amount,
        result=result,
        _key=_FUNDING_KEY,
    )
