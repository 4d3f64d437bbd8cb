"""
Keys and Signers
Key pair generation and the signer handed to the message encoder
"""

from dataclasses import dataclass
from typing import Dict, Optional

from eth_account import Account
from eth_keys.datatypes import PrivateKey
from eth_keys.exceptions import ValidationError
from loguru import logger

from .errors import EncodingError


@dataclass(frozen=True)
class KeyPair:
    """Key pair with its derived account address"""

    public: str
    secret: str
    address: str

    @classmethod
    def from_secret(cls, secret: str) -> 'KeyPair':
        """
        Restore a key pair from a private key

        Args:
            secret: Hex private key (with or without 0x)

        Returns:
            KeyPair
        """
        try:
            account = Account.from_key(secret)
        except (ValueError, TypeError, ValidationError) as e:
            raise EncodingError(f"Invalid secret key: {e}") from e

        return cls(
            public='0x' + PrivateKey(bytes(account.key)).public_key.to_bytes().hex(),
            secret='0x' + bytes(account.key).hex(),
            address=account.address,
        )

    def __repr__(self) -> str:
        return f"KeyPair(address={self.address})"


def generate_keys() -> KeyPair:
    """Generate a random key pair"""
    account = Account.create()
    keys = KeyPair.from_secret(bytes(account.key).hex())
    logger.debug(f"Generated keys for {keys.address}")
    return keys


class Signer:
    """
    Signing material for a message

    Signer.keys(...) signs; Signer.none() leaves the message unsigned, which
    is only good for local execution.
    """

    def __init__(self, keys: Optional[KeyPair] = None):
        self._keys = keys

    @classmethod
    def keys(cls, keys: KeyPair) -> 'Signer':
        if keys is None:
            raise EncodingError("Signer.keys requires a key pair")
        return cls(keys)

    @classmethod
    def none(cls) -> 'Signer':
        return cls(None)

    @property
    def is_none(self) -> bool:
        return self._keys is None

    @property
    def address(self) -> Optional[str]:
        return self._keys.address if self._keys else None

    def sign_transaction(self, transaction: Dict) -> bytes:
        """
        Sign a transaction dict

        Args:
            transaction: Legacy transaction dict (nonce, gasPrice, gas, to, value, data, chainId)

        Returns:
            Raw signed transaction bytes
        """
        if self._keys is None:
            raise EncodingError("Missing signer material: message cannot be signed")

        try:
            signed = Account.sign_transaction(transaction, self._keys.secret)
        except (ValueError, TypeError) as e:
            raise EncodingError(f"Error signing transaction: {e}") from e

        return bytes(signed.raw_transaction)

    def __repr__(self) -> str:
        return f"Signer(address={self.address})" if self._keys else "Signer(none)"
