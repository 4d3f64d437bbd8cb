"""
Ledger Errors
Distinct, inspectable failure kinds for the message lifecycle
"""

from typing import Optional


class LedgerError(Exception):
    """Base class for every failure surfaced by the ledger package"""

    def __init__(self, message: str, address: Optional[str] = None, message_id: Optional[str] = None):
        super().__init__(message)
        self.address = address
        self.message_id = message_id


class EncodingError(LedgerError):
    """Bad ABI shape, bad input values or missing signer material. Never retried."""


class FundingError(LedgerError):
    """Funding authority rejected or was unreachable; fatal to the dependent deployment"""


class InsufficientBalance(FundingError):
    """Payer cannot cover the maximum cost of a message"""

    def __init__(self, message: str, address: Optional[str] = None, balance: int = 0, required: int = 0):
        super().__init__(message, address=address)
        self.balance = balance
        self.required = required


class SubmissionRejected(LedgerError):
    """Node declined to relay the message; re-encode before retrying"""


class ConfirmationTimeout(LedgerError):
    """No matching transaction appeared within the bounded block window"""

    def __init__(
        self,
        message: str,
        address: Optional[str] = None,
        message_id: Optional[str] = None,
        last_block: Optional[int] = None,
    ):
        super().__init__(message, address=address, message_id=message_id)
        self.last_block = last_block


class TransactionAborted(LedgerError):
    """Transaction was included in a block but its execution failed"""

    def __init__(self, message: str, result):
        super().__init__(message, address=result.address, message_id=result.transaction_hash)
        self.result = result


class ExecutionError(LedgerError):
    """Local replay of a query failed against the fetched account state"""


class NetworkError(LedgerError):
    """Transport failure talking to the node"""
