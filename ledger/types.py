"""
Ledger Types
Immutable records passed between encoder, orchestrator and executor
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class ProcessingState(str, Enum):
    """States a message passes through while being processed"""

    ENCODED = "encoded"
    SUBMITTED = "submitted"
    AWAITING_BLOCK = "awaiting_block"
    RESOLVED_SUCCESS = "resolved_success"
    RESOLVED_FAILURE = "resolved_failure"


class EventKind(str, Enum):
    """Tags carried by lifecycle events"""

    WILL_SEND = "will_send"
    DID_SEND = "did_send"
    SEND_FAILED = "send_failed"
    DUPLICATE_DETECTED = "duplicate_detected"
    WILL_FETCH_NEXT_BLOCK = "will_fetch_next_block"
    BLOCK_RECEIVED = "block_received"
    FETCH_NEXT_BLOCK_FAILED = "fetch_next_block_failed"
    TRANSACTION_RESOLVED = "transaction_resolved"
    MESSAGE_EXPIRED = "message_expired"


@dataclass(frozen=True)
class Message:
    """
    Encoded message and its destination

    `raw` is the signed transaction (empty for unsigned messages, which are
    only usable for local execution). `address` is known before the account
    exists on-chain.
    """

    address: str
    call_data: bytes
    raw: bytes = b""
    sender: Optional[str] = None
    function_name: Optional[str] = None
    is_deploy: bool = False
    nonce: Optional[int] = None
    gas: int = 0
    gas_price: int = 0
    value: int = 0
    fingerprint: Optional[str] = None
    expire_block: Optional[int] = None

    @property
    def signed(self) -> bool:
        return bool(self.raw)

    @property
    def payer(self) -> Optional[str]:
        """Account charged for processing this message"""
        return self.sender

    @property
    def max_cost(self) -> int:
        return self.gas * self.gas_price + self.value

    @property
    def message_id(self) -> str:
        return self.fingerprint or "0x" + self.call_data.hex()[:16]


@dataclass(frozen=True)
class ShardLocator:
    """Where to look for the block holding a submitted message. Not a transaction id."""

    block_number: int
    endpoint: Optional[str] = None


@dataclass(frozen=True)
class PendingSubmission:
    message: Message
    shard_locator: ShardLocator
    abi: Any


@dataclass(frozen=True)
class DecodedOutput:
    """Decoded function output plus decoded events"""

    function_name: Optional[str] = None
    output: Optional[Dict[str, Any]] = None
    out_events: List[Dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class TransactionResult:
    """Terminal outcome of a processed message"""

    transaction_hash: str
    address: str
    block_number: int
    success: bool
    gas_used: int
    fees: int
    contract_address: Optional[str] = None
    decoded: DecodedOutput = field(default_factory=DecodedOutput)
    transaction: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class AccountSnapshot:
    """Account state as of a given block"""

    address: str
    balance: int
    nonce: int
    code: bytes
    block_number: int

    @property
    def is_active(self) -> bool:
        return len(self.code) > 0


@dataclass(frozen=True)
class LifecycleEvent:
    """Notification emitted while a message is processed"""

    kind: EventKind
    state: ProcessingState
    message_id: str
    address: str
    shard_locator: Optional[ShardLocator] = None
    block_number: Optional[int] = None
    error: Optional[str] = None
