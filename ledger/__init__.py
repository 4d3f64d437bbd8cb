"""
Ledger Interaction Package
Handles message encoding, funding, broadcast, confirmation and local execution
"""

from .abi import Abi
from .artifacts import ContractArtifact, code_hash, load_artifact
from .encoder import CallSet, DeploySet, EncodeParams, MessageEncoder
from .errors import (
    ConfirmationTimeout,
    EncodingError,
    ExecutionError,
    FundingError,
    InsufficientBalance,
    LedgerError,
    NetworkError,
    SubmissionRejected,
    TransactionAborted,
)
from .events import EventDispatcher, EventRecorder, log_event
from .executor import LocalExecutor
from .funding import FundedAddress, Giver, request_funds
from .keys import KeyPair, Signer, generate_keys
from .network import NetworkLayer, Web3Network
from .processing import MessageProcessor
from .types import (
    AccountSnapshot,
    DecodedOutput,
    EventKind,
    LifecycleEvent,
    Message,
    PendingSubmission,
    ProcessingState,
    ShardLocator,
    TransactionResult,
)

__all__ = [
    'Abi',
    'AccountSnapshot',
    'CallSet',
    'ConfirmationTimeout',
    'ContractArtifact',
    'DecodedOutput',
    'DeploySet',
    'EncodeParams',
    'EncodingError',
    'EventDispatcher',
    'EventKind',
    'EventRecorder',
    'ExecutionError',
    'FundedAddress',
    'FundingError',
    'Giver',
    'InsufficientBalance',
    'KeyPair',
    'LedgerError',
    'LifecycleEvent',
    'LocalExecutor',
    'Message',
    'MessageEncoder',
    'MessageProcessor',
    'NetworkError',
    'NetworkLayer',
    'PendingSubmission',
    'ProcessingState',
    'ShardLocator',
    'Signer',
    'SubmissionRejected',
    'TransactionAborted',
    'TransactionResult',
    'Web3Network',
    'code_hash',
    'generate_keys',
    'load_artifact',
    'log_event',
    'request_funds',
]
