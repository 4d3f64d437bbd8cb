"""
Shared test fixtures
In-memory node standing in for a real ledger
"""

import time

import pytest

from ledger.errors import ExecutionError, NetworkError
from ledger.types import (
    AccountSnapshot,
    DecodedOutput,
    Message,
    ShardLocator,
    TransactionResult,
)

HELLO_ABI = [
    {"inputs": [], "stateMutability": "nonpayable", "type": "constructor"},
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "name": "caller", "type": "address"},
            {"indexed": False, "name": "timestamp", "type": "uint32"}
        ],
        "name": "Touched",
        "type": "event"
    },
    {
        "inputs": [],
        "name": "getTimestamp",
        "outputs": [{"name": "", "type": "uint32"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [],
        "name": "renderHelloWorld",
        "outputs": [{"name": "", "type": "string"}],
        "stateMutability": "pure",
        "type": "function"
    },
    {
        "inputs": [],
        "name": "touch",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function"
    }
]

GIVER_ABI = [
    {
        "inputs": [
            {"name": "dest", "type": "address"},
            {"name": "amount", "type": "uint64"}
        ],
        "name": "sendGrams",
        "outputs": [],
        "type": "function"
    }
]

CONTRACT_ADDRESS = '0xcd234a471b72ba2f1ccf0a70fcaba648a5eecd8d'
PAYER_ADDRESS = '0x6ac7ea33f8831ea9dcc53393aaa88b25a785dbf0'

# anvil/hardhat account #0
GIVER_SECRET = '0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80'
GIVER_ADDRESS = '0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266'


def make_message(n: int = 1, address: str = CONTRACT_ADDRESS, **kwargs) -> Message:
    """Signed-looking message with a unique fingerprint"""
    fields = {
        'address': address,
        'call_data': b'\xa5\x5a\x1c\x2d',
        'raw': bytes([n % 256]) * 32,
        'sender': PAYER_ADDRESS,
        'function_name': 'touch',
        'nonce': n,
        'gas': 100000,
        'gas_price': 10**9,
        'fingerprint': f'0x{n:064x}',
    }
    fields.update(kwargs)
    return Message(**fields)


class FakeNetwork:
    """
    In-memory NetworkLayer

    Every block_number() call produces a new block (unless produce_blocks is
    off or the head reached halt_at); pending messages are included
    `mine_delay` blocks after submission. The first `hidden_lookups` lookups
    of an included message miss, like a node that indexes receipts late.
    """

    def __init__(self, head: int = 100, mine_delay: int = 1):
        self.head = head
        self.mine_delay = mine_delay
        self.mine = True
        self.produce_blocks = True
        self.block_failures = 0
        self.reject = None
        self.failing = set()
        self.redirect = {}
        self.halt_at = None
        self.hidden_lookups = 0

        self.pending = {}
        self.receipts = {}
        self.balances = {}
        self.code = {}

        self.submit_calls = 0
        self.submissions = []
        self.fetch_calls = []
        self.lookup_calls = 0

    async def submit(self, message: Message) -> ShardLocator:
        self.submit_calls += 1
        if self.reject is not None:
            raise self.reject
        self.submissions.append(message.fingerprint)
        self.pending[message.fingerprint] = (message, self.head)
        return ShardLocator(block_number=self.head, endpoint='fake')

    async def block_number(self) -> int:
        if self.block_failures:
            self.block_failures -= 1
            raise NetworkError("node down")

        if self.produce_blocks and (self.halt_at is None or self.head < self.halt_at):
            self.head += 1
            self._include()
        return self.head

    def _include(self):
        if not self.mine:
            return
        for fingerprint, (message, submitted_at) in list(self.pending.items()):
            if self.head - submitted_at >= self.mine_delay:
                del self.pending[fingerprint]
                self.receipts[fingerprint] = TransactionResult(
                    transaction_hash=fingerprint,
                    address=self.redirect.get(fingerprint, message.address),
                    block_number=self.head,
                    success=fingerprint not in self.failing,
                    gas_used=21000,
                    fees=21000 * max(message.gas_price, 1),
                    contract_address=message.address if message.is_deploy else None,
                    decoded=DecodedOutput(function_name=message.function_name),
                    transaction={'transactionHash': fingerprint, 'blockNumber': self.head},
                )
                if message.value:
                    self.balances[message.address] = self.balances.get(message.address, 0) + message.value
                if message.is_deploy:
                    self.code[message.address] = b'\x60\x80'

    async def lookup_result(self, message: Message, abi):
        self.lookup_calls += 1
        if message.fingerprint in self.receipts and self.hidden_lookups:
            self.hidden_lookups -= 1
            return None
        return self.receipts.get(message.fingerprint)

    async def fetch_account_state(self, address: str) -> AccountSnapshot:
        self.fetch_calls.append(address)
        return AccountSnapshot(
            address=address,
            balance=self.balances.get(address, 0),
            nonce=0,
            code=self.code.get(address, b''),
            block_number=self.head,
        )

    async def run_locally(self, message: Message, snapshot: AccountSnapshot, abi) -> DecodedOutput:
        if not snapshot.is_active:
            raise ExecutionError(f"Account {snapshot.address} has no code", address=snapshot.address)
        return DecodedOutput(function_name=message.function_name, output={'value0': int(time.time())})


@pytest.fixture
def network():
    return FakeNetwork()


@pytest.fixture
def hello_abi():
    return HELLO_ABI
