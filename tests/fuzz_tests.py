"""
Fuzz Testing for the message lifecycle
Tests edge cases and unexpected inputs
"""

import asyncio

import pytest
from hypothesis import given, settings, strategies as st

from ledger.abi import Abi
from ledger.encoder import create_address
from ledger.errors import ConfirmationTimeout, EncodingError, LedgerError
from ledger.events import EventRecorder
from ledger.processing import MessageProcessor
from ledger.types import EventKind

from tests.conftest import HELLO_ABI, FakeNetwork, make_message

addresses = st.binary(min_size=20, max_size=20).map(lambda b: '0x' + b.hex())


class TestCreateAddressFuzzing:
    """Fuzz test contract address derivation"""

    @given(sender=addresses, nonce=st.integers(min_value=0, max_value=2**32))
    def test_deterministic(self, sender, nonce):
        """Same sender and nonce always give the same address"""
        assert create_address(sender, nonce) == create_address(sender, nonce)
        assert len(create_address(sender, nonce)) == 42

    @given(sender=addresses, nonce=st.integers(min_value=0, max_value=2**32))
    def test_nonces_differ(self, sender, nonce):
        assert create_address(sender, nonce) != create_address(sender, nonce + 1)


class TestConfirmationWindowFuzzing:
    """Fuzz test the bounded wait"""

    @given(
        window=st.integers(min_value=1, max_value=30),
        head=st.integers(min_value=0, max_value=10**6),
    )
    @settings(max_examples=25, deadline=None)
    def test_never_mined_terminates(self, window, head):
        """A message that never lands expires within the window"""
        network = FakeNetwork(head=head)
        network.mine = False
        processor = MessageProcessor(network, max_block_intervals=window, poll_interval=0, block_interval=60)
        recorder = EventRecorder()

        with pytest.raises(ConfirmationTimeout) as exc_info:
            asyncio.run(processor.process_message(make_message(), HELLO_ABI, recorder))

        assert exc_info.value.last_block == head + window
        assert recorder.kinds[-1] == EventKind.MESSAGE_EXPIRED
        assert recorder.kinds.count(EventKind.BLOCK_RECEIVED) == window

    @given(
        window=st.integers(min_value=2, max_value=20),
        mine_delay=st.integers(min_value=1, max_value=20),
    )
    @settings(max_examples=25, deadline=None)
    def test_outcome_matches_delay(self, window, mine_delay):
        """Mined within the window resolves; mined later expires. Never both."""
        network = FakeNetwork(mine_delay=mine_delay)
        processor = MessageProcessor(network, max_block_intervals=window, poll_interval=0, block_interval=60)
        recorder = EventRecorder()

        try:
            result = asyncio.run(processor.process_message(make_message(), HELLO_ABI, recorder))
        except ConfirmationTimeout:
            assert mine_delay > window
            assert EventKind.TRANSACTION_RESOLVED not in recorder.kinds
        else:
            assert mine_delay <= window
            assert result.block_number == 100 + mine_delay
            assert recorder.kinds[:2] == [EventKind.WILL_SEND, EventKind.DID_SEND]
            assert recorder.kinds[-1] == EventKind.TRANSACTION_RESOLVED
            assert EventKind.MESSAGE_EXPIRED not in recorder.kinds

        assert network.submit_calls == 1


class TestAbiFuzzing:
    """Fuzz test ABI input handling"""

    @given(name=st.text(min_size=1, max_size=20))
    def test_unknown_functions_rejected(self, name):
        abi = Abi(HELLO_ABI)
        if name in ('getTimestamp', 'renderHelloWorld', 'touch'):
            return

        with pytest.raises(EncodingError):
            abi.encode_call(name)

    @given(data=st.binary(max_size=64))
    def test_random_output_bytes(self, data):
        """Decoding arbitrary bytes either works or raises a ledger error"""
        try:
            output = Abi(HELLO_ABI).decode_output('getTimestamp', data)
        except LedgerError:
            return
        assert 0 <= output['value0'] < 2**32
