"""
Unit Tests for the ABI descriptor
"""

import pytest
from eth_abi import encode
from web3 import Web3

from ledger.abi import Abi, canonical_type
from ledger.errors import EncodingError, ExecutionError

from tests.conftest import GIVER_ABI, GIVER_ADDRESS, HELLO_ABI

ERC20_TRANSFER = {
    "inputs": [
        {"name": "to", "type": "address"},
        {"name": "amount", "type": "uint256"}
    ],
    "name": "transfer",
    "outputs": [{"name": "", "type": "bool"}],
    "type": "function"
}


class TestAbiShape:

    def test_from_list(self):
        abi = Abi.from_json(HELLO_ABI)
        assert abi.function('touch')['name'] == 'touch'

    def test_from_artifact_dict(self):
        abi = Abi.from_json({'contractName': 'Hello', 'abi': HELLO_ABI})
        assert abi.constructor() is not None

    def test_from_tagged_contract(self):
        abi = Abi.from_json({'type': 'Contract', 'value': GIVER_ABI})
        assert abi.signature(abi.function('sendGrams')) == 'sendGrams(address,uint64)'

    def test_abi_instance_passthrough(self):
        abi = Abi(HELLO_ABI)
        assert Abi.from_json(abi) is abi

    @pytest.mark.parametrize("bad", ["not an abi", 42, {'foo': 'bar'}, None])
    def test_invalid_shape(self, bad):
        with pytest.raises(EncodingError):
            Abi.from_json(bad)

    def test_tuple_canonical_type(self):
        param = {
            "type": "tuple[]",
            "components": [{"type": "address"}, {"type": "uint256"}]
        }
        assert canonical_type(param) == '(address,uint256)[]'


class TestEncodeCall:

    def test_transfer_selector(self):
        abi = Abi([ERC20_TRANSFER])
        assert abi.selector('transfer').hex() == 'a9059cbb'

    def test_encode_arguments(self):
        abi = Abi([ERC20_TRANSFER])

        data = abi.encode_call('transfer', {'to': GIVER_ADDRESS, 'amount': 10**18})

        assert data[:4] == bytes.fromhex('a9059cbb')
        assert data[4:] == encode(['address', 'uint256'], [GIVER_ADDRESS, 10**18])

    def test_missing_input(self):
        abi = Abi([ERC20_TRANSFER])

        with pytest.raises(EncodingError, match="amount"):
            abi.encode_call('transfer', {'to': GIVER_ADDRESS})

    def test_unexpected_input(self):
        abi = Abi(HELLO_ABI)

        with pytest.raises(EncodingError, match="extra"):
            abi.encode_call('touch', {'extra': 1})

    def test_value_out_of_range(self):
        abi = Abi(GIVER_ABI)

        with pytest.raises(EncodingError):
            abi.encode_call('sendGrams', {'dest': GIVER_ADDRESS, 'amount': 2**70})

    def test_constructor_without_inputs(self):
        assert Abi(HELLO_ABI).encode_constructor() == b''

    def test_no_constructor_with_inputs(self):
        with pytest.raises(EncodingError):
            Abi(GIVER_ABI).encode_constructor({'x': 1})


class TestDecode:

    def test_unnamed_output(self):
        abi = Abi(HELLO_ABI)

        output = abi.decode_output('getTimestamp', encode(['uint32'], [1700000000]))

        assert output == {'value0': 1700000000}

    def test_string_output(self):
        abi = Abi(HELLO_ABI)

        output = abi.decode_output('renderHelloWorld', '0x' + encode(['string'], ['helloWorld']).hex())

        assert output == {'value0': 'helloWorld'}

    def test_no_outputs(self):
        assert Abi(HELLO_ABI).decode_output('touch', b'') == {}

    def test_garbage_output(self):
        with pytest.raises(ExecutionError):
            Abi(HELLO_ABI).decode_output('renderHelloWorld', b'\x01\x02')

    def test_decode_touched_event(self):
        abi = Abi(HELLO_ABI)
        log = {
            'address': '0xcd234a471b72ba2f1ccf0a70fcaba648a5eecd8d',
            'topics': [
                Web3.keccak(text='Touched(address,uint32)'),
                encode(['address'], [GIVER_ADDRESS]),
            ],
            'data': encode(['uint32'], [1700000001]),
        }

        events = abi.decode_logs([log])

        assert len(events) == 1
        assert events[0]['name'] == 'Touched'
        assert events[0]['value']['caller'].lower() == GIVER_ADDRESS.lower()
        assert events[0]['value']['timestamp'] == 1700000001

    def test_unknown_logs_skipped(self):
        log = {'address': GIVER_ADDRESS, 'topics': [Web3.keccak(text='Other()')], 'data': b''}

        assert Abi(HELLO_ABI).decode_logs([log, {'topics': []}]) == []
