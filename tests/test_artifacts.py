"""
Unit Tests for contract artifacts and code hashes
"""

import json
from unittest.mock import AsyncMock, Mock

import pytest
from web3 import Web3

from ledger.artifacts import ContractArtifact, code_hash, fetch_code_hash, load_artifact
from ledger.errors import EncodingError

from tests.conftest import CONTRACT_ADDRESS, HELLO_ABI

RUNTIME = '0x6080604052600080fd'


def write_artifact(tmp_path, **fields):
    artifact = {
        'contractName': 'Hello',
        'abi': HELLO_ABI,
        'bytecode': '0x6080604052348015600f57600080fd5b50',
        'deployedBytecode': RUNTIME,
    }
    artifact.update(fields)
    path = tmp_path / 'Hello.json'
    path.write_text(json.dumps(artifact))
    return str(path)


class TestLoadArtifact:

    def test_hardhat_artifact(self, tmp_path):
        artifact = load_artifact(write_artifact(tmp_path))

        assert artifact.name == 'Hello'
        assert artifact.abi == HELLO_ABI
        assert artifact.deployed_bytecode == RUNTIME

    def test_nested_bytecode_objects(self, tmp_path):
        path = write_artifact(
            tmp_path,
            contractName=None,
            bytecode={'object': '0x6080'},
            deployedBytecode={'object': RUNTIME},
        )

        artifact = load_artifact(path)

        assert artifact.name == 'Hello'
        assert artifact.bytecode == '0x6080'
        assert artifact.deployed_bytecode == RUNTIME

    def test_missing_file(self, tmp_path):
        with pytest.raises(EncodingError):
            load_artifact(str(tmp_path / 'nope.json'))

    def test_missing_abi(self, tmp_path):
        path = tmp_path / 'Broken.json'
        path.write_text(json.dumps({'bytecode': '0x00'}))

        with pytest.raises(EncodingError, match="abi"):
            load_artifact(str(path))


class TestCodeHash:

    def test_hash_of_runtime_code(self, tmp_path):
        artifact = load_artifact(write_artifact(tmp_path))

        expected = '0x' + bytes(Web3.keccak(hexstr=RUNTIME)).hex()
        assert code_hash(artifact) == expected

    def test_no_runtime_code(self):
        artifact = ContractArtifact(name='Empty', abi=[], bytecode='0x00', deployed_bytecode='')

        with pytest.raises(EncodingError):
            code_hash(artifact)

    @pytest.mark.asyncio
    async def test_on_chain_hash_matches(self, tmp_path):
        artifact = load_artifact(write_artifact(tmp_path))
        network = Mock()
        network.get_code = AsyncMock(return_value=bytes.fromhex(RUNTIME[2:]))

        assert await fetch_code_hash(network, CONTRACT_ADDRESS) == code_hash(artifact)

    @pytest.mark.asyncio
    async def test_on_chain_no_code(self):
        network = Mock()
        network.get_code = AsyncMock(return_value=b'')

        with pytest.raises(EncodingError):
            await fetch_code_hash(network, CONTRACT_ADDRESS)
