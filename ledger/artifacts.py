"""
Contract Artifacts
Loads compiled contracts and derives their code hash
"""

import json
import os
from dataclasses import dataclass
from typing import Dict, List

from hexbytes import HexBytes
from loguru import logger
from web3 import Web3

from .errors import EncodingError
from .network import to_hex


@dataclass(frozen=True)
class ContractArtifact:
    """Compiled contract: ABI, creation bytecode and runtime bytecode"""

    name: str
    abi: List[Dict]
    bytecode: str
    deployed_bytecode: str


def load_artifact(path: str) -> ContractArtifact:
    """
    Load a hardhat/solc JSON artifact

    Args:
        path: Artifact file (artifacts/contracts/X.sol/X.json)

    Returns:
        ContractArtifact
    """
    if not os.path.exists(path):
        raise EncodingError(f"Contract artifact not found: {path}")

    with open(path, 'r') as f:
        contract_json = json.load(f)

    try:
        abi = contract_json['abi']
        bytecode = contract_json['bytecode']
    except KeyError as e:
        raise EncodingError(f"Artifact {path} has no {e.args[0]}") from None

    # solc --combined-json style nests the object
    if isinstance(bytecode, dict):
        bytecode = bytecode.get('object', '')
    deployed = contract_json.get('deployedBytecode', '')
    if isinstance(deployed, dict):
        deployed = deployed.get('object', '')

    name = contract_json.get('contractName') or os.path.splitext(os.path.basename(path))[0]
    logger.debug(f"Loaded artifact {name} from {path}")

    return ContractArtifact(name=name, abi=abi, bytecode=bytecode, deployed_bytecode=deployed)


def code_hash(artifact: ContractArtifact) -> str:
    """
    Hash of the runtime code, as reported by EXTCODEHASH once deployed

    Args:
        artifact: Contract artifact with deployed bytecode

    Returns:
        0x-prefixed keccak256 hash
    """
    code = bytes(HexBytes(artifact.deployed_bytecode or '0x'))
    if not code:
        raise EncodingError(f"Artifact {artifact.name} has no deployed bytecode")
    return to_hex(Web3.keccak(code))


async def fetch_code_hash(network, address: str) -> str:
    """Hash of the code currently deployed at `address`"""
    code = await network.get_code(address)
    if not code:
        raise EncodingError(f"No code at {address}", address=address)
    return to_hex(Web3.keccak(code))
