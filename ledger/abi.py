"""
ABI Descriptor
Encodes calls and constructors, decodes outputs and event logs
"""

from typing import Any, Dict, List, Optional, Sequence

from eth_abi import decode, encode
from eth_abi import exceptions as abi_exceptions
from hexbytes import HexBytes
from web3 import Web3

from .errors import EncodingError, ExecutionError

_ENCODE_ERRORS = (abi_exceptions.EncodingError, abi_exceptions.ParseError, ValueError, TypeError, OverflowError)
_DECODE_ERRORS = (abi_exceptions.DecodingError, abi_exceptions.ParseError, ValueError, TypeError)

# Indexed params of these kinds are stored as their keccak hash
_HASHED_TOPIC_TYPES = ('string', 'bytes')


def canonical_type(param: Dict) -> str:
    """Render an ABI param type the way it appears in a signature"""
    abi_type = param['type']
    if abi_type.startswith('tuple'):
        inner = ','.join(canonical_type(c) for c in param.get('components', []))
        return f"({inner}){abi_type[len('tuple'):]}"
    return abi_type


def param_key(param: Dict, index: int) -> str:
    """Name used for a param in input/output dicts (value{i} when unnamed)"""
    return param.get('name') or f"value{index}"


def _normalize_value(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return '0x' + bytes(value).hex()
    if isinstance(value, (list, tuple)):
        return [_normalize_value(v) for v in value]
    return value


class Abi:
    """
    Contract ABI descriptor

    Wraps the JSON ABI list produced by solc/hardhat.
    """

    def __init__(self, entries: Sequence[Dict]):
        self.entries = list(entries)
        self._functions = {
            e['name']: e for e in self.entries if e.get('type', 'function') == 'function'
        }
        self._events = {}
        for entry in self.entries:
            if entry.get('type') == 'event':
                topic = '0x' + Web3.keccak(text=self.signature(entry)).hex().removeprefix('0x')
                self._events[topic] = entry

    @classmethod
    def from_json(cls, obj: Any) -> 'Abi':
        """
        Build from a JSON ABI

        Args:
            obj: ABI list, artifact dict with an 'abi' key, or an Abi

        Returns:
            Abi instance
        """
        if isinstance(obj, Abi):
            return obj
        if isinstance(obj, dict):
            if 'abi' in obj:
                obj = obj['abi']
            elif obj.get('type') == 'Contract' and 'value' in obj:
                obj = obj['value']
        if not isinstance(obj, list):
            raise EncodingError(f"Invalid ABI shape: expected a list, got {type(obj).__name__}")
        return cls(obj)

    @staticmethod
    def signature(entry: Dict) -> str:
        types = ','.join(canonical_type(p) for p in entry.get('inputs', []))
        return f"{entry['name']}({types})"

    def function(self, name: str) -> Dict:
        try:
            return self._functions[name]
        except KeyError:
            raise EncodingError(f"Function '{name}' is not in the ABI") from None

    def constructor(self) -> Optional[Dict]:
        for entry in self.entries:
            if entry.get('type') == 'constructor':
                return entry
        return None

    def selector(self, name: str) -> bytes:
        return bytes(Web3.keccak(text=self.signature(self.function(name))))[:4]

    def encode_call(self, name: str, inputs: Optional[Dict] = None) -> bytes:
        """
        Encode a function call

        Args:
            name: Function name
            inputs: Arguments keyed by ABI param name

        Returns:
            Selector followed by the encoded arguments
        """
        entry = self.function(name)
        return self.selector(name) + self._encode_params(entry.get('inputs', []), inputs or {}, name)

    def encode_constructor(self, inputs: Optional[Dict] = None) -> bytes:
        entry = self.constructor()
        if entry is None:
            if inputs:
                raise EncodingError("ABI has no constructor but constructor inputs were given")
            return b''
        return self._encode_params(entry.get('inputs', []), inputs or {}, 'constructor')

    def _encode_params(self, params: List[Dict], inputs: Dict, name: str) -> bytes:
        keys = [param_key(p, i) for i, p in enumerate(params)]

        missing = [k for k in keys if k not in inputs]
        if missing:
            raise EncodingError(f"Missing inputs for {name}: {', '.join(missing)}")

        unexpected = [k for k in inputs if k not in keys]
        if unexpected:
            raise EncodingError(f"Unexpected inputs for {name}: {', '.join(unexpected)}")

        try:
            return encode([canonical_type(p) for p in params], [inputs[k] for k in keys])
        except _ENCODE_ERRORS as e:
            raise EncodingError(f"Cannot encode inputs for {name}: {e}") from e

    def decode_output(self, name: str, data: Any) -> Dict[str, Any]:
        """
        Decode the return data of a function

        Returns:
            Outputs keyed by name (value{i} when unnamed)
        """
        entry = self.function(name)
        outputs = entry.get('outputs', [])
        if not outputs:
            return {}

        try:
            values = decode([canonical_type(p) for p in outputs], bytes(HexBytes(data)))
        except _DECODE_ERRORS as e:
            raise ExecutionError(f"Cannot decode output of {name}: {e}") from e

        return {param_key(p, i): _normalize_value(v) for i, (p, v) in enumerate(zip(outputs, values))}

    def decode_logs(self, logs: Sequence[Dict]) -> List[Dict[str, Any]]:
        """Decode the logs that match an event of this ABI; others are skipped"""
        decoded = []

        for log in logs:
            topics = [HexBytes(t) for t in log.get('topics', [])]
            if not topics:
                continue

            entry = self._events.get('0x' + topics[0].hex().removeprefix('0x'))
            if entry is None:
                continue

            inputs = entry.get('inputs', [])
            indexed = [p for p in inputs if p.get('indexed')]
            plain = [p for p in inputs if not p.get('indexed')]

            values = {}
            try:
                for param, topic in zip(indexed, topics[1:]):
                    key = param_key(param, inputs.index(param))
                    abi_type = canonical_type(param)
                    if abi_type in _HASHED_TOPIC_TYPES or abi_type.startswith('(') or abi_type.endswith(']'):
                        values[key] = '0x' + topic.hex().removeprefix('0x')
                    else:
                        values[key] = _normalize_value(decode([abi_type], bytes(topic))[0])

                data = decode([canonical_type(p) for p in plain], bytes(HexBytes(log.get('data', b''))))
                for param, value in zip(plain, data):
                    values[param_key(param, inputs.index(param))] = _normalize_value(value)
            except _DECODE_ERRORS as e:
                raise ExecutionError(f"Cannot decode event {entry['name']}: {e}") from e

            decoded.append({'name': entry['name'], 'address': log.get('address'), 'value': values})

        return decoded
