"""
Configuration
Loads config/node_config.json and applies environment overrides
"""

import copy
import json
import os
from typing import Dict, Optional

from dotenv import load_dotenv
from loguru import logger

load_dotenv()

DEFAULT_CONFIG_PATH = "config/node_config.json"

DEFAULTS = {
    'network': {
        'endpoints': ['http://127.0.0.1:8545'],
        'endpoint_env': 'NODE_RPC_URL',
        'chain_id': None,
        'request_timeout_s': 10,
    },
    'processing': {
        'max_block_intervals': 20,
        'poll_interval_s': 0.5,
        'block_interval_s': 2.0,
        'max_fetch_failures': 5,
        'observer_timeout_s': 0.5,
    },
    'encoding': {
        'default_gas_limit': 3_000_000,
        'gas_estimate_buffer': 1.2,
    },
    'giver': {
        'private_key_env': 'GIVER_PRIVATE_KEY',
        'address': None,
        'abi_path': None,
        'function_name': 'sendGrams',
        'amount_wei': 10**17,
    },
    'contracts': {},
}


def _merge(base: Dict, override: Dict) -> Dict:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(path: Optional[str] = None) -> Dict:
    """
    Load configuration

    Args:
        path: Config file (default: $LEDGER_CONFIG or config/node_config.json)

    Returns:
        Config dict with defaults filled in
    """
    path = path or os.getenv('LEDGER_CONFIG', DEFAULT_CONFIG_PATH)

    if os.path.exists(path):
        with open(path, 'r') as f:
            config = _merge(DEFAULTS, json.load(f))
        logger.debug(f"Loaded config from {path}")
    else:
        logger.warning(f"Config file {path} not found - using defaults")
        config = copy.deepcopy(DEFAULTS)

    # Environment overrides
    endpoint = os.getenv(config['network'].get('endpoint_env') or 'NODE_RPC_URL')
    if endpoint:
        endpoints = [e for e in config['network']['endpoints'] if e != endpoint]
        config['network']['endpoints'] = [endpoint] + endpoints

    return config
