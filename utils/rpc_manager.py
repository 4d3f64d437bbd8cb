"""
RPC Manager
Connects to the first reachable node endpoint, falling back in order
"""

import time
from typing import Dict, Optional

import aiohttp
from loguru import logger
from web3 import AsyncHTTPProvider, AsyncWeb3

from ledger.errors import NetworkError
from ledger.network import TRANSPORT_ERRORS, Web3Network


class RPCManager:
    """
    Ordered endpoint fallback

    Endpoints come from network.endpoints in the config; NODE_RPC_URL (already
    applied by load_config) takes the first slot.
    """

    def __init__(self, config: Dict):
        """
        Initialize RPC Manager

        Args:
            config: Loaded configuration
        """
        network_config = config.get('network', {})
        self.endpoints = list(network_config.get('endpoints', []))
        self.request_timeout = network_config.get('request_timeout_s', 10)

        if not self.endpoints:
            raise NetworkError("No node endpoints configured")

        self.current_endpoint: Optional[str] = None
        self.w3: Optional[AsyncWeb3] = None

        # Usage tracking
        self.usage_stats = {
            endpoint: {'failures': 0, 'last_failure_time': 0}
            for endpoint in self.endpoints
        }

        logger.info(f"RPC Manager initialized with {len(self.endpoints)} endpoints")

    def _create_web3(self, endpoint: str) -> AsyncWeb3:
        timeout = aiohttp.ClientTimeout(total=self.request_timeout)
        return AsyncWeb3(AsyncHTTPProvider(endpoint, request_kwargs={'timeout': timeout}))

    async def connect(self) -> Web3Network:
        """
        Connect to the first reachable endpoint

        Returns:
            Web3Network over the connected endpoint
        """
        for endpoint in self.endpoints:
            w3 = self._create_web3(endpoint)

            try:
                connected = await w3.is_connected()
            except TRANSPORT_ERRORS as e:
                logger.debug(f"Connection error on {endpoint}: {e}")
                connected = False

            if connected:
                self.w3 = w3
                self.current_endpoint = endpoint
                logger.success(f"Connected to {endpoint}")
                return Web3Network(w3, endpoint=endpoint)

            self.usage_stats[endpoint]['failures'] += 1
            self.usage_stats[endpoint]['last_failure_time'] = time.time()
            logger.warning(f"Failed to connect to {endpoint}")

        logger.critical("All node endpoints exhausted!")
        raise NetworkError(f"No reachable endpoint among {', '.join(self.endpoints)}")

    def get_web3(self) -> AsyncWeb3:
        """Get the connected AsyncWeb3 instance"""
        if self.w3 is None:
            raise NetworkError("RPC Manager is not connected")
        return self.w3

    async def is_healthy(self) -> bool:
        """Check if the current endpoint still answers"""
        if self.w3 is None:
            return False
        try:
            return await self.w3.is_connected()
        except TRANSPORT_ERRORS:
            return False

    def get_status(self) -> Dict:
        """Get status of all endpoints"""
        return {
            endpoint: {
                'connected': endpoint == self.current_endpoint,
                'failures': stats['failures'],
                'last_failure': stats['last_failure_time'],
            }
            for endpoint, stats in self.usage_stats.items()
        }

    async def close(self):
        """Close the provider session"""
        if self.w3 is not None:
            disconnect = getattr(self.w3.provider, 'disconnect', None)
            if disconnect is not None:
                await disconnect()
            self.w3 = None
            self.current_endpoint = None
