"""
Utilities Package
Node connection management
"""

from .rpc_manager import RPCManager

__all__ = [
    'RPCManager'
]
