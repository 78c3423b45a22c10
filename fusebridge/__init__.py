"""
fusebridge - mount asyncio filesystem adapters through FUSE
"""

from fusebridge.capabilities import CAPABILITIES, CapabilitySet, FileSystemAdapter
from fusebridge.controller import MountController, MountHandle, MountState
from fusebridge.bridge import OperationBridge
from fusebridge.exceptions import (
    ErrorCode, FuseBridgeException, FuseError, MountException, UnmountException
)
from fusebridge.structs import FileStat, StatFs

__version__ = '1.0.0'

__all__ = [
    'CAPABILITIES',
    'CapabilitySet',
    'ErrorCode',
    'FileStat',
    'FileSystemAdapter',
    'FuseBridgeException',
    'FuseError',
    'MountController',
    'MountException',
    'MountHandle',
    'MountState',
    'OperationBridge',
    'StatFs',
    'UnmountException',
]
