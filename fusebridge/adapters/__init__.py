"""Sample adapters"""

from fusebridge.adapters.memory import MemoryFileSystemAdapter

__all__ = ['MemoryFileSystemAdapter']
