"""Native driver package"""

from fusebridge.drivers.base import BaseFuseDriver
from fusebridge.drivers.libfuse import LibFuseDriver

__all__ = ['BaseFuseDriver', 'LibFuseDriver']
