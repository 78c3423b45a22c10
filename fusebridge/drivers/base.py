"""Base native driver interface"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

from fusebridge.utils.logger import get_logger

LOG = get_logger(__name__)

MountCallback = Callable[[Optional[BaseException]], None]

PROC_MOUNTS = '/proc/mounts'


class BaseFuseDriver(ABC):
    """
    Abstract base class for native FUSE drivers.

    A driver owns the kernel-facing side of a mount. It dispatches every
    filesystem event to the matching handler, passing the event's positional
    parameters followed by a completion callback ``callback(code, payload)``.
    Mount and unmount outcomes are reported through ``callback(error)`` with
    error None on success; drivers must invoke these callbacks on the event
    loop thread.
    """

    @abstractmethod
    def mount(self, mount_point: str, handlers: Dict[str, Callable],
              options: List[str], callback: MountCallback) -> None:
        """
        Mount a filesystem served by handlers.

        Args:
            mount_point: Path where the filesystem should be mounted
            handlers: Primitive name -> async handler
            options: Mount options, e.g. ['default_permissions', 'volname=x']
            callback: Called once with None or the mount error
        """
        pass

    @abstractmethod
    def unmount(self, mount_point: str, callback: MountCallback) -> None:
        """
        Unmount the filesystem at mount_point.

        Args:
            mount_point: Path to unmount
            callback: Called once with None or the unmount error
        """
        pass

    def is_mounted(self, mount_point: str) -> bool:
        """
        Check if path is currently a mount point.

        Args:
            mount_point: Path to check

        Returns:
            True if mounted, False otherwise
        """
        return bool(self.get_mount_info(mount_point))

    def get_mount_info(self, mount_point: str) -> Dict[str, Any]:
        """Get mount information from /proc/mounts"""
        try:
            with open(PROC_MOUNTS, 'r') as f:
                for line in f:
                    parts = line.split()
                    if len(parts) >= 4 and parts[1] == mount_point:
                        return {
                            'device': parts[0],
                            'mount_point': parts[1],
                            'fs_type': parts[2],
                            'options': parts[3]
                        }
            return {}
        except OSError as e:
            LOG.debug(f"Error getting mount info: {e}")
            return {}
