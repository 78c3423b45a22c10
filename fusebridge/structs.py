"""Stat structures and file mode helpers shared by adapters and drivers"""

import stat
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict


@dataclass(frozen=True)
class FileStat:
    """
    Attributes of a single filesystem node.

    Timestamps are milliseconds since the epoch.
    """

    dev: int
    ino: int
    mode: int
    nlink: int
    uid: int
    gid: int
    rdev: int
    size: int
    blksize: int
    blocks: int
    ctime_ms: float
    mtime_ms: float
    atime_ms: float

    @property
    def birthtime_ms(self) -> float:
        return self.ctime_ms

    @property
    def atime(self) -> datetime:
        return datetime.fromtimestamp(self.atime_ms / 1000)

    @property
    def mtime(self) -> datetime:
        return datetime.fromtimestamp(self.mtime_ms / 1000)

    @property
    def ctime(self) -> datetime:
        return datetime.fromtimestamp(self.ctime_ms / 1000)

    @property
    def birthtime(self) -> datetime:
        return datetime.fromtimestamp(self.birthtime_ms / 1000)

    def is_block_device(self) -> bool:
        return stat.S_ISBLK(self.mode)

    def is_character_device(self) -> bool:
        return stat.S_ISCHR(self.mode)

    def is_directory(self) -> bool:
        return stat.S_ISDIR(self.mode)

    def is_fifo(self) -> bool:
        return stat.S_ISFIFO(self.mode)

    def is_file(self) -> bool:
        return stat.S_ISREG(self.mode)

    def is_socket(self) -> bool:
        return stat.S_ISSOCK(self.mode)

    def is_symbolic_link(self) -> bool:
        return stat.S_ISLNK(self.mode)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the ``st_*`` mapping fusepy expects from getattr."""
        return {
            'st_dev': self.dev,
            'st_ino': self.ino,
            'st_mode': self.mode,
            'st_nlink': self.nlink,
            'st_uid': self.uid,
            'st_gid': self.gid,
            'st_rdev': self.rdev,
            'st_size': self.size,
            'st_blksize': self.blksize,
            'st_blocks': self.blocks,
            'st_atime': self.atime_ms / 1000,
            'st_mtime': self.mtime_ms / 1000,
            'st_ctime': self.ctime_ms / 1000,
        }


@dataclass(frozen=True)
class StatFs:
    """Filesystem-wide statistics returned by statfs"""

    bsize: int = 4096
    frsize: int = 4096
    blocks: int = 0
    bfree: int = 0
    bavail: int = 0
    files: int = 0
    ffree: int = 0
    favail: int = 0
    fsid: int = 0
    flag: int = 0
    namemax: int = 255

    def to_dict(self) -> Dict[str, Any]:
        return {f'f_{key}': value for key, value in self.__dict__.items()}


def _mode(file_type: int, owner: int, group=None, other=None) -> int:
    if group is None and other is None:
        return file_type | owner
    if group is None or other is None:
        raise TypeError("group and other must be given together")
    return file_type | (owner << 6) | (group << 3) | other


def fifo(owner: int, group=None, other=None) -> int:
    """Mode for a FIFO, from a permission mode or owner/group/other triads."""
    return _mode(stat.S_IFIFO, owner, group, other)


def char(owner: int, group=None, other=None) -> int:
    return _mode(stat.S_IFCHR, owner, group, other)


def directory(owner: int, group=None, other=None) -> int:
    """Mode for a directory, e.g. ``directory(0o755)`` or ``directory(7, 5, 5)``."""
    return _mode(stat.S_IFDIR, owner, group, other)


def block(owner: int, group=None, other=None) -> int:
    return _mode(stat.S_IFBLK, owner, group, other)


def file(owner: int, group=None, other=None) -> int:
    """Mode for a regular file, e.g. ``file(0o644)`` or ``file(6, 4, 4)``."""
    return _mode(stat.S_IFREG, owner, group, other)


def link(owner: int, group=None, other=None) -> int:
    return _mode(stat.S_IFLNK, owner, group, other)


def socket(owner: int, group=None, other=None) -> int:
    return _mode(stat.S_IFSOCK, owner, group, other)
