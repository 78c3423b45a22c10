"""
In-memory sample adapter

Keeps a directory tree in memory. Used by the command line entry point and
by tests; it is not meant as a production filesystem.
"""

import itertools
import os
import posixpath
import stat
import time
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Union

from fusebridge.capabilities import FileSystemAdapter
from fusebridge.exceptions import (
    DirectoryNotEmptyError, FileAlreadyExistsError, FuseError, ErrorCode,
    IllegalOperationOnDirectoryError, NoSuchFileOrDirectoryError,
    NotADirectoryError, PermissionDeniedError
)
from fusebridge.structs import FileStat, StatFs, directory, file
from fusebridge.utils.logger import get_logger

LOG = get_logger(__name__)

DEFAULT_UID = os.getuid() if hasattr(os, 'getuid') else 0
DEFAULT_GID = os.getgid() if hasattr(os, 'getgid') else 0

BLOCK_SIZE = 512


def _now_ms() -> float:
    return time.time() * 1000


class Node(ABC):
    """Common attributes of files and directories."""

    def __init__(self, ino: int, mode: int, name: str, parent: 'Directory' = None,
                 uid: int = None, gid: int = None, dev: int = 4096, rdev: int = 0,
                 blksize: int = 0, atime: float = None, mtime: float = None,
                 ctime: float = None):
        self.ino = ino
        self.mode = mode
        self.name = name
        self.parent = parent
        self.uid = DEFAULT_UID if uid is None else uid
        self.gid = DEFAULT_GID if gid is None else gid
        self.dev = dev
        self.rdev = rdev
        self.blksize = blksize
        now = _now_ms()
        self.atime = next(t for t in (atime, mtime, ctime, now) if t is not None)
        self.mtime = next(t for t in (mtime, ctime, atime, self.atime) if t is not None)
        self.ctime = next(t for t in (ctime, mtime, atime, self.mtime) if t is not None)

    @property
    @abstractmethod
    def size(self) -> int:
        pass

    @property
    def nlink(self) -> int:
        return 1

    @property
    def blocks(self) -> int:
        return -(-self.size // BLOCK_SIZE) if self.size > 0 else 0

    @property
    def path(self) -> str:
        if self.parent is None:
            return self.name
        return posixpath.join(self.parent.path, self.name)

    def touch(self):
        self.mtime = self.ctime = _now_ms()

    def stat(self) -> FileStat:
        return FileStat(
            dev=self.dev, ino=self.ino, mode=self.mode, nlink=self.nlink,
            uid=self.uid, gid=self.gid, rdev=self.rdev, size=self.size,
            blksize=self.blksize, blocks=self.blocks,
            ctime_ms=self.ctime, mtime_ms=self.mtime, atime_ms=self.atime,
        )


class File(Node):
    def __init__(self, ino: int, name: str, parent: 'Directory', perm: int = 0o644, **kwargs):
        super().__init__(ino, file(perm), name, parent=parent, **kwargs)
        self.data = bytearray()

    @property
    def size(self) -> int:
        return len(self.data)


class Directory(Node):
    def __init__(self, ino: int, name: str, parent: 'Directory' = None, perm: int = 0o755, **kwargs):
        super().__init__(ino, directory(perm), name, parent=parent, **kwargs)
        self.files: Dict[str, Union['Directory', File]] = {}

    @property
    def nlink(self) -> int:
        return 2 + len(self.files)

    @property
    def size(self) -> int:
        return 1024

    def find(self, path: str) -> Union['Directory', File]:
        """
        Resolve an absolute path below this directory.

        Raises:
            NoSuchFileOrDirectoryError: if a component does not exist
            NotADirectoryError: if a non-final component is a file
        """
        node = self
        for name in path.split('/'):
            if not name:
                continue
            if not isinstance(node, Directory):
                raise NotADirectoryError(path)
            if name not in node.files:
                raise NoSuchFileOrDirectoryError(path)
            node = node.files[name]
        return node

    def list_files(self) -> List[str]:
        return list(self.files)


class MemoryFileSystemAdapter(FileSystemAdapter):
    """
    Adapter serving a tree held in memory.

    Args:
        files: Optional mapping of absolute path -> initial bytes; parent
            directories are created as needed
    """

    def __init__(self, files: Optional[Dict[str, bytes]] = None):
        self._inodes = itertools.count(2)
        self._fds = itertools.count(1)
        self.root = Directory(1, '/')
        self.open_files: Dict[int, Node] = {}
        for path, data in (files or {}).items():
            self._populate(path, data)

    def _populate(self, path: str, data: bytes):
        parent = self.root
        parts = [part for part in path.split('/') if part]
        for name in parts[:-1]:
            if name not in parent.files:
                parent.files[name] = Directory(next(self._inodes), name, parent)
            parent = parent.files[name]
        node = File(next(self._inodes), parts[-1], parent)
        node.data.extend(data)
        parent.files[node.name] = node

    def _parent(self, path: str) -> Directory:
        parent = self.root.find(posixpath.dirname(path))
        if not isinstance(parent, Directory):
            raise NotADirectoryError(path)
        return parent

    def _file(self, path: str) -> File:
        node = self.root.find(path)
        if isinstance(node, Directory):
            raise IllegalOperationOnDirectoryError(path)
        return node

    def _directory(self, path: str) -> Directory:
        node = self.root.find(path)
        if not isinstance(node, Directory):
            raise NotADirectoryError(path)
        return node

    def _node_for_fd(self, path: str, fd: int) -> Node:
        if fd not in self.open_files:
            raise FuseError(ErrorCode.EBADF, f"bad file descriptor {fd} for {path}")
        return self.open_files[fd]

    def _allocate_fd(self, node: Node) -> int:
        fd = next(self._fds)
        self.open_files[fd] = node
        return fd

    async def init(self):
        LOG.debug(f"Memory filesystem ready with {len(self.root.files)} top level entries")

    async def access(self, path: str, mode: int):
        node = self.root.find(path)
        wanted = mode & (os.R_OK | os.W_OK | os.X_OK)
        if (node.mode >> 6) & wanted != wanted:
            raise PermissionDeniedError(path)

    async def getattr(self, path: str) -> FileStat:
        return self.root.find(path).stat()

    async def fgetattr(self, path: str, fd: int) -> FileStat:
        return self._node_for_fd(path, fd).stat()

    async def statfs(self, path: str) -> StatFs:
        count = sum(1 for _ in self._walk(self.root))
        return StatFs(bsize=BLOCK_SIZE, frsize=BLOCK_SIZE, blocks=1 << 20, bfree=1 << 20,
                      bavail=1 << 20, files=count, ffree=1 << 20, favail=1 << 20)

    def _walk(self, node: Node):
        yield node
        if isinstance(node, Directory):
            for child in node.files.values():
                yield from self._walk(child)

    async def chmod(self, path: str, mode: int):
        node = self.root.find(path)
        node.mode = stat.S_IFMT(node.mode) | stat.S_IMODE(mode)
        node.ctime = _now_ms()

    async def utimens(self, path: str, atime: float, mtime: float):
        node = self.root.find(path)
        node.atime = atime * 1000
        node.mtime = mtime * 1000

    async def readdir(self, path: str) -> List[str]:
        return self._directory(path).list_files()

    async def opendir(self, path: str, flags: int) -> int:
        return self._allocate_fd(self._directory(path))

    async def releasedir(self, path: str, fd: int):
        self.open_files.pop(fd, None)

    async def mkdir(self, path: str, mode: int):
        parent = self._parent(path)
        name = posixpath.basename(path)
        if name in parent.files:
            raise FileAlreadyExistsError(path)
        parent.files[name] = Directory(next(self._inodes), name, parent, perm=stat.S_IMODE(mode))
        parent.touch()

    async def rmdir(self, path: str):
        node = self._directory(path)
        if node is self.root:
            raise PermissionDeniedError(path)
        if node.files:
            raise DirectoryNotEmptyError(path)
        del node.parent.files[node.name]
        node.parent.touch()

    async def create(self, path: str, mode: int) -> int:
        parent = self._parent(path)
        name = posixpath.basename(path)
        node = parent.files.get(name)
        if isinstance(node, Directory):
            raise IllegalOperationOnDirectoryError(path)
        if node is None:
            node = File(next(self._inodes), name, parent, perm=stat.S_IMODE(mode))
            parent.files[name] = node
            parent.touch()
        return self._allocate_fd(node)

    async def open(self, path: str, flags: int) -> int:
        node = self._file(path)
        if flags & os.O_TRUNC:
            del node.data[:]
            node.touch()
        return self._allocate_fd(node)

    async def release(self, path: str, fd: int):
        self.open_files.pop(fd, None)

    async def read(self, path: str, fd: int, buffer, length: int, position: int) -> int:
        node = self._node_for_fd(path, fd)
        if isinstance(node, Directory):
            raise IllegalOperationOnDirectoryError(path)
        chunk = node.data[position:position + length]
        buffer[:len(chunk)] = chunk
        node.atime = _now_ms()
        return len(chunk)

    async def write(self, path: str, fd: int, buffer, length: int, position: int) -> int:
        node = self._node_for_fd(path, fd)
        if isinstance(node, Directory):
            raise IllegalOperationOnDirectoryError(path)
        if position > len(node.data):
            node.data.extend(bytes(position - len(node.data)))
        node.data[position:position + length] = bytes(buffer[:length])
        node.touch()
        return length

    async def truncate(self, path: str, size: int):
        self._truncate(self._file(path), size)

    async def ftruncate(self, path: str, fd: int, size: int):
        node = self._node_for_fd(path, fd)
        if isinstance(node, Directory):
            raise IllegalOperationOnDirectoryError(path)
        self._truncate(node, size)

    def _truncate(self, node: File, size: int):
        if size < len(node.data):
            del node.data[size:]
        else:
            node.data.extend(bytes(size - len(node.data)))
        node.touch()

    async def unlink(self, path: str):
        node = self._file(path)
        del node.parent.files[node.name]
        node.parent.touch()

    async def rename(self, src: str, dest: str):
        node = self.root.find(src)
        if node is self.root:
            raise PermissionDeniedError(src)
        target_parent = self._parent(dest)
        ancestor = target_parent
        while ancestor is not None:
            if ancestor is node:
                raise FuseError(ErrorCode.EINVAL, f"cannot move {src} into itself: {dest}")
            ancestor = ancestor.parent
        name = posixpath.basename(dest)
        existing = target_parent.files.get(name)
        if isinstance(existing, Directory):
            if not isinstance(node, Directory):
                raise IllegalOperationOnDirectoryError(dest)
            if existing.files:
                raise DirectoryNotEmptyError(dest)
        elif existing is not None and isinstance(node, Directory):
            raise NotADirectoryError(dest)

        del node.parent.files[node.name]
        node.parent.touch()
        node.name = name
        node.parent = target_parent
        target_parent.files[name] = node
        target_parent.touch()
