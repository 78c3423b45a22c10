"""
libfuse driver implementation using fusepy

fusepy runs the libfuse session loop in a background thread and calls a
synchronous operations object from libfuse's worker threads. FuseOperations
forwards each call to the matching bridge handler on the asyncio event loop
and blocks the worker until the handler's completion callback fires.
"""

import asyncio
import concurrent.futures
import errno
import os
import platform
import subprocess
import threading
import time
from typing import Any, Callable, Dict, List, Optional

from fusebridge.drivers.base import BaseFuseDriver, MountCallback
from fusebridge.exceptions import MountException, UnmountException
from fusebridge.utils.logger import get_logger

LOG = get_logger(__name__)

# Largest extended attribute value or name list Linux hands to userspace.
XATTR_SIZE_MAX = 65536

UNMOUNT_TIMEOUT = 10


def _os_error(code: int) -> OSError:
    return OSError(code, os.strerror(code))


def _as_dict(value) -> Any:
    return value.to_dict() if hasattr(value, 'to_dict') else value


def parse_mount_options(options: Optional[List[str]]) -> Dict[str, Any]:
    """
    Convert mount options to fusepy keyword arguments.

    'flag' becomes flag=True and 'key=value' becomes key='value'. Entries may
    themselves be comma separated, as with ``mount -o``.
    """
    kwargs = {}
    for option in options or []:
        for item in option.split(','):
            item = item.strip()
            if not item:
                continue
            key, sep, value = item.partition('=')
            kwargs[key] = value if sep else True
    return kwargs


class FuseOperations:
    """
    fusepy operations object backed by bridge handlers.

    Primitives the handler set does not contain fail with ENOSYS.
    """

    def __init__(self, handlers: Dict[str, Callable], loop: asyncio.AbstractEventLoop,
                 on_init: Callable[[], None] = None):
        self.handlers = handlers
        self.loop = loop
        self.on_init = on_init
        self.initialized = False

    def __call__(self, op, *args):
        method = getattr(self, op, None)
        if method is None or op.startswith('_'):
            raise _os_error(errno.ENOSYS)
        return method(*args)

    def _dispatch(self, name: str, *params):
        handler = self.handlers.get(name)
        if handler is None:
            raise _os_error(errno.ENOSYS)

        result = concurrent.futures.Future()

        def callback(code, payload=None):
            if not result.done():
                result.set_result((code, payload))

        def on_done(task):
            if result.done():
                return
            if task.cancelled():
                LOG.error(f"Handler {name} was cancelled before completing")
            else:
                LOG.error(f"Handler {name} returned without completing: {task.exception()}")
            result.set_result((errno.EIO, None))

        task = asyncio.run_coroutine_threadsafe(handler(*params, callback), self.loop)
        task.add_done_callback(on_done)
        code, payload = result.result()
        if code != 0:
            raise _os_error(code)
        return payload

    # lifecycle

    def init(self, path):
        self._dispatch('init')
        self.initialized = True
        if self.on_init:
            self.on_init()

    def destroy(self, path):
        self._dispatch('destroy')

    # attributes

    def access(self, path, amode):
        self._dispatch('access', path, amode)
        return 0

    def getattr(self, path, fh=None):
        if fh is not None and 'fgetattr' in self.handlers:
            return _as_dict(self._dispatch('fgetattr', path, fh))
        return _as_dict(self._dispatch('getattr', path))

    def chmod(self, path, mode):
        self._dispatch('chmod', path, mode)
        return 0

    def chown(self, path, uid, gid):
        self._dispatch('chown', path, uid, gid)
        return 0

    def utimens(self, path, times=None):
        if times:
            atime, mtime = times
        else:
            atime = mtime = time.time()
        self._dispatch('utimens', path, atime, mtime)
        return 0

    def statfs(self, path):
        return _as_dict(self._dispatch('statfs', path))

    # files

    def create(self, path, mode, fi=None):
        return self._dispatch('create', path, mode) or 0

    def open(self, path, flags):
        return self._dispatch('open', path, flags) or 0

    def read(self, path, size, offset, fh):
        buffer = bytearray(size)
        count = self._dispatch('read', path, fh, buffer, size, offset) or 0
        return bytes(buffer[:count])

    def write(self, path, data, offset, fh):
        return self._dispatch('write', path, fh, data, len(data), offset) or 0

    def truncate(self, path, length, fh=None):
        if fh is not None and 'ftruncate' in self.handlers:
            self._dispatch('ftruncate', path, fh, length)
        else:
            self._dispatch('truncate', path, length)
        return 0

    def flush(self, path, fh):
        self._dispatch('flush', path, fh)
        return 0

    def fsync(self, path, datasync, fh):
        self._dispatch('fsync', path, fh, datasync)
        return 0

    def release(self, path, fh):
        self._dispatch('release', path, fh)
        return 0

    def unlink(self, path):
        self._dispatch('unlink', path)

    def rename(self, old, new):
        self._dispatch('rename', old, new)

    def mknod(self, path, mode, dev):
        self._dispatch('mknod', path, mode, dev)

    # links

    def link(self, target, source):
        # fusepy names the new path target and the existing one source
        self._dispatch('link', source, target)

    def symlink(self, target, source):
        self._dispatch('symlink', source, target)

    def readlink(self, path):
        return self._dispatch('readlink', path)

    # directories

    def mkdir(self, path, mode):
        self._dispatch('mkdir', path, mode)

    def rmdir(self, path):
        self._dispatch('rmdir', path)

    def opendir(self, path):
        return self._dispatch('opendir', path, 0) or 0

    def readdir(self, path, fh):
        names = list(self._dispatch('readdir', path) or [])
        return [name for name in ('.', '..') if name not in names] + names

    def releasedir(self, path, fh):
        self._dispatch('releasedir', path, fh)
        return 0

    def fsyncdir(self, path, datasync, fh):
        self._dispatch('fsyncdir', path, fh, datasync)
        return 0

    # extended attributes

    def getxattr(self, path, name, position=0):
        buffer = bytearray(XATTR_SIZE_MAX)
        size = self._dispatch('getxattr', path, name, buffer, len(buffer), position) or 0
        return bytes(buffer[:size])

    def listxattr(self, path):
        buffer = bytearray(XATTR_SIZE_MAX)
        size = self._dispatch('listxattr', path, buffer, len(buffer)) or 0
        return [entry.decode() for entry in bytes(buffer[:size]).split(b'\0') if entry]

    def setxattr(self, path, name, value, options, position=0):
        self._dispatch('setxattr', path, name, value, len(value), position, options)
        return 0

    def removexattr(self, path, name):
        self._dispatch('removexattr', path, name)
        return 0


class LibFuseDriver(BaseFuseDriver):
    """Driver mounting through libfuse with fusepy."""

    def __init__(self, unmount_timeout: int = UNMOUNT_TIMEOUT):
        self.unmount_timeout = unmount_timeout
        self.threads = {}

    def mount(self, mount_point: str, handlers: Dict[str, Callable],
              options: List[str], callback: MountCallback) -> None:
        loop = asyncio.get_running_loop()
        reported = threading.Event()

        def report(error):
            if reported.is_set():
                return
            reported.set()
            loop.call_soon_threadsafe(callback, error)

        operations = FuseOperations(handlers, loop, on_init=lambda: report(None))
        kwargs = parse_mount_options(options)
        LOG.info(f"Mounting FUSE filesystem at {mount_point}")
        LOG.debug(f"Mount options: {kwargs}")

        thread = threading.Thread(
            target=self._run,
            args=(mount_point, operations, kwargs, report),
            name=f"fuse:{mount_point}",
            daemon=True
        )
        self.threads[mount_point] = thread
        thread.start()

    def _run(self, mount_point, operations, kwargs, report):
        from fuse import FUSE

        try:
            FUSE(operations, mount_point, foreground=True, nothreads=False, **kwargs)
        except Exception as e:
            LOG.error(f"FUSE session for {mount_point} failed: {e}")
            if not operations.initialized:
                report(MountException(f"failed to mount {mount_point}: {e}"))
            return
        finally:
            self.threads.pop(mount_point, None)

        if not operations.initialized:
            report(MountException(f"FUSE session for {mount_point} exited before init"))
        LOG.info(f"FUSE session for {mount_point} exited")

    def unmount(self, mount_point: str, callback: MountCallback) -> None:
        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(None, self._run_unmount, mount_point)
        future.add_done_callback(lambda f: callback(f.exception()))

    def unmount_commands(self, mount_point: str) -> List[List[str]]:
        if platform.system() == 'Darwin':
            return [['umount', mount_point], ['diskutil', 'unmount', 'force', mount_point]]
        return [['fusermount', '-u', mount_point], ['umount', mount_point]]

    def _run_unmount(self, mount_point: str):
        LOG.info(f"Unmounting FUSE filesystem from {mount_point}")
        errors = []
        for cmd in self.unmount_commands(mount_point):
            try:
                result = subprocess.run(
                    cmd,
                    capture_output=True,
                    text=True,
                    timeout=self.unmount_timeout
                )
            except (FileNotFoundError, subprocess.TimeoutExpired) as e:
                LOG.debug(f"Unmount command {' '.join(cmd)} failed: {e}")
                errors.append(str(e))
                continue

            if result.returncode == 0:
                LOG.info(f"Successfully unmounted {mount_point}")
                return
            LOG.debug(f"{' '.join(cmd)} failed (rc={result.returncode}): {result.stderr.strip()}")
            errors.append(result.stderr.strip() or f"{cmd[0]} exited with {result.returncode}")

        raise UnmountException(f"could not unmount {mount_point}: {'; '.join(errors)}")
