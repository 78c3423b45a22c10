"""
Adapter capability set

An adapter exposes a storage backend by implementing any subset of the
filesystem primitives catalogued in CAPABILITIES, each as an ``async``
function. The supported set is captured once, when the adapter is registered,
in a CapabilitySet; a primitive is supported if and only if its field is set.

Adapters signal failures by raising FuseError subclasses from
fusebridge.exceptions. Any other exception is reported to the kernel as EIO.
"""

from dataclasses import dataclass, fields
from typing import Any, Awaitable, Callable, List, NamedTuple, Optional, Tuple


AsyncCapability = Optional[Callable[..., Awaitable[Any]]]


class Capability(NamedTuple):
    """Static description of one filesystem primitive."""

    name: str
    params: Tuple[str, ...]
    returns_value: bool
    message: str


# Driver-facing parameter order of every primitive. The log message is
# rendered with the call's parameters mapped by name.
CAPABILITIES = (
    Capability('access', ('path', 'mode'), False,
               'Checking access for path: %(path)s, mode: %(mode)s'),
    Capability('chmod', ('path', 'mode'), False,
               'Changing mode for path: %(path)s to mode: %(mode)o'),
    Capability('chown', ('path', 'uid', 'gid'), False,
               'Changing ownership for path: %(path)s to uid: %(uid)s, gid: %(gid)s'),
    Capability('create', ('path', 'mode'), True,
               'Creating file at path: %(path)s with mode: %(mode)o'),
    Capability('destroy', (), False,
               'Destroying filesystem...'),
    Capability('fgetattr', ('path', 'fd'), True,
               'Getting attributes for path: %(path)s using fd: %(fd)s'),
    Capability('flush', ('path', 'fd'), False,
               'Flushing file at path: %(path)s, fd: %(fd)s'),
    Capability('fsync', ('path', 'fd', 'datasync'), False,
               'Syncing file at path: %(path)s, fd: %(fd)s, datasync: %(datasync)s'),
    Capability('fsyncdir', ('path', 'fd', 'datasync'), False,
               'Syncing directory at path: %(path)s, fd: %(fd)s, datasync: %(datasync)s'),
    Capability('ftruncate', ('path', 'fd', 'size'), False,
               'Truncating file by fd at path: %(path)s, fd: %(fd)s to size: %(size)s'),
    Capability('getattr', ('path',), True,
               'Getting attributes for path: %(path)s'),
    Capability('getxattr', ('path', 'name', 'buffer', 'length', 'offset'), True,
               'Getting extended attribute with name: %(name)s at path: %(path)s'),
    Capability('init', (), False,
               'Initializing filesystem...'),
    Capability('link', ('src', 'dest'), False,
               'Creating link from source path: %(src)s to destination path: %(dest)s'),
    Capability('listxattr', ('path', 'buffer', 'length'), True,
               'Listing extended attributes at path: %(path)s'),
    Capability('mkdir', ('path', 'mode'), False,
               'Creating directory at path: %(path)s with mode: %(mode)o'),
    Capability('mknod', ('path', 'mode', 'dev'), False,
               'Creating node at path: %(path)s with mode: %(mode)o, dev: %(dev)s'),
    Capability('open', ('path', 'flags'), True,
               'Opening file at path: %(path)s with flags: %(flags)s'),
    Capability('opendir', ('path', 'flags'), True,
               'Opening directory at path: %(path)s with flags: %(flags)s'),
    Capability('read', ('path', 'fd', 'buffer', 'length', 'position'), True,
               'Reading from file at path: %(path)s, fd: %(fd)s, position: %(position)s'),
    Capability('readdir', ('path',), True,
               'Reading directory at path: %(path)s'),
    Capability('readlink', ('path',), True,
               'Reading symlink at path: %(path)s'),
    Capability('release', ('path', 'fd'), False,
               'Releasing file at path: %(path)s, fd: %(fd)s'),
    Capability('releasedir', ('path', 'fd'), False,
               'Releasing directory at path: %(path)s, fd: %(fd)s'),
    Capability('removexattr', ('path', 'name'), False,
               'Removing extended attribute with name: %(name)s at path: %(path)s'),
    Capability('rename', ('src', 'dest'), False,
               'Renaming from source path: %(src)s to destination path: %(dest)s'),
    Capability('rmdir', ('path',), False,
               'Removing directory at path: %(path)s'),
    Capability('setxattr', ('path', 'name', 'buffer', 'length', 'offset', 'flags'), False,
               'Setting extended attribute with name: %(name)s at path: %(path)s'),
    Capability('statfs', ('path',), True,
               'Getting filesystem stats for path: %(path)s'),
    Capability('symlink', ('target', 'linkpath'), False,
               'Creating symlink from target: %(target)s to linkpath: %(linkpath)s'),
    Capability('truncate', ('path', 'size'), False,
               'Truncating file at path: %(path)s to size: %(size)s'),
    Capability('unlink', ('path',), False,
               'Deleting file at path: %(path)s'),
    Capability('utimens', ('path', 'atime', 'mtime'), False,
               'Updating timestamps for path: %(path)s, atime: %(atime)s, mtime: %(mtime)s'),
    Capability('write', ('path', 'fd', 'buffer', 'length', 'position'), True,
               'Writing to file at path: %(path)s, fd: %(fd)s, position: %(position)s'),
)

CAPABILITIES_BY_NAME = {capability.name: capability for capability in CAPABILITIES}

# Exposed to the driver even when the adapter does not implement them.
LIFECYCLE_CAPABILITIES = ('init', 'destroy')


@dataclass(frozen=True)
class CapabilitySet:
    """
    The primitives one adapter implements.

    Fields left as None are unsupported and are never exposed to the driver.
    Build it directly with keyword arguments, or from an adapter object with
    from_adapter().
    """

    access: AsyncCapability = None
    chmod: AsyncCapability = None
    chown: AsyncCapability = None
    create: AsyncCapability = None
    destroy: AsyncCapability = None
    fgetattr: AsyncCapability = None
    flush: AsyncCapability = None
    fsync: AsyncCapability = None
    fsyncdir: AsyncCapability = None
    ftruncate: AsyncCapability = None
    getattr: AsyncCapability = None
    getxattr: AsyncCapability = None
    init: AsyncCapability = None
    link: AsyncCapability = None
    listxattr: AsyncCapability = None
    mkdir: AsyncCapability = None
    mknod: AsyncCapability = None
    open: AsyncCapability = None
    opendir: AsyncCapability = None
    read: AsyncCapability = None
    readdir: AsyncCapability = None
    readlink: AsyncCapability = None
    release: AsyncCapability = None
    releasedir: AsyncCapability = None
    removexattr: AsyncCapability = None
    rename: AsyncCapability = None
    rmdir: AsyncCapability = None
    setxattr: AsyncCapability = None
    statfs: AsyncCapability = None
    symlink: AsyncCapability = None
    truncate: AsyncCapability = None
    unlink: AsyncCapability = None
    utimens: AsyncCapability = None
    write: AsyncCapability = None

    def __post_init__(self):
        for field in fields(self):
            value = getattr(self, field.name)
            if value is not None and not callable(value):
                raise TypeError(f"capability '{field.name}' must be callable, got {type(value).__name__}")

    @classmethod
    def from_adapter(cls, adapter) -> 'CapabilitySet':
        """
        Register an adapter object.

        Only the catalogued primitive names are looked up on the adapter, once;
        attributes that are missing or None leave the primitive unsupported.

        Args:
            adapter: Object implementing some of the primitives as coroutines

        Returns:
            CapabilitySet bound to the adapter's implementations
        """
        if isinstance(adapter, CapabilitySet):
            return adapter
        found = {}
        for capability in CAPABILITIES:
            implementation = getattr(adapter, capability.name, None)
            if implementation is not None:
                found[capability.name] = implementation
        return cls(**found)

    def get(self, name: str) -> AsyncCapability:
        if name not in CAPABILITIES_BY_NAME:
            raise KeyError(name)
        return getattr(self, name)

    def implemented(self) -> List[str]:
        """Names of the supported primitives, in catalogue order."""
        return [c.name for c in CAPABILITIES if getattr(self, c.name) is not None]

    def __contains__(self, name) -> bool:
        return name in CAPABILITIES_BY_NAME and getattr(self, name) is not None


class FileSystemAdapter:
    """
    Optional base class for adapters.

    Subclasses implement any of the primitives in CAPABILITIES as ``async``
    methods with the catalogued parameters, for example::

        class HelloAdapter(FileSystemAdapter):
            async def getattr(self, path):
                ...

            async def readdir(self, path):
                return ['hello.txt']

    Do not define a primitive you do not support, not even as a stub raising
    FunctionNotImplementedError: its presence alone is what advertises it.
    """

    def capabilities(self) -> CapabilitySet:
        """Register this adapter, see CapabilitySet.from_adapter()."""
        return CapabilitySet.from_adapter(self)
