"""
Custom exceptions for fusebridge

FuseError and its subclasses are the domain errors adapters raise to report a
precise POSIX failure. The bridge reports their code to the native driver;
any other exception is reported as EIO.
"""

import errno
import enum


class ErrorCode(enum.IntEnum):
    """POSIX error codes a filesystem operation may report"""

    EPERM = errno.EPERM
    ENOENT = errno.ENOENT
    EIO = errno.EIO
    EBADF = errno.EBADF
    EACCES = errno.EACCES
    EEXIST = errno.EEXIST
    ENOTDIR = errno.ENOTDIR
    EISDIR = errno.EISDIR
    EINVAL = errno.EINVAL
    ENOSPC = errno.ENOSPC
    EROFS = errno.EROFS
    ERANGE = errno.ERANGE
    ENAMETOOLONG = errno.ENAMETOOLONG
    ENOSYS = errno.ENOSYS
    ENOTEMPTY = errno.ENOTEMPTY
    ENODATA = errno.ENODATA


class FuseBridgeException(Exception):
    """Base exception for fusebridge"""
    pass


class MountException(FuseBridgeException):
    """Exception raised during mount operations"""
    pass


class UnmountException(FuseBridgeException):
    """Exception raised during unmount operations"""
    pass


class ConfigurationException(FuseBridgeException):
    """Exception raised for configuration errors"""
    pass


class FuseError(FuseBridgeException):
    """
    Domain error carrying the code reported to the native driver.

    Args:
        code: ErrorCode (or plain errno value) to report
        description: Optional human readable detail
    """

    def __init__(self, code, description=None):
        self.code = ErrorCode(code)
        self.description = description
        if description:
            message = f"{self.code.name}: {description}"
        else:
            message = self.code.name
        super().__init__(message)


class IllegalOperationOnDirectoryError(FuseError):
    """Operation is not allowed on a directory"""

    def __init__(self, path: str):
        self.path = path
        super().__init__(ErrorCode.EISDIR, f"illegal operation on a directory: {path}")


class NotADirectoryError(FuseError):
    """Path component is not a directory"""

    def __init__(self, path: str):
        self.path = path
        super().__init__(ErrorCode.ENOTDIR, f"not a directory: {path}")


class NoSuchFileOrDirectoryError(FuseError):
    """Path does not exist"""

    def __init__(self, path: str):
        self.path = path
        super().__init__(ErrorCode.ENOENT, f"no such file or directory: {path}")


class FunctionNotImplementedError(FuseError):
    """Capability is not implemented by the adapter"""

    def __init__(self, method: str):
        self.method = method
        super().__init__(ErrorCode.ENOSYS, f"function not implemented: {method}")


class PermissionDeniedError(FuseError):
    """Access to the path is not permitted"""

    def __init__(self, path: str):
        self.path = path
        super().__init__(ErrorCode.EACCES, f"permission denied: {path}")


class FileAlreadyExistsError(FuseError):
    """Path already exists"""

    def __init__(self, path: str):
        self.path = path
        super().__init__(ErrorCode.EEXIST, f"file already exists: {path}")


class DirectoryNotEmptyError(FuseError):
    """Directory still has entries"""

    def __init__(self, path: str):
        self.path = path
        super().__init__(ErrorCode.ENOTEMPTY, f"directory not empty: {path}")
