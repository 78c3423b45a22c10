"""
Unit tests for the in-memory sample adapter
"""

import asyncio
import os

import pytest

from fusebridge.adapters import MemoryFileSystemAdapter
from fusebridge.adapters.memory import Node
from fusebridge.exceptions import (
    DirectoryNotEmptyError, ErrorCode, FileAlreadyExistsError, FuseError,
    IllegalOperationOnDirectoryError, NoSuchFileOrDirectoryError,
    NotADirectoryError, PermissionDeniedError
)


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def fs():
    return MemoryFileSystemAdapter({
        '/hello.txt': b'Hello, world!',
        '/docs/guide.md': b'# Guide',
    })


class TestLookup:
    """Path resolution and attributes"""

    def test_node_is_abstract(self):
        with pytest.raises(TypeError):
            Node(1, 0o100644, 'x')

    def test_root_is_directory(self, fs):
        attrs = run(fs.getattr('/'))

        assert attrs.is_directory()
        assert attrs.ino == 1
        assert attrs.nlink == 4

    def test_file_attributes(self, fs):
        attrs = run(fs.getattr('/hello.txt'))

        assert attrs.is_file()
        assert attrs.size == 13
        assert attrs.blocks == 1
        assert attrs.mode & 0o777 == 0o644

    def test_missing_path(self, fs):
        with pytest.raises(NoSuchFileOrDirectoryError):
            run(fs.getattr('/nope'))

    def test_file_used_as_directory(self, fs):
        with pytest.raises(NotADirectoryError):
            run(fs.getattr('/hello.txt/child'))

    def test_readdir(self, fs):
        assert run(fs.readdir('/')) == ['hello.txt', 'docs']
        assert run(fs.readdir('/docs')) == ['guide.md']

    def test_readdir_on_file(self, fs):
        with pytest.raises(NotADirectoryError):
            run(fs.readdir('/hello.txt'))

    def test_node_path(self, fs):
        assert fs.root.find('/docs/guide.md').path == '/docs/guide.md'


class TestFileIO:
    """open/read/write/truncate"""

    def test_read_fills_buffer(self, fs):
        async def scenario():
            fd = await fs.open('/hello.txt', os.O_RDONLY)
            buffer = bytearray(64)
            count = await fs.read('/hello.txt', fd, buffer, 64, 7)
            await fs.release('/hello.txt', fd)
            return bytes(buffer[:count])

        assert run(scenario()) == b'world!'

    def test_read_past_end(self, fs):
        async def scenario():
            fd = await fs.open('/hello.txt', os.O_RDONLY)
            return await fs.read('/hello.txt', fd, bytearray(8), 8, 100)

        assert run(scenario()) == 0

    def test_write_extends_file(self, fs):
        async def scenario():
            fd = await fs.create('/new.bin', 0o600)
            written = await fs.write('/new.bin', fd, b'xyz', 3, 2)
            attrs = await fs.fgetattr('/new.bin', fd)
            return written, attrs

        written, attrs = run(scenario())
        assert written == 3
        assert attrs.size == 5
        assert attrs.mode & 0o777 == 0o600
        assert bytes(fs.root.find('/new.bin').data) == b'\0\0xyz'

    def test_open_with_truncate(self, fs):
        run(fs.open('/hello.txt', os.O_WRONLY | os.O_TRUNC))

        assert run(fs.getattr('/hello.txt')).size == 0

    def test_open_directory(self, fs):
        with pytest.raises(IllegalOperationOnDirectoryError):
            run(fs.open('/docs', os.O_RDONLY))

    def test_bad_descriptor(self, fs):
        with pytest.raises(FuseError) as exc_info:
            run(fs.fgetattr('/hello.txt', 99))

        assert exc_info.value.code is ErrorCode.EBADF

    def test_released_descriptor_is_invalid(self, fs):
        async def scenario():
            fd = await fs.open('/hello.txt', os.O_RDONLY)
            await fs.release('/hello.txt', fd)
            await fs.read('/hello.txt', fd, bytearray(1), 1, 0)

        with pytest.raises(FuseError):
            run(scenario())

    def test_truncate_and_extend(self, fs):
        run(fs.truncate('/hello.txt', 5))
        assert bytes(fs.root.find('/hello.txt').data) == b'Hello'

        async def extend():
            fd = await fs.open('/hello.txt', os.O_RDWR)
            await fs.ftruncate('/hello.txt', fd, 7)

        run(extend())
        assert bytes(fs.root.find('/hello.txt').data) == b'Hello\0\0'


class TestTreeChanges:
    """mkdir/rmdir/unlink/rename"""

    def test_mkdir(self, fs):
        run(fs.mkdir('/docs/new', 0o700))
        attrs = run(fs.getattr('/docs/new'))

        assert attrs.is_directory()
        assert attrs.mode & 0o777 == 0o700

    def test_mkdir_existing(self, fs):
        with pytest.raises(FileAlreadyExistsError):
            run(fs.mkdir('/docs', 0o755))

    def test_mkdir_missing_parent(self, fs):
        with pytest.raises(NoSuchFileOrDirectoryError):
            run(fs.mkdir('/a/b', 0o755))

    def test_rmdir_not_empty(self, fs):
        with pytest.raises(DirectoryNotEmptyError):
            run(fs.rmdir('/docs'))

    def test_rmdir_root(self, fs):
        with pytest.raises(PermissionDeniedError):
            run(fs.rmdir('/'))

    def test_unlink_then_rmdir(self, fs):
        run(fs.unlink('/docs/guide.md'))
        run(fs.rmdir('/docs'))

        assert run(fs.readdir('/')) == ['hello.txt']

    def test_unlink_directory(self, fs):
        with pytest.raises(IllegalOperationOnDirectoryError):
            run(fs.unlink('/docs'))

    def test_rename_into_directory(self, fs):
        run(fs.rename('/hello.txt', '/docs/hello.txt'))

        assert run(fs.readdir('/docs')) == ['guide.md', 'hello.txt']
        assert fs.root.find('/docs/hello.txt').path == '/docs/hello.txt'
        with pytest.raises(NoSuchFileOrDirectoryError):
            run(fs.getattr('/hello.txt'))

    def test_rename_replaces_file(self, fs):
        run(fs.rename('/docs/guide.md', '/hello.txt'))

        assert bytes(fs.root.find('/hello.txt').data) == b'# Guide'

    def test_rename_file_over_directory(self, fs):
        with pytest.raises(IllegalOperationOnDirectoryError):
            run(fs.rename('/hello.txt', '/docs'))

    def test_rename_directory_into_itself(self, fs):
        run(fs.mkdir('/docs/inner', 0o755))

        for dest in ('/docs/moved', '/docs/inner/moved'):
            with pytest.raises(FuseError) as exc_info:
                run(fs.rename('/docs', dest))
            assert exc_info.value.code == ErrorCode.EINVAL

        assert 'docs' in run(fs.readdir('/'))
        assert run(fs.readdir('/docs')) == ['guide.md', 'inner']
        assert fs.root.find('/docs/inner').parent is fs.root.find('/docs')


class TestMetadata:
    """chmod/utimens/access/statfs"""

    def test_chmod_keeps_type(self, fs):
        run(fs.chmod('/hello.txt', 0o100400))
        attrs = run(fs.getattr('/hello.txt'))

        assert attrs.is_file()
        assert attrs.mode & 0o777 == 0o400

    def test_utimens(self, fs):
        run(fs.utimens('/hello.txt', 10.0, 20.0))
        attrs = run(fs.getattr('/hello.txt'))

        assert attrs.atime_ms == 10000.0
        assert attrs.mtime_ms == 20000.0

    def test_access(self, fs):
        run(fs.access('/hello.txt', os.R_OK | os.W_OK))

        with pytest.raises(PermissionDeniedError):
            run(fs.access('/hello.txt', os.X_OK))

    def test_statfs_counts_nodes(self, fs):
        assert run(fs.statfs('/')).files == 4

    def test_capabilities(self, fs):
        capabilities = fs.capabilities()

        assert 'read' in capabilities
        assert 'init' in capabilities
        assert 'readlink' not in capabilities
        assert 'symlink' not in capabilities
