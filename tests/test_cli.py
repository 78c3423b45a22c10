"""
Unit tests for the command line entry point
"""

import errno
import logging
import os
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from click.testing import CliRunner

from fusebridge.cli import cli
from fusebridge.exceptions import MountException, NoSuchFileOrDirectoryError

CLEAN_ENV = {
    'MOUNT_PATH': None,
    'FUSEBRIDGE_MOUNT_OPTIONS': None,
    'FUSEBRIDGE_LOG_LEVEL': None,
    'FUSEBRIDGE_LOG_JSON': None,
}


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def controller():
    controller = MagicMock()
    controller.mount = AsyncMock(return_value=None)
    controller.unmount = AsyncMock(return_value=None)
    with patch('fusebridge.cli.build_controller', return_value=controller) as mock_build:
        controller.build = mock_build
        yield controller


def built_config(controller):
    return controller.build.call_args[0][0]


class TestMount:
    """Mounting the sample filesystem"""

    def test_mount_with_options(self, runner, controller, tmp_path):
        result = runner.invoke(
            cli, ['--mount-path', str(tmp_path), '-o', 'allow_other', '-o', 'ro'], env=CLEAN_ENV
        )

        assert result.exit_code == 0, result.output
        controller.mount.assert_awaited_once_with(['allow_other', 'ro'])
        assert built_config(controller).mount_path == str(tmp_path)

    @patch('fusebridge.config.platform.system', return_value='Linux')
    def test_default_options(self, mock_system, runner, controller, tmp_path):
        result = runner.invoke(cli, ['--mount-path', str(tmp_path)], env=CLEAN_ENV)

        assert result.exit_code == 0, result.output
        controller.mount.assert_awaited_once_with(['default_permissions'])

    @patch('fusebridge.config.platform.system', return_value='Darwin')
    def test_default_options_on_macos(self, mock_system, runner, controller, tmp_path):
        mount_path = tmp_path / 'vol'
        result = runner.invoke(cli, ['--mount-path', str(mount_path)], env=CLEAN_ENV)

        assert result.exit_code == 0, result.output
        controller.mount.assert_awaited_once_with(
            ['default_permissions', 'noappledouble', 'noapplexattr', 'volname=vol']
        )

    def test_mount_path_from_environment(self, runner, controller, tmp_path):
        env = dict(CLEAN_ENV, MOUNT_PATH=str(tmp_path))
        result = runner.invoke(cli, [], env=env)

        assert result.exit_code == 0, result.output
        assert built_config(controller).mount_path == str(tmp_path)

    def test_default_mount_path_created(self, runner, controller):
        with runner.isolated_filesystem():
            result = runner.invoke(cli, [], env=CLEAN_ENV)

            assert result.exit_code == 0, result.output
            assert os.path.isdir('mnt')

    def test_custom_mount_path_not_created(self, runner, controller, tmp_path):
        mount_path = tmp_path / 'missing'
        result = runner.invoke(cli, ['--mount-path', str(mount_path)], env=CLEAN_ENV)

        assert result.exit_code == 0, result.output
        assert not mount_path.exists()

    def test_domain_failure_exit_code(self, runner, controller, tmp_path):
        controller.mount.side_effect = NoSuchFileOrDirectoryError('/')
        result = runner.invoke(cli, ['--mount-path', str(tmp_path)], env=CLEAN_ENV)

        assert result.exit_code == errno.ENOENT

    def test_other_failure_exit_code(self, runner, controller, tmp_path):
        controller.mount.side_effect = MountException("fuse: device not found")
        result = runner.invoke(cli, ['--mount-path', str(tmp_path)], env=CLEAN_ENV)

        assert result.exit_code == 1


class TestOtherModes:
    """--unmount, --status, --capabilities"""

    def test_unmount_only(self, runner, controller, tmp_path):
        result = runner.invoke(cli, ['--mount-path', str(tmp_path), '--unmount'], env=CLEAN_ENV)

        assert result.exit_code == 0, result.output
        controller.unmount.assert_awaited_once_with()
        controller.mount.assert_not_called()

    def test_capabilities_table(self, runner):
        result = runner.invoke(cli, ['--capabilities'], env=CLEAN_ENV)

        assert result.exit_code == 0, result.output
        lines = {line.split('|')[1].strip(): line for line in result.output.splitlines()
                 if line.startswith('|')}
        assert 'yes' in lines['read']
        assert 'no' in lines['readlink']
        assert 'always' in lines['destroy']

    def test_status_not_mounted(self, runner, controller, tmp_path):
        controller.driver.get_mount_info.return_value = {}
        result = runner.invoke(cli, ['--mount-path', str(tmp_path), '--status'], env=CLEAN_ENV)

        assert result.exit_code == 0
        assert 'is not mounted' in result.output

    def test_status_mounted(self, runner, controller, tmp_path):
        controller.driver.get_mount_info.return_value = {
            'device': 'fusebridge', 'mount_point': str(tmp_path),
            'fs_type': 'fuse', 'options': 'rw,nosuid',
        }
        result = runner.invoke(cli, ['--mount-path', str(tmp_path), '--status'], env=CLEAN_ENV)

        assert result.exit_code == 0
        assert 'fs_type' in result.output
        assert 'rw,nosuid' in result.output
        controller.mount.assert_not_called()


class TestLoggingAndConfig:
    """Logging flags and configuration errors"""

    def test_verbose_sets_debug(self, runner, controller, tmp_path):
        result = runner.invoke(cli, ['--mount-path', str(tmp_path), '-v'], env=CLEAN_ENV)

        assert result.exit_code == 0
        assert logging.getLogger('fusebridge').level == logging.DEBUG

    def test_log_level_option(self, runner, controller, tmp_path):
        result = runner.invoke(
            cli, ['--mount-path', str(tmp_path), '--log-level', 'error'], env=CLEAN_ENV
        )

        assert result.exit_code == 0
        assert logging.getLogger('fusebridge').level == logging.ERROR

    def test_invalid_environment(self, runner, controller):
        env = dict(CLEAN_ENV, FUSEBRIDGE_LOG_LEVEL='LOUD')
        result = runner.invoke(cli, [], env=env)

        assert result.exit_code == 1
        assert 'Invalid log_level' in result.output
        controller.build.assert_not_called()

    def test_config_file(self, runner, controller, tmp_path):
        config = tmp_path / 'fusebridge.conf'
        config.write_text("[fusebridge]\nmount_path = %s\nmount_options = ro\n" % tmp_path)
        result = runner.invoke(cli, ['--config', str(config)], env=CLEAN_ENV)

        assert result.exit_code == 0, result.output
        controller.mount.assert_awaited_once_with(['ro'])
