"""Command line entry point: mounts the in-memory sample filesystem"""

import asyncio
import os
import sys

import click
from tabulate import tabulate

from fusebridge.adapters import MemoryFileSystemAdapter
from fusebridge.capabilities import CAPABILITIES, LIFECYCLE_CAPABILITIES, CapabilitySet
from fusebridge.config import LOG_LEVELS, FuseBridgeConfig
from fusebridge.controller import MountController
from fusebridge.drivers.libfuse import LibFuseDriver
from fusebridge.exceptions import ConfigurationException, FuseError
from fusebridge.utils.logger import get_logger, setup_logging

LOG = get_logger(__name__)

SAMPLE_FILES = {
    '/hello.txt': b'Hello from fusebridge!\n',
    '/docs/README.md': b'# fusebridge\n\nThis volume lives in memory.\n',
}


def capability_table(capabilities: CapabilitySet) -> str:
    """Render which primitives are exposed to the driver."""
    rows = []
    for capability in CAPABILITIES:
        if capability.name in LIFECYCLE_CAPABILITIES:
            exposed = 'always'
        else:
            exposed = 'yes' if capability.name in capabilities else 'no'
        rows.append([capability.name, ', '.join(capability.params) or '-', exposed])
    return tabulate(rows, headers=['Primitive', 'Parameters', 'Exposed'], tablefmt='grid')


def build_controller(config: FuseBridgeConfig) -> MountController:
    adapter = MemoryFileSystemAdapter(SAMPLE_FILES)
    driver = LibFuseDriver(unmount_timeout=config.unmount_timeout)
    return MountController(
        config.mount_path, adapter, driver=driver, destroy_timeout=config.destroy_timeout
    )


def ensure_mount_path(config: FuseBridgeConfig):
    """Create the mount path if it is the default one and missing."""
    if config.uses_default_mount_path and not os.path.exists(config.mount_path):
        try:
            os.makedirs(config.mount_path)
        except OSError as e:
            LOG.warning(f"Could not create mount path {config.mount_path}: {e}")


@click.command()
@click.option('--mount-path', type=click.Path(file_okay=False),
              help='Mount point (default: $MOUNT_PATH, then config, then ./mnt)')
@click.option('--unmount', 'unmount_only', is_flag=True,
              help='Unmount the volume at the mount path and exit')
@click.option('-o', '--option', 'options', multiple=True,
              help='Mount option, repeatable (e.g. -o allow_other -o volname=demo)')
@click.option('--config', 'config_file', type=click.Path(dir_okay=False),
              help='Configuration file path')
@click.option('--log-level', type=click.Choice(LOG_LEVELS, case_sensitive=False),
              help='Log level')
@click.option('-v', '--verbose', is_flag=True, help='Shortcut for --log-level DEBUG')
@click.option('--log-json', is_flag=True, help='Log JSON records')
@click.option('--capabilities', 'show_capabilities', is_flag=True,
              help='Show the primitives the sample filesystem exposes and exit')
@click.option('--status', 'show_status', is_flag=True,
              help='Show whether the mount path is mounted and exit')
def cli(mount_path, unmount_only, options, config_file, log_level, verbose, log_json,
        show_capabilities, show_status):
    """Mount an in-memory sample filesystem through FUSE"""
    try:
        config = FuseBridgeConfig.from_file(config_file)
        if mount_path:
            config.mount_path = mount_path
        if options:
            config.mount_options = list(options)
        if log_level:
            config.log_level = log_level.upper()
        if verbose:
            config.log_level = 'DEBUG'
        if log_json:
            config.log_json = True
        config.validate()
    except ConfigurationException as e:
        click.secho(f"Error loading configuration: {e}", fg='red', err=True)
        sys.exit(1)

    setup_logging(config.log_level, config.log_format, json_format=config.log_json)
    controller = build_controller(config)

    if show_capabilities:
        click.echo(capability_table(controller.capabilities))
        return

    if show_status:
        info = controller.driver.get_mount_info(os.path.abspath(config.mount_path))
        if not info:
            click.echo(f"{config.mount_path} is not mounted")
            return
        click.echo(tabulate([list(info.values())], headers=list(info), tablefmt='grid'))
        return

    if unmount_only:
        coroutine = controller.unmount()
    else:
        ensure_mount_path(config)
        coroutine = controller.mount(config.get_mount_options())

    try:
        asyncio.run(coroutine)
    except FuseError as e:
        LOG.error(f"Exiting with {e.code.name}: {e}")
        sys.exit(int(e.code))
    except Exception as e:
        LOG.error(f"Exiting after failure: {e}")
        sys.exit(1)


def main():
    """Main entry point"""
    cli()


if __name__ == '__main__':
    main()
