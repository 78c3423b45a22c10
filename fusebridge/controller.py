"""
Mount controller - owns the mount lifecycle of one filesystem

State only changes in the completion paths of the driver's mount and unmount
callbacks (and through the destroy watchdog, which calls unmount):

    UNMOUNTED -> MOUNTING -> MOUNTED -> UNMOUNTING -> UNMOUNTED
"""

import asyncio
import enum
import logging
from typing import List, Optional

from fusebridge.bridge import DESTROY_TIMEOUT, OperationBridge, error_message
from fusebridge.capabilities import CapabilitySet
from fusebridge.drivers.base import BaseFuseDriver
from fusebridge.exceptions import MountException, UnmountException
from fusebridge.interrupts import InterruptListener
from fusebridge.utils.logger import get_logger

LOG = get_logger(__name__)


class MountState(enum.Enum):
    UNMOUNTED = 'unmounted'
    MOUNTING = 'mounting'
    MOUNTED = 'mounted'
    UNMOUNTING = 'unmounting'


class MountHandle:
    """Returned by mount_async(); wait() completes once the volume is unmounted."""

    def __init__(self, mount_point: str, unmounted: asyncio.Future):
        self.mount_point = mount_point
        self._unmounted = unmounted

    @property
    def done(self) -> bool:
        return self._unmounted.done()

    async def wait(self):
        """
        Wait for the unmount that ends this mount cycle.

        Raises:
            UnmountException: if the volume was force-unmounted without the
                driver confirming it
        """
        return await asyncio.shield(self._unmounted)


class MountController:
    """
    Mounts one adapter at one mount point through a native driver.

    Args:
        mount_point: Path where the filesystem is mounted
        adapter: Adapter object or CapabilitySet
        driver: Native driver (default: LibFuseDriver)
        logger: Logger handed to the operation bridge
        interrupts: InterruptListener used while mounted (default: SIGINT)
        handle_interrupts: Force an unmount when an interrupt arrives while
            mounted
        destroy_timeout: Seconds the destroy watchdog waits before forcing
            an unmount
    """

    def __init__(self, mount_point: str, adapter, driver: BaseFuseDriver = None,
                 logger: logging.Logger = None, interrupts: InterruptListener = None,
                 handle_interrupts: bool = True, destroy_timeout: float = DESTROY_TIMEOUT):
        if driver is None:
            from fusebridge.drivers.libfuse import LibFuseDriver
            driver = LibFuseDriver()
        self._mount_point = mount_point
        self.capabilities = CapabilitySet.from_adapter(adapter)
        self.driver = driver
        self.logger = logger or LOG
        self.interrupts = interrupts or InterruptListener()
        self.handle_interrupts = handle_interrupts
        self.destroy_timeout = destroy_timeout

        self._mounted = False
        self._state = MountState.UNMOUNTED
        self._bridge = None
        self._interrupt_subscription = None
        self._unmount_signal = None
        self._unmount_inflight = None
        self._interrupt_task = None

    @property
    def mount_point(self) -> str:
        return self._mount_point

    @property
    def mounted(self) -> bool:
        return self._mounted

    @property
    def state(self) -> MountState:
        return self._state

    async def mount(self, options: Optional[List[str]] = None):
        """
        Mount the filesystem and wait until it is unmounted again.

        Use mount_async() to keep running while the volume is mounted.

        Args:
            options: Mount options passed to the driver

        Raises:
            MountException: if the driver reports a mount failure
            UnmountException: if the volume was later force-unmounted
        """
        handle = await self.mount_async(options)
        return await handle.wait()

    async def mount_async(self, options: Optional[List[str]] = None) -> MountHandle:
        """
        Mount the filesystem and return once the driver confirms the mount.

        Args:
            options: Mount options passed to the driver

        Returns:
            MountHandle whose wait() completes when the volume is unmounted

        Raises:
            MountException: if a mount cycle is already active or the driver
                reports a mount failure
        """
        if self._state is not MountState.UNMOUNTED:
            raise MountException(
                f"{self._mount_point} is {self._state.value}, unmount before mounting again"
            )

        loop = asyncio.get_running_loop()
        mounted = loop.create_future()
        self._state = MountState.MOUNTING
        self._bridge = OperationBridge(
            self, self.capabilities, self.logger, destroy_timeout=self.destroy_timeout
        )
        handlers = self._bridge.build()

        def on_mount(error):
            if mounted.done():
                return
            if error is None:
                self.logger.info("mount success")
                self._mounted = True
                self._state = MountState.MOUNTED
                self._unmount_signal = loop.create_future()
                self._subscribe_interrupts()
                mounted.set_result(self._unmount_signal)
            else:
                message = error_message(error)
                self.logger.error(f"mount error: {message}")
                self._state = MountState.UNMOUNTED
                mounted.set_exception(MountException(message))

        try:
            self.driver.mount(self._mount_point, handlers, list(options or []), on_mount)
        except Exception as e:
            on_mount(e)

        unmount_signal = await mounted
        return MountHandle(self._mount_point, unmount_signal)

    async def unmount(self, force: bool = False):
        """
        Unmount the filesystem.

        Concurrent calls share one driver unmount attempt.

        Args:
            force: On driver failure, still mark the volume unmounted and
                fail the pending MountHandle.wait()

        Raises:
            UnmountException: if the driver reports an unmount failure, also
                when force is set
        """
        if self._unmount_inflight is None:
            self._unmount_inflight = asyncio.ensure_future(self._unmount())
        inflight = self._unmount_inflight
        try:
            await asyncio.shield(inflight)
        except UnmountException:
            if force:
                self._force_teardown()
            raise

    async def _unmount(self):
        loop = asyncio.get_running_loop()
        unmounted = loop.create_future()
        previous_state = self._state
        self._state = MountState.UNMOUNTING

        def on_unmount(error):
            if unmounted.done():
                return
            if error is None:
                self.logger.info("unmount success")
                self._release_interrupts()
                self._close_bridge()
                if self._unmount_signal is not None and not self._unmount_signal.done():
                    self._unmount_signal.set_result(None)
                self._unmount_signal = None
                self._mounted = False
                self._state = MountState.UNMOUNTED
                unmounted.set_result(None)
            else:
                message = error_message(error)
                self.logger.error(f"unmount error: {message}")
                self._state = previous_state
                unmounted.set_exception(UnmountException(message))

        try:
            try:
                self.driver.unmount(self._mount_point, on_unmount)
            except Exception as e:
                on_unmount(e)
            await unmounted
        finally:
            self._unmount_inflight = None

    def _force_teardown(self):
        self.logger.warning(f"forcing unmount state for {self._mount_point}")
        self._release_interrupts()
        self._close_bridge()
        if self._unmount_signal is not None and not self._unmount_signal.done():
            self._unmount_signal.set_exception(
                UnmountException(f"{self._mount_point} was unmounted by force")
            )
        self._unmount_signal = None
        self._mounted = False
        self._state = MountState.UNMOUNTED

    def _close_bridge(self):
        if self._bridge is not None:
            self._bridge.close()

    def _subscribe_interrupts(self):
        if not self.handle_interrupts:
            return
        try:
            self._interrupt_subscription = self.interrupts.subscribe(self._on_interrupt)
        except (NotImplementedError, RuntimeError, ValueError) as e:
            self.logger.warning(f"interrupt handling unavailable: {e}")

    def _release_interrupts(self):
        if self._interrupt_subscription is not None:
            self._interrupt_subscription.release()
            self._interrupt_subscription = None

    def _on_interrupt(self):
        self._release_interrupts()
        self._interrupt_task = asyncio.ensure_future(self._interrupt_unmount())

    async def _interrupt_unmount(self):
        try:
            await self.unmount(force=True)
        except Exception as e:
            self.logger.debug(f"unmount after interrupt failed: {error_message(e)}")
