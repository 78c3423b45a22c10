"""
Operation bridge between the native driver's callback protocol and an
adapter's capability set.

The native driver invokes a handler with the operation's positional parameters
followed by a completion callback ``callback(code, payload=None)``; code 0 is
success. Every handler built here awaits the adapter capability and calls the
completion callback exactly once, either with the result or with the error
code chosen by the uniform error handler.
"""

import asyncio
import logging
import re
from typing import Any, Callable, Dict

from fusebridge.capabilities import (
    CAPABILITIES, CAPABILITIES_BY_NAME, LIFECYCLE_CAPABILITIES, CapabilitySet
)
from fusebridge.exceptions import ErrorCode, FuseError
from fusebridge.utils.logger import get_logger

LOG = get_logger(__name__)

DESTROY_TIMEOUT = 5.0

_ERROR_PREFIX = re.compile(r'^(Error: )+')

Handler = Callable[..., Any]


def error_message(err: BaseException) -> str:
    """Display message for an error, 'undefined' when it has none."""
    return _ERROR_PREFIX.sub('', str(err)) or 'undefined'


class OperationBridge:
    """
    Builds the driver-facing handler set for one controller and adapter.

    Handlers are only built for the primitives the capability set supports,
    plus init and destroy which are always present. The destroy handler arms
    a one-shot watchdog: if the controller still reports the volume mounted
    ``destroy_timeout`` seconds after the first destroy notification, the
    volume is assumed to have been unmounted externally and the controller is
    force-unmounted. A bridge serves one mount cycle: once the controller
    closes it, destroy notifications no longer arm the watchdog.
    """

    def __init__(self, controller, capabilities: CapabilitySet,
                 logger: logging.Logger = None, destroy_timeout: float = DESTROY_TIMEOUT):
        self.controller = controller
        self.capabilities = CapabilitySet.from_adapter(capabilities)
        self.logger = logger or LOG
        self.destroy_timeout = destroy_timeout
        self._destroy_timer = None
        self._watchdog_armed = False
        self._watchdog_task = None
        self._closed = False

    @classmethod
    def create(cls, controller, adapter, logger: logging.Logger = None,
               destroy_timeout: float = DESTROY_TIMEOUT) -> Dict[str, Handler]:
        """Build the handler set in one step, see build()."""
        return cls(controller, adapter, logger, destroy_timeout).build()

    def build(self) -> Dict[str, Handler]:
        """
        Materialize the handler set.

        Returns:
            Dictionary mapping primitive name to an ``async`` handler
        """
        handlers = {}
        for capability in CAPABILITIES:
            if capability.name in LIFECYCLE_CAPABILITIES:
                handlers[capability.name] = getattr(self, capability.name)
            elif capability.name in self.capabilities:
                handlers[capability.name] = self._make_handler(capability.name)
        self.logger.debug(
            "Built %d handlers (%s)", len(handlers), ', '.join(sorted(handlers))
        )
        return handlers

    def _make_handler(self, name: str) -> Handler:
        capability = CAPABILITIES_BY_NAME[name]
        implementation = self.capabilities.get(name)

        async def handler(*args):
            *params, callback = args
            self.logger.debug(capability.message, dict(zip(capability.params, params)))
            try:
                value = await implementation(*params)
            except Exception as e:
                self._error_handler(e, callback)
                return
            if capability.returns_value:
                callback(0, value)
            else:
                callback(0)

        handler.__name__ = name
        handler.__qualname__ = f"{type(self).__name__}.{name}"
        return handler

    async def init(self, callback):
        """Lifecycle start; succeeds immediately unless the adapter defines init."""
        self.logger.info("Initializing filesystem...")
        await self._lifecycle('init', callback)

    async def destroy(self, callback):
        """Lifecycle end; arms the unmount watchdog on the first notification."""
        self.logger.info("Destroying filesystem...")
        if not self._watchdog_armed and not self._closed:
            self._watchdog_armed = True
            loop = asyncio.get_running_loop()
            self._destroy_timer = loop.call_later(self.destroy_timeout, self._on_destroy_timeout)
        await self._lifecycle('destroy', callback)

    async def _lifecycle(self, name: str, callback):
        implementation = self.capabilities.get(name)
        if implementation is None:
            callback(0)
            return
        try:
            await implementation()
        except Exception as e:
            self._error_handler(e, callback)
            return
        callback(0)

    def _on_destroy_timeout(self):
        self._destroy_timer = None
        if self._closed or not self.controller.mounted:
            return
        self.logger.warning("Filesystem destroy timeout, unmounting...")
        self._watchdog_task = asyncio.ensure_future(self._force_unmount())

    async def _force_unmount(self):
        try:
            await self.controller.unmount(force=True)
        except Exception as e:
            self.logger.debug("Forced unmount after destroy timeout failed: %s", error_message(e))

    def cancel_watchdog(self):
        """Cancel a pending destroy watchdog, e.g. after a clean unmount."""
        if self._destroy_timer is not None:
            self._destroy_timer.cancel()
            self._destroy_timer = None

    def close(self):
        """End this bridge's mount cycle; the watchdog is cancelled and never armed again."""
        self._closed = True
        self.cancel_watchdog()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def watchdog_pending(self) -> bool:
        return self._destroy_timer is not None

    def _error_handler(self, err: BaseException, callback):
        message = error_message(err)
        if isinstance(err, FuseError):
            self.logger.warning(message, exc_info=err if self.logger.isEnabledFor(logging.DEBUG) else None)
            code = err.code
        else:
            self.logger.error(
                "Error: unhandled exception during FUSE operation: %s", message, exc_info=err
            )
            code = ErrorCode.EIO
        callback(int(code))


__all__ = ['OperationBridge', 'DESTROY_TIMEOUT', 'LIFECYCLE_CAPABILITIES', 'error_message']
