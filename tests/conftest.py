"""
Shared fixtures: an in-process driver and interrupt source, so the mount
lifecycle can be exercised without libfuse.
"""

import asyncio
import logging

import pytest

from fusebridge.drivers.base import BaseFuseDriver


class FakeDriver(BaseFuseDriver):
    """
    Records the handler set and answers mount/unmount requests.

    With auto_mount/auto_unmount set, the callback is scheduled on the loop
    with mount_error/unmount_error. Otherwise the callback is kept in
    pending_mount/pending_unmount for the test to invoke.
    """

    def __init__(self, auto_mount=True, auto_unmount=True):
        self.auto_mount = auto_mount
        self.auto_unmount = auto_unmount
        self.mount_error = None
        self.unmount_error = None
        self.handlers = None
        self.mount_calls = []
        self.unmount_calls = []
        self.pending_mount = None
        self.pending_unmount = []

    def mount(self, mount_point, handlers, options, callback):
        self.mount_calls.append((mount_point, list(options)))
        self.handlers = handlers
        if self.auto_mount:
            asyncio.get_running_loop().call_soon(callback, self.mount_error)
        else:
            self.pending_mount = callback

    def unmount(self, mount_point, callback):
        self.unmount_calls.append(mount_point)
        if self.auto_unmount:
            asyncio.get_running_loop().call_soon(callback, self.unmount_error)
        else:
            self.pending_unmount.append(callback)


class FakeSubscription:
    def __init__(self, callback):
        self.callback = callback
        self.active = True

    def release(self):
        self.active = False


class FakeInterrupts:
    """Stands in for InterruptListener; fire() simulates Ctrl-C."""

    def __init__(self):
        self.subscriptions = []

    def subscribe(self, callback):
        subscription = FakeSubscription(callback)
        self.subscriptions.append(subscription)
        return subscription

    @property
    def active(self):
        return [s for s in self.subscriptions if s.active]

    def fire(self):
        for subscription in self.active:
            subscription.release()
            subscription.callback()


class StubController:
    """Minimal controller for bridge tests."""

    def __init__(self, mounted=True):
        self.mounted = mounted
        self.unmount_calls = []

    async def unmount(self, force=False):
        self.unmount_calls.append(force)
        self.mounted = False


async def invoke(handler, *params):
    """Run a bridge handler and return the list of completion callback calls."""
    calls = []
    await handler(*params, lambda *args: calls.append(args))
    return calls


@pytest.fixture(autouse=True)
def restore_logging():
    """setup_logging() detaches the fusebridge logger from the root; undo it."""
    logger = logging.getLogger('fusebridge')
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate


@pytest.fixture
def driver():
    return FakeDriver()


@pytest.fixture
def interrupts():
    return FakeInterrupts()


@pytest.fixture
def stub_controller():
    return StubController()
