"""
Process interrupt subscription

The mount controller acquires a subscription when a mount succeeds and
releases it on unmount, instead of registering listeners on process-wide
signal state directly.
"""

import asyncio
import signal
from typing import Callable, Optional, Sequence

from fusebridge.utils.logger import get_logger

LOG = get_logger(__name__)


class InterruptSubscription:
    """
    One-shot subscription to process interrupt signals.

    The callback runs at most once, on the event loop. The subscription
    releases itself before invoking the callback so a second signal cannot
    re-enter it.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, signals: Sequence[int],
                 callback: Callable[[], None]):
        self._loop = loop
        self._signals = tuple(signals)
        self._callback = callback
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    def acquire(self):
        if self._active:
            return
        for signum in self._signals:
            self._loop.add_signal_handler(signum, self._fire, signum)
        self._active = True
        LOG.debug("Subscribed to signals %s", ', '.join(signal.Signals(s).name for s in self._signals))

    def release(self):
        if not self._active:
            return
        self._active = False
        for signum in self._signals:
            self._loop.remove_signal_handler(signum)
        LOG.debug("Released signal subscription")

    def _fire(self, signum: int):
        if not self._active:
            return
        self.release()
        LOG.info("Received signal %s", signal.Signals(signum).name)
        self._callback()


class InterruptListener:
    """Factory for interrupt subscriptions on the running event loop."""

    def __init__(self, signals: Optional[Sequence[int]] = None):
        self.signals = tuple(signals) if signals else (signal.SIGINT,)

    def subscribe(self, callback: Callable[[], None]) -> InterruptSubscription:
        """
        Acquire a one-shot subscription.

        Args:
            callback: Called once, without arguments, when a signal arrives

        Returns:
            The active subscription; call release() to drop it
        """
        subscription = InterruptSubscription(asyncio.get_running_loop(), self.signals, callback)
        subscription.acquire()
        return subscription
