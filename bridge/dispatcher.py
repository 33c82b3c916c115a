"""Dispatcher: turn channel readiness into one application callback per cycle."""

from __future__ import annotations

from typing import Any, Callable, Dict, Mapping, Optional, Union

from loguru import logger

from .channel import NotificationChannel
from .waiter import EventWaiter, WaitSource

Cancellation = Union[Callable[[], bool], Any]

DEFAULT_TIMEOUT: Any = object()


def is_cancelled(cancellation: Cancellation) -> bool:
    """Accept a threading.Event-like object (is_set) or a zero-arg callable."""
    is_set = getattr(cancellation, "is_set", None)
    if callable(is_set):
        return bool(is_set())
    return bool(cancellation())


class Dispatcher:
    """
    Waits on the channel (plus optional extra sources) and runs the callback.

    The callback runs at most once per wait cycle no matter how many signals
    arrived since the previous drain.
    """

    def __init__(
        self,
        channel: NotificationChannel,
        waiter: EventWaiter,
        callback: Callable[[], Any],
        *,
        sources: Optional[Mapping[WaitSource, Callable[[WaitSource], Any]]] = None,
        timeout: Optional[float] = None,
    ):
        """
        Args:
            channel: Channel the signal handler notifies
            waiter: Multiplexer used for every wait
            callback: Application logic run after a notification is observed
            sources: Extra wait sources and the handler to call when each is ready
            timeout: Default per-wait timeout in seconds (None waits forever)
        """
        self._channel = channel
        self._waiter = waiter
        self._callback = callback
        self._sources: Dict[WaitSource, Callable[[WaitSource], Any]] = dict(
            sources or {}
        )
        self.timeout = timeout

    def run_once(self, timeout: Optional[float] = DEFAULT_TIMEOUT) -> bool:
        """Run one wait -> drain -> callback cycle.

        Returns:
            True if a notification was observed and the callback ran,
            False on timeout or when only extra sources were ready.
        """
        if timeout is DEFAULT_TIMEOUT:
            timeout = self.timeout

        source = self._channel.as_wait_source()
        result = self._waiter.wait([source, *self._sources], timeout)
        if result.timed_out:
            return False

        for ready in result.ready:
            if ready is not source:
                with logger.contextualize(source=repr(ready)):
                    self._sources[ready](ready)

        if not result.is_ready(source):
            return False
        if not self._channel.drain():
            return False

        with logger.contextualize(source=repr(self._channel)):
            self._callback()
        return True

    def run_forever(self, cancellation: Cancellation) -> int:
        """Loop run_once() until ``cancellation`` is observed.

        Cancellation is checked after every wait returns; it never cuts a wait
        short, so pass a bounded timeout when prompt exit matters.

        Returns:
            Number of notifications observed.
        """
        observed = 0
        while True:
            if self.run_once():
                observed += 1
            if is_cancelled(cancellation):
                logger.debug(f"Dispatcher cancelled after {observed} notification(s)")
                return observed
