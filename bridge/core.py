"""SignalBridge: channel + registrar + waiter + dispatcher behind one object.

Usage:
    def on_signal():
        ...

    with SignalBridge([signal.SIGINT, signal.SIGTERM], on_signal, timeout=1.0) as bridge:
        bridge.run_forever(stop_event)
"""

from __future__ import annotations

from contextlib import ExitStack
from typing import Any, Callable, FrozenSet, Iterable, Optional

from loguru import logger

from .channel import NotificationChannel
from .dispatcher import Cancellation, Dispatcher, DEFAULT_TIMEOUT
from .exceptions import ConfigurationError
from .registrar import SignalLike, SignalRegistrar, normalize_signals
from .waiter import EventWaiter, WaitResult


def _noop() -> None:
    return None


class SignalBridge:
    """Moves signal delivery into ordinary code through a self-pipe."""

    def __init__(
        self,
        signals: Iterable[SignalLike],
        callback: Optional[Callable[[], Any]] = None,
        *,
        restart: bool = True,
        wakeup_fd: bool = False,
        timeout: Optional[float] = None,
    ):
        self._signals = normalize_signals(signals)
        self._callback = callback or _noop
        self._restart = restart
        self._wakeup_fd = wakeup_fd
        self._timeout = timeout

        self._channel: Optional[NotificationChannel] = None
        self._waiter: Optional[EventWaiter] = None
        self._registrar: Optional[SignalRegistrar] = None
        self._dispatcher: Optional[Dispatcher] = None
        self._resources: Optional[ExitStack] = None

    @property
    def signals(self) -> FrozenSet[int]:
        return self._signals

    @property
    def is_active(self) -> bool:
        return self._resources is not None

    @property
    def channel(self) -> NotificationChannel:
        if self._channel is None:
            raise ConfigurationError("Signal bridge is not set up")
        return self._channel

    def setup(self) -> "SignalBridge":
        """Acquire every resource, or none of them."""
        if self.is_active:
            raise ConfigurationError("Signal bridge is already set up")

        with ExitStack() as stack:
            channel = stack.enter_context(NotificationChannel())
            waiter = stack.enter_context(EventWaiter())
            registrar = SignalRegistrar(
                channel, restart=self._restart, wakeup_fd=self._wakeup_fd
            )
            registrar.install(self._signals)
            # Unwinds in reverse: handlers go first, then waiter, then channel.
            stack.callback(registrar.restore)

            self._channel = channel
            self._waiter = waiter
            self._registrar = registrar
            self._dispatcher = Dispatcher(
                channel, waiter, self._callback, timeout=self._timeout
            )
            self._resources = stack.pop_all()

        logger.info(f"Signal bridge active for signals {sorted(self._signals)}")
        return self

    def teardown(self) -> None:
        """Restore handlers, then release the waiter and the channel."""
        resources, self._resources = self._resources, None
        if resources is None:
            return
        try:
            resources.close()
        finally:
            self._dispatcher = None
            self._registrar = None
            self._waiter = None
            self._channel = None
            logger.info("Signal bridge torn down")

    def _require_dispatcher(self) -> Dispatcher:
        if self._dispatcher is None:
            raise ConfigurationError("Signal bridge is not set up")
        return self._dispatcher

    def notify(self) -> None:
        self.channel.notify()

    def drain(self) -> bool:
        return self.channel.drain()

    def wait(self, timeout: Optional[float] = DEFAULT_TIMEOUT) -> WaitResult:
        self._require_dispatcher()
        if timeout is DEFAULT_TIMEOUT:
            timeout = self._timeout
        assert self._waiter is not None
        return self._waiter.wait([self.channel.as_wait_source()], timeout)

    def run_once(self, timeout: Optional[float] = DEFAULT_TIMEOUT) -> bool:
        return self._require_dispatcher().run_once(timeout)

    def run_forever(self, cancellation: Cancellation) -> int:
        return self._require_dispatcher().run_forever(cancellation)

    def __enter__(self) -> "SignalBridge":
        return self.setup()

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.teardown()
        return False

    def __repr__(self) -> str:
        state = "active" if self.is_active else "inactive"
        return f"<SignalBridge signals={sorted(self._signals)} {state}>"
