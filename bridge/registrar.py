"""Signal registrar: binds a set of signals to the channel's notify().

Signal dispositions are process-wide state. The registrar wraps them in a
two-state machine (UNINSTALLED -> INSTALLED -> UNINSTALLED) and keeps the
previous disposition of every signal so ``restore()`` can put it back.
"""

from __future__ import annotations

import signal
import threading
from dataclasses import dataclass
from enum import Enum
from types import FrameType
from typing import Any, Callable, Dict, FrozenSet, Iterable, Optional, Union

from loguru import logger

from .channel import NotificationChannel
from .exceptions import ConfigurationError

SignalLike = Union[int, str]

UNCATCHABLE: FrozenSet[int] = frozenset(
    int(getattr(signal, name))
    for name in ("SIGKILL", "SIGSTOP")
    if hasattr(signal, name)
)


class RegistrarState(str, Enum):
    UNINSTALLED = "uninstalled"
    INSTALLED = "installed"


@dataclass(frozen=True)
class HandlerRecord:
    """What was installed for one signal, and what it replaced."""

    signum: int
    previous: Any
    handler: Callable[[int, Optional[FrameType]], None]


def parse_signal(value: SignalLike) -> int:
    """Turn ``"INT"``, ``"SIGINT"``, ``"2"`` or ``2`` into a valid signal number."""
    if isinstance(value, str):
        name = value.strip().upper()
        if name.isdigit():
            value = int(name)
        else:
            if not name.startswith("SIG"):
                name = "SIG" + name
            try:
                return int(signal.Signals[name])
            except KeyError:
                raise ConfigurationError(f"Unknown signal name: {value!r}") from None

    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"Invalid signal: {value!r}")
    if value not in signal.valid_signals():
        raise ConfigurationError(f"Invalid signal number: {value}")
    return int(value)


def normalize_signals(signals: Iterable[SignalLike]) -> FrozenSet[int]:
    """Validate a signal set; uncatchable or empty sets are rejected."""
    signal_set = frozenset(parse_signal(s) for s in signals)
    if not signal_set:
        raise ConfigurationError("Signal set is empty")
    reserved = signal_set & UNCATCHABLE
    if reserved:
        raise ConfigurationError(
            f"Signals cannot be caught: {sorted(reserved)}"
        )
    return signal_set


class SignalRegistrar:
    """
    Installs a minimal handler (one ``notify()`` call) for a signal set.

    Args:
        channel: Open channel the handler writes to
        restart: Ask for SA_RESTART so other syscalls are not interrupted
        wakeup_fd: Also point CPython's C-level wakeup fd at the channel.
            CPython writes to that fd for every signal with a Python handler,
            not only the ones installed here.
    """

    def __init__(
        self,
        channel: NotificationChannel,
        *,
        restart: bool = True,
        wakeup_fd: bool = False,
    ):
        self._channel = channel
        self._restart = restart
        self._wakeup_fd = wakeup_fd
        self._records: Dict[int, HandlerRecord] = {}
        self._previous_wakeup_fd: Optional[int] = None
        self._state = RegistrarState.UNINSTALLED

    @property
    def state(self) -> RegistrarState:
        return self._state

    @property
    def signals(self) -> FrozenSet[int]:
        return frozenset(self._records)

    @property
    def records(self) -> Dict[int, HandlerRecord]:
        return dict(self._records)

    def _handle(self, signum: int, frame: Optional[FrameType]) -> None:
        self._channel.notify()

    def install(self, signals: Iterable[SignalLike]) -> None:
        """Install the bridge handler for every signal in ``signals``.

        Either every signal is installed or none is.
        """
        if self._state is RegistrarState.INSTALLED:
            raise ConfigurationError(
                "Signal handlers already installed; call restore() first"
            )
        signal_set = normalize_signals(signals)
        # signal.signal(...) only works in the main thread.
        if threading.current_thread() is not threading.main_thread():
            raise ConfigurationError(
                "Signal handlers can only be installed from the main thread"
            )
        if self._channel.closed:
            raise ConfigurationError("Notification channel is not open")

        handler = self._handle
        installed: Dict[int, HandlerRecord] = {}
        previous_wakeup: Optional[int] = None
        try:
            if self._wakeup_fd:
                previous_wakeup = signal.set_wakeup_fd(
                    self._channel.write_fd, warn_on_full_buffer=False
                )
            for signum in sorted(signal_set):
                previous = signal.signal(signum, handler)
                installed[signum] = HandlerRecord(signum, previous, handler)
                if self._restart and hasattr(signal, "siginterrupt"):
                    signal.siginterrupt(signum, False)
        except (OSError, ValueError, RuntimeError) as e:
            for record in installed.values():
                _reinstate(record)
            if previous_wakeup is not None:
                signal.set_wakeup_fd(previous_wakeup)
            raise ConfigurationError(
                f"Failed to install signal handlers: {e}", raw_error=e
            ) from e

        self._records = installed
        self._previous_wakeup_fd = previous_wakeup
        self._state = RegistrarState.INSTALLED
        logger.info(f"Installed bridge handlers for signals: {sorted(installed)}")

    def restore(self, signals: Optional[Iterable[SignalLike]] = None) -> None:
        """Reinstate the dispositions recorded by install().

        Signals without a record are skipped, so calling this twice is a no-op
        the second time.
        """
        if signals is None:
            targets = list(self._records)
        else:
            targets = [parse_signal(s) for s in signals]

        for signum in targets:
            record = self._records.get(signum)
            if record is None:
                continue
            _reinstate(record)
            del self._records[signum]
            logger.debug(f"Restored previous disposition for signal {signum}")

        if not self._records and self._state is RegistrarState.INSTALLED:
            if self._previous_wakeup_fd is not None:
                signal.set_wakeup_fd(self._previous_wakeup_fd)
                self._previous_wakeup_fd = None
            self._state = RegistrarState.UNINSTALLED
            logger.info("Bridge signal handlers restored")


def _reinstate(record: HandlerRecord) -> None:
    # None means the previous handler was not installed from Python.
    if record.previous is None:
        logger.warning(
            f"Signal {record.signum}: previous handler unknown; resetting to SIG_DFL"
        )
        signal.signal(record.signum, signal.SIG_DFL)
        return
    signal.signal(record.signum, record.previous)
