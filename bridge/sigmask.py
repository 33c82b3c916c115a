"""Masked signal delivery (the signalfd approach).

Instead of running a handler, the signals are blocked for the calling thread
and consumed synchronously, which also reports *which* signal arrived.

Blocked signals stay blocked in child processes: a child started inside
``blocked_signals()`` inherits the mask but none of the waiting code, so it
can neither handle nor be killed by those signals until it unblocks them.
Resetting the mask before exec is up to the caller.
"""

from __future__ import annotations

import signal
from contextlib import contextmanager
from typing import FrozenSet, Iterable, Iterator, List, Optional, Set

from loguru import logger

from .exceptions import ConfigurationError
from .registrar import SignalLike, normalize_signals

HAS_SIGMASK = hasattr(signal, "pthread_sigmask")
HAS_SIGTIMEDWAIT = hasattr(signal, "sigtimedwait")


@contextmanager
def blocked_signals(signals: Iterable[SignalLike]) -> Iterator[Set[int]]:
    """Block ``signals`` for the calling thread; restore the old mask on exit.

    Yields the mask that was in effect before.
    """
    if not HAS_SIGMASK:
        raise ConfigurationError("Signal masks are not supported on this platform")
    signal_set = normalize_signals(signals)
    original = signal.pthread_sigmask(signal.SIG_BLOCK, signal_set)
    try:
        yield set(original)
    finally:
        signal.pthread_sigmask(signal.SIG_SETMASK, original)


class MaskedSignalWaiter:
    """Consumes blocked signals synchronously with their siginfo.

    The signals must already be blocked (see ``blocked_signals``) in every
    thread, otherwise the kernel may deliver them normally elsewhere.
    """

    def __init__(self, signals: Iterable[SignalLike]):
        if not HAS_SIGTIMEDWAIT:
            raise ConfigurationError(
                "sigtimedwait() is not supported on this platform"
            )
        self._signals = normalize_signals(signals)

    @property
    def signals(self) -> FrozenSet[int]:
        return self._signals

    def wait(self, timeout: Optional[float] = None) -> Optional[signal.struct_siginfo]:
        """Take one pending signal, waiting up to ``timeout`` seconds.

        Returns None on timeout.
        """
        if timeout is None:
            return signal.sigwaitinfo(self._signals)
        if timeout < 0:
            raise ConfigurationError(f"Timeout must be >= 0, got {timeout}")
        return signal.sigtimedwait(self._signals, timeout)

    def pending(self) -> FrozenSet[int]:
        return frozenset(int(s) for s in signal.sigpending()) & self._signals

    def drain(self) -> List[signal.struct_siginfo]:
        """Consume every pending signal without blocking."""
        infos = []
        while True:
            info = signal.sigtimedwait(self._signals, 0)
            if info is None:
                break
            infos.append(info)
        if infos:
            logger.debug(
                f"Drained masked signals: {[info.si_signo for info in infos]}"
            )
        return infos
