"""Event waiter: block until a wait source is readable or time runs out."""

from __future__ import annotations

import selectors
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

from loguru import logger

from .exceptions import ConfigurationError, ResourceExhaustion

# Anything selectors accept: an int fd or an object with fileno().
WaitSource = Any


@dataclass(frozen=True)
class WaitResult:
    """Outcome of one wait: the ready sources, or none when timed out."""

    ready: Tuple[WaitSource, ...] = ()

    @property
    def timed_out(self) -> bool:
        return not self.ready

    def is_ready(self, source: WaitSource) -> bool:
        return any(s is source for s in self.ready)


TIMED_OUT = WaitResult()


def _fileno(source: WaitSource) -> int:
    if isinstance(source, int) and not isinstance(source, bool):
        fd = source
    else:
        try:
            fd = int(source.fileno())
        except (AttributeError, TypeError, ValueError, OSError) as e:
            raise ConfigurationError(
                f"Invalid wait source: {source!r}", raw_error=e
            ) from e
    if fd < 0:
        raise ConfigurationError(f"Invalid file descriptor for {source!r}: {fd}")
    return fd


class EventWaiter:
    """
    Readiness multiplexer around one ``selectors`` selector.

    The selector is created once and re-registered with the sources passed
    to each ``wait()`` call.
    """

    def __init__(
        self,
        selector_factory: Callable[[], selectors.BaseSelector] = selectors.DefaultSelector,
    ):
        try:
            self._selector: Optional[selectors.BaseSelector] = selector_factory()
        except OSError as e:
            raise ResourceExhaustion(
                f"Cannot create readiness multiplexer: {e}", raw_error=e
            ) from e

    @property
    def closed(self) -> bool:
        return self._selector is None

    def _sync(self, sources: Iterable[WaitSource]) -> None:
        assert self._selector is not None
        wanted: Dict[int, WaitSource] = {}
        for source in sources:
            fd = _fileno(source)
            if fd in wanted:
                raise ConfigurationError(f"Duplicate wait source for fd {fd}")
            wanted[fd] = source
        if not wanted:
            raise ConfigurationError("Wait source set is empty")

        # A matching fd number may name a different open file by now (closed
        # and reused), and the kernel drops closed fds from the poll set.
        # Register from scratch on every call.
        for key in list(self._selector.get_map().values()):
            self._selector.unregister(key.fd)

        for source in wanted.values():
            try:
                self._selector.register(source, selectors.EVENT_READ)
            except (ValueError, KeyError, OSError) as e:
                raise ConfigurationError(
                    f"Cannot wait on {source!r}: {e}", raw_error=e
                ) from e

    def wait(
        self, sources: Iterable[WaitSource], timeout: Optional[float] = None
    ) -> WaitResult:
        """Wait until at least one source is readable or ``timeout`` elapses.

        Interrupted or early returns from select() are retried with the
        remaining time; they are never reported as readiness.
        """
        if self._selector is None:
            raise ConfigurationError("Event waiter is closed")
        if timeout is not None and timeout < 0:
            raise ConfigurationError(f"Timeout must be >= 0, got {timeout}")

        self._sync(sources)

        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            remaining = None
            if deadline is not None:
                remaining = max(0.0, deadline - time.monotonic())
            try:
                events = self._selector.select(remaining)
            except InterruptedError:
                continue
            if events:
                return WaitResult(tuple(key.fileobj for key, _ in events))
            if deadline is not None and time.monotonic() >= deadline:
                return TIMED_OUT
            logger.trace("Spurious wakeup from select(); waiting again")

    def close(self) -> None:
        if self._selector is not None:
            self._selector.close()
            self._selector = None

    def __enter__(self) -> "EventWaiter":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.close()
        return False
