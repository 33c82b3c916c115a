"""Notification channel: the self-pipe a signal handler writes to.

The handler side only ever calls ``notify()``, which writes one marker byte
to the non-blocking write end and ignores every error. Ordinary code waits
on the read end and calls ``drain()`` to reset it.
"""

from __future__ import annotations

import os
from typing import Optional

from loguru import logger

from .exceptions import ConfigurationError, ResourceExhaustion, UnexpectedClosure

MARKER = b"\x00"

# Bytes pulled per read() while draining.
_DRAIN_CHUNK = 1024


class NotificationChannel:
    """
    Unidirectional, non-blocking byte conduit between handler and application.

    Usage:
        with NotificationChannel() as channel:
            ...
            channel.notify()          # from the signal handler
            if channel.drain():       # from ordinary code
                ...
    """

    def __init__(self) -> None:
        self._read_fd = -1
        self._write_fd = -1

    def open(self) -> "NotificationChannel":
        """Create the pipe and put both ends in non-blocking mode."""
        if not self.closed:
            raise ConfigurationError("Notification channel is already open")

        try:
            read_fd, write_fd = os.pipe()
        except OSError as e:
            raise ResourceExhaustion(
                f"Cannot create notification channel: {e}", raw_error=e
            ) from e

        try:
            os.set_blocking(read_fd, False)
            os.set_blocking(write_fd, False)
        except OSError as e:
            os.close(read_fd)
            os.close(write_fd)
            raise ResourceExhaustion(
                f"Cannot configure notification channel: {e}", raw_error=e
            ) from e

        self._read_fd = read_fd
        self._write_fd = write_fd
        logger.debug(f"Notification channel opened (read={read_fd}, write={write_fd})")
        return self

    def notify(self) -> None:
        """Post one notification. Safe to call from a signal handler.

        A full pipe means a notification is already pending, so the byte is
        dropped. Nothing here may log, allocate a lock or raise.
        """
        fd = self._write_fd
        if fd < 0:
            return
        try:
            os.write(fd, MARKER)
        except OSError:
            pass

    def drain(self) -> bool:
        """Discard every pending byte; return True if at least one was there."""
        fd = self._read_fd
        if fd < 0:
            raise UnexpectedClosure("Notification channel is closed")

        found = False
        while True:
            try:
                chunk = os.read(fd, _DRAIN_CHUNK)
            except BlockingIOError:
                return found
            except OSError as e:
                raise UnexpectedClosure(
                    f"Notification channel read failed: {e}", raw_error=e
                ) from e
            if not chunk:
                raise UnexpectedClosure(
                    "Write end of the notification channel was closed"
                )
            found = True

    def as_wait_source(self) -> "NotificationChannel":
        """Return the object the event waiter should watch (via fileno())."""
        return self

    def fileno(self) -> int:
        return self._read_fd

    @property
    def write_fd(self) -> int:
        return self._write_fd

    @property
    def closed(self) -> bool:
        return self._read_fd < 0 and self._write_fd < 0

    def close(self) -> None:
        """Release both ends. Safe to call more than once."""
        # Invalidate before closing so a late notify() never hits a reused fd.
        write_fd, self._write_fd = self._write_fd, -1
        read_fd, self._read_fd = self._read_fd, -1
        for fd in (write_fd, read_fd):
            if fd >= 0:
                os.close(fd)
        if write_fd >= 0 or read_fd >= 0:
            logger.debug("Notification channel closed")

    def __enter__(self) -> "NotificationChannel":
        if self.closed:
            self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> Optional[bool]:
        self.close()
        return False

    def __repr__(self) -> str:
        state = "closed" if self.closed else f"read={self._read_fd} write={self._write_fd}"
        return f"<NotificationChannel {state}>"
