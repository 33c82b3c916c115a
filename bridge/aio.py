"""asyncio integration: watch the channel's read end from an event loop.

The registrar still installs the handler; the loop only replaces the
``selectors`` wait. Do not combine this with ``wakeup_fd=True`` when the
loop itself uses ``loop.add_signal_handler`` (both claim the wakeup fd).
"""

from __future__ import annotations

import asyncio
import inspect
import select
from typing import Any, Awaitable, Callable, Optional, Union

from loguru import logger

from .channel import NotificationChannel
from .dispatcher import DEFAULT_TIMEOUT, Cancellation, is_cancelled
from .exceptions import ConfigurationError

AsyncCallback = Callable[[], Union[Awaitable[Any], Any]]


async def wait_readable(
    channel: NotificationChannel, timeout: Optional[float] = None
) -> bool:
    """Wait until the channel's read end is readable.

    Returns:
        True when readable, False if ``timeout`` elapsed first.
    """
    fd = channel.fileno()
    if fd < 0:
        raise ConfigurationError("Notification channel is not open")
    if timeout is not None and timeout < 0:
        raise ConfigurationError(f"Timeout must be >= 0, got {timeout}")

    # Poll first: with timeout=0, wait_for expires before add_reader fires.
    readable, _, _ = select.select([fd], [], [], 0)
    if readable:
        return True

    loop = asyncio.get_running_loop()
    ready: asyncio.Future = loop.create_future()

    def _on_readable() -> None:
        if not ready.done():
            ready.set_result(True)

    loop.add_reader(fd, _on_readable)
    try:
        await asyncio.wait_for(ready, timeout=timeout)
        return True
    except asyncio.TimeoutError:
        return False
    finally:
        loop.remove_reader(fd)


class AsyncDispatcher:
    """Dispatcher counterpart for code that lives on an asyncio loop."""

    def __init__(
        self,
        channel: NotificationChannel,
        callback: AsyncCallback,
        *,
        timeout: Optional[float] = None,
    ):
        self._channel = channel
        self._callback = callback
        self.timeout = timeout

    async def run_once(self, timeout: Optional[float] = DEFAULT_TIMEOUT) -> bool:
        if timeout is DEFAULT_TIMEOUT:
            timeout = self.timeout

        if not await wait_readable(self._channel, timeout):
            return False
        if not self._channel.drain():
            return False

        with logger.contextualize(source=repr(self._channel)):
            result = self._callback()
            if inspect.isawaitable(result):
                await result
        return True

    async def run_forever(self, cancellation: Cancellation) -> int:
        observed = 0
        while True:
            if await self.run_once():
                observed += 1
            if is_cancelled(cancellation):
                logger.debug(
                    f"Async dispatcher cancelled after {observed} notification(s)"
                )
                return observed
