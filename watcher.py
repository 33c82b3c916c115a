"""
Signal Watcher - Entry Point

Watches the configured signals through a SignalBridge and logs every observed
notification. Exits once a wait times out without signals (or after
SIGBRIDGE_MAX_NOTIFICATIONS notifications).
Run with: python watcher.py
"""

import os
import sys

from loguru import logger

from bridge import BridgeError, SignalBridge
from config.logging_config import configure_logging
from config.settings import Settings, get_settings


def run(settings: Settings) -> int:
    """Watch signals until timeout or the notification limit. Returns exit status."""
    signals = settings.signal_set()
    observed = {"n": 0}

    def _on_signal() -> None:
        observed["n"] += 1
        logger.info(f"Received signal (notification #{observed['n']})")

    def _done() -> bool:
        limit = settings.max_notifications
        return bool(limit) and observed["n"] >= limit

    with logger.contextualize(signals=sorted(signals)):
        try:
            with SignalBridge(
                signals,
                _on_signal,
                restart=settings.restart_syscalls,
                wakeup_fd=settings.use_wakeup_fd,
                timeout=settings.wait_timeout,
            ) as bridge:
                logger.info(f"Watching signals {sorted(signals)} in pid {os.getpid()}")
                while not _done():
                    if bridge.run_once():
                        continue
                    logger.info("Wait timed out without any signals")
                    if settings.exit_on_timeout:
                        break
        except BridgeError as e:
            logger.error(f"Signal bridge failed: {e.to_dict()}")
            return 1

    logger.info(f"Watcher finished after {observed['n']} notification(s)")
    return 0


def main() -> int:
    settings = get_settings()
    configure_logging(settings.log_file, level=settings.log_level, console=True)
    return run(settings)


if __name__ == "__main__":
    sys.exit(main())
