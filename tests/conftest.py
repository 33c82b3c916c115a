import os
import signal
import sys

import pytest

# Set mock environment BEFORE any imports that use Settings
os.environ.setdefault("SIGBRIDGE_SIGNALS", "SIGUSR1,SIGUSR2")
os.environ.setdefault("SIGBRIDGE_WAIT_TIMEOUT", "0.2")

# Add project root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from bridge.channel import NotificationChannel

# Signals the suite delivers to itself; their default action kills the process.
TEST_SIGNALS = [signal.SIGUSR1, signal.SIGUSR2, signal.SIGHUP]


@pytest.fixture(autouse=True)
def restore_dispositions():
    """Put every test signal (and the wakeup fd) back the way it was."""
    saved = {sig: signal.getsignal(sig) for sig in TEST_SIGNALS}
    saved_wakeup = signal.set_wakeup_fd(-1)
    signal.set_wakeup_fd(saved_wakeup)
    yield
    signal.set_wakeup_fd(saved_wakeup)
    for sig, handler in saved.items():
        if handler is not None:
            signal.signal(sig, handler)


@pytest.fixture
def channel():
    with NotificationChannel() as ch:
        yield ch


@pytest.fixture
def deliver():
    """Deliver a signal to this process, optionally several times."""

    def _deliver(signum: int, times: int = 1) -> None:
        for _ in range(times):
            os.kill(os.getpid(), signum)

    return _deliver
