"""Tests for bridge/registrar.py."""

import signal
import threading

import pytest

from bridge.exceptions import ConfigurationError
from bridge.registrar import (
    RegistrarState,
    SignalRegistrar,
    normalize_signals,
    parse_signal,
)


class TestParseSignal:
    @pytest.mark.parametrize(
        "value", ["SIGUSR1", "usr1", " USR1 ", str(int(signal.SIGUSR1)), signal.SIGUSR1]
    )
    def test_accepts_names_and_numbers(self, value):
        assert parse_signal(value) == signal.SIGUSR1

    @pytest.mark.parametrize("value", ["SIGNOPE", "", 0, -1, 100000, 1.5, True])
    def test_rejects_invalid(self, value):
        with pytest.raises(ConfigurationError):
            parse_signal(value)

    def test_normalize_rejects_empty_set(self):
        with pytest.raises(ConfigurationError):
            normalize_signals([])

    @pytest.mark.parametrize("sig", [signal.SIGKILL, signal.SIGSTOP])
    def test_normalize_rejects_uncatchable(self, sig):
        with pytest.raises(ConfigurationError):
            normalize_signals([signal.SIGUSR1, sig])


class TestSignalRegistrar:
    def test_install_replaces_and_restore_reinstates(self, channel):
        def prev(signum, frame):
            pass

        signal.signal(signal.SIGUSR1, prev)
        registrar = SignalRegistrar(channel)

        registrar.install([signal.SIGUSR1, signal.SIGUSR2])
        assert registrar.state is RegistrarState.INSTALLED
        assert registrar.signals == {signal.SIGUSR1, signal.SIGUSR2}
        assert signal.getsignal(signal.SIGUSR1) is not prev
        record = registrar.records[signal.SIGUSR1]
        assert record.previous is prev
        assert signal.getsignal(signal.SIGUSR1) is record.handler

        registrar.restore()
        assert registrar.state is RegistrarState.UNINSTALLED
        assert signal.getsignal(signal.SIGUSR1) is prev
        assert signal.getsignal(signal.SIGUSR2) == signal.SIG_DFL

    def test_restore_twice_is_noop(self, channel):
        signal.signal(signal.SIGUSR1, signal.SIG_IGN)
        registrar = SignalRegistrar(channel)
        registrar.install([signal.SIGUSR1])

        registrar.restore()
        once = signal.getsignal(signal.SIGUSR1)
        registrar.restore()
        assert signal.getsignal(signal.SIGUSR1) == once == signal.SIG_IGN
        assert registrar.state is RegistrarState.UNINSTALLED

    def test_install_twice_raises(self, channel):
        registrar = SignalRegistrar(channel)
        registrar.install([signal.SIGUSR1])
        try:
            with pytest.raises(ConfigurationError):
                registrar.install([signal.SIGUSR2])
            # The first install is untouched.
            assert registrar.signals == {signal.SIGUSR1}
            assert signal.getsignal(signal.SIGUSR2) == signal.SIG_DFL
        finally:
            registrar.restore()

    def test_partial_restore_keeps_installed_state(self, channel):
        registrar = SignalRegistrar(channel)
        registrar.install([signal.SIGUSR1, signal.SIGUSR2])

        registrar.restore([signal.SIGUSR1])
        assert registrar.state is RegistrarState.INSTALLED
        assert registrar.signals == {signal.SIGUSR2}

        registrar.restore([signal.SIGUSR2])
        assert registrar.state is RegistrarState.UNINSTALLED

    def test_handler_body_only_notifies(self, channel):
        registrar = SignalRegistrar(channel)
        registrar.install([signal.SIGUSR1])
        try:
            handler = signal.getsignal(signal.SIGUSR1)
            handler(signal.SIGUSR1, None)
            assert channel.drain() is True
        finally:
            registrar.restore()

    def test_install_rejects_uncatchable_without_side_effects(self, channel):
        registrar = SignalRegistrar(channel)
        with pytest.raises(ConfigurationError):
            registrar.install([signal.SIGUSR1, signal.SIGKILL])
        assert registrar.state is RegistrarState.UNINSTALLED
        assert signal.getsignal(signal.SIGUSR1) == signal.SIG_DFL

    def test_install_rolls_back_on_failure(self, channel, monkeypatch):
        real_signal = signal.signal
        calls = []

        def _flaky(signum, handler):
            calls.append(signum)
            if signum == signal.SIGUSR2 and handler not in (signal.SIG_DFL, signal.SIG_IGN):
                raise OSError(22, "Invalid argument")
            return real_signal(signum, handler)

        monkeypatch.setattr(signal, "signal", _flaky)
        registrar = SignalRegistrar(channel)
        with pytest.raises(ConfigurationError):
            registrar.install([signal.SIGUSR1, signal.SIGUSR2])

        monkeypatch.setattr(signal, "signal", real_signal)
        assert registrar.state is RegistrarState.UNINSTALLED
        assert signal.getsignal(signal.SIGUSR1) == signal.SIG_DFL

    def test_install_from_worker_thread_raises(self, channel):
        registrar = SignalRegistrar(channel)
        errors = []

        def _worker():
            try:
                registrar.install([signal.SIGUSR1])
            except ConfigurationError as e:
                errors.append(e)

        t = threading.Thread(target=_worker)
        t.start()
        t.join()
        assert len(errors) == 1
        assert registrar.state is RegistrarState.UNINSTALLED

    def test_install_requires_open_channel(self):
        from bridge.channel import NotificationChannel

        registrar = SignalRegistrar(NotificationChannel())
        with pytest.raises(ConfigurationError):
            registrar.install([signal.SIGUSR1])

    def test_restart_semantics_requested(self, channel, monkeypatch):
        requested = []
        monkeypatch.setattr(
            signal, "siginterrupt", lambda sig, flag: requested.append((sig, flag))
        )
        registrar = SignalRegistrar(channel, restart=True)
        registrar.install([signal.SIGUSR1])
        registrar.restore()
        assert requested == [(signal.SIGUSR1, False)]

    def test_no_restart_leaves_siginterrupt_alone(self, channel, monkeypatch):
        requested = []
        monkeypatch.setattr(
            signal, "siginterrupt", lambda sig, flag: requested.append((sig, flag))
        )
        registrar = SignalRegistrar(channel, restart=False)
        registrar.install([signal.SIGUSR1])
        registrar.restore()
        assert requested == []

    def test_wakeup_fd_routed_and_restored(self, channel):
        registrar = SignalRegistrar(channel, wakeup_fd=True)
        registrar.install([signal.SIGUSR1])
        try:
            current = signal.set_wakeup_fd(channel.write_fd, warn_on_full_buffer=False)
            assert current == channel.write_fd
        finally:
            registrar.restore()
        current = signal.set_wakeup_fd(-1)
        assert current != channel.write_fd

    def test_failed_restore_keeps_the_record(self, channel, monkeypatch):
        registrar = SignalRegistrar(channel)
        registrar.install([signal.SIGUSR1, signal.SIGUSR2])

        real_signal = signal.signal

        def _flaky(signum, handler):
            if signum == signal.SIGUSR2:
                raise OSError(22, "Invalid argument")
            return real_signal(signum, handler)

        monkeypatch.setattr(signal, "signal", _flaky)
        with pytest.raises(OSError):
            registrar.restore()
        monkeypatch.setattr(signal, "signal", real_signal)

        assert registrar.state is RegistrarState.INSTALLED
        assert registrar.signals == {signal.SIGUSR2}
        assert signal.getsignal(signal.SIGUSR1) == signal.SIG_DFL

        registrar.restore()
        assert registrar.state is RegistrarState.UNINSTALLED
        assert signal.getsignal(signal.SIGUSR2) == signal.SIG_DFL
