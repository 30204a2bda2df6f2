"""Unit tests for edelivery.app.shutdown: shutdown callbacks and reload flag."""

from __future__ import annotations

import signal
from unittest.mock import MagicMock, patch

from edelivery.app.shutdown import ShutdownCoordinator


class TestShutdown:
    def test_starts_running(self):
        assert ShutdownCoordinator().is_shutting_down is False

    def test_callbacks_run_in_order(self):
        sc = ShutdownCoordinator()
        calls = []
        sc.on_shutdown(lambda: calls.append("first"))
        sc.on_shutdown(lambda: calls.append("second"))
        sc.initiate()
        assert calls == ["first", "second"]
        assert sc.is_shutting_down is True

    def test_initiate_is_idempotent(self):
        sc = ShutdownCoordinator()
        callback = MagicMock()
        sc.on_shutdown(callback)
        sc.initiate()
        sc.initiate()
        callback.assert_called_once()

    def test_failing_callback_does_not_stop_others(self):
        sc = ShutdownCoordinator()
        after = MagicMock()
        sc.on_shutdown(MagicMock(side_effect=RuntimeError("boom")))
        sc.on_shutdown(after)
        sc.initiate()
        after.assert_called_once()


class TestReload:
    def test_handler_sets_and_consume_clears(self):
        sc = ShutdownCoordinator()
        assert sc.reload_requested is False
        sc._reload_handler(signal.SIGHUP, None)
        assert sc.reload_requested is True
        sc.consume_reload()
        assert sc.reload_requested is False

    def test_register_installs_sighup_handler(self):
        sc = ShutdownCoordinator()
        with patch("edelivery.app.shutdown.signal.signal") as install:
            sc.register_reload_signal()
        install.assert_called_once_with(signal.SIGHUP, sc._reload_handler)

    def test_register_off_main_thread_is_tolerated(self):
        sc = ShutdownCoordinator()
        with patch("edelivery.app.shutdown.signal.signal", side_effect=ValueError("not main")):
            sc.register_reload_signal()
        assert sc.reload_requested is False
