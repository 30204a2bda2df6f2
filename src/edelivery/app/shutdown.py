"""Process lifecycle coordinator.

Runs registered cleanup callbacks once at process exit (the download
history executor drains there) and turns SIGHUP into a config-reload
flag that the app checks at the start of the next request.

Usage::

    from edelivery.app.shutdown import ShutdownCoordinator

    coordinator = ShutdownCoordinator()
    coordinator.on_shutdown(recorder.shutdown)
    atexit.register(coordinator.initiate)
"""

from __future__ import annotations

import logging
import signal
import threading
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

log = logging.getLogger(__name__)


class ShutdownCoordinator:
    """Ordered shutdown callbacks plus a SIGHUP reload flag."""

    def __init__(self) -> None:
        self._shutdown_flag = threading.Event()
        self._reload_flag = threading.Event()
        self._callbacks: list[Callable[[], None]] = []
        self._lock = threading.Lock()

    @property
    def is_shutting_down(self) -> bool:
        """True once :meth:`initiate` has been called."""
        return self._shutdown_flag.is_set()

    def on_shutdown(self, callback: Callable[[], None]) -> None:
        """Run *callback* during :meth:`initiate` (registration order)."""
        with self._lock:
            self._callbacks.append(callback)

    def initiate(self) -> None:
        """Run every shutdown callback once.

        Safe to call multiple times; only the first call has effect.
        A failing callback is logged and the remaining ones still run.
        """
        if self._shutdown_flag.is_set():
            return
        self._shutdown_flag.set()
        log.info("Shutdown initiated")

        with self._lock:
            callbacks = list(self._callbacks)
        for callback in callbacks:
            try:
                callback()
            except Exception:
                log.exception("Shutdown callback %r failed", callback)

    # -- config reload ----------------------------------------------------------

    @property
    def reload_requested(self) -> bool:
        """True if a SIGHUP was received and reload has not been consumed."""
        return self._reload_flag.is_set()

    def consume_reload(self) -> None:
        """Clear the reload flag after handling it."""
        self._reload_flag.clear()

    def register_reload_signal(self) -> None:
        """Register SIGHUP handler for config hot-reload.

        Must be called from the main thread.  A no-op where SIGHUP is
        unavailable.
        """
        if not hasattr(signal, "SIGHUP"):
            log.debug("SIGHUP not available on this platform")
            return
        try:
            signal.signal(signal.SIGHUP, self._reload_handler)
            log.info("SIGHUP handler registered for config hot-reload")
        except (ValueError, OSError):
            log.debug("Could not register SIGHUP handler (not main thread)")

    def _reload_handler(self, signum: int, frame) -> None:  # noqa: ARG002
        log.info("Received SIGHUP, flagging config reload")
        self._reload_flag.set()
