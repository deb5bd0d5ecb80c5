"""
Background periodic worker used for snapshot autosave and TTL sweeps.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

_LOGGER = logging.getLogger(__name__)


class PeriodicWorker:
    """
    Daemon thread calling ``task`` every ``interval_seconds``.

    Exceptions raised by ``task`` are logged and passed to ``on_error`` so the
    loop keeps running.
    """

    def __init__(
        self,
        *,
        name: str,
        interval_seconds: float,
        task: Callable[[], object],
        on_error: Callable[[Exception], None] | None = None,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("PeriodicWorker.interval_seconds must be > 0.")
        self._name = name
        self._interval = float(interval_seconds)
        self._task = task
        self._on_error = on_error
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def name(self) -> str:
        return self._name

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the worker thread. Does nothing when already running."""
        if self.is_running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name=self._name, daemon=True)
        self._thread.start()
        _LOGGER.debug("Worker started name=%s interval=%s", self._name, self._interval)

    def stop(self, timeout: float = 1.0) -> None:
        """Signal the worker to stop and wait for the thread to exit."""
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=timeout)
            self._thread = None
        _LOGGER.debug("Worker stopped name=%s", self._name)

    def run_once(self) -> None:
        """Run the task one time on the calling thread."""
        try:
            self._task()
        except Exception as exc:  # noqa: BLE001 - keep worker loop alive
            _LOGGER.warning("Worker task failed name=%s error=%s", self._name, exc)
            if self._on_error is not None:
                self._on_error(exc)

    def _loop(self) -> None:
        while not self._stop.wait(timeout=self._interval):
            self.run_once()
