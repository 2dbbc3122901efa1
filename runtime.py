"""
runtime.py
Dedicated asyncio event loop on a background thread.

Streamlit reruns the script synchronously; the store and the Supabase async
client live on this loop so their connections and subscriptions survive
between reruns.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from concurrent.futures import Future
from typing import Any, Callable, Coroutine

logger = logging.getLogger(__name__)


class LoopRunner:
    def __init__(self, name: str = "care-desk-loop"):
        self._loop = asyncio.new_event_loop()
        self._closers: list[Callable[[], Coroutine[Any, Any, Any]]] = []
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._thread.start()

    def _run(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()

    @property
    def is_running(self) -> bool:
        return self._thread.is_alive()

    def submit(self, coro: Coroutine[Any, Any, Any]) -> Future:
        return asyncio.run_coroutine_threadsafe(coro, self._loop)

    def run(self, coro: Coroutine[Any, Any, Any], timeout: float | None = None) -> Any:
        """Run a coroutine on the loop and wait for its result."""
        return self.submit(coro).result(timeout)

    def add_closer(self, closer: Callable[[], Coroutine[Any, Any, Any]]) -> None:
        """Register an async teardown (e.g. ``store.close``) to run on the loop before it stops."""
        self._closers.append(closer)

    def stop(self, timeout: float = 5.0) -> None:
        if not self.is_running:
            return
        closers, self._closers = self._closers, []
        for closer in closers:
            try:
                self.run(closer(), timeout=timeout)
            except Exception:
                logger.exception("Teardown %r failed", closer)
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout=timeout)
        if self._thread.is_alive():
            logger.warning("Event loop thread did not stop in %.0fs.", timeout)
        else:
            self._loop.close()
            logger.info("Event loop thread stopped.")
