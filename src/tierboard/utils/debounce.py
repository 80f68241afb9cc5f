"""Timer-backed debouncing on top of the asyncio event loop."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

__all__ = ["Debouncer"]

LOGGER = logging.getLogger(__name__)


class Debouncer:
    """Runs ``callback`` once ``delay`` seconds after the last :meth:`schedule`.

    Every call to :meth:`schedule` resets the timer. :meth:`flush` runs a pending
    callback immediately; :meth:`cancel` drops it.
    """

    def __init__(
        self,
        callback: Callable[[], None],
        delay: float,
        *,
        loop: asyncio.AbstractEventLoop | None = None,
        name: str | None = None,
    ) -> None:
        self._callback = callback
        self._delay = max(0.0, float(delay))
        self._loop = loop
        self._name = name or getattr(callback, "__qualname__", "debouncer")
        self._handle: asyncio.TimerHandle | None = None

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def schedule(self) -> None:
        self._cancel_handle()
        loop = self._resolve_loop()
        if loop is None:
            # No loop to defer on; behave like an immediate flush.
            self._run()
            return
        self._handle = loop.call_later(self._delay, self._run)

    def flush(self) -> bool:
        """Run the pending callback now. Returns False when nothing was pending."""

        if self._handle is None:
            return False
        self._cancel_handle()
        self._run()
        return True

    def cancel(self) -> bool:
        if self._handle is None:
            return False
        self._cancel_handle()
        return True

    def _run(self) -> None:
        self._handle = None
        try:
            self._callback()
        except Exception:
            LOGGER.exception("Debounced callback %s failed", self._name)

    def _cancel_handle(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _resolve_loop(self) -> asyncio.AbstractEventLoop | None:
        try:
            return asyncio.get_running_loop()
        except RuntimeError:
            pass
        if self._loop is not None and not self._loop.is_closed():
            return self._loop
        return None
