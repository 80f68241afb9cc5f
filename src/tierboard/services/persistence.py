"""Hydrate / debounce-write / flush lifecycle for persisted in-memory state."""

from __future__ import annotations

import asyncio
import logging
import threading
from enum import Enum
from typing import Any, Callable, Generic, Mapping, TypeVar

from ..board.diff import structurally_equal
from ..utils.debounce import Debouncer
from . import telemetry
from .storage import StorageBackend

__all__ = ["PersistenceSync", "SyncPhase", "merge_with_defaults", "DEFAULT_PERSISTENCE_DELAY"]

LOGGER = logging.getLogger(__name__)

DEFAULT_PERSISTENCE_DELAY = 0.5

T = TypeVar("T")


class SyncPhase(Enum):
    IDLE = "idle"
    HYDRATING = "hydrating"
    HYDRATED = "hydrated"
    CLOSED = "closed"


def merge_with_defaults(defaults: Any, stored: Any) -> Any:
    """Shallow-merge ``stored`` over ``defaults`` when both are mappings."""

    if isinstance(defaults, Mapping) and isinstance(stored, Mapping):
        merged = dict(defaults)
        merged.update(stored)
        return merged
    return stored


def _identity(value: Any) -> Any:
    return value


class PersistenceSync(Generic[T]):
    """Keeps one storage record in step with a piece of in-memory state.

    :meth:`start` hydrates once; afterwards every :meth:`notify` schedules a
    debounced write. Nothing is written before hydration finishes, so defaults
    never clobber a record that has not been loaded yet. :meth:`flush` and
    :meth:`aclose` write any pending state immediately.
    """

    def __init__(
        self,
        storage: StorageBackend,
        key: str,
        *,
        defaults: Any,
        on_hydrate: Callable[[T], None],
        encode: Callable[[T], Any] = _identity,
        decode: Callable[[Any], T] = _identity,
        delay: float = DEFAULT_PERSISTENCE_DELAY,
        on_saved: Callable[[T], None] | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._storage = storage
        self._key = key
        self._defaults = defaults
        self._on_hydrate = on_hydrate
        self._encode = encode
        self._decode = decode
        self._on_saved = on_saved
        self._phase = SyncPhase.IDLE
        self._pending_state: T | None = None
        self._queued_payload: Any = None
        self._queued_state: T | None = None
        self._last_written: Any = None
        self._io_lock = threading.Lock()
        self._write_tasks: set[asyncio.Task[None]] = set()
        self._debouncer = Debouncer(self._on_debounce, delay, loop=loop, name=f"persist:{key}")

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------
    @property
    def key(self) -> str:
        return self._key

    @property
    def phase(self) -> SyncPhase:
        return self._phase

    @property
    def is_hydrated(self) -> bool:
        return self._phase is SyncPhase.HYDRATED

    @property
    def has_pending_write(self) -> bool:
        return self._debouncer.pending or self._queued_payload is not None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def start(self) -> bool:
        """Hydrate from storage. Returns True when a stored record was applied."""

        self._phase = SyncPhase.HYDRATING
        applied = False
        try:
            stored = await asyncio.to_thread(self._storage.read, self._key)
            if stored is not None:
                state = self._decode(merge_with_defaults(self._defaults, stored))
                self._last_written = self._encode(state)
                self._on_hydrate(state)
                applied = True
        except Exception as exc:
            LOGGER.warning("Hydration of %s failed; keeping defaults: %s", self._key, exc)
            telemetry.emit("persistence.hydrate.failed", {"key": self._key, "error": str(exc)})
        finally:
            if self._phase is SyncPhase.HYDRATING:
                self._phase = SyncPhase.HYDRATED
        LOGGER.debug("Hydrated %s (record applied=%s)", self._key, applied)
        return applied

    def notify(self, state: T) -> None:
        """Record a state change; the write happens after the idle delay."""

        if self._phase is not SyncPhase.HYDRATED:
            LOGGER.debug("Ignoring state change for %s during %s", self._key, self._phase.value)
            return
        self._pending_state = state
        self._debouncer.schedule()

    def flush(self) -> bool:
        """Synchronously write pending state. Returns True when a write happened."""

        self._debouncer.cancel()
        if not self._queue_pending():
            return False
        return self._write_queued()

    async def aflush(self) -> bool:
        self._debouncer.cancel()
        if not self._queue_pending():
            return False
        return await asyncio.to_thread(self._write_queued)

    def close(self) -> None:
        if self._phase is SyncPhase.HYDRATED:
            self.flush()
        self._phase = SyncPhase.CLOSED

    async def aclose(self) -> None:
        if self._phase is SyncPhase.HYDRATED:
            if self._write_tasks:
                await asyncio.gather(*self._write_tasks, return_exceptions=True)
            await self.aflush()
        self._phase = SyncPhase.CLOSED

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _on_debounce(self) -> None:
        if not self._queue_pending():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._write_queued()
            return
        task = loop.create_task(self._write_async())
        self._write_tasks.add(task)
        task.add_done_callback(self._write_tasks.discard)

    async def _write_async(self) -> None:
        await asyncio.to_thread(self._write_queued)

    def _queue_pending(self) -> bool:
        state = self._pending_state
        if state is None:
            return self._queued_payload is not None
        self._pending_state = None
        payload = self._encode(state)
        if self._queued_payload is None and structurally_equal(payload, self._last_written):
            return False
        self._queued_payload = payload
        self._queued_state = state
        return True

    def _write_queued(self) -> bool:
        with self._io_lock:
            payload = self._queued_payload
            if payload is None:
                return False
            state = self._queued_state
            try:
                self._storage.write(self._key, payload)
            except Exception as exc:
                # Payload stays queued; the next debounce cycle or flush retries.
                LOGGER.warning("Persisting %s failed: %s", self._key, exc)
                telemetry.emit("board.persist.failed", {"key": self._key, "error": str(exc)})
                return False
            self._last_written = payload
            if self._queued_payload is payload:
                self._queued_payload = None
                self._queued_state = None
        if self._on_saved is not None and state is not None:
            try:
                self._on_saved(state)
            except Exception:
                LOGGER.debug("on_saved callback for %s failed", self._key, exc_info=True)
        return True
