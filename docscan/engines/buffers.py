"""Scoped ownership of engine-allocated image buffers."""

import logging
import threading

import numpy as np

logger = logging.getLogger(__name__)


class BufferLedger:
    """Counts buffer allocations and releases for one engine."""

    def __init__(self):
        self._lock = threading.Lock()
        self.allocated = 0
        self.released = 0

    @property
    def live(self) -> int:
        return self.allocated - self.released

    def record_allocation(self) -> None:
        with self._lock:
            self.allocated += 1

    def record_release(self, count: int = 1) -> None:
        with self._lock:
            self.released += count


class BufferScope:
    """
    Owns every buffer adopted during one pipeline run.

    Use as a context manager; all adopted buffers are released on exit,
    whether the block finished normally or raised.

        with engine.scope() as scope:
            gray = scope.adopt(engine.to_grayscale(image))
    """

    def __init__(self, ledger: BufferLedger):
        self._ledger = ledger
        self._buffers: dict[int, np.ndarray] = {}
        self._closed = False

    def __enter__(self) -> "BufferScope":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def __len__(self) -> int:
        return len(self._buffers)

    def adopt(self, buffer):
        """Take ownership of a buffer and return it unchanged."""
        if self._closed:
            raise RuntimeError("Cannot adopt a buffer into a released scope")
        if isinstance(buffer, np.ndarray) and id(buffer) not in self._buffers:
            self._buffers[id(buffer)] = buffer
            self._ledger.record_allocation()
        return buffer

    def release(self) -> None:
        if self._closed:
            return
        count = len(self._buffers)
        self._buffers.clear()
        self._ledger.record_release(count)
        self._closed = True
        logger.debug("Released %d buffers", count)
