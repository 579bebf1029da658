"""Asynchronous readiness handle for a vision engine."""

import asyncio
import logging
from typing import Callable, Optional

from docscan.config import ENGINE_READY_TIMEOUT
from docscan.engines.base import VisionEngine
from docscan.errors import EngineUnavailable

logger = logging.getLogger(__name__)

EngineFactory = Callable[[], VisionEngine]


class EngineHandle:
    """
    Explicit handle to a vision engine that may still be initializing.

    The pipeline never touches an engine directly; it awaits ``wait_ready()``
    first. Initialization runs ``factory`` on a worker thread. A handle built
    with ``factory=None`` is signalled from outside through ``mark_ready()``.

    Usage:
        handle = EngineHandle(OpenCVEngine)
        handle.start()
        engine = await handle.wait_ready(timeout=30)
    """

    def __init__(
        self,
        factory: Optional[EngineFactory] = None,
        timeout: float = ENGINE_READY_TIMEOUT,
    ):
        self._factory = factory
        self.timeout = timeout
        self._engine: Optional[VisionEngine] = None
        self._waiter: Optional[asyncio.Future] = None

    @classmethod
    def ready(cls, engine: VisionEngine) -> "EngineHandle":
        """Build a handle around an engine that is already usable."""
        handle = cls()
        handle._engine = engine
        return handle

    @property
    def is_ready(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> VisionEngine:
        if self._engine is None:
            raise EngineUnavailable("Vision engine is not ready")
        return self._engine

    def start(self) -> asyncio.Future:
        """
        Begin initialization if it is not already under way.

        Must be called from a running event loop. A failed initialization is
        retried on the next call.
        """
        loop = asyncio.get_running_loop()
        if self._waiter is None or self._waiter.get_loop() is not loop or self._has_failed():
            self._waiter = loop.create_future()
            if self._engine is not None:
                self._waiter.set_result(self._engine)
            elif self._factory is not None:
                logger.info("Initializing vision engine")
                init = loop.run_in_executor(None, self._factory)
                init.add_done_callback(self._on_initialized)
        return self._waiter

    def mark_ready(self, engine: VisionEngine) -> None:
        """Signal that ``engine`` finished initializing."""
        self._engine = engine
        logger.info("Vision engine ready: %s", engine.name)
        if self._waiter is not None and not self._waiter.done():
            self._waiter.set_result(engine)

    def mark_failed(self, exc: BaseException) -> None:
        """Signal that initialization failed."""
        logger.error("Vision engine failed to initialize: %s", exc)
        if self._waiter is not None and not self._waiter.done():
            error = EngineUnavailable(f"Vision engine failed to initialize: {exc}")
            error.__cause__ = exc
            self._waiter.set_exception(error)

    async def wait_ready(self, timeout: Optional[float] = None) -> VisionEngine:
        """
        Suspend until the engine is ready.

        Raises:
            EngineUnavailable: If initialization failed or did not finish
                within ``timeout`` seconds.
        """
        if self._engine is not None:
            return self._engine

        timeout = self.timeout if timeout is None else timeout
        waiter = self.start()
        try:
            return await asyncio.wait_for(asyncio.shield(waiter), timeout)
        except asyncio.TimeoutError:
            logger.warning("Vision engine not ready after %.1fs", timeout)
            raise EngineUnavailable(
                f"Vision engine not ready after {timeout:g}s"
            ) from None

    def _on_initialized(self, init: asyncio.Future) -> None:
        if init.cancelled():
            self.mark_failed(RuntimeError("initialization cancelled"))
            return
        exc = init.exception()
        if exc is not None:
            self.mark_failed(exc)
        else:
            self.mark_ready(init.result())

    def _has_failed(self) -> bool:
        waiter = self._waiter
        return (
            waiter is not None
            and waiter.done()
            and not waiter.cancelled()
            and waiter.exception() is not None
        )
