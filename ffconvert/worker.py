"""Isolated engine worker

Hosts a Gateway on a private event loop in a daemon thread so that engine
work never runs on the caller's loop. The caller talks to the worker only
through submit(), which returns a concurrent.futures.Future.
"""

import asyncio
import logging
import threading
from concurrent.futures import Future
from typing import Any, Callable, Mapping, Optional

from .engine.handle import Loader
from .gateway import Gateway
from .models import EngineVariant

logger = logging.getLogger(__name__)

class EngineWorker:
    """Daemon thread running an event loop that owns one Gateway."""

    def __init__(self, loaders: Optional[Mapping[EngineVariant, Loader]] = None,
                 min_boot_memory_mb: Optional[int] = None):
        self._loaders = loaders
        self._min_boot_memory_mb = min_boot_memory_mb
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._ready = threading.Event()
        self.gateway: Optional[Gateway] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._ready.clear()
        self._thread = threading.Thread(target=self._run, name="ffconvert-worker", daemon=True)
        self._thread.start()
        self._ready.wait()
        logger.debug("Engine worker started")

    def _run(self) -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop
        self.gateway = Gateway(self._loaders, self._min_boot_memory_mb)
        self._ready.set()
        try:
            loop.run_forever()
        finally:
            pending = asyncio.all_tasks(loop)
            for task in pending:
                task.cancel()
            if pending:
                loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
            self.gateway.shutdown()
            loop.run_until_complete(loop.shutdown_asyncgens())
            loop.close()

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        """Schedule ``fn(gateway, *args, **kwargs)`` on the worker loop.

        ``fn`` must return a coroutine, typically an unbound Gateway method.
        """
        if not self.running:
            raise RuntimeError("Engine worker is not running")
        return asyncio.run_coroutine_threadsafe(fn(self.gateway, *args, **kwargs), self._loop)

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        if not self.running:
            return
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout)
        self._thread = None
        logger.debug("Engine worker stopped")
