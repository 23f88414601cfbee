"""Engine lifecycle management

Responsibilities:
- Boot each engine variant lazily, at most once per handle
- Share one in-flight boot between concurrent acquirers
- Keep a failed variant failed until the handle is discarded
- Pin every engine instance to its own single thread
"""

import asyncio
import functools
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, Mapping, Optional

import psutil

from ..config import MIN_BOOT_MEMORY_MB
from ..exceptions import InitializationError
from ..models import EngineState, EngineVariant
from .base import NativeEngine
from .ffmpeg import load_ffmpeg_engine

logger = logging.getLogger(__name__)

Loader = Callable[[EngineVariant], NativeEngine]

DEFAULT_LOADERS: Dict[EngineVariant, Loader] = {
    EngineVariant.PRIMARY: load_ffmpeg_engine,
    EngineVariant.FALLBACK: load_ffmpeg_engine,
}

class EngineInstance:
    """One booted engine together with its lock and its thread.

    Attributes:
        variant: Engine variant this instance runs
        engine: The native engine
        state: READY until the engine aborts, FAILED afterwards
        lock: Serializes whole jobs against this instance
        workdir_ready: Whether the private working directory is set up
    """
    def __init__(self, variant: EngineVariant, engine: NativeEngine, thread: ThreadPoolExecutor):
        self.variant = variant
        self.engine = engine
        self.state = EngineState.READY
        self.lock = asyncio.Lock()
        self.workdir_ready = False
        self.failure: Optional[BaseException] = None
        self._thread = thread

    async def call(self, fn: Callable[..., Any], *args: Any) -> Any:
        """Run ``fn`` on the engine thread without blocking the event loop."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._thread, functools.partial(fn, *args))

    def mark_failed(self, error: BaseException) -> None:
        logger.critical("%s engine aborted: %s", self.variant.value, error)
        self.state = EngineState.FAILED
        self.failure = error

    def shutdown(self) -> None:
        # Runs after any job already queued on the engine thread
        self._thread.submit(self.engine.close)
        self._thread.shutdown(wait=False)

class EngineHandle:
    """Owns the engine instances of one gateway."""

    def __init__(self, loaders: Optional[Mapping[EngineVariant, Loader]] = None,
                 min_boot_memory_mb: int = MIN_BOOT_MEMORY_MB):
        self._loaders = dict(DEFAULT_LOADERS)
        if loaders:
            self._loaders.update(loaders)
        self.min_boot_memory_mb = min_boot_memory_mb
        self._boots: Dict[EngineVariant, asyncio.Future] = {}
        self._instances: Dict[EngineVariant, EngineInstance] = {}
        self._failures: Dict[EngineVariant, BaseException] = {}

    def state(self, variant: EngineVariant) -> EngineState:
        if variant in self._failures:
            return EngineState.FAILED
        if variant in self._instances:
            return self._instances[variant].state
        if variant in self._boots:
            return EngineState.INITIALIZING
        return EngineState.UNINITIALIZED

    async def acquire(self, variant: EngineVariant) -> EngineInstance:
        """Return the READY instance for ``variant``, booting it on first use.

        Raises:
            InitializationError: If the variant failed to boot or aborted
        """
        self._raise_if_failed(variant)
        boot = self._boots.get(variant)
        if boot is None:
            boot = asyncio.ensure_future(self._boot(variant))
            self._boots[variant] = boot
        try:
            instance = await asyncio.shield(boot)
        except InitializationError:
            self._raise_if_failed(variant)
            raise
        if instance.state is EngineState.FAILED:
            self._failures[variant] = instance.failure
            self._raise_if_failed(variant)
        return instance

    def _raise_if_failed(self, variant: EngineVariant) -> None:
        failure = self._failures.get(variant)
        if failure is not None:
            raise InitializationError(
                f"{variant.value} engine is unavailable until restart: {failure}",
                module="handle",
                variant=variant
            ) from failure

    def _check_memory(self, variant: EngineVariant) -> None:
        available_mb = psutil.virtual_memory().available / (1024 * 1024)
        if available_mb < self.min_boot_memory_mb:
            raise InitializationError(
                f"Only {available_mb:.0f} MB available, {self.min_boot_memory_mb} MB required",
                module="handle",
                variant=variant
            )

    async def _boot(self, variant: EngineVariant) -> EngineInstance:
        logger.info("Booting %s engine", variant.value)
        thread = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"ffconvert-{variant.value}")
        loop = asyncio.get_running_loop()
        try:
            self._check_memory(variant)
            engine = await loop.run_in_executor(thread, self._loaders[variant], variant)
        except Exception as e:
            thread.shutdown(wait=False)
            self._failures[variant] = e
            logger.error("Failed to boot %s engine: %s", variant.value, e)
            if isinstance(e, InitializationError):
                raise
            raise InitializationError(str(e), module="handle", variant=variant) from e
        instance = EngineInstance(variant, engine, thread)
        self._instances[variant] = instance
        return instance

    def shutdown(self) -> None:
        for instance in self._instances.values():
            instance.shutdown()
