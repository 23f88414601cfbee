"""Caller-side proxy for the engine worker

ConverterClient exposes the gateway operations as coroutines on the
caller's own event loop. The worker is spawned on first use; close()
discards it together with its engines, and the next call starts over
with a fresh worker.
"""

import asyncio
import logging
from typing import Any, Callable, Mapping, Optional, Tuple, Union

from .engine.handle import Loader
from .gateway import BytesLike, Gateway
from .models import (
    CodecDescriptor, ConversionResult, ConvertOptions, EngineVariant, Metric,
    MuxerDescriptor, OptionDescriptor
)
from .worker import EngineWorker

logger = logging.getLogger(__name__)

class ConverterClient:
    """Async facade over an EngineWorker."""

    def __init__(self, loaders: Optional[Mapping[EngineVariant, Loader]] = None,
                 min_boot_memory_mb: Optional[int] = None):
        self._loaders = loaders
        self._min_boot_memory_mb = min_boot_memory_mb
        self._worker: Optional[EngineWorker] = None

    async def __aenter__(self) -> "ConverterClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        # Joining the worker thread blocks, so keep it off the caller's loop
        await asyncio.get_running_loop().run_in_executor(None, self.close)

    def _ensure_worker(self) -> EngineWorker:
        if self._worker is None or not self._worker.running:
            logger.debug("Spawning engine worker")
            self._worker = EngineWorker(self._loaders, self._min_boot_memory_mb)
            self._worker.start()
        return self._worker

    async def _call(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        future = self._ensure_worker().submit(fn, *args, **kwargs)
        # A caller timeout abandons the call; the worker-side job still finishes
        return await asyncio.shield(asyncio.wrap_future(future))

    async def convert(self, input_bytes: BytesLike, filename: str,
                      options: Union[ConvertOptions, Mapping[str, Any], None] = None) -> Optional[bytes]:
        result = await self.convert_job(input_bytes, filename, options)
        return result.output

    async def convert_job(self, input_bytes: BytesLike, filename: str,
                          options: Union[ConvertOptions, Mapping[str, Any], None] = None) -> ConversionResult:
        if isinstance(input_bytes, (bytearray, memoryview)):
            input_bytes = bytes(input_bytes)
        return await self._call(Gateway.convert_job, input_bytes, filename, options)

    async def list_encoders(self, variant: EngineVariant = EngineVariant.PRIMARY,
                            with_options: bool = False) -> Tuple[CodecDescriptor, ...]:
        return await self._call(Gateway.list_encoders, variant, with_options)

    async def list_codec_options(self, codec_id: int,
                                 variant: EngineVariant = EngineVariant.PRIMARY) -> Tuple[OptionDescriptor, ...]:
        return await self._call(Gateway.list_codec_options, codec_id, variant)

    async def list_muxers(self, variant: EngineVariant = EngineVariant.PRIMARY) -> Tuple[MuxerDescriptor, ...]:
        return await self._call(Gateway.list_muxers, variant)

    async def get_metrics(self) -> Tuple[Metric, ...]:
        return await self._call(Gateway.get_metrics)

    async def get_summary(self) -> dict:
        return await self._call(Gateway.get_summary)

    def close(self) -> None:
        """Stop the worker; the next call spawns a new one."""
        if self._worker is not None:
            self._worker.stop()
            self._worker = None
