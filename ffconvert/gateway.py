"""Boundary gateway

The only surface exposed across the isolation boundary. Every operation
is an independent coroutine taking and returning value types: request
bytes are copied on entry and listings are decoded into frozen
descriptors on the engine thread before they are returned.
"""

import logging
from dataclasses import replace
from typing import Any, Callable, Mapping, Optional, Sequence, Tuple, Union

from .capabilities import decode_encoders, decode_muxers, decode_options
from .engine.base import NativeEngine
from .engine.handle import EngineHandle, EngineInstance, Loader
from .exceptions import BoundaryError, EngineAbortedError, ListingError
from .executor import ConversionExecutor
from .metrics import MetricsLedger
from .models import (
    CodecDescriptor, ConversionRequest, ConversionResult, ConvertOptions,
    EngineVariant, Metric, MuxerDescriptor, OptionDescriptor
)

logger = logging.getLogger(__name__)

BytesLike = Union[bytes, bytearray, memoryview]

def _require_text(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value:
        raise BoundaryError(f"{field_name} must be a non-empty string")
    return value

def _coerce_variant(value: Any) -> EngineVariant:
    if isinstance(value, EngineVariant):
        return value
    try:
        return EngineVariant(value)
    except ValueError:
        raise BoundaryError(f"unknown engine variant {value!r}") from None

def _coerce_options(options: Union[ConvertOptions, Mapping[str, Any], None]) -> ConvertOptions:
    if options is None:
        return ConvertOptions()
    if isinstance(options, ConvertOptions):
        return options
    if isinstance(options, Mapping):
        try:
            return ConvertOptions(**options)
        except TypeError as e:
            raise BoundaryError(f"unsupported conversion option: {e}") from None
    raise BoundaryError(f"options must be ConvertOptions or a mapping, not {type(options).__name__}")

def build_request(input_bytes: BytesLike, filename: str,
                  options: Union[ConvertOptions, Mapping[str, Any], None] = None) -> ConversionRequest:
    """Validate caller input and freeze it into a ConversionRequest.

    Raises:
        BoundaryError: If a field is missing or malformed
    """
    if not isinstance(input_bytes, (bytes, bytearray, memoryview)):
        raise BoundaryError("input_bytes must be a bytes-like object")
    data = bytes(input_bytes)
    if not data:
        raise BoundaryError("input_bytes is empty")
    opts = _coerce_options(options)

    extra = opts.extra_options
    if isinstance(extra, (str, bytes)) or not isinstance(extra, Sequence):
        raise BoundaryError("extra_options must be a sequence of strings")
    if not all(isinstance(flag, str) for flag in extra):
        raise BoundaryError("extra_options must be a sequence of strings")
    if not isinstance(opts.verbose, bool):
        raise BoundaryError("verbose must be a boolean")

    return ConversionRequest(
        input_bytes=data,
        filename=_require_text(filename, "filename"),
        variant=_coerce_variant(opts.variant),
        output_format=_require_text(opts.output_format, "output_format"),
        video_encoder=_require_text(opts.video_encoder, "video_encoder"),
        audio_encoder=_require_text(opts.audio_encoder, "audio_encoder"),
        verbose=opts.verbose,
        extra_options=tuple(extra),
    )

def _encoders(engine: NativeEngine, with_options: bool = False) -> Tuple[CodecDescriptor, ...]:
    encoders = decode_encoders(engine.list_encoders(), engine.constants)
    if not with_options:
        return encoders
    return tuple(replace(encoder, options=_codec_options(engine, encoder.id)) for encoder in encoders)

def _muxers(engine: NativeEngine) -> Tuple[MuxerDescriptor, ...]:
    return decode_muxers(engine.list_muxers())

def _codec_options(engine: NativeEngine, codec_id: int) -> Tuple[OptionDescriptor, ...]:
    return decode_options(engine.list_codec_options(codec_id), engine.constants)

class Gateway:
    """Dispatches boundary requests to the engines, executor and ledger.

    A gateway owns its engines and metrics for its whole life; discarding
    it and building a new one is the restart path after an engine failure.
    """

    def __init__(self, loaders: Optional[Mapping[EngineVariant, Loader]] = None,
                 min_boot_memory_mb: Optional[int] = None):
        kwargs = {} if min_boot_memory_mb is None else {"min_boot_memory_mb": min_boot_memory_mb}
        self.engines = EngineHandle(loaders, **kwargs)
        self.ledger = MetricsLedger()
        self.executor = ConversionExecutor(self.ledger)

    async def convert(self, input_bytes: BytesLike, filename: str,
                      options: Union[ConvertOptions, Mapping[str, Any], None] = None) -> Optional[bytes]:
        """Convert ``input_bytes``; None on failure, bytes (possibly empty) on success."""
        result = await self.convert_job(input_bytes, filename, options)
        return result.output

    async def convert_job(self, input_bytes: BytesLike, filename: str,
                          options: Union[ConvertOptions, Mapping[str, Any], None] = None) -> ConversionResult:
        request = build_request(input_bytes, filename, options)
        instance = await self.engines.acquire(request.variant)
        return await self.executor.execute(instance, request)

    async def list_encoders(self, variant: EngineVariant = EngineVariant.PRIMARY,
                            with_options: bool = False) -> Tuple[CodecDescriptor, ...]:
        """Encoders of ``variant``, one per codec id.

        ``options`` stays empty unless ``with_options`` is set, which costs
        one option listing per encoder.
        """
        return await self._query(_coerce_variant(variant), _encoders, bool(with_options))

    async def list_codec_options(self, codec_id: int,
                                 variant: EngineVariant = EngineVariant.PRIMARY) -> Tuple[OptionDescriptor, ...]:
        if isinstance(codec_id, bool) or not isinstance(codec_id, int):
            raise BoundaryError("codec_id must be an integer")
        return await self._query(_coerce_variant(variant), _codec_options, codec_id)

    async def list_muxers(self, variant: EngineVariant = EngineVariant.PRIMARY) -> Tuple[MuxerDescriptor, ...]:
        return await self._query(_coerce_variant(variant), _muxers)

    async def get_metrics(self) -> Tuple[Metric, ...]:
        return self.ledger.drain()

    async def get_summary(self) -> dict:
        return self.ledger.summary()

    async def _query(self, variant: EngineVariant, fn: Callable[..., Any], *args: Any) -> Any:
        instance: EngineInstance = await self.engines.acquire(variant)
        async with instance.lock:
            try:
                return await instance.call(fn, instance.engine, *args)
            except EngineAbortedError as e:
                instance.mark_failed(e)
                raise ListingError(str(e), module="gateway") from e

    def shutdown(self) -> None:
        self.engines.shutdown()
