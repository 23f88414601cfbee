"""Value types exchanged across the conversion boundary.

Every type here is immutable so that it can be handed from the engine
worker to the caller without sharing mutable state.
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Optional, Tuple

from .config import (
    DEFAULT_AUDIO_ENCODER, DEFAULT_OUTPUT_FORMAT, DEFAULT_VIDEO_ENCODER
)

class EngineVariant(Enum):
    """Interchangeable engine builds with identical capability surface."""
    PRIMARY = "primary"
    FALLBACK = "fallback"

class EngineState(Enum):
    """Lifecycle of a booted engine instance."""
    UNINITIALIZED = auto()
    INITIALIZING = auto()
    READY = auto()
    FAILED = auto()

class CodecType(Enum):
    UNKNOWN = auto()
    VIDEO = auto()
    AUDIO = auto()
    DATA = auto()
    SUBTITLE = auto()
    ATTACHMENT = auto()

class OptionType(Enum):
    FLAGS = auto()
    INT = auto()
    INT64 = auto()
    DOUBLE = auto()
    FLOAT = auto()
    STRING = auto()
    RATIONAL = auto()
    BINARY = auto()
    DICT = auto()
    UINT64 = auto()
    CONST = auto()
    IMAGE_SIZE = auto()
    PIXEL_FMT = auto()
    SAMPLE_FMT = auto()
    VIDEO_RATE = auto()
    DURATION = auto()
    COLOR = auto()
    CHANNEL_LAYOUT = auto()
    BOOL = auto()

@dataclass(frozen=True)
class CodecCapabilities:
    """Named view of a codec capability bitmask."""
    draw_horiz_band: bool = False
    dr1: bool = False
    truncated: bool = False
    delay: bool = False
    small_last_frame: bool = False
    subframes: bool = False
    experimental: bool = False
    channel_conf: bool = False
    frame_threads: bool = False
    slice_threads: bool = False
    param_change: bool = False
    auto_threads: bool = False
    variable_frame_size: bool = False
    avoid_probing: bool = False
    intra_only: bool = False
    lossless: bool = False
    hardware: bool = False
    hybrid: bool = False
    encoder_reordered_opaque: bool = False

@dataclass(frozen=True)
class OptionFlags:
    """Named view of an option flag bitmask."""
    encoding_param: bool = False
    decoding_param: bool = False
    audio_param: bool = False
    video_param: bool = False
    subtitle_param: bool = False
    export: bool = False
    readonly: bool = False
    bsf_param: bool = False
    filtering_param: bool = False
    deprecated: bool = False

@dataclass(frozen=True)
class OptionDescriptor:
    name: str
    help: str
    unit: str
    offset: int
    type: OptionType
    min: float
    max: float
    default_value: Any
    flags: OptionFlags

@dataclass(frozen=True)
class CodecDescriptor:
    id: int
    name: str
    long_name: str
    type: CodecType
    capabilities: CodecCapabilities
    options: Tuple[OptionDescriptor, ...] = ()

@dataclass(frozen=True)
class MuxerDescriptor:
    name: str
    long_name: str
    mime_type: str
    extensions: Tuple[str, ...]
    default_video_codec_id: Optional[int] = None
    default_audio_codec_id: Optional[int] = None

@dataclass(frozen=True)
class ConvertOptions:
    """Caller-chosen conversion parameters.

    Attributes:
        variant: Engine build that runs the job
        output_format: Target container (muxer name)
        video_encoder: Target video encoder name
        audio_encoder: Target audio encoder name
        verbose: Run the engine with verbose logging instead of quiet
        extra_options: Flags appended verbatim before the output name
    """
    variant: EngineVariant = EngineVariant.PRIMARY
    output_format: str = DEFAULT_OUTPUT_FORMAT
    video_encoder: str = DEFAULT_VIDEO_ENCODER
    audio_encoder: str = DEFAULT_AUDIO_ENCODER
    verbose: bool = False
    extra_options: Tuple[str, ...] = ()

@dataclass(frozen=True)
class ConversionRequest:
    input_bytes: bytes
    filename: str
    variant: EngineVariant
    output_format: str
    video_encoder: str
    audio_encoder: str
    verbose: bool = False
    extra_options: Tuple[str, ...] = ()

@dataclass(frozen=True)
class Metric:
    """Timing and size facts for one completed conversion."""
    file: str
    elapsed_seconds: float
    input_size: int
    output_size: int
    format: str
    video_codec: str
    audio_codec: str
    variant: EngineVariant
    job_index: int

@dataclass(frozen=True)
class ConversionResult:
    """Outcome of a conversion job.

    ``output`` is None on failure; an empty bytes object is a successful
    conversion that produced zero-length output.
    """
    output: Optional[bytes] = None
    metric: Optional[Metric] = field(default=None)

    @property
    def ok(self) -> bool:
        return self.output is not None
