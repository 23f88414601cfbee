"""Capability decoding

Responsibilities:
- Turn raw engine listings into CodecDescriptor/MuxerDescriptor/OptionDescriptor
- Decode bitmasks through named engine constants
- Map engine enumerations onto closed symbolic sets, failing loudly on
  anything unknown
"""

import logging
from dataclasses import fields
from fractions import Fraction
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .engine.base import RawCodec, RawMuxer, RawOption, RawOptionDefault
from .exceptions import DecodingError
from .models import (
    CodecCapabilities, CodecDescriptor, CodecType, MuxerDescriptor,
    OptionDescriptor, OptionFlags, OptionType
)

logger = logging.getLogger(__name__)

CODEC_CAPABILITY_CONSTANTS: Tuple[Tuple[str, str], ...] = (
    ("draw_horiz_band", "AV_CODEC_CAP_DRAW_HORIZ_BAND"),
    ("dr1", "AV_CODEC_CAP_DR1"),
    ("truncated", "AV_CODEC_CAP_TRUNCATED"),
    ("delay", "AV_CODEC_CAP_DELAY"),
    ("small_last_frame", "AV_CODEC_CAP_SMALL_LAST_FRAME"),
    ("subframes", "AV_CODEC_CAP_SUBFRAMES"),
    ("experimental", "AV_CODEC_CAP_EXPERIMENTAL"),
    ("channel_conf", "AV_CODEC_CAP_CHANNEL_CONF"),
    ("frame_threads", "AV_CODEC_CAP_FRAME_THREADS"),
    ("slice_threads", "AV_CODEC_CAP_SLICE_THREADS"),
    ("param_change", "AV_CODEC_CAP_PARAM_CHANGE"),
    ("auto_threads", "AV_CODEC_CAP_AUTO_THREADS"),
    ("variable_frame_size", "AV_CODEC_CAP_VARIABLE_FRAME_SIZE"),
    ("avoid_probing", "AV_CODEC_CAP_AVOID_PROBING"),
    ("intra_only", "AV_CODEC_CAP_INTRA_ONLY"),
    ("lossless", "AV_CODEC_CAP_LOSSLESS"),
    ("hardware", "AV_CODEC_CAP_HARDWARE"),
    ("hybrid", "AV_CODEC_CAP_HYBRID"),
    ("encoder_reordered_opaque", "AV_CODEC_CAP_ENCODER_REORDERED_OPAQUE"),
)

OPTION_FLAG_CONSTANTS: Tuple[Tuple[str, str], ...] = (
    ("encoding_param", "AV_OPT_FLAG_ENCODING_PARAM"),
    ("decoding_param", "AV_OPT_FLAG_DECODING_PARAM"),
    ("audio_param", "AV_OPT_FLAG_AUDIO_PARAM"),
    ("video_param", "AV_OPT_FLAG_VIDEO_PARAM"),
    ("subtitle_param", "AV_OPT_FLAG_SUBTITLE_PARAM"),
    ("export", "AV_OPT_FLAG_EXPORT"),
    ("readonly", "AV_OPT_FLAG_READONLY"),
    ("bsf_param", "AV_OPT_FLAG_BSF_PARAM"),
    ("filtering_param", "AV_OPT_FLAG_FILTERING_PARAM"),
    ("deprecated", "AV_OPT_FLAG_DEPRECATED"),
)

# AVMediaType; AVMEDIA_TYPE_NB is a count, not a type
CODEC_TYPES: Dict[int, CodecType] = {
    -1: CodecType.UNKNOWN,
    0: CodecType.VIDEO,
    1: CodecType.AUDIO,
    2: CodecType.DATA,
    3: CodecType.SUBTITLE,
    4: CodecType.ATTACHMENT,
}

# AVOptionType
OPTION_TYPES: Dict[int, OptionType] = {
    0: OptionType.FLAGS,
    1: OptionType.INT,
    2: OptionType.INT64,
    3: OptionType.DOUBLE,
    4: OptionType.FLOAT,
    5: OptionType.STRING,
    6: OptionType.RATIONAL,
    7: OptionType.BINARY,
    8: OptionType.DICT,
    9: OptionType.UINT64,
    10: OptionType.CONST,
    11: OptionType.IMAGE_SIZE,
    12: OptionType.PIXEL_FMT,
    13: OptionType.SAMPLE_FMT,
    14: OptionType.VIDEO_RATE,
    15: OptionType.DURATION,
    16: OptionType.COLOR,
    17: OptionType.CHANNEL_LAYOUT,
    18: OptionType.BOOL,
}

AV_CODEC_ID_NONE = 0

def decode_bitmask(raw: int, table: Sequence[Tuple[str, str]], constants: Mapping[str, int]) -> Dict[str, bool]:
    """Evaluate every (field, constant) pair of ``table`` against ``raw``."""
    decoded = {}
    for field_name, constant_name in table:
        try:
            constant = constants[constant_name]
        except KeyError:
            raise DecodingError(
                f"engine does not expose constant {constant_name}",
                module="capabilities"
            ) from None
        decoded[field_name] = (raw & constant) != 0
    return decoded

def decode_enum(raw: int, table: Mapping[int, Any], kind: str) -> Any:
    try:
        return table[raw]
    except (KeyError, TypeError):
        raise DecodingError(f"unknown {kind} value {raw!r}", module="capabilities") from None

def decode_codec_capabilities(raw: int, constants: Mapping[str, int]) -> CodecCapabilities:
    return CodecCapabilities(**decode_bitmask(raw, CODEC_CAPABILITY_CONSTANTS, constants))

def decode_option_flags(raw: int, constants: Mapping[str, int]) -> OptionFlags:
    return OptionFlags(**decode_bitmask(raw, OPTION_FLAG_CONSTANTS, constants))

def decode_default_value(default_val: RawOptionDefault) -> Any:
    """Pick the populated member of the default-value union (i64, dbl, str, q)."""
    if default_val.i64:
        return default_val.i64
    if default_val.dbl:
        return default_val.dbl
    if default_val.str is not None:
        return default_val.str
    if default_val.q is not None:
        return Fraction(default_val.q)
    return 0

def decode_codec(raw: RawCodec, constants: Mapping[str, int]) -> CodecDescriptor:
    return CodecDescriptor(
        id=int(raw.id),
        name=raw.name,
        long_name=raw.long_name or "",
        type=decode_enum(raw.type, CODEC_TYPES, "codec type"),
        capabilities=decode_codec_capabilities(raw.capabilities, constants),
    )

def decode_option(raw: RawOption, constants: Mapping[str, int]) -> OptionDescriptor:
    return OptionDescriptor(
        name=raw.name,
        help=raw.help or "",
        unit=raw.unit or "",
        offset=int(raw.offset),
        type=decode_enum(raw.type, OPTION_TYPES, "option type"),
        min=raw.min,
        max=raw.max,
        default_value=decode_default_value(raw.default_val),
        flags=decode_option_flags(raw.flags, constants),
    )

def split_extensions(extensions: Optional[str]) -> Tuple[str, ...]:
    """Split a comma separated extension list; empty input yields no entries."""
    if not extensions:
        return ()
    return tuple(ext.strip() for ext in extensions.split(",") if ext.strip())

def _optional_codec_id(codec_id: int) -> Optional[int]:
    return None if codec_id in (None, AV_CODEC_ID_NONE) else int(codec_id)

def decode_muxer(raw: RawMuxer) -> MuxerDescriptor:
    return MuxerDescriptor(
        name=raw.name,
        long_name=raw.long_name or "",
        mime_type=raw.mime_type or "",
        extensions=split_extensions(raw.extensions),
        default_video_codec_id=_optional_codec_id(raw.video_codec),
        default_audio_codec_id=_optional_codec_id(raw.audio_codec),
    )

def decode_encoders(raw_codecs: Sequence[RawCodec], constants: Mapping[str, int]) -> Tuple[CodecDescriptor, ...]:
    """Decode an encoder listing, keeping the first entry for each codec id."""
    seen = set()
    decoded: List[CodecDescriptor] = []
    for index in range(len(raw_codecs)):
        raw = raw_codecs[index]
        if raw.id in seen:
            logger.debug("Skipping duplicate encoder %s for codec id %s", raw.name, raw.id)
            continue
        seen.add(raw.id)
        decoded.append(decode_codec(raw, constants))
    return tuple(decoded)

def decode_muxers(raw_muxers: Sequence[RawMuxer]) -> Tuple[MuxerDescriptor, ...]:
    return tuple(decode_muxer(raw_muxers[index]) for index in range(len(raw_muxers)))

def decode_options(raw_options: Sequence[RawOption], constants: Mapping[str, int]) -> Tuple[OptionDescriptor, ...]:
    return tuple(decode_option(raw_options[index], constants) for index in range(len(raw_options)))

def capability_names(capabilities) -> List[str]:
    """Names of the set fields of a CodecCapabilities or OptionFlags value."""
    return [f.name for f in fields(capabilities) if getattr(capabilities, f.name)]
