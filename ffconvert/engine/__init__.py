"""Codec engine images and their lifecycle

This package provides:
- The native engine interface and its raw records
- The ffmpeg executable engine image
- Lazy, boot-once engine management per variant
"""

from .base import (
    EngineFS, NativeEngine, RawCodec, RawMuxer, RawOption, RawOptionDefault
)
from .ffmpeg import FFmpegEngine, load_ffmpeg_engine
from .handle import EngineHandle, EngineInstance

__all__ = [
    'EngineFS',
    'NativeEngine',
    'RawCodec',
    'RawMuxer',
    'RawOption',
    'RawOptionDefault',
    'FFmpegEngine',
    'load_ffmpeg_engine',
    'EngineHandle',
    'EngineInstance',
]
