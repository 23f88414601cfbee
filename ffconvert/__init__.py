"""
ffconvert - An isolated media conversion runtime built on ffmpeg

This package provides a conversion runtime that:
- Boots primary and fallback engine builds lazily, once each
- Stages input bytes into a private engine working directory
- Converts to a caller-chosen container and codecs
- Decodes engine capability listings into typed descriptors
- Records timing and size metrics for every completed job

Engine work runs on a dedicated worker thread behind an async client,
so a failed engine never takes down the caller.
"""

__version__ = "0.1.0"
