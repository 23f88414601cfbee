"""Configuration settings for the ffconvert conversion runtime

This module centralizes all configuration settings including:
- Working directory and log locations
- Engine image locations for each variant
- Fixed names used inside the engine working directory
- Conversion defaults

User-configurable settings come from environment variables; everything
else is an internal constant shared by the runtime.
"""

import os
import tempfile
from pathlib import Path

# Root for the engines' private working directories
WORKING_ROOT = Path(os.environ.get("FFCONVERT_WORKDIR", str(Path(tempfile.gettempdir()) / "ffconvert")))

# LOG_DIR: user definable with default of "$HOME/ffconvert_logs"
LOG_DIR = Path(os.environ.get("FFCONVERT_LOG_DIR", str(Path.home() / "ffconvert_logs")))

# Logging configuration
LOG_LEVEL = os.environ.get("FFCONVERT_LOG_LEVEL", "INFO")  # DEBUG, INFO, WARNING, ERROR, CRITICAL

# Engine images
PRIMARY_FFMPEG = os.environ.get("FFCONVERT_PRIMARY_FFMPEG", "ffmpeg")
FALLBACK_FFMPEG = os.environ.get("FFCONVERT_FALLBACK_FFMPEG", "ffmpeg")

# Minimum available memory required before an engine is booted
MIN_BOOT_MEMORY_MB = int(os.environ.get("FFCONVERT_MIN_BOOT_MEMORY_MB", "256"))

# Seconds allowed for capability listing and version probes
LISTING_TIMEOUT = 30.0

# Engine working directory layout
WORK_DIR_NAME = "work"
INPUT_NAME = "input"
OUTPUT_NAME = "output"

# Conversion defaults
DEFAULT_OUTPUT_FORMAT = "matroska"
DEFAULT_VIDEO_ENCODER = "mpeg4"
DEFAULT_AUDIO_ENCODER = "aac"
