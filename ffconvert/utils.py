"""Utility functions for the ffconvert runtime"""

import logging
import shutil
import subprocess
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence

logger = logging.getLogger(__name__)

def run_cmd(cmd: List[str], cwd: Optional[Path] = None, check: bool = True,
            timeout: Optional[float] = None) -> subprocess.CompletedProcess:
    """Run a command and handle errors"""
    logger.debug("Running command: %s", " ".join(cmd))
    try:
        result = subprocess.run(
            cmd,
            cwd=cwd,
            capture_output=True,
            check=check,
            text=True,
            errors="replace",
            timeout=timeout
        )
        if result.stderr:
            logger.debug("Command stderr: %s", result.stderr)
        return result
    except subprocess.CalledProcessError as e:
        logger.error("Command failed: %s", " ".join(cmd))
        logger.error("Error output: %s", e.stderr)
        raise

def resolve_executable(name: str) -> Optional[str]:
    """Resolve an executable name or path, returning None when missing"""
    path = Path(name)
    if path.is_absolute() or path.parent != Path("."):
        return str(path) if path.is_file() else None
    return shutil.which(name)

def get_timestamp() -> str:
    """Get current timestamp in YYYYMMDD_HHMMSS format"""
    return datetime.now().strftime("%Y%m%d_%H%M%S")

def format_size(size: int) -> str:
    """Format file size for display"""
    for unit in ['B', 'KiB', 'MiB', 'GiB', 'TiB']:
        if size < 1024:
            return f"{size:.1f}{unit}"
        size /= 1024
    return f"{size:.1f}TiB"

def output_filename(input_name: str, extensions: Sequence[str]) -> str:
    """Name a converted file after its source and the muxer's first extension.

    The last suffix of the input is dropped; a muxer without extensions
    yields the bare stem.
    """
    parts = input_name.split(".")
    stem = ".".join(parts[:-1]) if len(parts) > 1 else input_name
    if extensions and extensions[0]:
        return f"{stem}.{extensions[0]}"
    return stem
