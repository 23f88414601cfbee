"""FFmpeg executable engine

Responsibilities:
- Boot an ffmpeg-compatible executable as an engine image
- Run conversions in a private working directory
- Hand results out as memory-mapped views and release them on demand
- Rebuild the engine's native listings (encoders, muxers, codec options)
  from the executable's own help output
"""

import logging
import mmap
import re
import shutil
import subprocess
import sys
import tempfile
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from ..config import (
    FALLBACK_FFMPEG, LISTING_TIMEOUT, PRIMARY_FFMPEG, WORKING_ROOT
)
from ..exceptions import (
    EngineAbortedError, EngineInvocationError, InitializationError, ListingError
)
from ..models import EngineVariant
from ..utils import resolve_executable, run_cmd
from .base import (
    EngineFS, NativeEngine, RawCodec, RawMuxer, RawOption, RawOptionDefault
)

logger = logging.getLogger(__name__)

# Values from libavcodec/avcodec.h and libavutil/opt.h
FFMPEG_CONSTANTS: Dict[str, int] = {
    "AV_CODEC_CAP_DRAW_HORIZ_BAND": 1 << 0,
    "AV_CODEC_CAP_DR1": 1 << 1,
    "AV_CODEC_CAP_TRUNCATED": 1 << 3,
    "AV_CODEC_CAP_DELAY": 1 << 5,
    "AV_CODEC_CAP_SMALL_LAST_FRAME": 1 << 6,
    "AV_CODEC_CAP_SUBFRAMES": 1 << 8,
    "AV_CODEC_CAP_EXPERIMENTAL": 1 << 9,
    "AV_CODEC_CAP_CHANNEL_CONF": 1 << 10,
    "AV_CODEC_CAP_FRAME_THREADS": 1 << 12,
    "AV_CODEC_CAP_SLICE_THREADS": 1 << 13,
    "AV_CODEC_CAP_PARAM_CHANGE": 1 << 14,
    "AV_CODEC_CAP_AUTO_THREADS": 1 << 15,
    "AV_CODEC_CAP_VARIABLE_FRAME_SIZE": 1 << 16,
    "AV_CODEC_CAP_AVOID_PROBING": 1 << 17,
    "AV_CODEC_CAP_HARDWARE": 1 << 18,
    "AV_CODEC_CAP_HYBRID": 1 << 19,
    "AV_CODEC_CAP_ENCODER_REORDERED_OPAQUE": 1 << 20,
    "AV_CODEC_CAP_INTRA_ONLY": 0x40000000,
    "AV_CODEC_CAP_LOSSLESS": 0x80000000,
    "AV_OPT_FLAG_ENCODING_PARAM": 1,
    "AV_OPT_FLAG_DECODING_PARAM": 2,
    "AV_OPT_FLAG_AUDIO_PARAM": 8,
    "AV_OPT_FLAG_VIDEO_PARAM": 16,
    "AV_OPT_FLAG_SUBTITLE_PARAM": 32,
    "AV_OPT_FLAG_EXPORT": 64,
    "AV_OPT_FLAG_READONLY": 128,
    "AV_OPT_FLAG_BSF_PARAM": 1 << 8,
    "AV_OPT_FLAG_RUNTIME_PARAM": 1 << 15,
    "AV_OPT_FLAG_FILTERING_PARAM": 1 << 16,
    "AV_OPT_FLAG_DEPRECATED": 1 << 17,
}

# AVMediaType by listing letter; anything else reports AVMEDIA_TYPE_NB
MEDIA_TYPE_LETTERS = {"V": 0, "A": 1, "D": 2, "S": 3, "T": 4}
AVMEDIA_TYPE_NB = 5

# AVOptionType by the name printed between angle brackets
OPTION_TYPE_NAMES = {
    "flags": 0,
    "int": 1,
    "int64": 2,
    "double": 3,
    "float": 4,
    "string": 5,
    "rational": 6,
    "binary": 7,
    "dictionary": 8,
    "uint64": 9,
    "image_size": 11,
    "pix_fmt": 12,
    "sample_fmt": 13,
    "video_rate": 14,
    "duration": 15,
    "color": 16,
    "channel_layout": 17,
    "boolean": 18,
}
UNKNOWN_OPTION_TYPE = -1

OPTION_FLAG_LETTERS = {
    "E": "AV_OPT_FLAG_ENCODING_PARAM",
    "D": "AV_OPT_FLAG_DECODING_PARAM",
    "F": "AV_OPT_FLAG_FILTERING_PARAM",
    "V": "AV_OPT_FLAG_VIDEO_PARAM",
    "A": "AV_OPT_FLAG_AUDIO_PARAM",
    "S": "AV_OPT_FLAG_SUBTITLE_PARAM",
    "X": "AV_OPT_FLAG_EXPORT",
    "R": "AV_OPT_FLAG_READONLY",
    "B": "AV_OPT_FLAG_BSF_PARAM",
    "T": "AV_OPT_FLAG_RUNTIME_PARAM",
    "P": "AV_OPT_FLAG_DEPRECATED",
}

# Symbolic limits printed by av_opt_show2()
NAMED_LIMITS = {
    "INT_MAX": 2 ** 31 - 1,
    "INT_MIN": -(2 ** 31),
    "UINT32_MAX": 2 ** 32 - 1,
    "I64_MAX": 2 ** 63 - 1,
    "I64_MIN": -(2 ** 63),
    "FLT_MAX": 3.4028234663852886e38,
    "-FLT_MAX": -3.4028234663852886e38,
    "FLT_MIN": 1.1754943508222875e-38,
    "-FLT_MIN": -1.1754943508222875e-38,
    "DBL_MAX": sys.float_info.max,
    "-DBL_MAX": -sys.float_info.max,
    "DBL_MIN": sys.float_info.min,
    "-DBL_MIN": -sys.float_info.min,
}

_ROW_RE = re.compile(r"^\s*([A-Z.]{6})\s+(\S+)\s*(.*)$")
_CODEC_SUFFIX_RE = re.compile(r"\s*\(codec (\S+)\)\s*$")
_OPTION_RE = re.compile(r"^  -(\S+)\s+<([^>]+)>\s+([A-Z.]{6,})\s?(.*)$")
_CONST_RE = re.compile(r"^ {3,}\S")
_DEFAULT_RE = re.compile(r"\s*\(default (.*)\)\s*$")
_RANGE_RE = re.compile(r"\s*\(from (\S+) to (\S+)\)\s*$")

def _listing_rows(text: str) -> List[str]:
    """Rows of an ffmpeg listing, i.e. the lines after the dashed separator."""
    lines = text.splitlines()
    for index, line in enumerate(lines):
        stripped = line.strip()
        if stripped and set(stripped) == {"-"}:
            return [row for row in lines[index + 1:] if row.strip()]
    return []

def parse_codecs(text: str) -> Dict[str, Tuple[int, str]]:
    """Parse ``-codecs`` output into ``{family: (codec_id, flags)}``.

    Codec ids follow listing order starting at 1; 0 is reserved for "none".
    """
    codecs: Dict[str, Tuple[int, str]] = {}
    for row in _listing_rows(text):
        match = _ROW_RE.match(row)
        if not match:
            logger.debug("Unparsed codec row: %r", row)
            continue
        flags, name = match.group(1), match.group(2)
        codecs.setdefault(name, (len(codecs) + 1, flags))
    return codecs

def encoder_capabilities(encoder_flags: str, codec_flags: str = "......") -> int:
    """Rebuild an AV_CODEC_CAP_* bitmask from listing flag columns."""
    caps = 0
    if encoder_flags[1] == "F":
        caps |= FFMPEG_CONSTANTS["AV_CODEC_CAP_FRAME_THREADS"]
    if encoder_flags[2] == "S":
        caps |= FFMPEG_CONSTANTS["AV_CODEC_CAP_SLICE_THREADS"]
    if encoder_flags[3] == "X":
        caps |= FFMPEG_CONSTANTS["AV_CODEC_CAP_EXPERIMENTAL"]
    if encoder_flags[4] == "B":
        caps |= FFMPEG_CONSTANTS["AV_CODEC_CAP_DRAW_HORIZ_BAND"]
    if encoder_flags[5] == "D":
        caps |= FFMPEG_CONSTANTS["AV_CODEC_CAP_DR1"]
    if codec_flags[3] == "I":
        caps |= FFMPEG_CONSTANTS["AV_CODEC_CAP_INTRA_ONLY"]
    if codec_flags[5] == "S":
        caps |= FFMPEG_CONSTANTS["AV_CODEC_CAP_LOSSLESS"]
    return caps

def parse_encoders(text: str, codecs: Dict[str, Tuple[int, str]]) -> List[RawCodec]:
    """Parse ``-encoders`` output, in listing order.

    Encoders of a family missing from ``codecs`` get a fresh id appended
    to the table.
    """
    encoders = []
    for row in _listing_rows(text):
        match = _ROW_RE.match(row)
        if not match:
            logger.debug("Unparsed encoder row: %r", row)
            continue
        flags, name, description = match.groups()
        family = name
        suffix = _CODEC_SUFFIX_RE.search(description)
        if suffix:
            family = suffix.group(1)
            description = description[:suffix.start()]
        if family not in codecs:
            codecs[family] = (len(codecs) + 1, "......")
        codec_id, codec_flags = codecs[family]
        encoders.append(RawCodec(
            id=codec_id,
            type=MEDIA_TYPE_LETTERS.get(flags[0], AVMEDIA_TYPE_NB),
            name=name,
            long_name=description.strip(),
            capabilities=encoder_capabilities(flags, codec_flags),
        ))
    return encoders

def parse_muxer_names(text: str) -> List[Tuple[str, str]]:
    """Parse ``-muxers`` output into ``(name, long_name)`` pairs."""
    muxers = []
    for row in _listing_rows(text):
        parts = row.split(None, 2)
        if len(parts) < 2 or "E" not in parts[0] or not set(parts[0]) <= set("DEd."):
            logger.debug("Unparsed muxer row: %r", row)
            continue
        muxers.append((parts[1], parts[2].strip() if len(parts) > 2 else ""))
    return muxers

def _help_field(text: str, label: str) -> str:
    match = re.search(rf"^\s*{re.escape(label)}:\s*(.*?)\.?\s*$", text, re.MULTILINE)
    return match.group(1).strip() if match else ""

def parse_muxer_help(name: str, long_name: str, text: str,
                     codecs: Dict[str, Tuple[int, str]]) -> RawMuxer:
    """Parse ``-h muxer=NAME`` output into a raw muxer record."""
    def codec_id(label: str) -> int:
        family = _help_field(text, label)
        return codecs[family][0] if family in codecs else 0

    return RawMuxer(
        name=name,
        long_name=long_name,
        mime_type=_help_field(text, "Mime type"),
        extensions=_help_field(text, "Common extensions"),
        video_codec=codec_id("Default video codec"),
        audio_codec=codec_id("Default audio codec"),
    )

def _parse_limit(value: str) -> float:
    if value in NAMED_LIMITS:
        return NAMED_LIMITS[value]
    try:
        return float(value)
    except ValueError:
        logger.debug("Unparsed option limit: %s", value)
        return 0.0

def parse_default(value: Optional[str]) -> RawOptionDefault:
    """Place a printed default into the matching member of the default union."""
    if value is None:
        return RawOptionDefault()
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] == '"':
        return RawOptionDefault(str=value[1:-1])
    if value in ("true", "false"):
        return RawOptionDefault(i64=int(value == "true"))
    try:
        return RawOptionDefault(i64=int(value))
    except ValueError:
        pass
    try:
        return RawOptionDefault(dbl=float(value))
    except ValueError:
        return RawOptionDefault(str=value)

def option_flags(letters: str) -> int:
    flags = 0
    for letter in letters:
        if letter in OPTION_FLAG_LETTERS:
            flags |= FFMPEG_CONSTANTS[OPTION_FLAG_LETTERS[letter]]
    return flags

def parse_encoder_options(text: str) -> List[RawOption]:
    """Parse the AVOptions block of ``-h encoder=NAME``.

    Named constants are skipped. The executable does not print option
    units, so an option that is followed by constants gets its own name
    as unit. Offsets are the option's position in the block.
    """
    options: List[RawOption] = []
    in_block = False
    for line in text.splitlines():
        if line.rstrip().endswith("AVOptions:"):
            if in_block or options:
                # Next AVOptions block belongs to a different class
                break
            in_block = True
            continue
        if not in_block or not line.strip():
            continue
        match = _OPTION_RE.match(line)
        if match:
            name, type_name, letters, help_text = match.groups()
            default = _DEFAULT_RE.search(help_text)
            if default:
                help_text = help_text[:default.start()]
            limits = _RANGE_RE.search(help_text)
            if limits:
                help_text = help_text[:limits.start()]
            options.append(RawOption(
                name=name,
                help=help_text.strip(),
                unit="",
                offset=len(options),
                type=OPTION_TYPE_NAMES.get(type_name, UNKNOWN_OPTION_TYPE),
                default_val=parse_default(default.group(1) if default else None),
                min=_parse_limit(limits.group(1)) if limits else 0.0,
                max=_parse_limit(limits.group(2)) if limits else 0.0,
                flags=option_flags(letters),
            ))
        elif _CONST_RE.match(line) and options:
            options[-1].unit = options[-1].name
        elif not line.startswith(" "):
            break
    return options

class DirectoryFS(EngineFS):
    """Engine filesystem rooted in a private host directory."""

    def __init__(self, root: Path):
        self.root = root
        self.cwd = root

    def _path(self, name: str) -> Path:
        return self.cwd / name

    def mkdir(self, name: str) -> None:
        self._path(name).mkdir(parents=True, exist_ok=True)

    def chdir(self, name: str) -> None:
        target = self._path(name)
        if not target.is_dir():
            raise FileNotFoundError(f"No such directory: {target}")
        self.cwd = target

    def write(self, name: str, data: bytes) -> None:
        with open(self._path(name), "wb") as f:
            f.write(data)

    def listdir(self) -> List[str]:
        return sorted(entry.name for entry in self.cwd.iterdir())

    def remove(self, name: str) -> None:
        self._path(name).unlink(missing_ok=True)

class FFmpegEngine(NativeEngine):
    """Engine image backed by an ffmpeg executable."""

    def __init__(self, executable: str, work_root: Path = WORKING_ROOT,
                 launch_args: Sequence[str] = ("-nostdin",)):
        self.executable = executable
        self.launch_args = list(launch_args)
        self.constants = dict(FFMPEG_CONSTANTS)
        work_root.mkdir(parents=True, exist_ok=True)
        self._fs = DirectoryFS(Path(tempfile.mkdtemp(prefix="engine-", dir=work_root)))
        self._result_file = None
        self._result_map: Optional[mmap.mmap] = None
        self._result_view: Optional[memoryview] = None
        self._codecs: Optional[Dict[str, Tuple[int, str]]] = None
        self._encoders: Optional[List[RawCodec]] = None
        self._muxers: Optional[List[RawMuxer]] = None
        self._options: Dict[int, List[RawOption]] = {}

    @property
    def fs(self) -> DirectoryFS:
        return self._fs

    def _launch(self, args: Sequence[str], cwd: Optional[Path] = None,
                timeout: Optional[float] = None) -> subprocess.CompletedProcess:
        try:
            return run_cmd([self.executable, *args], cwd=cwd, check=False, timeout=timeout)
        except (FileNotFoundError, PermissionError) as e:
            raise EngineAbortedError(
                f"Engine image {self.executable} can no longer be launched: {e}",
                module="ffmpeg"
            ) from e

    def _help(self, *args: str) -> str:
        listing = " ".join(args)
        try:
            result = self._launch(["-hide_banner", *args], timeout=LISTING_TIMEOUT)
        except subprocess.TimeoutExpired:
            raise ListingError(
                f"Listing {listing} timed out after {LISTING_TIMEOUT:.0f}s", module="ffmpeg"
            ) from None
        if result.returncode != 0:
            logger.debug("Listing %s stderr: %s", listing, result.stderr)
            raise ListingError(
                f"Listing {listing} failed with exit code {result.returncode}",
                module="ffmpeg"
            )
        return result.stdout

    def convert(self, argv: Sequence[str]) -> int:
        cmd = [*self.launch_args, *argv]
        logger.debug("Engine argv: %s", " ".join(cmd))
        result = self._launch(cmd, cwd=self._fs.cwd)
        if result.returncode != 0:
            raise EngineInvocationError(
                f"Conversion failed with exit code {result.returncode}",
                module="ffmpeg",
                exit_code=result.returncode,
                output=result.stderr[-2000:]
            )
        return result.returncode

    def read_result(self, name: str) -> memoryview:
        self.free_result()
        path = self._fs.cwd / name
        if path.stat().st_size == 0:
            self._result_view = memoryview(b"")
            return self._result_view
        self._result_file = open(path, "rb")
        self._result_map = mmap.mmap(self._result_file.fileno(), 0, access=mmap.ACCESS_READ)
        self._result_view = memoryview(self._result_map)
        return self._result_view

    def free_result(self) -> None:
        if self._result_view is not None:
            self._result_view.release()
            self._result_view = None
        if self._result_map is not None:
            self._result_map.close()
            self._result_map = None
        if self._result_file is not None:
            self._result_file.close()
            self._result_file = None

    def close(self) -> None:
        self.free_result()
        try:
            shutil.rmtree(self._fs.root)
        except OSError as e:
            logger.warning("Failed to remove engine directory %s: %s", self._fs.root, e)

    def _codec_table(self) -> Dict[str, Tuple[int, str]]:
        if self._codecs is None:
            self._codecs = parse_codecs(self._help("-codecs"))
        return self._codecs

    def list_encoders(self) -> List[RawCodec]:
        if self._encoders is None:
            self._encoders = parse_encoders(self._help("-encoders"), self._codec_table())
            logger.debug("Engine %s reports %d encoders", self.executable, len(self._encoders))
        return self._encoders

    def list_muxers(self) -> List[RawMuxer]:
        if self._muxers is None:
            codecs = self._codec_table()
            self._muxers = [
                parse_muxer_help(name, long_name, self._help("-h", f"muxer={name}"), codecs)
                for name, long_name in parse_muxer_names(self._help("-muxers"))
            ]
        return self._muxers

    def list_codec_options(self, codec_id: int) -> List[RawOption]:
        if codec_id not in self._options:
            encoder = next((e for e in self.list_encoders() if e.id == codec_id), None)
            if encoder is None:
                return []
            self._options[codec_id] = parse_encoder_options(self._help("-h", f"encoder={encoder.name}"))
        return self._options[codec_id]

ENGINE_IMAGES = {
    EngineVariant.PRIMARY: PRIMARY_FFMPEG,
    EngineVariant.FALLBACK: FALLBACK_FFMPEG,
}

def load_ffmpeg_engine(variant: EngineVariant) -> FFmpegEngine:
    """Boot the configured ffmpeg image for ``variant``.

    Raises:
        InitializationError: If the image is missing or does not run
    """
    image = ENGINE_IMAGES[variant]
    executable = resolve_executable(image)
    if executable is None:
        raise InitializationError(f"Engine image not found: {image}", module="ffmpeg", variant=variant)
    try:
        result = run_cmd([executable, "-hide_banner", "-version"], check=True, timeout=LISTING_TIMEOUT)
    except (OSError, subprocess.SubprocessError) as e:
        raise InitializationError(
            f"Engine image {executable} failed to start: {e}", module="ffmpeg", variant=variant
        ) from e
    version = result.stdout.splitlines()[0] if result.stdout else "unknown version"
    logger.info("Booted %s engine: %s", variant.value, version)
    return FFmpegEngine(executable)
