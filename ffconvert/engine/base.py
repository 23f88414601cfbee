"""Native engine interface and raw record types.

Every engine variant exposes the same operation set. Records returned by
the listing calls mirror the engine's own structures: enumerations and
capability sets are still plain integers and must go through
``ffconvert.capabilities`` before they leave the engine thread.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from fractions import Fraction
from typing import List, Mapping, Optional, Sequence

@dataclass
class RawCodec:
    id: int
    type: int
    name: str
    long_name: str
    capabilities: int

@dataclass
class RawMuxer:
    name: str
    long_name: str
    mime_type: str
    extensions: str
    video_codec: int = 0
    audio_codec: int = 0

@dataclass
class RawOptionDefault:
    """Default value union as reported by the engine; at most one member is meaningful."""
    i64: int = 0
    dbl: float = 0.0
    str: Optional[str] = None
    q: Optional[Fraction] = None

@dataclass
class RawOption:
    name: str
    help: str
    unit: str
    offset: int
    type: int
    default_val: RawOptionDefault
    min: float
    max: float
    flags: int

class EngineFS(ABC):
    """Private filesystem of one engine instance."""

    @abstractmethod
    def mkdir(self, name: str) -> None:
        pass

    @abstractmethod
    def chdir(self, name: str) -> None:
        pass

    @abstractmethod
    def write(self, name: str, data: bytes) -> None:
        """Create or truncate ``name`` in the active directory and write ``data``."""
        pass

    @abstractmethod
    def listdir(self) -> List[str]:
        pass

    @abstractmethod
    def remove(self, name: str) -> None:
        pass

    def exists(self, name: str) -> bool:
        return name in self.listdir()

class NativeEngine(ABC):
    """Opaque, non-reentrant codec engine.

    Implementations are booted once by a loader and then driven from a
    single thread. None of the methods may be entered concurrently.
    """

    #: Named bit-constants exposed by the engine (``AV_CODEC_CAP_*``, ``AV_OPT_FLAG_*``)
    constants: Mapping[str, int] = {}

    @property
    @abstractmethod
    def fs(self) -> EngineFS:
        pass

    @abstractmethod
    def convert(self, argv: Sequence[str]) -> int:
        """Run the engine's main entry point with ``argv``.

        Returns:
            int: Engine exit status

        Raises:
            EngineInvocationError: If the engine reports failure
            EngineAbortedError: If the engine can no longer run at all
        """
        pass

    @abstractmethod
    def read_result(self, name: str) -> memoryview:
        """Expose ``name`` from the active directory as engine-owned memory.

        The view stays valid only until :meth:`free_result` is called.
        """
        pass

    @abstractmethod
    def free_result(self) -> None:
        """Release the memory behind the last :meth:`read_result` view."""
        pass

    @abstractmethod
    def list_encoders(self) -> Sequence[RawCodec]:
        pass

    @abstractmethod
    def list_muxers(self) -> Sequence[RawMuxer]:
        pass

    @abstractmethod
    def list_codec_options(self, codec_id: int) -> Sequence[RawOption]:
        """Private options of the first encoder for ``codec_id``, constants excluded."""
        pass

    def close(self) -> None:
        """Release resources held by the engine image. The engine is unusable afterwards."""
        pass
