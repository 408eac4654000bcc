# =============================================================================
# CPU Profiling
# =============================================================================
# Keyed cProfile sessions plus the environment-wide cache that holds the
# profiler and compressor bindings. Bindings are loaded on the first profiled
# invocation so environments that never profile never import them.
#
# Payload format: base64(compress(marshal(pstats table))). The decoded table
# is the same structure pstats.Stats.dump_stats() writes to .prof files.
# =============================================================================

import base64
import logging
import marshal
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

Compressor = Callable[[bytes], bytes]


class CpuProfile:
    """A stopped profile owned by exactly one invocation."""

    def __init__(self, profile_id: str, profile: Any):
        self.profile_id = profile_id
        self._profile = profile

    @property
    def deleted(self) -> bool:
        return self._profile is None

    def serialize(self) -> bytes:
        """Serialize the pstats table with marshal."""
        if self._profile is None:
            raise ValueError(f"Profile {self.profile_id} has already been deleted")
        self._profile.create_stats()
        return marshal.dumps(self._profile.stats)

    def delete(self) -> None:
        """Release the collected samples."""
        if self._profile is not None:
            self._profile.clear()
            self._profile = None


class Profiler:
    """
    cProfile sessions keyed by an opaque identifier (the request id).

    Args:
        factory: Callable returning a new profile object with enable(),
            disable(), create_stats() and clear() (cProfile.Profile)
    """

    def __init__(self, factory: Callable[[], Any]):
        self._factory = factory
        self._active: Dict[str, Any] = {}
        self._lock = threading.Lock()

    @property
    def active(self) -> int:
        return len(self._active)

    def start_profiling(self, profile_id: str) -> None:
        profile = self._factory()
        with self._lock:
            if profile_id in self._active:
                raise ValueError(f"Profiling already started for {profile_id}")
            self._active[profile_id] = profile
        try:
            profile.enable()
        except Exception:
            with self._lock:
                self._active.pop(profile_id, None)
            raise

    def stop_profiling(self, profile_id: str) -> CpuProfile:
        with self._lock:
            profile = self._active.pop(profile_id, None)
        if profile is None:
            raise KeyError(f"No profiling session for {profile_id}")
        profile.disable()
        return CpuProfile(profile_id, profile)


def load_profiler() -> Profiler:
    """Import cProfile and wrap it in a keyed Profiler."""
    import cProfile

    return Profiler(cProfile.Profile)


def load_compressor() -> Compressor:
    """Import zlib and return its one-shot compressor."""
    import zlib

    return zlib.compress


@dataclass
class ResourceCache:
    """
    Profiler and compressor bindings shared by every invocation of an
    execution environment.

    None means "not loaded yet". load() fills in whatever is missing, once.
    """
    profiler: Optional[Profiler] = None
    compressor: Optional[Compressor] = None
    profiler_loader: Callable[[], Profiler] = field(default=load_profiler, repr=False)
    compressor_loader: Callable[[], Compressor] = field(default=load_compressor, repr=False)

    @property
    def loaded(self) -> bool:
        return self.profiler is not None and self.compressor is not None

    def load(self) -> "ResourceCache":
        if self.profiler is None:
            logger.info("Loading profiler binding")
            self.profiler = self.profiler_loader()
        if self.compressor is None:
            self.compressor = self.compressor_loader()
        return self


def encode_profile(profile: CpuProfile, compressor: Compressor) -> str:
    """Serialize, compress and base64 encode a stopped profile."""
    return base64.b64encode(compressor(profile.serialize())).decode("ascii")


def decode_profile(payload: str, decompressor: Optional[Callable[[bytes], bytes]] = None) -> Dict[Any, Any]:
    """
    Decode a payload produced by encode_profile().

    Args:
        payload: Base64 text stored on the handler
        decompressor: Inverse of the compressor used (zlib.decompress)

    Returns:
        The pstats table, usable with pstats.Stats or writable as a .prof file
    """
    if decompressor is None:
        import zlib

        decompressor = zlib.decompress
    return marshal.loads(decompressor(base64.b64decode(payload)))
