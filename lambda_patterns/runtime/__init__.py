# =============================================================================
# Runtime Package - Execution Environment State
# =============================================================================
# State shared by every invocation served by one execution environment:
# - Cold start flag and invocation/profiling counters
# - Lazily loaded profiler and compressor bindings
# - Lazily created AWS clients
# =============================================================================

from lambda_patterns.runtime.cold_start import ColdStartRegistry
from lambda_patterns.runtime.context import LocalContext, request_id_of, set_wait_for_empty_event_loop
from lambda_patterns.runtime.deps import Deps
from lambda_patterns.runtime.environment import ExecutionEnvironment
from lambda_patterns.runtime.profiling import (
    CpuProfile,
    Profiler,
    ResourceCache,
    decode_profile,
    encode_profile,
)
from lambda_patterns.runtime.ratio import RatioTracker

__all__ = [
    "ColdStartRegistry",
    "CpuProfile",
    "Deps",
    "ExecutionEnvironment",
    "LocalContext",
    "Profiler",
    "RatioTracker",
    "ResourceCache",
    "decode_profile",
    "encode_profile",
    "request_id_of",
    "set_wait_for_empty_event_loop",
]
