# =============================================================================
# Execution Environment
# =============================================================================
# State that survives across invocations served by one host process: the
# cold start flag, the invocation and profiling counters, the profiler
# bindings, the AWS client container and the event loop used to await
# asynchronous processors.
#
# Handler.create() builds one environment and every invocation of the
# returned function shares it.
# =============================================================================

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from functools import cached_property
from typing import Any, Awaitable, Optional

from lambda_patterns.exceptions import ConfigurationError
from lambda_patterns.runtime.cold_start import ColdStartRegistry
from lambda_patterns.runtime.deps import Deps
from lambda_patterns.runtime.profiling import ResourceCache
from lambda_patterns.runtime.ratio import RatioTracker

logger = logging.getLogger(__name__)


@dataclass
class ExecutionEnvironment:
    """
    Per-environment context passed to every handler.

    Attributes:
        cold_start: Read-then-flip cold start flag
        cold_starts: Every constructed handler, subset = cold starts
        profiles: Every profiling decision, subset = profiled invocations
        resources: Lazily loaded profiler and compressor bindings
    """
    cold_start: ColdStartRegistry = field(default_factory=ColdStartRegistry)
    cold_starts: RatioTracker = field(default_factory=RatioTracker)
    profiles: RatioTracker = field(default_factory=RatioTracker)
    resources: ResourceCache = field(default_factory=ResourceCache)
    _loop: Optional[asyncio.AbstractEventLoop] = field(default=None, repr=False)

    @cached_property
    def deps(self) -> Deps:
        """AWS client container, created on first access."""
        return Deps()

    @property
    def total_invocations(self) -> int:
        return self.cold_starts.total

    def register_invocation(self) -> bool:
        """
        Record a new invocation.

        Returns:
            True if this is the first invocation of the environment
        """
        is_cold_start = self.cold_start.observe()
        self.cold_starts.increment(is_cold_start)
        if is_cold_start:
            logger.info("Cold start")
        return is_cold_start

    def record_profiling_decision(self, enabled: bool) -> None:
        self.profiles.increment(enabled)

    def run(self, awaitable: Awaitable[Any]) -> Any:
        """
        Run an awaitable to completion on the environment's event loop.

        Raises:
            ConfigurationError: If called from a thread whose event loop is
                already running. Such hosts should use Handler.create_async().
        """
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            pass
        else:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            raise ConfigurationError(
                "Cannot await a stage result while an event loop is running; use Handler.create_async()"
            )
        if self._loop is None or self._loop.is_closed():
            self._loop = asyncio.new_event_loop()
        return self._loop.run_until_complete(awaitable)

    def close(self) -> None:
        """Close the environment's event loop, if one was created."""
        if self._loop is not None and not self._loop.is_closed():
            self._loop.close()
        self._loop = None

    def metrics(self) -> dict:
        """Snapshot of the environment counters."""
        return {
            "totalInvocations": self.total_invocations,
            "coldStartPercentage": self.cold_starts.percentage(),
            "profilePercentage": self.profiles.percentage(),
        }
