# =============================================================================
# Profiling Strategies
# =============================================================================
# The default should_profile policy. Each strategy receives the handler being
# initialized and returns whether CPU profiling should run for it.
# =============================================================================

from typing import Any, Callable, Dict

from lambda_patterns.app.options import ProfileStrategy


# ONE_COLD_ONE_WARM profiles while fewer than this many handlers exist.
ONE_COLD_ONE_WARM_LIMIT = 3

StrategyFunc = Callable[[Any], bool]


def always(handler: Any = None) -> bool:
    """Always profile."""
    return True


def never(handler: Any = None) -> bool:
    """Never profile."""
    return False


def all_cold_starts(handler: Any) -> bool:
    """Profile the first invocation of every execution environment."""
    return bool(handler.is_cold_start)


def one_cold_one_warm(handler: Any) -> bool:
    """Profile the cold start and the warm invocation right after it."""
    return handler.environment.cold_starts.total < ONE_COLD_ONE_WARM_LIMIT


def percentage(handler: Any) -> bool:
    """
    Profile whenever the running profiled share is below the target.

    The comparison is made before this invocation's decision is recorded, so
    a run of unprofiled invocations pulls the share under the target and the
    next invocation is profiled. The very first invocation of an environment
    is profiled whenever the target is above 0.
    """
    return handler.environment.profiles.below(handler.options.profile_percentage)


STRATEGIES: Dict[ProfileStrategy, StrategyFunc] = {
    ProfileStrategy.ALWAYS: always,
    ProfileStrategy.NEVER: never,
    ProfileStrategy.ALL_COLD_STARTS: all_cold_starts,
    ProfileStrategy.ONE_COLD_ONE_WARM: one_cold_one_warm,
    ProfileStrategy.PERCENTAGE: percentage,
}


def should_profile(handler: Any) -> bool:
    """Decide whether to profile according to handler.options.profile_strategy."""
    strategy = handler.options.profile_strategy
    if strategy is None:
        return False
    return STRATEGIES[strategy](handler)
