# =============================================================================
# Handler Options
# =============================================================================
# Resolution order: built-in defaults < environment variables < options passed
# to Handler.create() as a mapping. A HandlerOptions instance is taken as
# complete and is not merged with the environment. Resolved options are
# immutable.
#
# Environment variables:
#   LAMBDA_PATTERNS_PROFILE_STRATEGY     ALWAYS | NEVER | ALL_COLD_STARTS |
#                                        ONE_COLD_ONE_WARM | PERCENTAGE
#   LAMBDA_PATTERNS_PROFILE_PERCENTAGE   integer 0-100 (default 10)
#   LAMBDA_PATTERNS_WAIT_FOR_EVENT_LOOP  true | false (default true)
# =============================================================================

import os
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Union

from lambda_patterns.exceptions import ConfigurationError


ENV_PREFIX = "LAMBDA_PATTERNS_"
DEFAULT_PROFILE_PERCENTAGE = 10


class ProfileStrategy(str, Enum):
    """Strategies understood by the default should_profile policy."""
    ALWAYS = "ALWAYS"
    NEVER = "NEVER"
    ALL_COLD_STARTS = "ALL_COLD_STARTS"
    ONE_COLD_ONE_WARM = "ONE_COLD_ONE_WARM"
    PERCENTAGE = "PERCENTAGE"

    @classmethod
    def parse(cls, value: Union[str, "ProfileStrategy", None]) -> Optional["ProfileStrategy"]:
        if value is None or value == "":
            return None
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            valid = ", ".join(s.value for s in cls)
            raise ConfigurationError(f"Unknown profile strategy {value!r} (expected one of {valid})") from None


def _get_env(key: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(ENV_PREFIX + key, default)


def _get_env_bool(key: str, default: bool) -> bool:
    return _get_env(key, str(default)).strip().lower() == "true"


def _get_env_int(key: str, default: int) -> int:
    raw = _get_env(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{ENV_PREFIX}{key} must be an integer, got {raw!r}") from None


def _check_percentage(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"profile_percentage must be an integer, got {value!r}")
    if not 0 <= value <= 100:
        raise ConfigurationError(f"profile_percentage must be between 0 and 100, got {value}")
    return value


def _check_bool(name: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise ConfigurationError(f"{name} must be a boolean, got {value!r}")
    return value


@dataclass(frozen=True)
class HandlerOptions:
    """
    Options which modify the behavior of a handler.

    Attributes:
        should_profile: Function receiving the handler and returning whether
            CPU profiling should run for the invocation. Defaults to the
            strategy-driven policy in lambda_patterns.app.strategies.

            WARNING: Profiling impacts performance. Sample sparingly in
            production.
        profile_strategy: Strategy consulted by the default should_profile.
            Unset behaves like NEVER.
        profile_percentage: Target share of profiled invocations (0-100) for
            the PERCENTAGE strategy.
        wait_for_event_loop: When False, the host is told to freeze the process
            as soon as the callback fires rather than waiting for outstanding
            background work.

            WARNING: Only disable this if no application critical work is
            still running asynchronously when the callback is invoked.
        extra: Any other options passed by the caller, readable with get()
    """
    should_profile: Optional[Callable[[Any], bool]] = None
    profile_strategy: Optional[ProfileStrategy] = None
    profile_percentage: int = DEFAULT_PROFILE_PERCENTAGE
    wait_for_event_loop: bool = True
    extra: Dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        """Get a known option by name, falling back to extra options."""
        if key in _FIELD_NAMES and key != "extra":
            return getattr(self, key)
        return self.extra.get(key, default)

    @classmethod
    def from_env(cls) -> "HandlerOptions":
        """Build options from LAMBDA_PATTERNS_* environment variables."""
        return cls(
            profile_strategy=ProfileStrategy.parse(_get_env("PROFILE_STRATEGY")),
            profile_percentage=_check_percentage(
                _get_env_int("PROFILE_PERCENTAGE", DEFAULT_PROFILE_PERCENTAGE)
            ),
            wait_for_event_loop=_get_env_bool("WAIT_FOR_EVENT_LOOP", True),
        )

    @classmethod
    def resolve(
        cls,
        options: Union["HandlerOptions", Mapping[str, Any], None] = None,
        default_should_profile: Optional[Callable[[Any], bool]] = None,
    ) -> "HandlerOptions":
        """
        Merge caller options over environment defaults.

        A mapping or None is layered over the LAMBDA_PATTERNS_* environment
        variables. A HandlerOptions instance is already complete: every field
        on it counts as set by the caller, so environment variables are not
        consulted.

        Args:
            options: HandlerOptions, a mapping of option names, or None
            default_should_profile: Policy used when no should_profile is given

        Returns:
            Validated options with should_profile always set

        Raises:
            ConfigurationError: If an option has an invalid value
        """
        if isinstance(options, HandlerOptions):
            base = options
            overrides: Dict[str, Any] = {
                f.name: getattr(options, f.name) for f in fields(options) if f.name != "extra"
            }
            overrides["extra"] = dict(options.extra)
        elif options is None:
            base = cls.from_env()
            overrides = {}
        elif isinstance(options, Mapping):
            base = cls.from_env()
            overrides = {"extra": {}}
            for key, value in options.items():
                if key in _FIELD_NAMES and key != "extra":
                    overrides[key] = value
                else:
                    overrides["extra"][key] = value
        else:
            raise ConfigurationError(f"Options must be a mapping or HandlerOptions, got {type(options).__name__}")

        if "profile_strategy" in overrides:
            overrides["profile_strategy"] = ProfileStrategy.parse(overrides["profile_strategy"])
        if "profile_percentage" in overrides:
            overrides["profile_percentage"] = _check_percentage(overrides["profile_percentage"])
        if "wait_for_event_loop" in overrides:
            overrides["wait_for_event_loop"] = _check_bool("wait_for_event_loop", overrides["wait_for_event_loop"])

        resolved = replace(base, **overrides)

        should_profile = resolved.should_profile or default_should_profile
        if should_profile is not None and not callable(should_profile):
            raise ConfigurationError("should_profile must be callable")
        return replace(resolved, should_profile=should_profile)


_FIELD_NAMES = frozenset(f.name for f in fields(HandlerOptions))
