# =============================================================================
# Ratio Tracker
# =============================================================================
# Counts how many recorded values match a predicate. Used by the execution
# environment for cold start and profiling rates.
# =============================================================================

import threading
from typing import Any, Callable


def truthy(value: Any) -> bool:
    """Default predicate: the value itself is truthy."""
    return bool(value)


class RatioTracker:
    """
    Running ratio of values matching a predicate.

    Attributes:
        total: Number of values recorded
        subset: Number of recorded values for which the predicate held
        predicate: Function deciding whether a value belongs to the subset
    """

    def __init__(self, predicate: Callable[[Any], bool] = truthy):
        self.predicate = predicate
        self.total = 0
        self.subset = 0
        self._lock = threading.Lock()

    def increment(self, value: Any) -> None:
        """Record a value."""
        matches = bool(self.predicate(value))
        with self._lock:
            self.total += 1
            if matches:
                self.subset += 1

    def percentage(self) -> float:
        """Ratio of subset to total in the 0..1 range (0.0 when empty)."""
        with self._lock:
            if self.total == 0:
                return 0.0
            return self.subset / self.total

    def below(self, target_percentage: float) -> bool:
        """
        Whether percentage() * 100 is strictly below a 0..100 target.

        Compared as subset * 100 < target * total so values like 29/100 are
        not misjudged by float rounding.
        """
        with self._lock:
            if self.total == 0:
                return 0 < target_percentage
            return self.subset * 100 < target_percentage * self.total

    def __float__(self) -> float:
        return self.percentage()

    def __repr__(self) -> str:
        return f"RatioTracker(subset={self.subset}, total={self.total})"
