# =============================================================================
# Cold Start Registry
# =============================================================================
# True for the first handler observed by an execution environment, False for
# every handler after that.
# =============================================================================

import threading


class ColdStartRegistry:
    """Single read-then-flip flag shared by all invocations of an environment."""

    def __init__(self):
        self._cold = True
        self._lock = threading.Lock()

    def observe(self) -> bool:
        """Return the current flag and flip it to False."""
        with self._lock:
            cold = self._cold
            self._cold = False
            return cold
