# =============================================================================
# App Package - Handler Lifecycle
# =============================================================================

from lambda_patterns.app.handler import MAX_RESPONSE_ATTEMPTS, Handler, ResponseCollector, Stage
from lambda_patterns.app.options import HandlerOptions, ProfileStrategy

__all__ = [
    "MAX_RESPONSE_ATTEMPTS",
    "Handler",
    "HandlerOptions",
    "ProfileStrategy",
    "ResponseCollector",
    "Stage",
]
