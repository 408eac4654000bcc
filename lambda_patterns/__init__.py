# =============================================================================
# lambda-patterns
# =============================================================================
# A set of abstractions and helpers for working with lambdas.
#
#   from lambda_patterns import Handler
#
#   handler = Handler.create(lambda h: {"statusCode": 200, "body": "ok"})
# =============================================================================

from lambda_patterns.app import Handler, HandlerOptions, ProfileStrategy, ResponseCollector, Stage
from lambda_patterns.exceptions import ConfigurationError
from lambda_patterns.runtime import ExecutionEnvironment, LocalContext, decode_profile

__version__ = "1.1.0"

__all__ = [
    "ConfigurationError",
    "ExecutionEnvironment",
    "Handler",
    "HandlerOptions",
    "LocalContext",
    "ProfileStrategy",
    "ResponseCollector",
    "Stage",
    "decode_profile",
]
