# =============================================================================
# Invocation Context Helpers
# =============================================================================
# The Lambda runtime hands handlers an attribute-style context object, while
# tests and local tooling often pass plain dicts. These helpers read and write
# the few context fields the lifecycle needs from either shape.
# =============================================================================

import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

WAIT_FLAG = "callback_waits_for_empty_event_loop"
WAIT_FLAG_KEY = "callbackWaitsForEmptyEventLoop"


@dataclass
class LocalContext:
    """
    Stand-in for the Lambda context object when invoking handlers locally.

    Attributes:
        aws_request_id: Unique identifier for this invocation
        function_name: Name reported to the handler
        function_version: Version reported to the handler
        memory_limit_in_mb: Configured memory size
        invoked_function_arn: ARN the function was invoked with
        timeout_ms: Invocation timeout used by get_remaining_time_in_millis()
        callback_waits_for_empty_event_loop: Whether the host waits for
            background work before freezing the process
        client_context: Optional client context data
    """
    aws_request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    function_name: str = "local"
    function_version: str = "$LATEST"
    memory_limit_in_mb: int = 128
    invoked_function_arn: str = "arn:aws:lambda:local:000000000000:function:local"
    timeout_ms: int = 3000
    callback_waits_for_empty_event_loop: bool = True
    client_context: Optional[Dict[str, Any]] = None
    started_at: float = field(default_factory=time.monotonic, repr=False)

    def get_remaining_time_in_millis(self) -> int:
        """Milliseconds left before the configured timeout."""
        elapsed_ms = int((time.monotonic() - self.started_at) * 1000)
        return max(self.timeout_ms - elapsed_ms, 0)

    def to_dict(self) -> Dict[str, Any]:
        """Convert context to a dict using Lambda's camelCase names."""
        return {
            "awsRequestId": self.aws_request_id,
            "functionName": self.function_name,
            "functionVersion": self.function_version,
            "memoryLimitInMB": self.memory_limit_in_mb,
            "invokedFunctionArn": self.invoked_function_arn,
            WAIT_FLAG_KEY: self.callback_waits_for_empty_event_loop,
        }


def request_id_of(context: Any) -> Optional[str]:
    """Get the per-invocation request id from an object or dict context."""
    if context is None:
        return None
    if isinstance(context, dict):
        return context.get("awsRequestId") or context.get("aws_request_id")
    return getattr(context, "aws_request_id", None)


def set_wait_for_empty_event_loop(context: Any, value: bool) -> None:
    """Set the host's "wait for background work" flag on the context."""
    if isinstance(context, dict):
        context[WAIT_FLAG_KEY] = value
    else:
        setattr(context, WAIT_FLAG, value)


def waits_for_empty_event_loop(context: Any) -> bool:
    """Read the "wait for background work" flag (True when absent)."""
    if isinstance(context, dict):
        return bool(context.get(WAIT_FLAG_KEY, True))
    return bool(getattr(context, WAIT_FLAG, True))
