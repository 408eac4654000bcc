# =============================================================================
# Exceptions
# =============================================================================
# Errors raised synchronously to the caller. Everything that happens during an
# invocation is delivered through the platform callback instead.
# =============================================================================


class ConfigurationError(ValueError):
    """Raised when a handler is created with an invalid processor or options."""
