# apptelemetry/exceptions.py
"""
Errors raised by the telemetry wrapper itself.
"""


class InvalidArgumentError(ValueError):
    """Raised when a caller or method name label is missing or blank."""
    pass
