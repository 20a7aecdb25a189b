# apptelemetry/core_utils.py
import time

from apptelemetry.exceptions import InvalidArgumentError


class Stopwatch:
    """Elapsed-time measurement started at call entry and read once at call exit."""

    __slots__ = ('_start',)

    def __init__(self):
        self._start = time.perf_counter()

    @classmethod
    def start_new(cls) -> 'Stopwatch':
        return cls()

    def elapsed_seconds(self) -> float:
        return time.perf_counter() - self._start

    def __repr__(self):
        return f"Stopwatch(elapsed={self.elapsed_seconds():.6f}s)"


def validate_label_value(label, value):
    """Validate that a label value is a string with at least one non-whitespace character"""
    if not isinstance(value, str) or not value.strip():
        raise InvalidArgumentError(f"{label} is not specified")
    return True
