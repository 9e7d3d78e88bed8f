import time
from dataclasses import dataclass
from typing import Any, Callable


class UpstreamError(Exception):
    pass


class EmptyResultError(UpstreamError):
    pass


class RetryExhaustedError(UpstreamError):
    def __init__(self, attempts: int, last_error: Exception = None):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Upstream call failed after {attempts} attempt(s): {last_error!r}")


def is_empty_result(value) -> bool:
    """
    True for payloads that carry no data: None, empty containers, empty
    DataFrames/Series, and API envelopes whose ``results`` entry is empty or
    not a list.
    """
    if value is None:
        return True
    if isinstance(value, dict):
        if not value:
            return True
        if "results" in value:
            results = value.get("results")
            return not isinstance(results, list) or not results
        return False
    if isinstance(value, (list, tuple, set)):
        return not value
    empty = getattr(value, "empty", None)
    if isinstance(empty, bool):
        return empty
    return False


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    backoff_seconds: float = 1.0
    sleep: Callable[[float], None] = time.sleep

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.backoff_seconds < 0:
            raise ValueError("backoff_seconds must not be negative")

    def delay_for(self, attempt: int) -> float:
        return self.backoff_seconds * attempt

    def call(self, producer: Callable[[], Any], is_empty: Callable[[Any], bool] = is_empty_result):
        last_exc = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                value = producer()
            except Exception as exc:
                last_exc = exc
            else:
                if is_empty is None or not is_empty(value):
                    return value
                last_exc = EmptyResultError("Upstream returned no results")
            if attempt < self.max_attempts:
                self.sleep(self.delay_for(attempt))
        raise RetryExhaustedError(self.max_attempts, last_exc) from last_exc
