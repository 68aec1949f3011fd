"""Exceptions raised by the cleaning pipeline."""

from __future__ import annotations

from typing import Any, Sequence


class UsersPipelineError(Exception):
    """Base exception for pipeline errors."""


class InvalidTimestamp(UsersPipelineError):
    """Raised when `user_first_touch_timestamp` cannot be read as microseconds.

    Covers non-numeric, null, non-integral and out-of-range values on records
    that carry a `user_id`. The offending values are kept on `values`.
    """

    def __init__(self, values: Sequence[Any], reason: str = "not an integral number") -> None:
        self.values = list(values)
        self.reason = reason
        super().__init__(
            f"Invalid user_first_touch_timestamp ({reason}): {self.values!r}"
        )


class EmptyInput(UsersPipelineError):
    """Raised when the raw record set has no rows at all."""

    def __init__(self, source: str = "raw users") -> None:
        self.source = source
        super().__init__(f"{source} is empty; nothing to clean")
