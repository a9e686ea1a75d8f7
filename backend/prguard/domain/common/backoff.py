"""Exponential backoff schedule shared by detector retries and mail delivery."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class BackoffPolicy:
    """``delay(n) = min(cap, base * factor ** (n - 1))`` for the n-th retry."""

    base_seconds: float
    factor: float = 2.0
    cap_seconds: float | None = None

    def delay(self, retry_number: int) -> float:
        if retry_number < 1:
            raise ValueError(f"retry_number must be >= 1, got {retry_number}")
        delay = self.base_seconds * self.factor ** (retry_number - 1)
        if self.cap_seconds is not None:
            delay = min(delay, self.cap_seconds)
        return delay
