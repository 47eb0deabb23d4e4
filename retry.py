"""
retry.py — Bounded retry around generation-service calls.

The same policy wraps leaf, directory and line-correction requests; the
delay grows linearly with the attempt number.
"""

from __future__ import annotations
import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from errors import ServiceError


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 4
    base_delay: float = 2.0

    @classmethod
    def none(cls) -> "RetryPolicy":
        return cls(max_attempts=1, base_delay=0.0)

    def delay_for(self, attempt: int) -> float:
        return self.base_delay * attempt


async def call_with_retry(
    policy: RetryPolicy,
    fn: Callable[..., Awaitable[str]],
    *args: Any,
    label: str = "call",
    log: Optional[Callable[[str], None]] = None,
    **kwargs: Any,
) -> str:
    attempts = max(1, policy.max_attempts)
    last_error: Optional[BaseException] = None
    for attempt in range(1, attempts + 1):
        try:
            text = await fn(*args, **kwargs)
            if not text or not text.strip():
                raise ServiceError("empty response")
            return text.strip()
        except Exception as e:
            last_error = e
            if attempt >= attempts:
                break
            delay = policy.delay_for(attempt)
            if log is not None:
                log(f"  [{label}] attempt {attempt}/{attempts} failed: {e}; retrying in {delay:.1f}s")
            await asyncio.sleep(delay)

    raise ServiceError(f"{label} failed after {attempts} attempts: {last_error}") from last_error
