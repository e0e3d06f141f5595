# clipcapture/utils/timing.py
from __future__ import annotations

import functools
import inspect
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, TypeVar

from clipcapture.utils.logger import get_logger

F = TypeVar("F", bound=Callable[..., Any])


# ---------------- Monotonic time helpers ----------------

def now_ms() -> int:
    """Monotonic time in milliseconds."""
    return time.monotonic_ns() // 1_000_000


# ---------------- Stopwatch ----------------

@dataclass
class Stopwatch:
    """Simple stopwatch usable as a context manager."""
    start_ms: Optional[int] = None

    def start(self) -> "Stopwatch":
        self.start_ms = now_ms()
        return self

    def elapsed_ms(self) -> int:
        if self.start_ms is None:
            return 0
        return max(0, now_ms() - self.start_ms)

    def __enter__(self) -> "Stopwatch":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        return None


def _human(ms: int) -> str:
    return f"{ms} ms" if ms < 1000 else f"{ms/1000:.3f} s"


# ---------------- measure decorator ----------------

def measure(label: str = "", level: str = "INFO") -> Callable[[F], F]:
    """
    Decorator to log the execution time of a function or coroutine function.
    Example:
        @measure("clipboard_capture", level="DEBUG")
        async def capture(...): ...
    """
    level = level.upper()

    def decorator(func: F) -> F:
        name = label or func.__name__

        def _report(sw: Stopwatch) -> None:
            log = get_logger(__name__)
            log_fn = getattr(log, level.lower(), log.info)
            log_fn(f"{name} took {_human(sw.elapsed_ms())}")

        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                with Stopwatch() as sw:
                    try:
                        return await func(*args, **kwargs)
                    finally:
                        _report(sw)
            return async_wrapper  # type: ignore[return-value]

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            with Stopwatch() as sw:
                try:
                    return func(*args, **kwargs)
                finally:
                    _report(sw)
        return wrapper  # type: ignore[return-value]
    return decorator
