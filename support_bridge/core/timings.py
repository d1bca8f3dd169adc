"""
Step timing for relay invocations.

Usage:
    timings = Timings()
    with timings.step("check_existing_thread"):
        binding = await registry.get_binding(user_id)
    await timings.timed("send_message", gateway.post_to_thread(...))

    logger.info("done", total_duration_ms=timings.total_ms(), timings=timings.as_dict())

Steps are numbered in start order ("01_check_existing_thread") so the logged
dict reads chronologically. Timing never changes control flow: exceptions
propagate untouched.
"""

import time
from contextlib import contextmanager
from typing import Any, Awaitable, Dict, Iterator, TypeVar

T = TypeVar("T")


class Timings:
    """Records elapsed milliseconds per named step and for the whole invocation."""

    def __init__(self):
        self.start_time = time.perf_counter()
        self._steps: Dict[str, float] = {}
        self._counter = 0

    def _key(self, name: str) -> str:
        self._counter += 1
        return f"{self._counter:02d}_{name}"

    @contextmanager
    def step(self, name: str) -> Iterator[None]:
        key = self._key(name)
        started = time.perf_counter()
        try:
            yield
        finally:
            self._steps[key] = round((time.perf_counter() - started) * 1000, 2)

    async def timed(self, name: str, awaitable: Awaitable[T]) -> T:
        with self.step(name):
            return await awaitable

    def as_dict(self) -> Dict[str, Any]:
        return dict(self._steps)

    def total_ms(self) -> float:
        return round((time.perf_counter() - self.start_time) * 1000, 2)
