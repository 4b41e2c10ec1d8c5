"""Concurrent fan-out of independent per-audience tasks with isolated failures."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Hashable, Sequence
from dataclasses import dataclass, field
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

ItemT = TypeVar("ItemT")
ResultT = TypeVar("ResultT")
KeyT = TypeVar("KeyT", bound=Hashable)


@dataclass(slots=True)
class TimedOutcome(Generic[ResultT]):
    """A successful task result with how long the task took."""

    key: str
    value: ResultT
    duration_seconds: float


@dataclass(slots=True)
class FanOutFailure:
    key: str
    cause: BaseException
    duration_seconds: float = 0.0

    @property
    def reason(self) -> str:
        if isinstance(self.cause, TimeoutError):
            return "timed out"
        return str(self.cause) or type(self.cause).__name__


@dataclass(slots=True)
class FanOutResult(Generic[ResultT]):
    """Every outcome of one fan-out, successes and failures alike."""

    successes: list[TimedOutcome[ResultT]] = field(default_factory=list)
    failures: list[FanOutFailure] = field(default_factory=list)
    wall_clock_seconds: float = 0.0

    @property
    def sum_task_seconds(self) -> float:
        return sum(o.duration_seconds for o in self.successes) + sum(
            f.duration_seconds for f in self.failures
        )

    @property
    def parallel_efficiency(self) -> float:
        """Wall-clock time divided by the summed task time (1.0 when nothing ran)."""
        total = self.sum_task_seconds
        if total <= 0:
            return 1.0
        return round(self.wall_clock_seconds / total, 4)

    @property
    def all_failed(self) -> bool:
        return bool(self.failures) and not self.successes

    @property
    def values(self) -> list[ResultT]:
        return [outcome.value for outcome in self.successes]


async def fan_out(
    items: Sequence[ItemT],
    worker: Callable[[ItemT], Awaitable[ResultT]],
    *,
    key: Callable[[ItemT], str] = str,
    label: str = "fan_out",
) -> FanOutResult[ResultT]:
    """Run ``worker`` for every item concurrently and collect every outcome.

    Each task catches its own exception, so one failure never cancels its
    siblings. Outcomes are returned in the order of ``items``.
    """

    async def _run_one(item: ItemT) -> tuple[str, ResultT | None, BaseException | None, float]:
        item_key = key(item)
        t0 = time.perf_counter()
        try:
            value = await worker(item)
            return item_key, value, None, time.perf_counter() - t0
        except Exception as exc:
            elapsed = time.perf_counter() - t0
            logger.warning(
                "Fan-out task failed",
                extra={
                    "label": label,
                    "key": item_key,
                    "error": str(exc) or type(exc).__name__,
                    "duration_s": round(elapsed, 3),
                },
            )
            return item_key, None, exc, elapsed

    t0 = time.perf_counter()
    outcomes = await asyncio.gather(*[_run_one(item) for item in items])
    wall_clock = time.perf_counter() - t0

    result: FanOutResult[ResultT] = FanOutResult(wall_clock_seconds=wall_clock)
    for item_key, value, error, elapsed in outcomes:
        if error is not None:
            result.failures.append(FanOutFailure(item_key, error, elapsed))
        else:
            result.successes.append(TimedOutcome(item_key, value, elapsed))  # type: ignore[arg-type]

    logger.info(
        "Fan-out complete",
        extra={
            "label": label,
            "task_count": len(items),
            "succeeded": len(result.successes),
            "failed": len(result.failures),
            "wall_clock_s": round(wall_clock, 3),
            "parallel_efficiency": result.parallel_efficiency,
        },
    )
    return result
