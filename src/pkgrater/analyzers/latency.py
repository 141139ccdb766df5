"""Timed invocation of metric scorers."""

import inspect
import logging
import math
import numbers
import time
from collections.abc import Awaitable, Callable
from typing import NamedTuple

logger = logging.getLogger(__name__)


class TimedScore(NamedTuple):
    """A scorer result and the wall-clock seconds it took."""

    value: float
    latency: float
    failed: bool = False


class MalformedScoreError(ValueError):
    """Raised when a scorer returns something that is not a finite number."""


def _coerce(result: object, name: str) -> float:
    if isinstance(result, bool) or not isinstance(result, numbers.Real):
        raise MalformedScoreError(f"{name} returned {type(result).__name__}, expected a number")
    value = float(result)
    if math.isnan(value):
        raise MalformedScoreError(f"{name} returned NaN")
    return min(1.0, max(0.0, value))


async def latency_wrapper(
    scorer_fn: Callable[[], float | Awaitable[float]],
    name: str,
) -> TimedScore:
    """Run a scorer and measure how long it takes.

    The scorer may be a plain or an async callable. Its result is clamped
    into [0, 1]. Failures never propagate: any exception, or a result that
    is not a number, yields a value of 0 with the time elapsed up to the
    failure.

    Args:
        scorer_fn: Zero-argument callable producing the score.
        name: Metric name, used in log messages.

    Returns:
        TimedScore with the value and latency in seconds.
    """
    start_time = time.perf_counter()
    try:
        result = scorer_fn()
        if inspect.isawaitable(result):
            result = await result
        value = _coerce(result, name)
    except Exception as e:
        latency = time.perf_counter() - start_time
        logger.warning(f"Scorer {name} failed after {latency:.3f}s: {e}")
        return TimedScore(0.0, latency, failed=True)

    latency = time.perf_counter() - start_time
    logger.debug(f"Scorer {name} returned {value:.3f} in {latency:.3f}s")
    return TimedScore(value, latency)
