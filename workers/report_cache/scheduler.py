"""Fixed-interval scheduler for periodic report refreshes."""
from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable


def next_tick(reference: datetime, interval_seconds: int) -> datetime:
    """Return the next interval boundary strictly after ``reference``.

    Boundaries are aligned to the UTC epoch so that every worker replica
    agrees on when a refresh is due.
    """

    if interval_seconds <= 0:
        raise ValueError("interval_seconds must be positive")
    tz = reference.tzinfo or timezone.utc
    aware = reference if reference.tzinfo else reference.replace(tzinfo=tz)
    epoch = datetime(1970, 1, 1, tzinfo=timezone.utc)
    elapsed = (aware - epoch).total_seconds()
    ticks = int(elapsed // interval_seconds) + 1
    return (epoch + timedelta(seconds=ticks * interval_seconds)).astimezone(tz)


async def run_interval_scheduler(
    callback: Callable[[], Awaitable[object]],
    *,
    interval_seconds: int,
    now_fn: Callable[[], datetime] | None = None,
    sleep_fn: Callable[[float], Awaitable[None]] = asyncio.sleep,
    iterations: int | None = None,
) -> None:
    """Invoke ``callback`` at every interval boundary relative to ``now_fn``."""

    now_provider = now_fn or (lambda: datetime.now(timezone.utc))
    executed = 0

    while iterations is None or executed < iterations:
        now = now_provider()
        target = next_tick(now, interval_seconds)
        delay = max((target - now).total_seconds(), 0.0)
        await sleep_fn(delay)
        await callback()
        executed += 1
