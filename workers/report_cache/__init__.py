"""Report cache worker: recompute jobs and periodic dashboard refresh."""

from .scheduler import next_tick, run_interval_scheduler

__all__ = ["next_tick", "run_interval_scheduler"]
