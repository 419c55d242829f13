"""
Hash-rate over epoch samples.
A sample is an (epoch_time, hash_count) pair; hash_count is the work done in that epoch.
Results are in millions of hashes per second.
"""
from datetime import datetime
from typing import Sequence, Tuple

Sample = Tuple[datetime, int]

MEGA = 1_000_000


def _elapsed_seconds(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds()


def window_power(samples: Sequence[Sample]) -> float:
    """
    Average power across a window of samples sorted oldest first.
    The oldest sample is dropped: its hash count was accumulated before the window opened.
    """
    remaining = list(samples)[1:]
    if len(remaining) < 2:
        return 0.0

    times = [ts for ts, _ in remaining]
    elapsed = _elapsed_seconds(min(times), max(times))
    if elapsed <= 0:
        return 0.0

    total = sum(float(h or 0) for _, h in remaining)
    return total / elapsed / MEGA


def epoch_power(samples: Sequence[Sample]) -> float:
    """Latest hash count over the time between the two most recent samples."""
    if len(samples) < 2:
        return 0.0

    latest, previous = sorted(samples, key=lambda s: s[0], reverse=True)[:2]
    elapsed = _elapsed_seconds(previous[0], latest[0])
    if elapsed <= 0:
        return 0.0
    return float(latest[1] or 0) / elapsed / MEGA
