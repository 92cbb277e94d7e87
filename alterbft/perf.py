"""Latency and throughput statistics of decided values."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional


@dataclass(frozen=True)
class Record:
    """A decided value: when it was decided and how long it took."""

    timestamp: datetime
    latency: timedelta


def format_duration(duration: timedelta) -> str:
    """Render a duration compactly, e.g. ``150ms``, ``1.5s`` or ``1h2m3s``."""
    micros = (duration.days * 86400 + duration.seconds) * 1_000_000
    micros += duration.microseconds
    if micros == 0:
        return "0s"
    sign = "-" if micros < 0 else ""
    micros = abs(micros)
    if micros < 1000:
        return f"{sign}{micros}µs"
    if micros < 1_000_000:
        return f"{sign}{_with_fraction(micros // 1000, micros % 1000, 3)}ms"
    total_seconds, fraction = divmod(micros, 1_000_000)
    hours, rest = divmod(total_seconds, 3600)
    minutes, seconds = divmod(rest, 60)
    text = sign
    if hours:
        text += f"{hours}h"
    if hours or minutes:
        text += f"{minutes}m"
    return f"{text}{_with_fraction(seconds, fraction, 6)}s"


def _with_fraction(whole: int, fraction: int, digits: int) -> str:
    if fraction == 0:
        return str(whole)
    return f"{whole}.{fraction:0{digits}d}".rstrip("0")


class Perf:
    """Performance data gathered over an experiment or an interval."""

    def __init__(self) -> None:
        self.values = 0
        self.start_time: Optional[datetime] = None
        self.end_time: Optional[datetime] = None
        # Running mean and sum of squared deviations of latencies, in seconds.
        self._mean = 0.0
        self._squares = 0.0

    def add(self, record: Record) -> None:
        """Account for a decided value."""
        self.values += 1
        if self.end_time is None or record.timestamp > self.end_time:
            self.end_time = record.timestamp
        proposed_at = record.timestamp - record.latency
        if self.start_time is None or proposed_at < self.start_time:
            self.start_time = proposed_at

        # Welford's online algorithm.
        latency = record.latency.total_seconds()
        delta = latency - self._mean
        self._mean += delta / self.values
        self._squares += delta * (latency - self._mean)

    def values_per_sec(self) -> float:
        """Throughput in decided values per second over the measured span."""
        if self.start_time is None or self.end_time is None:
            elapsed = 0.0
        else:
            elapsed = (self.end_time - self.start_time).total_seconds()
        if elapsed == 0:
            return math.inf if self.values else math.nan
        return self.values / elapsed

    def latency_mean(self) -> timedelta:
        """Mean latency of the recorded values."""
        return timedelta(seconds=self._mean)

    def latency_stdev(self) -> timedelta:
        """Sample standard deviation of latencies; zero below two values."""
        if self.values < 2:
            return timedelta(0)
        return timedelta(seconds=math.sqrt(self._squares / (self.values - 1)))

    def reset(self) -> None:
        """Discard all recorded data."""
        self.values = 0
        self.start_time = None
        self.end_time = None
        self._mean = 0.0
        self._squares = 0.0


def perf_summary(perf: Perf) -> str:
    """One-line summary of performance data."""
    return (
        f"{perf.values} values"
        f", {perf.values_per_sec():.3f} values/s"
        f", latency: {format_duration(perf.latency_mean())}"
        f" +- {format_duration(perf.latency_stdev())}"
    )