"""Configuration of a consensus process."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Optional


@dataclass
class Config:
    """Settings that control a consensus process.

    Fields left at their defaults hold the zero value; use
    :func:`default_config` for the recommended settings.
    """

    log: Optional[logging.Logger] = None

    # Clock tick period of the bootstrap protocol; a process announces
    # itself again after every interval.
    bootstrap_tick_interval: timedelta = timedelta(0)

    # When positive, the maximum number of epochs to start.
    max_epoch_to_start: int = 0

    # Maximum number of epochs started but not yet decided.
    max_active_epochs: int = 0

    # Maximum number of blockchain heights kept in the blockchain window.
    blockchain_size: int = 0

    # Network model in which the process operates.
    model: str = ""

    # Identifiers of byzantine processes.
    byzantines: Optional[set[int]] = None

    # Time a byzantine leader waits before proposing.
    byz_time: int = 0

    # Name of the byzantine attack.
    byz_attack: str = ""

    # Number of chunks used when disseminating values in chunks.
    chunks_number: int = 0

    # Prefix of decided consensus instances to track.
    past_instances_tracked: int = 0

    # Suffix of not yet started consensus instances to track.
    future_instances_tracked: int = 0

    # Length of internal message processing queues.
    message_queues_size: int = 0

    # Schedule and trigger timeouts; without them failures are not tolerated.
    schedule_timeouts: bool = False

    # Verify signatures of received messages against ``public_keys``.
    verify_signatures: bool = False

    # Threads producing signatures; zero means the main thread.
    signature_generation_threads: int = 0

    # Threads verifying signatures; zero means the main thread.
    signature_verification_threads: int = 0

    private_keys: list[Any] = field(default_factory=list)
    public_keys: list[Any] = field(default_factory=list)

    # Maximum communication delays in the synchronous model.
    timeout_small_delta: timedelta = timedelta(0)
    timeout_big_delta: timedelta = timedelta(0)
    fast_alter_enabled: bool = False

    # When set, the interval for publishing process statistics.
    stats_publishing_interval: timedelta = timedelta(0)


def default_config() -> Config:
    """Return the default configuration."""
    return Config(
        bootstrap_tick_interval=timedelta(milliseconds=100),
        past_instances_tracked=16,
        future_instances_tracked=16,
        max_active_epochs=2000,
        blockchain_size=2000,
        model="sync",
        byzantines=None,
        byz_time=0,
        message_queues_size=32,
        signature_generation_threads=0,
        signature_verification_threads=0,
        schedule_timeouts=True,
        timeout_small_delta=timedelta(seconds=1) / 5,
        timeout_big_delta=timedelta(seconds=1),
        fast_alter_enabled=False,
        chunks_number=64,
    )