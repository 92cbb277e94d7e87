"""A client that submits random values and measures their decision latency."""

from __future__ import annotations

import argparse
import hashlib
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from random import Random
from typing import Any, Callable, Optional, Sequence

from alterbft.perf import Record

_log = logging.getLogger(__name__)


@dataclass
class Decision:
    """A value together with its identifier, time and consensus instance."""

    value: bytes = b""
    value_id: int = 0
    timestamp: Optional[datetime] = None
    instance: int = 0


def _default_value_id(value: bytes) -> int:
    return int.from_bytes(hashlib.blake2b(value, digest_size=8).digest(), "little")


class Proposer:
    """Submits random values and matches decisions to pending proposals.

    ``propose`` sends a value to the system; an exception it raises
    propagates to the caller of :meth:`submit`.
    """

    def __init__(
        self,
        size: int,
        propose: Callable[[bytes], Any],
        *,
        rng: Optional[Random] = None,
        clock: Callable[[], datetime] = datetime.now,
        value_id: Callable[[bytes], int] = _default_value_id,
    ) -> None:
        if size < 0:
            raise ValueError(f"value size must not be negative, got {size}")
        self.size = size
        self._propose = propose
        self._rng = rng if rng is not None else Random()
        self._clock = clock
        self._value_id = value_id
        self._proposals: list[Decision] = []
        self._pending: dict[int, Decision] = {}

    @property
    def max_pending(self) -> int:
        """Largest number of proposals that were pending at once."""
        return len(self._proposals)

    def submit(self) -> Decision:
        """Propose a fresh random value, reusing a slot no longer pending."""
        proposal = next(
            (p for p in self._proposals if p.value_id not in self._pending), None
        )
        if proposal is None:
            proposal = Decision(value=bytes(self.size))
            self._proposals.append(proposal)
        proposal.value = self._rng.randbytes(self.size)
        proposal.value_id = self._value_id(proposal.value)
        self._pending[proposal.value_id] = proposal
        proposal.timestamp = self._clock()
        self._propose(proposal.value)
        _log.debug("proposed %s", proposal.value_id)
        return proposal

    def deliver(self, decision: Decision) -> Optional[Record]:
        """Match a decision with its proposal; None if it is not ours."""
        proposal = self._pending.pop(decision.value_id, None)
        if proposal is None:
            return None
        latency = decision.timestamp - proposal.timestamp
        _log.info(
            "decided %s %s %s",
            decision.value_id,
            latency // timedelta(milliseconds=1),
            decision.instance,
        )
        return Record(timestamp=decision.timestamp, latency=latency)

    def pending(self) -> int:
        """Number of proposals waiting for a decision."""
        return len(self._pending)


def _parse_bool(text: str) -> bool:
    if text in {"1", "t", "T", "true", "TRUE", "True"}:
        return True
    if text in {"0", "f", "F", "false", "FALSE", "False"}:
        return False
    raise argparse.ArgumentTypeError(f"invalid boolean value {text!r}")


# (flag name, destination, type, default, help)
_FLAGS: list[tuple[str, str, Any, Any, str]] = [
    # Agent setup
    ("proxy", "advertise_proxy", bool, False, "Advertise as a proxy for the agent's zone."),
    ("client", "client_mode", bool, False, "Operate in client-mode."),
    ("l", "listen_addr", str, "", "Host listen adddress in Multiaddr format"),
    ("debug", "debug", bool, False, "Enables debug."),
    ("sd", "sd", bool, False, "Enables separate dissemination"),
    ("i", "pid", int, -1, "Process ID."),
    ("n", "n", int, 0, "Number of processes."),
    ("mod", "model", str, "sync", "Network model."),
    # Consensus setup
    ("cap", "capacity", int, 1024, "Capacity of all storages."),
    ("fvcap", "fvcap", int, 1024, "Full value storage capacity."),
    # Client setup
    ("rate", "rate", float, 1.0, "Rate of proposals (values/sec)."),
    ("s", "size", int, 1024, "Size of proposed values."),
    ("d", "duration", int, 15, "Duration of the experiment in seconds."),
    ("dmax", "max_duration", int, 45, "Maximum duration of the experiment in seconds."),
    ("p", "perf_interval", int, 5, "Performance stats interval in seconds."),
    # Experiment setup
    ("e", "experiment_id", int, 0, "Experiment ID."),
    ("seed", "seed", int, 0,
     "Random seed for the experiment. When unset, the experiment ID is used."),
    ("r", "rendezvous_addr", str, "", "Rendevouz full addresses in Multiaddr format."),
    ("topology", "topology", str, "", "Topology of the agents in the experiment."),
    ("zone", "zone", str, "LAN", "Zone that hosts the agent."),
    # Transport setup
    ("k", "k", int, 0, "Target number of neighbors."),
    ("sb", "send_queues_batch_max", int, 0,
     "Send queue's maximum batch size for aggregation."),
    ("sbmin", "send_queues_batch_min", int, 0,
     "Send queue's minimum batch size for aggregation."),
    ("qsize", "default_queue_size", int, 1024, "Default size for all queues."),
    ("bqsize", "broadcast_queue_size", int, 32, "Size of broadcast queue."),
    ("dqsize", "delivery_queue_size", int, 8192, "Size of delivery queue."),
    ("sqsize", "send_queues_size", int, 65536, "Size of send queues."),
    ("sqdrop", "send_queues_drop", bool, False,
     "Set to true for send queues to drop messages when full."),
    ("rqsize", "recv_queue_size", int, 524288, "Size of receive queue."),
    ("rqdrop", "recv_queue_drop", bool, False,
     "Set to true for receive queue to drop messages when full."),
    ("gcache", "lru_cache_size", int, 262144, "Gossip LRU cache size."),
    ("sfilter", "semantic_filtering", bool, False,
     "Enables semantic filtering via gossip validator."),
    ("msgloss", "msg_loss_rate", float, 0.0, "Message loss rate."),
]


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="client", allow_abbrev=False, description="Consensus client."
    )
    for name, dest, kind, default, help_text in _FLAGS:
        options = (f"-{name}", f"--{name}")
        if kind is bool:
            parser.add_argument(
                *options, dest=dest, nargs="?", const=True, default=default,
                type=_parse_bool, help=help_text,
            )
        else:
            parser.add_argument(
                *options, dest=dest, type=kind, default=default, help=help_text
            )
    return parser


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse client command-line flags."""
    return _build_parser().parse_args(argv)


def resolve_topology(topology: str, k: int) -> str:
    """Topology the client assumes: a named one means gossip or star by ``k``."""
    if topology:
        return "gossip" if k > 0 else "star"
    return "full"


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Entry point of the client command, which is no longer supported."""
    raise RuntimeError("Client deprecated, do not use it!")