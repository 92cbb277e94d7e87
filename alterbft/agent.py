"""Command-line settings and setup helpers for a consensus agent."""

from __future__ import annotations

import argparse
import logging
import socket
import struct
from datetime import timedelta
from pathlib import Path
from random import Random
from typing import Any, Callable, Optional, Sequence, Union

from alterbft.config import Config, default_config

_log = logging.getLogger(__name__)

HOSTNAME_PREFIX = "node"
RENDEZVOUS_LOG_FILE = "./rendezvous.log"
_RENDEZVOUS_PREFIX = "Rendezvous address: "

_MASK64 = (1 << 64) - 1
_FNV64_OFFSET = 0xCBF29CE484222325
_FNV64_PRIME = 0x100000001B3

_TRUE_WORDS = {"1", "t", "T", "true", "TRUE", "True"}
_FALSE_WORDS = {"0", "f", "F", "false", "FALSE", "False"}


def _parse_bool(text: str) -> bool:
    if text in _TRUE_WORDS:
        return True
    if text in _FALSE_WORDS:
        return False
    raise argparse.ArgumentTypeError(f"invalid boolean value {text!r}")


FlagType = Union[type, Callable[[str], Any]]

# (flag name, destination, type, default, help)
_FLAGS: list[tuple[str, str, FlagType, Any, str]] = [
    # Workload
    ("rate", "rate", float, 1.0, "Rate of proposals (values/sec)."),
    ("s", "size", int, 1024, "Size of proposed values."),
    ("d", "duration", int, 15, "Duration of the experiment in seconds."),
    ("dmax", "max_duration", int, 30, "Maximum duration of the experiment in seconds."),
    ("p", "perf_interval", int, 5, "Performance stats interval in seconds."),
    ("dir", "log_directory", str, ".", "Directory for writting log files, it must exist."),
    # Process
    ("client", "client_mode", bool, False, "Operate in client-mode."),
    ("debug", "debug", bool, False, "Enables debug."),
    ("sd", "sd", bool, False, "Enables separate dissemination"),
    ("e", "experiment_id", int, 0, "Experiment ID."),
    ("i", "pid", int, -1, "Process ID."),
    ("n", "n", int, 0, "Number of processes."),
    ("k", "k", int, 0, "Target number of neighbors."),
    ("mod", "model", str, "alter", "Network model."),
    ("fast", "fast", bool, False, "Enable FastAlter optimization. "),
    ("byz", "num_byzantines", int, 0, "Number of byzantines."),
    ("byzTime", "byz_time", int, 0, "Time a byzantine leader should wait."),
    ("attack", "byz_attack", str, "silence", "Byzantine attack."),
    # Agent setup
    ("cap", "capacity", int, 1024, "Capacity of all storages."),
    ("fvcap", "fvcap", int, 1024, "Full value storage capacity."),
    ("s-delta", "small_delta", int, 150, "Sync delta in milliseconds."),
    ("b-delta", "big_delta", int, 1000, "Sync delta in milliseconds."),
    ("cool", "cool_time", int, 10, "Cool down time in seconds."),
    # Host and discovery
    ("l", "listen_addr", str, "", "Host listen adddress in Multiaddr format"),
    ("lp", "public_addr", str, "", "Host public/external adddress in Multiaddr format"),
    ("r", "rendezvous_addr", str, "", "Rendevouz full addresses in Multiaddr format."),
    # Experiment
    ("zone", "zone", str, "LAN", "Zone that hosts the agent."),
    ("proxy", "advertise_proxy", bool, True, "Advertise as a proxy for the agent's zone."),
    ("seed", "seed", int, 0,
     "Random seed for the experiment. When unset, the experiment ID is used."),
    ("topology", "topology", str, "", "Topology of the agents in the experiment."),
    ("maxEpoch", "max_epoch", int, 100, "Maximum number of epochs to run in the experiment."),
    ("cNum", "chunks_number", int, 64, "Number of chunks."),
    # Gossip filtering
    ("gcache", "lru_cache_size", int, 262144, "Gossip LRU cache size."),
    ("sfilter", "semantic_filtering", bool, False,
     "Enables semantic filtering via gossip validator."),
    # Gossip queues
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
    ("msgloss", "msg_loss_rate", float, 0.0, "Message loss rate."),
    # Profiling
    ("cpuf", "cpu_profile", str, "", "write cpu profile to `file`"),
    ("memf", "mem_profile", str, "", "write mem profile to `file`"),
]


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="agent", allow_abbrev=False, description="Consensus agent."
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
    """Parse agent command-line flags."""
    return _build_parser().parse_args(argv)


def default_listen_addr(prefix: str = HOSTNAME_PREFIX) -> str:
    """Listen address of a cluster node, or "" when the host is not one.

    Hosts whose name starts with ``prefix`` listen on their first resolved
    address, on a port chosen by the system.
    """
    try:
        hostname = socket.gethostname()
    except OSError:
        return ""
    if not hostname.startswith(prefix):
        return ""
    try:
        infos = socket.getaddrinfo(hostname, None)
    except OSError:
        return ""
    if not infos:
        return ""
    address = infos[0][4][0]
    return f"/ip4/{address}/tcp/0"


def default_rendezvous_addr(log_file: Union[str, Path] = RENDEZVOUS_LOG_FILE) -> str:
    """Rendezvous address announced in the rendezvous server's log file.

    When no address is found, a text saying so is returned in its place.
    """
    try:
        with open(log_file, encoding="utf-8", errors="replace") as handle:
            for raw in handle:
                line = raw.rstrip("\n").removesuffix("\r")
                if line.startswith(_RENDEZVOUS_PREFIX):
                    parts = line.split(" ")
                    if len(parts) > 2:
                        return parts[2]
    except OSError:
        pass
    return f"Unable to find log file '{log_file}'"


def _fnv1a_64(data: bytes) -> int:
    value = _FNV64_OFFSET
    for byte in data:
        value ^= byte
        value = (value * _FNV64_PRIME) & _MASK64
    return value


def experiment_seed(random_seed: int, experiment_id: int, pid: int, n: int) -> int:
    """Seed of a process's random generator, as a signed 64-bit integer.

    A zero ``random_seed`` falls back to the experiment ID. The seed is
    hashed and shifted by the process ID so that processes disperse.
    """
    if random_seed == 0:
        random_seed = experiment_id
        _log.info("random seed: %s (experiment ID)", random_seed)
    else:
        _log.info("random seed: %s (set by parameter)", random_seed)
    block = struct.pack("<Q", random_seed & _MASK64) + bytes(8)
    shift = (pid * n * 200) & _MASK64
    value = (_fnv1a_64(block) + shift) & _MASK64
    return value - (1 << 64) if value >= 1 << 63 else value


def generate_byzantines(f: int, n: int, seed: int) -> set[int]:
    """Pick ``f`` distinct byzantine process IDs in ``1 .. n-2``.

    Process 0 is never chosen, nor is process ``n-1``.
    """
    if f < 0:
        raise ValueError(f"number of byzantines must not be negative, got {f}")
    if f > max(n - 2, 0):
        raise ValueError(f"cannot pick {f} byzantines among {n} processes")
    rng = Random(seed)
    byzantines: set[int] = set()
    while len(byzantines) != f:
        candidate = rng.randrange(n - 1)
        if candidate != 0:
            byzantines.add(candidate)
    return byzantines


def key_secrets(seed: int, num_processes: int) -> list[bytes]:
    """Deterministic key secrets, one per process.

    Each secret is the seed as 8 little-endian bytes followed by the
    process ID as 4 little-endian bytes.
    """
    seed_bytes = struct.pack("<Q", seed & _MASK64)
    return [
        seed_bytes + struct.pack("<I", pid & 0xFFFFFFFF)
        for pid in range(num_processes)
    ]


def build_config(args: argparse.Namespace, pid: int) -> Config:
    """Consensus configuration for process ``pid`` from parsed flags."""
    config = default_config()
    config.verify_signatures = True
    config.log = logging.getLogger(f"alterbft.p{pid}")
    config.stats_publishing_interval = timedelta(seconds=5)
    config.timeout_small_delta = timedelta(milliseconds=args.small_delta)
    config.timeout_big_delta = timedelta(milliseconds=args.big_delta)
    config.model = args.model
    config.fast_alter_enabled = args.fast
    config.max_epoch_to_start = args.max_epoch
    seed = args.seed if args.seed != 0 else args.experiment_id
    if args.num_byzantines > 0:
        byzantines = generate_byzantines(args.num_byzantines, args.n, seed)
        if pid in byzantines:
            config.byzantines = byzantines
            config.log.info("Byzantine process")
    config.byz_time = args.byz_time
    config.byz_attack = args.byz_attack
    config.chunks_number = args.chunks_number
    return config