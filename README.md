# alterbft

This package provides building blocks for AlterBFT consensus experiments. It uses only the standard library.

## Modules

- **`alterbft.config`** holds `Config`, a dataclass of protocol settings, and `default_config()`. The settings cover the bootstrap tick, the epoch and blockchain windows, queue sizes, signature handling, the small and big delta timeouts, the Byzantine settings and the fast-path switch.
- **`alterbft.bootstrap_message`** holds `BootstrapMessage(sender, seqnum, active)`. `marshal()` encodes it as six bytes: the code 255, an active flag, then the sender and the sequence number as little-endian 16-bit integers. `BootstrapMessage.from_bytes()` decodes it and raises `ValueError` when the data is shorter than six bytes.
- **`alterbft.bootstrap`** holds `Bootstrap(process_id, quorum)`, a start-up protocol for the network.
  - `process_tick()` returns an announcement of this process.
  - `process_message()` records a received announcement. It returns a new announcement at the moment this process becomes active, and `None` otherwise.
  - `active()` is true once announcements from a quorum of processes have arrived.
  - `done()` is true once a quorum of processes have reported being active.
- **`alterbft.messages`** defines the consensus vocabulary:
  - the enums `MessageType`, `Phase` and `TimeoutType`;
  - the data types `Block` (its `block_id()` is a SHA-256 digest), `Message` and `Timeout`;
  - the helper `vote_message()`;
  - `Certificate`, with `block_certificate()`, `silence_certificate()`, `add_signature()`, `signature_count()`, `ranks_higher_or_equal()` and `reconstruct_messages()`;
  - `ProposalSet` and `CertificateSet`;
  - the `Process` protocol that an epoch uses to talk to its host.
- **`alterbft.equivocating_leader`** holds `EquivocatingLeader`, the epoch state machine of a Byzantine process. As leader, it sends one proposal to the first half of the processes and a different proposal to the second half. As a follower, it votes for every valid proposal it receives.
- **`alterbft.silent_leader`** holds `SilentLeader`, the epoch state machine of a Byzantine process that stays silent. It never proposes, and it never sends votes, silence messages or certificates of its own. It still tracks certificates and can still decide locally.
- **`alterbft.agent`** holds helpers for setting up an experiment agent:
  - `parse_args()` parses the agent flags, for example `-n`, `-i`, `-mod`, `-fast`, `-byz`, `-attack`, `-s-delta` and `-b-delta`.
  - `default_listen_addr()` returns a listen address for hosts whose name starts with `node`.
  - `default_rendezvous_addr()` reads the rendezvous address from a log file.
  - `experiment_seed()` derives a per-process seed from an FNV-1a hash.
  - `generate_byzantines()` picks Byzantine process IDs deterministically.
  - `key_secrets()` returns deterministic 12-byte key secrets.
  - `build_config()` turns the parsed flags into a `Config`.
- **`alterbft.perf`** holds the performance statistics:
  - `Record` describes one decided value.
  - `Perf` keeps the throughput and the mean and sample standard deviation of latencies, computed online with Welford's algorithm.
  - `perf_summary()` returns a one-line summary.
  - `format_duration()` renders a duration compactly.
- **`alterbft.client`** holds the client side:
  - `Proposer` submits random values through a callback and matches `Decision`s to pending proposals. It offers `submit()`, `deliver()`, `pending()` and `max_pending`.
  - `parse_args()` parses the client flags.
  - `resolve_topology()` works out the topology the client assumes.
  - `main()` always raises `RuntimeError`, because the client command is deprecated.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Bootstrap example

```python
from alterbft.bootstrap import Bootstrap
from alterbft.bootstrap_message import BootstrapMessage

node = Bootstrap(1, 3)          # process 1, quorum of 3

announce = node.process_tick()  # periodic self-announcement
wire = announce.marshal()       # 6 bytes
echo = BootstrapMessage.from_bytes(wire)

for sender in (0, 2, 3):
    node.process_message(BootstrapMessage(sender, 1, False))

node.active()  # True: heard from a quorum
node.done()    # False: nobody has reported being active yet
```

## Configuration

```python
from alterbft.config import default_config

config = default_config()
config.fast_alter_enabled = True
```

These are the defaults:

| Setting | Default |
| --- | --- |
| Bootstrap tick | 100 ms |
| Small delta | 200 ms |
| Big delta | 1 s |
| Past and future instances tracked | 16 each |
| Active epochs | 2000 |
| Blockchain window | 2000 |
| Message queues | 32 |
| Chunks | 64 |
| Model | `"sync"` |

## Driving an epoch

1. Create an `EquivocatingLeader` or a `SilentLeader` for one epoch number. Pass it an object that implements `Process`.
2. Call `start(locked_certificate, sent_locked_certificate)`.
3. Feed it messages with `process_message()` and expired timeouts with `process_timeout()`.

Messages that arrive before `start()` are buffered and replayed once the epoch has started. After `stop()`, or once the epoch finishes, all input is ignored. The epoch reports its results through the `Process` callbacks `finish()` and `decide()`.

## What the package does not do

- There is no network transport, peer discovery or rendezvous server. Sending and scheduling are left to your `Process` implementation.
- There is no epoch state machine for an honest process. There is also no process that runs a sequence of epochs.
- Signatures are opaque bytes. Nothing is signed or verified, and `key_secrets()` produces secrets only, not keys.
- There is no runnable agent or client command. `alterbft.client.main()` only reports that the client is deprecated.