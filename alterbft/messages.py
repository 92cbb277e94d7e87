"""Consensus data types: blocks, messages, timeouts and certificates."""

from __future__ import annotations

import hashlib
import struct
from dataclasses import dataclass
from datetime import timedelta
from enum import IntEnum
from typing import Iterator, Optional, Protocol

MIN_HEIGHT = 0
MIN_EPOCH = 0


class MessageType(IntEnum):
    """Kinds of consensus messages."""

    PROPOSE = 0
    VOTE = 1
    SILENCE = 2
    QUIT_EPOCH = 3


class Phase(IntEnum):
    """Phase of an epoch of consensus."""

    INACTIVE = 0  # not started yet
    READY = 1  # no certificate observed yet
    LOCKED = 2  # a block certificate was observed
    COMMIT = 3  # decided, waiting for the decided block
    EPOCH_CHANGE = 4  # a silence or equivocation certificate was observed
    FINISHED = 5


class TimeoutType(IntEnum):
    """Kinds of timeouts scheduled by an epoch."""

    PROPOSE = 0
    EQUIVOCATION = 1
    QUIT_EPOCH = 2
    EPOCH_CHANGE = 3


_BLOCK_HEADER = struct.Struct("<qI")


@dataclass(frozen=True)
class Block:
    """A proposed value chained to its predecessor."""

    value: bytes
    height: int = MIN_HEIGHT
    prev_block_id: Optional[bytes] = None

    def block_id(self) -> bytes:
        """Digest identifying this block."""
        prev = self.prev_block_id or b""
        digest = hashlib.sha256(_BLOCK_HEADER.pack(self.height, len(prev)))
        digest.update(prev)
        digest.update(self.value)
        return digest.digest()


@dataclass
class Message:
    """A consensus message; which fields matter depends on its type."""

    type: MessageType
    epoch: int
    sender: int = 0
    block: Optional[Block] = None
    block_id: Optional[bytes] = None
    height: int = MIN_HEIGHT
    certificate: Optional["Certificate"] = None
    signature: Optional[bytes] = None
    sender2: int = 0
    signature2: Optional[bytes] = None
    sender_fwd: int = 0

    def set_forward_sender(self, sender: int) -> None:
        """Record the process forwarding this message."""
        self.sender_fwd = sender


@dataclass(frozen=True)
class Timeout:
    """A timeout scheduled by an epoch of consensus."""

    type: TimeoutType
    epoch: int
    duration: timedelta


def vote_message(
    epoch: int, block_id: bytes, height: int, sender: int, sender2: int
) -> Message:
    """Build a vote for a block; ``sender2`` is the block's proposer."""
    return Message(
        type=MessageType.VOTE,
        epoch=epoch,
        block_id=block_id,
        height=height,
        sender=sender,
        sender2=sender2,
    )


class Certificate:
    """A set of signatures from distinct processes on the same statement.

    A block certificate gathers votes for one block; a silence certificate
    gathers silence messages of one epoch.
    """

    def __init__(
        self,
        kind: MessageType,
        epoch: int,
        block_id: Optional[bytes] = None,
        height: int = MIN_HEIGHT,
    ) -> None:
        self.kind = kind
        self.epoch = epoch
        self.height = height
        self._block_id = block_id
        self.signatures: dict[int, Optional[bytes]] = {}

    @classmethod
    def block_certificate(
        cls, epoch: int, block_id: bytes, height: int
    ) -> "Certificate":
        """An empty certificate of votes for a block."""
        return cls(MessageType.VOTE, epoch, block_id, height)

    @classmethod
    def silence_certificate(cls, epoch: int) -> "Certificate":
        """An empty certificate of silence messages for an epoch."""
        return cls(MessageType.SILENCE, epoch)

    def block_id(self) -> Optional[bytes]:
        """Identifier of the certified block, None for silence certificates."""
        return self._block_id

    def add_signature(self, signature: Optional[bytes], sender: int) -> bool:
        """Add a sender's signature; False if the sender already signed."""
        if sender in self.signatures:
            return False
        self.signatures[sender] = signature
        return True

    def signature_count(self) -> int:
        """Number of distinct signers."""
        return len(self.signatures)

    def ranks_higher_or_equal(self, other: Optional["Certificate"]) -> bool:
        """Whether this certificate is from an epoch no older than ``other``."""
        if other is None:
            return True
        return self.epoch >= other.epoch

    def reconstruct_messages(self, proposer: int) -> list[Message]:
        """Rebuild the messages whose signatures form this certificate."""
        if self.kind == MessageType.SILENCE:
            return [
                Message(
                    type=MessageType.SILENCE,
                    epoch=self.epoch,
                    sender=sender,
                    signature=signature,
                )
                for sender, signature in self.signatures.items()
            ]
        proposer_signature = self.signatures.get(proposer)
        messages = []
        for sender, signature in self.signatures.items():
            vote = vote_message(
                self.epoch, self._block_id, self.height, sender, proposer
            )
            vote.signature = signature
            vote.signature2 = proposer_signature
            messages.append(vote)
        return messages

    def __repr__(self) -> str:
        ident = self._block_id.hex()[:8] if self._block_id else "-"
        return (
            f"Certificate({self.kind.name}, epoch={self.epoch}, "
            f"block={ident}, signers={sorted(self.signatures)})"
        )


class ProposalSet:
    """Proposals received in an epoch, in arrival order."""

    def __init__(self) -> None:
        self._proposals: list[Message] = []

    def has(self, block_id: bytes) -> bool:
        """Whether a proposal for the block is stored."""
        return self.get(block_id) is not None

    def add(self, proposal: Message) -> None:
        """Store a proposal."""
        self._proposals.append(proposal)

    def get(self, block_id: bytes) -> Optional[Message]:
        """The stored proposal for the block, or None."""
        return next(
            (p for p in self._proposals if p.block.block_id() == block_id), None
        )

    def __len__(self) -> int:
        return len(self._proposals)

    def __iter__(self) -> Iterator[Message]:
        return iter(self._proposals)


class CertificateSet:
    """Certificates being gathered, in creation order."""

    def __init__(self) -> None:
        self._certificates: list[Certificate] = []

    def get(
        self, epoch: int, block_id: Optional[bytes], height: int
    ) -> Optional[Certificate]:
        """The certificate for exactly this epoch, block and height, or None."""
        return next(
            (
                c
                for c in self._certificates
                if c.epoch == epoch
                and c.block_id() == block_id
                and c.height == height
            ),
            None,
        )

    def add(self, certificate: Certificate) -> None:
        """Store a certificate."""
        self._certificates.append(certificate)

    def __len__(self) -> int:
        return len(self._certificates)

    def __iter__(self) -> Iterator[Certificate]:
        return iter(self._certificates)


class Process(Protocol):
    """Services a consensus epoch needs from the process running it."""

    process_id: int
    num_processes: int

    def proposer(self, epoch: int) -> int: ...

    def get_value(self) -> Optional[bytes]: ...

    def add_block(self, block: Block) -> bool: ...

    def extend_valid_chain(self, block: Block) -> bool: ...

    def broadcast(self, message: Message) -> None: ...

    def forward(self, message: Message) -> None: ...

    def send(self, message: Message, to: int) -> None: ...

    def schedule(self, timeout: Timeout) -> None: ...

    def finish(
        self,
        epoch: int,
        locked_certificate: Optional[Certificate],
        sent_locked_certificate: bool,
    ) -> None: ...

    def decide(self, epoch: int, block: Block) -> None: ...

    def timeout_propose(self, epoch: int) -> timedelta: ...

    def timeout_equivocation(self, epoch: int) -> timedelta: ...

    def timeout_quit_epoch(self, epoch: int) -> timedelta: ...

    def timeout_epoch_change(self, epoch: int) -> timedelta: ...