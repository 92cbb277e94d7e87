"""An epoch of consensus run by a byzantine process that equivocates.

As leader it proposes two different blocks, one to each half of the
processes. As a follower it votes for every valid proposal it receives.
"""

from __future__ import annotations

import logging
from typing import Optional

from alterbft.messages import (
    MIN_EPOCH,
    MIN_HEIGHT,
    Block,
    Certificate,
    CertificateSet,
    Message,
    MessageType,
    Phase,
    Process,
    ProposalSet,
    Timeout,
    TimeoutType,
    vote_message,
)

_log = logging.getLogger(__name__)


def _ranks_at_least(
    cert: Optional[Certificate], other: Optional[Certificate]
) -> bool:
    if cert is None:
        return other is None
    return cert.ranks_higher_or_equal(other)


def _short(cert: Optional[Certificate]) -> str:
    if cert is None or cert.block_id() is None:
        return "-"
    return cert.block_id()[:4].hex()


class EquivocatingLeader:
    """One epoch of consensus with an equivocating byzantine leader."""

    def __init__(
        self, epoch: int, process: Process, fast_alter_enabled: bool = False
    ) -> None:
        self.epoch = epoch
        self.process = process
        self.fast_alter_enabled = fast_alter_enabled
        self.phase = Phase.INACTIVE
        self.locked_certificate: Optional[Certificate] = None
        self.sent_locked_certificate = False
        self.proposals = ProposalSet()
        self.silence_certificate = Certificate.silence_certificate(epoch)
        self.votes = CertificateSet()
        self.has_voted = False
        self.decision: Optional[bytes] = None
        self._pending: list[Message] = []
        self._scheduled: set[TimeoutType] = set()

    @property
    def _is_proposer(self) -> bool:
        return self.process.proposer(self.epoch) == self.process.process_id

    def start(
        self,
        locked_certificate: Optional[Certificate],
        sent_locked_certificate: bool,
    ) -> None:
        """Start the epoch, then handle messages received before starting."""
        self.locked_certificate = locked_certificate
        self.sent_locked_certificate = sent_locked_certificate
        self.phase = Phase.READY
        if self._is_proposer:
            previous_epoch_locked = (
                locked_certificate is not None
                and locked_certificate.epoch == self.epoch - 1
            )
            if self.epoch == MIN_EPOCH or previous_epoch_locked:
                self._broadcast_two_proposals()
            else:
                self._schedule_timeout(TimeoutType.EPOCH_CHANGE)
        else:
            if not self.sent_locked_certificate and locked_certificate is not None:
                self._send_certificate_to_leader()
            self._schedule_timeout(TimeoutType.PROPOSE)
        pending, self._pending = self._pending, []
        for message in pending:
            self.process_message(message)

    def started(self) -> bool:
        """Whether the epoch has been started."""
        return self.phase > Phase.INACTIVE

    def stop(self) -> None:
        """Finish the epoch; further input is ignored."""
        self.phase = Phase.FINISHED

    def process_message(self, message: Message) -> None:
        """Handle a message belonging to this epoch."""
        if self.phase == Phase.INACTIVE:
            self._pending.append(message)
            return
        if self.phase == Phase.FINISHED:
            return
        handler = {
            MessageType.PROPOSE: self._process_proposal,
            MessageType.SILENCE: self._process_silence,
            MessageType.VOTE: self._process_vote,
            MessageType.QUIT_EPOCH: self._process_quit_epoch,
        }.get(message.type)
        if handler is not None:
            handler(message)

    def process_timeout(self, timeout: Timeout) -> None:
        """Handle an expired timeout of this epoch."""
        if self.phase == Phase.FINISHED:
            return
        handler = {
            TimeoutType.PROPOSE: self._timeout_propose,
            TimeoutType.EQUIVOCATION: self._timeout_equivocation,
            TimeoutType.QUIT_EPOCH: self._timeout_quit_epoch,
            TimeoutType.EPOCH_CHANGE: self._timeout_epoch_change,
        }.get(timeout.type)
        if handler is not None:
            handler()

    # Messages

    def _process_proposal(self, proposal: Message) -> None:
        if self.proposals.has(proposal.block.block_id()):
            return
        if not self._is_valid_proposal(proposal):
            _log.info("Invalid proposal.")
            return
        if not self.process.add_block(proposal.block):
            _log.info(
                "P%s proposal could not be added to the blockchain in epoch %s",
                self.process.process_id,
                self.epoch,
            )
            return
        if proposal.epoch == self.epoch:
            self.proposals.add(proposal)
        self._vote(proposal)
        self._try_to_commit()

    def _is_valid_proposal(self, proposal: Message) -> bool:
        from_proposer = proposal.sender == self.process.proposer(proposal.epoch)
        cert = proposal.certificate
        if cert is None:
            matches = proposal.block.height == MIN_HEIGHT
        else:
            matches = proposal.block.prev_block_id == cert.block_id()
        return from_proposer and matches

    def _vote(self, proposal: Message) -> None:
        block = proposal.block
        me = self.process.process_id
        _log.info(
            "Byzantine process %s voted for %s in epoch %s.",
            me,
            block.block_id()[:4].hex(),
            self.epoch,
        )
        proposal.set_forward_sender(me)
        self.process.forward(proposal)
        proposer_vote = vote_message(
            proposal.epoch, block.block_id(), block.height,
            proposal.sender, proposal.sender,
        )
        proposer_vote.signature = proposal.signature
        proposer_vote.signature2 = proposal.signature
        self._process_vote(proposer_vote)
        vote = vote_message(
            proposal.epoch, block.block_id(), block.height, me, proposal.sender
        )
        vote.signature2 = proposal.signature
        self.process.broadcast(vote)
        self.has_voted = True
        if _ranks_at_least(proposal.certificate, self.locked_certificate):
            self.sent_locked_certificate = False
            self.locked_certificate = proposal.certificate

    def _check_equivocation(self) -> None:
        if len(self.votes) < 2:
            return
        if self.phase == Phase.READY:
            self.phase = Phase.EPOCH_CHANGE
            _log.info(
                "Process %s epoch %s nolock+nodec+equiv value %s",
                self.process.process_id, self.epoch, _short(self.locked_certificate),
            )
            if self.fast_alter_enabled:
                self._schedule_timeout(TimeoutType.QUIT_EPOCH)
            else:
                self._finish()
        if self.phase == Phase.LOCKED:
            _log.info(
                "Process %s epoch %s lock+nodec+equiv value %s",
                self.process.process_id, self.epoch, _short(self.locked_certificate),
            )
            self.phase = Phase.FINISHED

    def _process_vote(self, vote: Message) -> None:
        if self.phase == Phase.COMMIT:
            return
        cert = self.votes.get(self.epoch, vote.block_id, vote.height)
        if cert is None:
            cert = Certificate.block_certificate(
                self.epoch, vote.block_id, vote.height
            )
            self.votes.add(cert)
            cert.add_signature(vote.signature2, vote.sender2)
        if not cert.add_signature(vote.signature, vote.sender):
            return
        self._check_equivocation()
        n = self.process.num_processes
        if cert.signature_count() > n // 2:
            self._process_block_certificate(cert)
        if (
            self.fast_alter_enabled
            and cert.signature_count() == n
            and self.phase == Phase.LOCKED
        ):
            self.decision = self.locked_certificate.block_id()
            self.phase = Phase.COMMIT
            self._try_to_commit()

    def _process_block_certificate(self, cert: Certificate) -> None:
        if self.phase in (Phase.LOCKED, Phase.COMMIT, Phase.FINISHED):
            return
        if _ranks_at_least(cert, self.locked_certificate):
            self.locked_certificate = cert
            self.sent_locked_certificate = False
        if cert.epoch != self.epoch:
            return
        if self.phase == Phase.READY:
            self.phase = Phase.LOCKED
            self._schedule_timeout(TimeoutType.EQUIVOCATION)
        if self.phase == Phase.EPOCH_CHANGE:
            self.phase = Phase.FINISHED
            _log.info(
                "Process %s epoch %s nolock+block value %s",
                self.process.process_id, self.epoch, _short(self.locked_certificate),
            )
        self._broadcast_quit_epoch(cert)
        self.sent_locked_certificate = True
        self._finish()

    def _process_silence(self, silence: Message) -> None:
        if self.phase not in (Phase.READY, Phase.LOCKED):
            return
        cert = self.silence_certificate
        if not cert.add_signature(silence.signature, silence.sender):
            return
        if cert.signature_count() > self.process.num_processes // 2:
            self._process_silence_certificate(cert)

    def _process_silence_certificate(self, cert: Certificate) -> None:
        if self.phase == Phase.READY:
            self.phase = Phase.EPOCH_CHANGE
            self._broadcast_quit_epoch(cert)
            if self.fast_alter_enabled:
                self._schedule_timeout(TimeoutType.QUIT_EPOCH)
            else:
                self._finish()
        elif self.phase == Phase.LOCKED:
            self.phase = Phase.FINISHED
            _log.info(
                "Process %s epoch %s lock+nodec+silence value %s",
                self.process.process_id, self.epoch, _short(self.locked_certificate),
            )

    def _process_quit_epoch(self, quit_epoch: Message) -> None:
        proposer = self.process.proposer(self.epoch)
        for message in quit_epoch.certificate.reconstruct_messages(proposer):
            self.process_message(message)

    # Timeouts

    def _timeout_propose(self) -> None:
        self._scheduled.discard(TimeoutType.PROPOSE)
        if self.phase == Phase.READY and not self.has_voted:
            self._broadcast_silence()

    def _timeout_equivocation(self) -> None:
        self._scheduled.discard(TimeoutType.EQUIVOCATION)
        if self.phase == Phase.LOCKED:
            _log.info("no-fast-path-decision")
            self.decision = self.locked_certificate.block_id()
            self.phase = Phase.COMMIT
            self._try_to_commit()

    def _timeout_quit_epoch(self) -> None:
        self._scheduled.discard(TimeoutType.QUIT_EPOCH)
        if self.phase == Phase.EPOCH_CHANGE:
            self.phase = Phase.FINISHED
            self._finish()

    def _timeout_epoch_change(self) -> None:
        self._scheduled.discard(TimeoutType.EPOCH_CHANGE)
        self._broadcast_two_proposals()

    def _try_to_commit(self) -> None:
        if self.decision is None or self.phase != Phase.COMMIT:
            return
        proposal = self.proposals.get(self.decision)
        if proposal is None:
            return
        if self.process.extend_valid_chain(proposal.block):
            _log.info(
                "Process %s epoch %s lock+decision value %s",
                self.process.process_id, self.epoch, self.decision[:4].hex(),
            )
            self.phase = Phase.FINISHED
            self.process.decide(self.epoch, proposal.block)

    def _finish(self) -> None:
        if self.phase != Phase.LOCKED and self.phase != Phase.FINISHED:
            _log.info(
                "Process %s epoch %s nolock+nodecision",
                self.process.process_id, self.epoch,
            )
        self.process.finish(
            self.epoch, self.locked_certificate, self.sent_locked_certificate
        )

    # Outgoing messages

    def _broadcast_two_proposals(self) -> None:
        first_value = self.process.get_value()
        second_value = self.process.get_value()
        if first_value is None or second_value is None:
            _log.info("Generator returned nil in epoch %s", self.epoch)
            return
        prev_block_id = None
        height = MIN_HEIGHT
        if self.locked_certificate is not None:
            prev_block_id = self.locked_certificate.block_id()
            height = self.locked_certificate.height + 1
        me = self.process.process_id
        first, second = (
            Message(
                type=MessageType.PROPOSE,
                epoch=self.epoch,
                block=Block(value, height, prev_block_id),
                certificate=self.locked_certificate,
                sender=me,
                sender_fwd=me,
            )
            for value in (first_value, second_value)
        )
        n = self.process.num_processes
        for recipient in range(n // 2):
            self.process.send(first, recipient)
        for recipient in range(n // 2, n):
            self.process.send(second, recipient)

    def _broadcast_silence(self) -> None:
        self.process.broadcast(
            Message(
                type=MessageType.SILENCE,
                epoch=self.epoch,
                sender=self.process.process_id,
            )
        )

    def _broadcast_quit_epoch(self, certificate: Certificate) -> None:
        self.process.broadcast(
            Message(
                type=MessageType.QUIT_EPOCH,
                epoch=certificate.epoch,
                certificate=certificate,
                sender=self.process.process_id,
            )
        )

    def _send_certificate_to_leader(self) -> None:
        message = Message(
            type=MessageType.QUIT_EPOCH,
            epoch=self.locked_certificate.epoch,
            certificate=self.locked_certificate,
            sender=self.process.process_id,
        )
        self.process.send(message, self.process.proposer(self.epoch))

    def _schedule_timeout(self, timeout_type: TimeoutType) -> None:
        if timeout_type in self._scheduled:
            return
        durations = {
            TimeoutType.PROPOSE: self.process.timeout_propose,
            TimeoutType.EQUIVOCATION: self.process.timeout_equivocation,
            TimeoutType.QUIT_EPOCH: self.process.timeout_quit_epoch,
            TimeoutType.EPOCH_CHANGE: self.process.timeout_epoch_change,
        }
        duration = durations[timeout_type](self.epoch)
        self.process.schedule(Timeout(timeout_type, self.epoch, duration))
        self._scheduled.add(timeout_type)