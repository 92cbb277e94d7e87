from datetime import timedelta

import pytest

from alterbft.messages import (
    Block,
    Certificate,
    Message,
    MessageType,
    Phase,
    TimeoutType,
    vote_message,
)
from alterbft.silent_leader import SilentLeader


class RecordingProcess:
    def __init__(self, process_id, num_processes=3, leader=0):
        self.process_id = process_id
        self.num_processes = num_processes
        self.leader = leader
        self.broadcasts = []
        self.forwards = []
        self.sends = []
        self.timeouts = []
        self.finishes = []
        self.decisions = []
        self.added_blocks = []

    def proposer(self, epoch):
        return self.leader

    def get_value(self):
        return b"value"

    def add_block(self, block):
        self.added_blocks.append(block)
        return True

    def extend_valid_chain(self, block):
        return True

    def broadcast(self, message):
        self.broadcasts.append(message)

    def forward(self, message):
        self.forwards.append(message)

    def send(self, message, to):
        self.sends.append((message, to))

    def schedule(self, timeout):
        self.timeouts.append(timeout)

    def finish(self, epoch, locked_certificate, sent_locked_certificate):
        self.finishes.append((epoch, locked_certificate, sent_locked_certificate))

    def decide(self, epoch, block):
        self.decisions.append((epoch, block))

    def timeout_propose(self, epoch):
        return timedelta(milliseconds=10)

    def timeout_equivocation(self, epoch):
        return timedelta(milliseconds=20)

    def timeout_quit_epoch(self, epoch):
        return timedelta(milliseconds=30)

    def timeout_epoch_change(self, epoch):
        return timedelta(milliseconds=40)


def proposal_for(epoch, block, certificate=None, sender=0):
    return Message(
        type=MessageType.PROPOSE,
        epoch=epoch,
        block=block,
        certificate=certificate,
        sender=sender,
        sender_fwd=sender,
        signature=b"proposer-signature",
    )


def silence(epoch, sender):
    return Message(type=MessageType.SILENCE, epoch=epoch, sender=sender)


def started(process_id=1, epoch=5, n=3, fast=False, locked=None, sent=False):
    process = RecordingProcess(process_id, n)
    consensus = SilentLeader(epoch, process, fast)
    consensus.start(locked, sent)
    return process, consensus


def test_follower_start_schedules_propose_timeout_only():
    process, consensus = started()
    assert consensus.started()
    assert consensus.phase == Phase.READY
    assert [t.type for t in process.timeouts] == [TimeoutType.PROPOSE]
    assert process.timeouts[0].duration == process.timeout_propose(5)
    assert process.broadcasts == [] and process.sends == []


def test_follower_does_not_send_locked_certificate_to_leader():
    locked = Certificate.block_certificate(3, b"x" * 32, 0)
    process, _ = started(locked=locked, sent=False)
    assert process.sends == []


def test_leader_in_first_epoch_stays_silent():
    process = RecordingProcess(0)
    consensus = SilentLeader(0, process)
    consensus.start(None, False)
    assert process.timeouts == []
    assert process.broadcasts == [] and process.sends == []


def test_leader_without_previous_lock_schedules_epoch_change():
    process = RecordingProcess(0)
    consensus = SilentLeader(5, process)
    consensus.start(Certificate.block_certificate(2, b"x" * 32, 0), True)
    assert [t.type for t in process.timeouts] == [TimeoutType.EPOCH_CHANGE]
    consensus.process_timeout(process.timeouts[0])
    assert process.broadcasts == [] and process.sends == []


def test_leader_with_previous_epoch_lock_schedules_nothing():
    process = RecordingProcess(0)
    consensus = SilentLeader(5, process)
    consensus.start(Certificate.block_certificate(4, b"x" * 32, 0), True)
    assert process.timeouts == []


def test_messages_before_start_are_processed_on_start():
    process = RecordingProcess(1)
    consensus = SilentLeader(5, process)
    block = Block(b"a")
    consensus.process_message(proposal_for(5, block))
    assert not consensus.started()
    assert not consensus.proposals.has(block.block_id())
    consensus.start(None, False)
    assert consensus.proposals.has(block.block_id())
    assert process.forwards[0].block == block


def test_valid_proposal_is_forwarded_but_no_vote_is_sent():
    process, consensus = started()
    block = Block(b"a")
    consensus.process_message(proposal_for(5, block))
    assert consensus.has_voted
    assert len(process.forwards) == 1
    assert process.forwards[0].sender_fwd == 1
    assert process.broadcasts == []
    cert = consensus.votes.get(5, block.block_id(), block.height)
    assert cert.signature_count() == 1


def test_invalid_proposal_from_non_proposer_is_ignored():
    process, consensus = started()
    block = Block(b"a")
    consensus.process_message(proposal_for(5, block, sender=2))
    assert not consensus.proposals.has(block.block_id())
    assert process.forwards == []
    assert process.added_blocks == []


def test_proposal_of_other_epoch_is_not_stored():
    process, consensus = started()
    block = Block(b"a")
    consensus.process_message(proposal_for(4, block))
    assert process.added_blocks == [block]
    assert not consensus.proposals.has(block.block_id())
    assert not consensus.has_voted


def test_proposal_with_stale_certificate_gets_no_vote():
    old_block = Block(b"old")
    locked = Certificate.block_certificate(4, b"y" * 32, 0)
    process, consensus = started(locked=locked)
    stale = Certificate.block_certificate(2, old_block.block_id(), 0)
    block = Block(b"b", 1, old_block.block_id())
    consensus.process_message(proposal_for(5, block, stale))
    assert consensus.proposals.has(block.block_id())
    assert not consensus.has_voted
    assert process.forwards == []
    consensus.process_timeout(process.timeouts[0])
    assert process.broadcasts == []


def test_proposer_does_not_vote_for_its_own_proposal():
    process = RecordingProcess(0)
    consensus = SilentLeader(5, process)
    consensus.start(Certificate.block_certificate(4, b"x" * 32, 0), True)
    block = Block(b"a", 1, b"x" * 32)
    cert = Certificate.block_certificate(4, b"x" * 32, 0)
    consensus.process_message(proposal_for(5, block, cert))
    assert consensus.proposals.has(block.block_id())
    assert not consensus.has_voted
    assert process.forwards == []


def test_quorum_of_votes_locks_and_finishes_without_broadcast():
    process, consensus = started()
    block = Block(b"a")
    consensus.process_message(proposal_for(5, block))
    consensus.process_message(vote_message(5, block.block_id(), 0, 2, 0))
    assert consensus.phase == Phase.LOCKED
    assert [t.type for t in process.timeouts] == [
        TimeoutType.PROPOSE,
        TimeoutType.EQUIVOCATION,
    ]
    epoch, cert, sent = process.finishes[-1]
    assert epoch == 5 and sent is True
    assert cert.block_id() == block.block_id()
    assert process.broadcasts == []


def test_equivocation_timeout_decides_locked_block():
    process, consensus = started()
    block = Block(b"a")
    consensus.process_message(proposal_for(5, block))
    consensus.process_message(vote_message(5, block.block_id(), 0, 2, 0))
    consensus.process_timeout(process.timeouts[-1])
    assert consensus.phase == Phase.FINISHED
    assert process.decisions == [(5, block)]


def test_decision_waits_for_missing_proposal():
    process, consensus = started()
    block = Block(b"a")
    consensus.process_message(vote_message(5, block.block_id(), 0, 2, 0))
    assert consensus.phase == Phase.LOCKED
    consensus.process_timeout(process.timeouts[-1])
    assert consensus.phase == Phase.COMMIT
    assert consensus.decision == block.block_id()
    assert process.decisions == []
    consensus.process_message(proposal_for(5, block))
    assert consensus.phase == Phase.FINISHED
    assert process.decisions == [(5, block)]


def test_fast_path_decides_with_all_signatures():
    process, consensus = started(fast=True)
    block = Block(b"a")
    consensus.process_message(proposal_for(5, block))
    consensus.process_message(vote_message(5, block.block_id(), 0, 2, 0))
    assert consensus.phase == Phase.LOCKED
    consensus.process_message(vote_message(5, block.block_id(), 0, 1, 0))
    assert consensus.phase == Phase.FINISHED
    assert process.decisions == [(5, block)]


def test_silence_certificate_finishes_epoch_without_fast_path():
    process, consensus = started()
    for sender in (0, 2):
        consensus.process_message(silence(5, sender))
    assert consensus.phase == Phase.EPOCH_CHANGE
    assert process.finishes == [(5, None, False)]
    assert process.broadcasts == []


def test_silence_certificate_with_fast_path_waits_for_quit_timeout():
    process, consensus = started(fast=True)
    for sender in (0, 2):
        consensus.process_message(silence(5, sender))
    assert process.finishes == []
    assert process.timeouts[-1].type == TimeoutType.QUIT_EPOCH
    consensus.process_timeout(process.timeouts[-1])
    assert consensus.phase == Phase.FINISHED
    assert process.finishes == [(5, None, False)]


def test_duplicate_silence_is_not_counted():
    process, consensus = started()
    consensus.process_message(silence(5, 2))
    consensus.process_message(silence(5, 2))
    assert consensus.phase == Phase.READY
    assert consensus.silence_certificate.signature_count() == 1


def test_silence_after_lock_finishes_without_decision():
    process, consensus = started()
    block = Block(b"a")
    consensus.process_message(proposal_for(5, block))
    consensus.process_message(vote_message(5, block.block_id(), 0, 2, 0))
    for sender in (0, 2):
        consensus.process_message(silence(5, sender))
    assert consensus.phase == Phase.FINISHED
    consensus.process_timeout(process.timeouts[-1])
    assert process.decisions == []


def test_votes_for_two_blocks_detect_equivocation():
    process, consensus = started(n=5)
    first, second = Block(b"a"), Block(b"b")
    consensus.process_message(vote_message(5, first.block_id(), 0, 1, 0))
    assert consensus.phase == Phase.READY
    consensus.process_message(vote_message(5, second.block_id(), 0, 1, 0))
    assert consensus.phase == Phase.EPOCH_CHANGE
    assert process.finishes == [(5, None, False)]
    assert process.forwards == [] and process.broadcasts == []


def test_quit_epoch_with_block_certificate_locks():
    process, consensus = started()
    block = Block(b"a")
    cert = Certificate.block_certificate(5, block.block_id(), 0)
    cert.add_signature(b"s0", 0)
    cert.add_signature(b"s2", 2)
    quit_epoch = Message(
        type=MessageType.QUIT_EPOCH, epoch=5, certificate=cert, sender=2
    )
    consensus.process_message(quit_epoch)
    assert consensus.phase == Phase.LOCKED
    assert consensus.locked_certificate.block_id() == block.block_id()


@pytest.mark.parametrize("kind", [MessageType.PROPOSE, MessageType.SILENCE])
def test_stopped_epoch_ignores_messages(kind):
    process, consensus = started()
    consensus.stop()
    assert consensus.phase == Phase.FINISHED
    if kind == MessageType.PROPOSE:
        consensus.process_message(proposal_for(5, Block(b"a")))
    else:
        for sender in (0, 2):
            consensus.process_message(silence(5, sender))
    assert process.added_blocks == []
    assert process.finishes == []
    assert consensus.silence_certificate.signature_count() == 0