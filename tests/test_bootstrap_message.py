import pytest

from alterbft.bootstrap_message import MESSAGE_CODE, BootstrapMessage


@pytest.mark.parametrize(
    "sender, seqnum, active",
    [(0, 0, False), (100, 77, True)],
)
def test_message_marshalling_round_trip(sender, seqnum, active):
    original = BootstrapMessage(sender, seqnum, active)
    data = original.marshal()
    assert data[0] == MESSAGE_CODE
    decoded = BootstrapMessage.from_bytes(data)
    assert decoded.sender == original.sender
    assert decoded.seqnum == original.seqnum
    assert decoded.active == original.active


def test_wire_layout_is_little_endian():
    data = BootstrapMessage(100, 77, True).marshal()
    assert data == bytes([255, 1, 100, 0, 77, 0])


def test_inactive_flag_byte_is_zero():
    data = BootstrapMessage(1, 2, False).marshal()
    assert data[1] == 0
    assert len(data) == 6


def test_any_nonzero_flag_is_active():
    decoded = BootstrapMessage.from_bytes(bytes([255, 7, 3, 0, 9, 0]))
    assert decoded == BootstrapMessage(3, 9, True)


def test_short_data_is_rejected():
    with pytest.raises(ValueError):
        BootstrapMessage.from_bytes(bytes([255, 1, 0]))