"""Wire format of bootstrap protocol messages."""

from __future__ import annotations

import struct
from dataclasses import dataclass

MESSAGE_CODE = 255

_LAYOUT = struct.Struct("<BBHH")


@dataclass(frozen=True)
class BootstrapMessage:
    """Announces a sender and whether it is active in the bootstrap."""

    sender: int
    seqnum: int
    active: bool

    def marshal(self) -> bytes:
        """Encode the message as six bytes: code, active flag, sender, seqnum."""
        return _LAYOUT.pack(
            MESSAGE_CODE,
            1 if self.active else 0,
            self.sender & 0xFFFF,
            self.seqnum & 0xFFFF,
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> "BootstrapMessage":
        """Decode a message produced by :meth:`marshal`."""
        if len(data) < _LAYOUT.size:
            raise ValueError(
                f"bootstrap message needs {_LAYOUT.size} bytes, got {len(data)}"
            )
        _code, active, sender, seqnum = _LAYOUT.unpack_from(data)
        return cls(sender=sender, seqnum=seqnum, active=active > 0)