"""A simple network initialisation protocol.

Processes announce themselves periodically and wait for announces from a
quorum of processes; then they become active and say so. Once a quorum of
processes report being active, the process is done.
"""

from __future__ import annotations

from typing import Optional

from alterbft.bootstrap_message import BootstrapMessage


class Bootstrap:
    """State of one process in the bootstrap protocol."""

    def __init__(self, process_id: int, quorum: int) -> None:
        self.process_id = process_id
        self.quorum = quorum
        self._announce_counter = 0
        self._known: set[int] = set()
        self._active: set[int] = set()

    def active(self) -> bool:
        """Whether announces from a quorum of processes were received."""
        return len(self._known) >= self.quorum

    def done(self) -> bool:
        """Whether a quorum of processes reported being active."""
        return len(self._active) >= self.quorum

    def _announce(self, active: bool) -> BootstrapMessage:
        self._announce_counter += 1
        return BootstrapMessage(self.process_id, self._announce_counter, active)

    def process_message(
        self, message: BootstrapMessage
    ) -> Optional[BootstrapMessage]:
        """Record a received message.

        Returns an announce when this process has just become active,
        otherwise None.
        """
        was_active = self.active()
        self._known.add(message.sender)
        if message.active:
            self._active.add(message.sender)
        if not was_active and self.active():
            return self._announce(True)
        return None

    def process_tick(self) -> BootstrapMessage:
        """Handle a periodic clock tick, returning an announce of this process."""
        return self._announce(self.active())