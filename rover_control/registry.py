from __future__ import annotations

# Waiter registry: the FIFO wait line for control of the rover.
#
# The only special thing about it (compared to a plain list) is that it knows
# when the item at the head changes, and tells the owner through `on_new_head`.
# That is what lets the broker hand control to the next participant.

from typing import Callable, Hashable, Optional

from .errors import DuplicateParticipantError

Participant = Hashable
HeadCallback = Callable[[Participant], None]


class WaiterRegistry:
    """Ordered, duplicate-free line of participants waiting for control."""

    def __init__(self, on_new_head: Optional[HeadCallback] = None) -> None:
        self._line: list[Participant] = []
        self._on_new_head = on_new_head

    def append(self, participant: Participant) -> None:
        """Add a participant to the tail of the line.

        If the line was empty, the participant is the new head and the
        callback fires with it.

        Raises:
            DuplicateParticipantError: if the participant is already waiting.
                The line is left untouched.
        """
        if participant in self._line:
            raise DuplicateParticipantError(participant)

        self._line.append(participant)
        if len(self._line) == 1:
            self._notify(participant)

    def remove(self, participant: Participant) -> bool:
        """Remove a participant wherever it is in the line.

        Removing the head promotes the next participant and fires the
        callback with it. Nothing fires when the line becomes empty or when
        the participant was not waiting at all.

        Returns:
            True if the participant was in the line.
        """
        try:
            index = self._line.index(participant)
        except ValueError:
            return False

        del self._line[index]
        if index == 0 and self._line:
            self._notify(self._line[0])
        return True

    def peek(self) -> Optional[Participant]:
        return self._line[0] if self._line else None

    def size(self) -> int:
        return len(self._line)

    def waiting(self) -> tuple[Participant, ...]:
        """Snapshot of the line, head first."""
        return tuple(self._line)

    def __len__(self) -> int:
        return len(self._line)

    def __contains__(self, participant: object) -> bool:
        return participant in self._line

    def _notify(self, participant: Participant) -> None:
        if self._on_new_head is not None:
            self._on_new_head(participant)
