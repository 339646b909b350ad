from __future__ import annotations

# Access broker: the gatekeeper in front of the rover.
#
# IMPORTANT: this module is pure logic (no MQTT, no threads, no locks).
# All calls are expected to come from one thread of control, which is how the
# server drives it (paho-mqtt runs message handlers one at a time).

import logging
from typing import Any, Callable, Generic, Optional, TypeVar

from .errors import (
    ALREADY_WAITING,
    BAD_REQUEST,
    NOT_IN_CONTROL,
    DuplicateParticipantError,
    ErrorResponse,
)
from .registry import HeadCallback, Participant, WaiterRegistry

logger = logging.getLogger(__name__)

R = TypeVar("R")

Dispatch = Callable[[R, Any], None]
RejectCallback = Callable[[Optional[Participant], ErrorResponse], None]


class AccessBroker(Generic[R]):
    """Grants a single resource to one participant at a time, in arrival order.

    Args:
        resource: the thing being protected. Only the broker hands it out, and
            only to `dispatch`.
        dispatch: called as ``dispatch(resource, command)`` for every command
            sent by the participant in control.
        on_grant: called with a participant when it reaches the head of the
            line and may start sending commands.
        on_reject: optional, called with ``(participant, ErrorResponse)`` for
            every dropped request. Rejections are always logged either way.
    """

    def __init__(
        self,
        resource: R,
        dispatch: Dispatch[R],
        on_grant: Optional[HeadCallback] = None,
        *,
        on_reject: Optional[RejectCallback] = None,
    ) -> None:
        self._resource = resource
        self._dispatch = dispatch
        self._on_reject = on_reject
        self._registry = WaiterRegistry(on_grant)

    @property
    def resource(self) -> R:
        return self._resource

    @property
    def registry(self) -> WaiterRegistry:
        return self._registry

    def holder(self) -> Optional[Participant]:
        """The participant currently in control, if any."""
        return self._registry.peek()

    # -------------------- wait line --------------------

    def register(self, participant: Optional[Participant]) -> bool:
        """Put a participant in line for control.

        If the line was empty, the participant is granted control right away.
        """
        if participant is None:
            self._reject(None, ErrorResponse(BAD_REQUEST, "participant required"))
            return False
        try:
            self._registry.append(participant)
        except DuplicateParticipantError:
            self._reject(participant, ErrorResponse(ALREADY_WAITING, "already waiting for control"))
            return False

        logger.info("%s joined the line (position %d)", participant, self._registry.size())
        return True

    def unregister(self, participant: Optional[Participant]) -> bool:
        """Take a participant out of the line, wherever it is.

        If it was in control, the next participant is granted control.
        Unknown participants are ignored.
        """
        if participant is None:
            return False
        removed = self._registry.remove(participant)
        if removed:
            logger.info("%s left the line (%d waiting)", participant, self._registry.size())
        return removed

    # -------------------- commands --------------------

    def submit_command(self, command: Any, participant: Optional[Participant]) -> bool:
        """Forward a command to the resource if the sender is in control.

        The dispatch function returns nothing; its effects happen on the
        resource. The return value here is the broker's own verdict.

        Returns:
            True if the command was dispatched, False if it was dropped.
        """
        if command is None or participant is None:
            self._reject(
                participant,
                ErrorResponse(BAD_REQUEST, f"malformed command: {command!r} from {participant!r}"),
            )
            return False

        # Only take input from the participant that has control.
        if self._registry.peek() != participant:
            self._reject(participant, ErrorResponse(NOT_IN_CONTROL, "ignoring command from client not in control"))
            return False

        self._dispatch(self._resource, command)
        return True

    def _reject(self, participant: Optional[Participant], error: ErrorResponse) -> None:
        logger.warning("rejected request from %s: %s (%s)", participant, error.message, error.code)
        if self._on_reject is not None:
            self._on_reject(participant, error)
