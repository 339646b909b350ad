"""Error taxonomy and the shared error envelope.

Nothing in the control path is fatal: rejected input is reported and dropped.
The codes below name the reasons, and `ErrorResponse` is what the server sends
back when rejection reporting is switched on.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

BAD_REQUEST = "bad_request"
NOT_IN_CONTROL = "not_in_control"
UNKNOWN_COMMAND = "unknown_command"
ALREADY_WAITING = "already_waiting"


class DuplicateParticipantError(ValueError):
    """Raised by the registry when a participant is already in the line."""

    def __init__(self, participant: Any) -> None:
        super().__init__(f"participant already waiting: {participant!r}")
        self.participant = participant


@dataclass(frozen=True)
class ErrorResponse:
    code: str
    message: str

    def to_message(self) -> dict[str, Any]:
        return {"command": "error", "code": self.code, "message": self.message}
