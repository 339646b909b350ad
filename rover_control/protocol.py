"""Wire protocol shared by the server and the driving client.

The basic protocol:

1. The client connects to the MQTT broker, registering a last-will on the
   disconnects topic so the server learns when it goes away.
2. The client sends ``request-control`` to get in line for the rover.
3. The server sends ``begin-control`` when it is the client's turn (which may
   be some time later, if the rover is already in use).
4. The client sends movement commands.
5. When finished, the client sends ``cede-control``. It may do so at any time,
   even before it received ``begin-control``.

The server sends ``end-control`` to a client that ceded while in control.

Tokens are case-sensitive and must match exactly on both sides.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

PROTOCOL = "rover-control"

# Messages from the client to the server
CMD_FWD = "forward"
CMD_BACK = "back"
CMD_LEFT = "left"
CMD_RIGHT = "right"
CMD_REQUEST_CONTROL = "request-control"
CMD_CEDE_CONTROL = "cede-control"

# Messages from the server to the client
CMD_BEGIN_CONTROL = "begin-control"
CMD_END_CONTROL = "end-control"

MOVEMENT_COMMANDS = frozenset({CMD_FWD, CMD_BACK, CMD_LEFT, CMD_RIGHT})
CONTROL_COMMANDS = frozenset({CMD_REQUEST_CONTROL, CMD_CEDE_CONTROL})


@dataclass(frozen=True)
class Envelope:
    """One decoded client message: what was asked, and who asked."""

    command: Optional[str]
    participant: Optional[str]
    message_id: Optional[int] = None


def _str_or_none(value: Any) -> Optional[str]:
    if isinstance(value, str) and value:
        return value
    return None


# The client id ends up as a topic level of the reply topic.
_TOPIC_RESERVED = ("+", "#", "/")


def client_id_or_none(value: Any) -> Optional[str]:
    """A usable client id, or None if it could not name a reply topic."""
    client_id = _str_or_none(value)
    if client_id is None or any(c in client_id for c in _TOPIC_RESERVED):
        return None
    return client_id


def decode_envelope(data: dict[str, Any]) -> Envelope:
    """Pull the command and sender out of a decoded JSON message.

    Missing or mistyped fields become None; the broker reports those as
    malformed instead of us raising here.
    """
    message_id = data.get("message_id")
    return Envelope(
        command=_str_or_none(data.get("command")),
        participant=client_id_or_none(data.get("client_id")),
        message_id=message_id if isinstance(message_id, int) else None,
    )


def encode_command(*, client_id: str, command: str, message_id: int, date_ms: int) -> dict[str, Any]:
    return {
        "client_id": client_id,
        "message_id": message_id,
        "command": command,
        "date": date_ms,
    }
