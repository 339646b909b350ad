"""MQTT topic helpers.

We keep topic construction in one place so the server and clients agree on
naming.

Topic layout under a configurable namespace (default: `rover/v0`):

Control:
- `<ns>/control/requests`
    Every client message (request-control, movement, cede-control).
- `<ns>/control/clients/<client_id>`
    Server -> one client (begin-control, end-control, errors).
- `<ns>/control/disconnects`
    Last-will notices; a client also publishes here before a clean shutdown.

Streaming/broadcast:
- `<ns>/status/updates`
    The server broadcasts periodic snapshots of who is in control and who waits.

Several rovers can share one broker by giving each server its own namespace
(e.g. `--namespace rover/garage`).
"""

from __future__ import annotations

DEFAULT_NAMESPACE = "rover/v0"


def control_requests(namespace: str = DEFAULT_NAMESPACE) -> str:
    return f"{namespace}/control/requests"


def client_replies(client_id: str, namespace: str = DEFAULT_NAMESPACE) -> str:
    return f"{namespace}/control/clients/{client_id}"


def disconnects(namespace: str = DEFAULT_NAMESPACE) -> str:
    return f"{namespace}/control/disconnects"


def status_updates(namespace: str = DEFAULT_NAMESPACE) -> str:
    """Broadcast status snapshots (who is in control, who is waiting)."""
    return f"{namespace}/status/updates"
