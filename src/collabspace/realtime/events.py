"""Realtime event types and the SSE wire format.

Centralizing event names as constants prevents typos and makes it easy to
see every kind of event a client can receive.
"""

import json
from typing import Any

CONNECTED = "connected"
CHAT_MESSAGE = "chat-message"
INVITATION_RECEIVED = "invitation-received"
MEMBER_JOINED = "member-joined"
NOTE_UPDATED = "note-updated"

# Comment frame; EventSource clients ignore it, proxies see traffic.
HEARTBEAT_FRAME = ": heartbeat\n\n"


def encode_event(event: dict[str, Any]) -> str:
    """Serialize an event as one SSE `data:` frame."""
    return f"data: {json.dumps(event, default=str, separators=(',', ':'))}\n\n"


def connected_event(user_id: str) -> dict[str, Any]:
    return {"type": CONNECTED, "userId": user_id}
