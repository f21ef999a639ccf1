"""Server-side job status delivery."""

from src.status.broadcaster import StatusBroadcaster, Subscription
from src.status.config import StatusConfig
from src.status.events import SSE_HEARTBEAT, StatusEvent, parse_sse_data

__all__ = [
    "SSE_HEARTBEAT",
    "StatusBroadcaster",
    "StatusConfig",
    "StatusEvent",
    "Subscription",
    "parse_sse_data",
]
