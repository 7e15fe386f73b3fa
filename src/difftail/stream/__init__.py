"""Stream layer — getting change messages to subscribers.

Wire encoding, the best-effort broadcast hub and the WebSocket transport.
"""

from difftail.stream.hub import BroadcastHub, Subscriber
from difftail.stream.protocol import MessageHandler, encode_change
from difftail.stream.server import TransportServer

__all__ = [
    "BroadcastHub",
    "MessageHandler",
    "Subscriber",
    "TransportServer",
    "encode_change",
]
