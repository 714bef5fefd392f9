"""
contact_photo_sync.channel - Event channel between a sync run and its consumer

Typed events, their JSON wire format, and channel implementations.
"""

from contact_photo_sync.channel.base import (
    ChannelClosedError,
    ChannelError,
    EventChannel,
    InMemoryEventChannel,
    StreamEventChannel,
)
from contact_photo_sync.channel.events import (
    Event,
    EventDecodeError,
    EventType,
    decode_event,
    encode_event,
)

__all__ = [
    "ChannelClosedError",
    "ChannelError",
    "Event",
    "EventChannel",
    "EventDecodeError",
    "EventType",
    "InMemoryEventChannel",
    "StreamEventChannel",
    "decode_event",
    "encode_event",
]
