"""
Unit tests for the event channel module.
"""

import base64
import io
import json
import threading
import time

import pytest

from contact_photo_sync.channel import (
    ChannelClosedError,
    ChannelError,
    Event,
    EventDecodeError,
    EventType,
    InMemoryEventChannel,
    StreamEventChannel,
    decode_event,
    encode_event,
)


class LateLineReader:
    """Reader whose single line only arrives once the channel is closed."""

    def __init__(self, line):
        self.line = line
        self.channel = None

    def __iter__(self):
        while self.channel.is_open:
            time.sleep(0.01)
        yield self.line


class BlockedReader:
    """Reader that blocks until released, then reports end of input."""

    def __init__(self):
        self.released = threading.Event()

    def __iter__(self):
        self.released.wait(timeout=5)
        return iter(())


class TestEventCodec:
    """Tests for encode_event and decode_event."""

    def test_encode_progress_event(self):
        """Test encoding produces the type/data wire format."""
        event = Event(EventType.SYNC_PROGRESS, {"progress": 50.0, "syncCount": 2})
        assert json.loads(encode_event(event)) == {
            "type": "sync_progress",
            "data": {"progress": 50.0, "syncCount": 2},
        }

    def test_encode_bytes_as_base64(self):
        """Test photo bytes are sent as base64 strings."""
        event = Event(
            EventType.CONTACT_COMPARE, {"name": "Ana", "whatsapp": b"\x89PNG"}
        )
        data = json.loads(encode_event(event))["data"]
        assert data["whatsapp"] == base64.b64encode(b"\x89PNG").decode("ascii")
        assert data["name"] == "Ana"

    def test_decode_response_event(self):
        """Test decoding an inbound answer without data."""
        event = decode_event('{"type": "contact_photo_apply"}')
        assert event == Event(EventType.CONTACT_PHOTO_APPLY, {})

    def test_decode_bytes_message(self):
        """Test UTF-8 bytes are accepted."""
        event = decode_event(b'{"type": "contact_photo_skip", "data": {}}')
        assert event.type is EventType.CONTACT_PHOTO_SKIP

    @pytest.mark.parametrize(
        "message, match",
        [
            ("not json", "Invalid event message"),
            ("[1, 2]", "must be a JSON object"),
            ('{"type": "whatsapp_qr"}', "Unknown event type"),
            ('{"type": "contact_photo_skip", "data": [1]}', "data must be"),
        ],
    )
    def test_decode_invalid(self, message, match):
        """Test malformed messages raise EventDecodeError."""
        with pytest.raises(EventDecodeError, match=match):
            decode_event(message)


class TestInMemoryEventChannel:
    """Tests for InMemoryEventChannel."""

    @pytest.fixture
    def channel(self):
        return InMemoryEventChannel()

    def test_starts_open(self, channel):
        """Test a new channel is open."""
        assert channel.is_open is True

    def test_send_and_receive(self, channel):
        """Test sent events are received in order and recorded."""
        first = Event(EventType.SYNC_PROGRESS, {"progress": 0})
        second = Event(EventType.SYNC_PROGRESS, {"progress": 100})
        channel.send(first)
        channel.send(second)

        assert channel.receive(timeout=1) == first
        assert channel.receive(timeout=1) == second
        assert channel.receive(timeout=0.01) is None
        assert channel.sent_events == [first, second]

    def test_send_after_close_raises(self, channel):
        """Test sending on a closed channel raises ChannelClosedError."""
        channel.close()
        with pytest.raises(ChannelClosedError):
            channel.send(Event(EventType.SYNC_PROGRESS))

    def test_close_is_idempotent(self, channel):
        """Test close listeners fire once."""
        closed = []
        channel.add_listener(lambda event: None, lambda: closed.append(True))
        channel.close()
        channel.close()
        assert closed == [True]
        assert channel.is_open is False

    def test_dispatch_to_listeners(self, channel):
        """Test approve/skip are delivered to listeners."""
        received = []
        channel.add_listener(received.append)
        channel.approve()
        channel.skip()
        assert [event.type for event in received] == [
            EventType.CONTACT_PHOTO_APPLY,
            EventType.CONTACT_PHOTO_SKIP,
        ]

    def test_dispatch_after_close_dropped(self, channel):
        """Test inbound events after close are not delivered."""
        received = []
        channel.add_listener(received.append)
        channel.close()
        channel.approve()
        assert received == []

    def test_remove_listener(self, channel):
        """Test removed listeners receive nothing."""
        received = []
        closed = []
        on_close = lambda: closed.append(True)  # noqa: E731
        channel.add_listener(received.append, on_close)
        channel.remove_listener(received.append, on_close)
        channel.approve()
        channel.close()
        assert received == []
        assert closed == []


class TestStreamEventChannel:
    """Tests for StreamEventChannel."""

    def test_send_writes_json_line(self):
        """Test outbound events are written as JSON lines."""
        writer = io.StringIO()
        channel = StreamEventChannel(io.StringIO(), writer)

        channel.send(Event(EventType.SYNC_PROGRESS, {"progress": 100}))

        line = writer.getvalue()
        assert line.endswith("\n")
        assert json.loads(line) == {"type": "sync_progress", "data": {"progress": 100}}

    def test_reader_dispatches_and_closes_on_eof(self):
        """Test inbound lines are dispatched and EOF closes the channel."""
        reader = io.StringIO(
            '{"type": "contact_photo_apply"}\n'
            "garbage\n"
            "\n"
            '{"type": "contact_photo_skip"}\n'
        )
        channel = StreamEventChannel(reader, io.StringIO())
        received = []
        closed = threading.Event()
        channel.add_listener(received.append, closed.set)

        channel.start()

        assert closed.wait(timeout=5)
        assert [event.type for event in received] == [
            EventType.CONTACT_PHOTO_APPLY,
            EventType.CONTACT_PHOTO_SKIP,
        ]
        assert channel.is_open is False

    def test_write_failure_closes_channel(self):
        """Test a broken writer closes the channel and raises ChannelError."""
        writer = io.StringIO()
        writer.close()
        channel = StreamEventChannel(io.StringIO(), writer)

        with pytest.raises(ChannelError, match="Failed to write"):
            channel.send(Event(EventType.SYNC_PROGRESS))

        assert channel.is_open is False

    def test_close_joins_reader_thread(self):
        """Test close waits for the reader and drops lines that arrive late."""
        reader = LateLineReader('{"type": "contact_photo_apply"}\n')
        channel = StreamEventChannel(reader, io.StringIO(), join_timeout=5)
        reader.channel = channel
        received = []
        channel.add_listener(received.append)
        channel.start()
        assert channel.reader_alive

        channel.close()

        assert channel.reader_alive is False
        assert received == []

    def test_close_does_not_hang_on_blocked_reader(self):
        """Test close returns after join_timeout while the reader is blocked."""
        reader = BlockedReader()
        channel = StreamEventChannel(reader, io.StringIO(), join_timeout=0.05)
        channel.start()

        channel.close()

        assert channel.is_open is False
        assert channel.reader_alive
        reader.released.set()
        channel._thread.join(timeout=5)
        assert channel.reader_alive is False
