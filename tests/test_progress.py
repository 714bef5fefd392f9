"""
Tests for progress reporting.
"""

from unittest.mock import MagicMock

from contact_photo_sync.channel import ChannelError, EventType, InMemoryEventChannel
from contact_photo_sync.sync.progress import ProgressEvent, ProgressReporter


class TestProgressEvent:
    """Tests for ProgressEvent.to_payload."""

    def test_minimal_payload(self):
        """Test unset optional fields are omitted."""
        assert ProgressEvent(progress=0).to_payload() == {
            "progress": 0,
            "syncCount": 0,
            "skippedCount": 0,
        }

    def test_full_payload(self):
        """Test every field maps to its wire key."""
        event = ProgressEvent(
            progress=50.0,
            sync_count=2,
            skipped_count=1,
            total_contacts=6,
            photo=b"jpeg",
            is_synced=False,
            error="boom",
        )
        assert event.to_payload() == {
            "progress": 50.0,
            "syncCount": 2,
            "skippedCount": 1,
            "totalContacts": 6,
            "image": b"jpeg",
            "isSynced": False,
            "error": "boom",
        }


class TestProgressReporter:
    """Tests for ProgressReporter.emit."""

    def test_emit_sends_sync_progress(self):
        """Test events are sent as sync_progress."""
        channel = InMemoryEventChannel()
        reporter = ProgressReporter(channel)

        assert reporter.emit(ProgressEvent(progress=25, total_contacts=4)) is True

        event = channel.receive(timeout=1)
        assert event.type is EventType.SYNC_PROGRESS
        assert event.data["totalContacts"] == 4

    def test_emit_without_channel(self):
        """Test emitting with no channel is a no-op."""
        assert ProgressReporter(None).emit(ProgressEvent(progress=1)) is False

    def test_emit_on_closed_channel(self):
        """Test emitting on a closed channel is a no-op."""
        channel = InMemoryEventChannel()
        channel.close()
        assert ProgressReporter(channel).emit(ProgressEvent(progress=1)) is False
        assert channel.sent_events == []

    def test_emit_swallows_channel_errors(self):
        """Test transport failures don't propagate."""
        channel = MagicMock()
        channel.is_open = True
        channel.send.side_effect = ChannelError("broken pipe")

        assert ProgressReporter(channel).emit(ProgressEvent(progress=1)) is False
