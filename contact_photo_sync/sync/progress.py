"""
Progress reporting for sync runs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from contact_photo_sync.channel.base import ChannelError, EventChannel
from contact_photo_sync.channel.events import Event, EventType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressEvent:
    """
    Snapshot of a sync run's progress.

    Attributes:
        progress: Percent complete, 0 to 100
        sync_count: Photos applied so far
        skipped_count: Photos denied or failed so far
        total_contacts: Directory contacts in this run
        photo: Candidate photo considered for the last contact
        is_synced: Outcome of the last apply/deny decision
        error: Error message when the run failed
    """

    progress: float
    sync_count: int = 0
    skipped_count: int = 0
    total_contacts: int | None = None
    photo: bytes | None = None
    is_synced: bool | None = None
    error: str | None = None

    def to_payload(self) -> dict[str, Any]:
        """Payload of the sync_progress event; unset optional fields are omitted."""
        payload: dict[str, Any] = {
            "progress": self.progress,
            "syncCount": self.sync_count,
            "skippedCount": self.skipped_count,
        }
        if self.total_contacts is not None:
            payload["totalContacts"] = self.total_contacts
        if self.photo is not None:
            payload["image"] = self.photo
        if self.is_synced is not None:
            payload["isSynced"] = self.is_synced
        if self.error is not None:
            payload["error"] = self.error
        return payload


class ProgressReporter:
    """Best-effort sender of sync_progress events. Never raises."""

    def __init__(self, channel: EventChannel | None):
        self.channel = channel

    def emit(self, event: ProgressEvent) -> bool:
        """
        Send a progress event.

        Returns:
            True if the event was handed to the channel
        """
        if self.channel is None or not self.channel.is_open:
            return False

        try:
            self.channel.send(Event(EventType.SYNC_PROGRESS, event.to_payload()))
        except ChannelError as e:
            logger.warning(f"Dropped progress event: {e}")
            return False
        return True
