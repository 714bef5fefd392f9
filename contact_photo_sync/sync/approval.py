"""
Human approval of photo updates.

Before a photo is applied, the connected user is shown the contact's current
photo next to the candidate and answers "apply" or "skip". A user who never
answers must not stall the run, so every request expires after a fixed
timeout and counts as "skip".
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any

from contact_photo_sync.channel.base import (
    ChannelClosedError,
    ChannelError,
    EventChannel,
)
from contact_photo_sync.channel.events import Event, EventType

# Seconds to wait for the user before denying by default
DEFAULT_APPROVAL_TIMEOUT = 60.0

logger = logging.getLogger(__name__)


class ApprovalError(Exception):
    """Raised when the approval protocol is misused."""

    pass


@dataclass(frozen=True)
class ApprovalRequest:
    """
    A pending photo update awaiting the user's decision.

    Attributes:
        display_name: Directory contact's display name
        directory_photo: The contact's current photo (None if unavailable)
        candidate_photo: The photo that would replace it
    """

    display_name: str
    directory_photo: bytes | None
    candidate_photo: bytes

    def to_payload(self) -> dict[str, Any]:
        """Payload of the contact_compare event."""
        return {
            "name": self.display_name,
            "google": self.directory_photo,
            "whatsapp": self.candidate_photo,
        }


class ApprovalGate:
    """
    One-at-a-time approval protocol over an event channel.

    The gate listens on the channel for contact_photo_apply and
    contact_photo_skip. ``request_approval`` sends contact_compare and blocks
    until the first of: an answer, the timeout, or the channel closing.

    Attributes:
        channel: Channel to the user, or None when nobody is connected
        required: Whether approval is required at all
        timeout: Seconds to wait for an answer

    Usage:
        gate = ApprovalGate(channel, required=True)
        try:
            if gate.request_approval(request):
                apply_photo()
        finally:
            gate.detach()
    """

    def __init__(
        self,
        channel: EventChannel | None,
        required: bool = True,
        timeout: float = DEFAULT_APPROVAL_TIMEOUT,
    ):
        if timeout <= 0:
            raise ValueError(f"timeout must be > 0, got {timeout}")

        self.channel = channel
        self.required = required
        self.timeout = timeout
        self._condition = threading.Condition()
        self._pending = False
        self._decision: bool | None = None

        if channel is not None:
            channel.add_listener(self._on_event, self._on_close)

    def detach(self) -> None:
        """Stop listening on the channel."""
        if self.channel is not None:
            self.channel.remove_listener(self._on_event, self._on_close)

    @property
    def pending(self) -> bool:
        """True while a request is awaiting an answer."""
        with self._condition:
            return self._pending

    def _on_event(self, event: Event) -> None:
        if event.type not in (
            EventType.CONTACT_PHOTO_APPLY,
            EventType.CONTACT_PHOTO_SKIP,
        ):
            return

        with self._condition:
            if not self._pending or self._decision is not None:
                logger.debug(f"Ignoring unsolicited {event.type.value}")
                return

            self._decision = event.type is EventType.CONTACT_PHOTO_APPLY
            if self._decision:
                logger.debug("User approved contact photo update")
            else:
                logger.debug("User denied contact photo update")
            self._condition.notify_all()

    def _on_close(self) -> None:
        with self._condition:
            self._condition.notify_all()

    def request_approval(self, request: ApprovalRequest) -> bool:
        """
        Ask the user to approve a photo update.

        Auto-approves when approval is not required or no channel exists.

        Args:
            request: Photos to compare

        Returns:
            True if approved; False if denied or timed out

        Raises:
            ApprovalError: If another request is still pending
            ChannelClosedError: If the channel is closed before an answer
        """
        if not self.required or self.channel is None:
            return True

        with self._condition:
            if self._pending:
                raise ApprovalError("An approval request is already pending")
            self._pending = True
            self._decision = None

        try:
            self.channel.send(Event(EventType.CONTACT_COMPARE, request.to_payload()))
        except ChannelError as e:
            with self._condition:
                self._pending = False
            if isinstance(e, ChannelClosedError) or not self.channel.is_open:
                raise ChannelClosedError(
                    "Channel closed while requesting approval"
                ) from e
            logger.error(f"Could not send approval request, skipping: {e}")
            return False

        deadline = time.monotonic() + self.timeout

        with self._condition:
            try:
                while self._decision is None:
                    if not self.channel.is_open:
                        raise ChannelClosedError(
                            "Channel closed while awaiting approval"
                        )

                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        logger.warning(
                            f"No answer for {request.display_name!r} within "
                            f"{self.timeout:g}s, denying by default"
                        )
                        return False

                    self._condition.wait(remaining)

                return self._decision
            finally:
                self._pending = False
                self._decision = None
