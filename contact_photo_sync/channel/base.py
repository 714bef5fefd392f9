"""
Bidirectional event channels.

A channel carries outbound events from a sync run to its consumer and
delivers inbound events from the consumer to registered listeners. Its
liveness is observable at any time through ``is_open``; once closed it
stays closed.

Implementations:
- InMemoryEventChannel: in-process queue, used when the consumer lives in
  the same process (and in tests)
- StreamEventChannel: JSON lines over a pair of text streams
"""

from __future__ import annotations

import logging
import queue
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import IO

from contact_photo_sync.channel.events import (
    Event,
    EventDecodeError,
    EventType,
    decode_event,
    encode_event,
)

logger = logging.getLogger(__name__)

# Seconds close() waits for the stream reader thread to finish
READER_JOIN_TIMEOUT = 1.0

EventListener = Callable[[Event], None]
CloseListener = Callable[[], None]


class ChannelError(Exception):
    """Raised when a channel operation fails."""

    pass


class ChannelClosedError(ChannelError):
    """Raised when sending on, or waiting on, a closed channel."""

    pass


class EventChannel(ABC):
    """
    Base class for event channels.

    Subclasses implement ``_transmit`` to deliver outbound events; inbound
    events are handed to ``dispatch`` by whatever receives them.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._closed = False
        self._listeners: list[EventListener] = []
        self._close_listeners: list[CloseListener] = []

    @property
    def is_open(self) -> bool:
        """True until the channel is closed by either side."""
        with self._lock:
            return not self._closed

    def add_listener(
        self, on_event: EventListener, on_close: CloseListener | None = None
    ) -> None:
        """
        Register callbacks for inbound events and channel closure.

        Callbacks run on the thread that dispatches or closes.
        """
        with self._lock:
            self._listeners.append(on_event)
            if on_close is not None:
                self._close_listeners.append(on_close)

    def remove_listener(
        self, on_event: EventListener, on_close: CloseListener | None = None
    ) -> None:
        with self._lock:
            if on_event in self._listeners:
                self._listeners.remove(on_event)
            if on_close is not None and on_close in self._close_listeners:
                self._close_listeners.remove(on_close)

    def send(self, event: Event) -> None:
        """
        Send an outbound event.

        Raises:
            ChannelClosedError: If the channel is closed
            ChannelError: If the underlying transport fails
        """
        if not self.is_open:
            raise ChannelClosedError(f"Cannot send {event.type.value}: channel closed")
        self._transmit(event)

    def dispatch(self, event: Event) -> None:
        """Deliver an inbound event to all registered listeners."""
        with self._lock:
            if self._closed:
                logger.debug(f"Dropping {event.type.value} received after close")
                return
            listeners = list(self._listeners)

        for listener in listeners:
            listener(event)

    def close(self) -> None:
        """Close the channel. Closing twice is a no-op."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            close_listeners = list(self._close_listeners)

        logger.debug(f"{type(self).__name__} closed")
        self._on_close()
        for listener in close_listeners:
            listener()

    def _on_close(self) -> None:
        """Hook for subclasses to release transport resources."""
        pass

    @abstractmethod
    def _transmit(self, event: Event) -> None:
        """Deliver an outbound event over the transport."""
        raise NotImplementedError


class InMemoryEventChannel(EventChannel):
    """
    In-process channel backed by a queue.

    The consumer reads outbound events with ``receive`` and answers approval
    requests with ``approve``/``skip``.

    Usage:
        channel = InMemoryEventChannel()
        # consumer thread:
        event = channel.receive(timeout=5)
        if event.type is EventType.CONTACT_COMPARE:
            channel.approve()
    """

    def __init__(self) -> None:
        super().__init__()
        self._outbox: queue.Queue[Event] = queue.Queue()
        self._history: list[Event] = []

    @property
    def sent_events(self) -> list[Event]:
        """All events sent so far, in order."""
        with self._lock:
            return list(self._history)

    def _transmit(self, event: Event) -> None:
        with self._lock:
            self._history.append(event)
        self._outbox.put(event)

    def receive(self, timeout: float | None = None) -> Event | None:
        """
        Take the next outbound event.

        Returns:
            The event, or None if none arrived within timeout
        """
        try:
            return self._outbox.get(timeout=timeout)
        except queue.Empty:
            return None

    def approve(self) -> None:
        """Answer the pending approval request affirmatively."""
        self.dispatch(Event(EventType.CONTACT_PHOTO_APPLY))

    def skip(self) -> None:
        """Answer the pending approval request negatively."""
        self.dispatch(Event(EventType.CONTACT_PHOTO_SKIP))


class StreamEventChannel(EventChannel):
    """
    Channel speaking JSON lines over text streams.

    Outbound events are written one per line to ``writer``. ``start`` spawns
    a reader thread that decodes lines from ``reader`` and dispatches them;
    end of input closes the channel.

    The caller owns both streams. ``close`` does not close ``reader``; it
    waits up to ``join_timeout`` seconds for the reader thread, which exits
    at the next line or at end of input. Lines arriving after close are
    dropped.
    """

    def __init__(
        self,
        reader: IO[str],
        writer: IO[str],
        join_timeout: float = READER_JOIN_TIMEOUT,
    ) -> None:
        super().__init__()
        self._reader = reader
        self._writer = writer
        self._join_timeout = join_timeout
        self._write_lock = threading.Lock()
        self._thread: threading.Thread | None = None

    @property
    def reader_alive(self) -> bool:
        """True while the reader thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the background reader thread."""
        if self._thread is not None:
            return
        self._thread = threading.Thread(
            target=self._read_loop, name="StreamEventChannel", daemon=True
        )
        self._thread.start()

    def _read_loop(self) -> None:
        try:
            for line in self._reader:
                if not self.is_open:
                    break
                line = line.strip()
                if not line:
                    continue
                try:
                    event = decode_event(line)
                except EventDecodeError as e:
                    logger.warning(f"Ignoring malformed event: {e}")
                    continue
                self.dispatch(event)
        except (OSError, ValueError) as e:
            # ValueError: reading from a stream closed under us
            logger.debug(f"Event stream read failed: {e}")
        finally:
            self.close()

    def _transmit(self, event: Event) -> None:
        message = encode_event(event)
        try:
            with self._write_lock:
                self._writer.write(message + "\n")
                self._writer.flush()
        except (OSError, ValueError) as e:
            self.close()
            raise ChannelError(f"Failed to write {event.type.value}: {e}") from e

    def _on_close(self) -> None:
        thread = self._thread
        # The reader thread closes the channel itself at end of input
        if thread is None or thread is threading.current_thread():
            return
        thread.join(self._join_timeout)
        if thread.is_alive():
            logger.debug(
                "Event stream reader still blocked after close, "
                "it exits at the next line or end of input"
            )
