"""
Messaging-app contact source.

The messaging client itself (session pairing, reconnects) lives outside this
package. A sync run only needs two things from it: the contact list keyed by
phone number, and a contact's profile photo. Adapters implement
MessagingSource on top of whatever client they wrap.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Optional

from contact_photo_sync.utils.normalization import normalize_phone_number

logger = logging.getLogger(__name__)


class MessagingError(Exception):
    """Raised when the messaging source cannot complete an operation."""

    pass


class MessagingSource(ABC):
    """
    Interface to the messaging-app contact list.

    Usage:
        class MyClientSource(MessagingSource):
            def load_index(self):
                return build_messaging_index(
                    (c.number, c.id) for c in self.client.get_contacts()
                )

            def fetch_photo(self, contact_id):
                return self.client.download_profile_picture(contact_id)
    """

    @abstractmethod
    def load_index(self) -> dict[str, str]:
        """
        Load the contact list.

        Returns:
            Mapping of normalized phone number (digits only, no '+') to
            messaging contact id

        Raises:
            MessagingError: If the contact list cannot be loaded
        """
        raise NotImplementedError

    @abstractmethod
    def fetch_photo(self, contact_id: str) -> Optional[bytes]:
        """
        Fetch a contact's profile photo.

        Args:
            contact_id: Messaging contact id from the index

        Returns:
            Photo bytes, or None if the contact has no (visible) photo

        Raises:
            MessagingError: If the photo exists but cannot be retrieved
        """
        raise NotImplementedError


def build_messaging_index(entries: Iterable[tuple[str, str]]) -> dict[str, str]:
    """
    Build a phone-number index from (number, contact_id) pairs.

    Numbers are normalized to digits only. Entries whose number normalizes to
    an empty string are dropped; on duplicates the first entry wins.

    Args:
        entries: Iterable of (phone number, messaging contact id)

    Returns:
        Mapping of normalized number to contact id
    """
    index: dict[str, str] = {}
    for number, contact_id in entries:
        key = normalize_phone_number(number)
        if not key or not contact_id:
            continue
        if key in index:
            logger.debug(f"Duplicate messaging number {key}, keeping first entry")
            continue
        index[key] = contact_id
    return index


class StaticMessagingSource(MessagingSource):
    """
    MessagingSource over data already held in memory.

    Useful when the contact list and photos were exported ahead of time,
    and for tests.

    Args:
        contacts: Iterable of (phone number, contact id) pairs
        photos: Mapping of contact id to photo bytes
    """

    def __init__(
        self,
        contacts: Iterable[tuple[str, str]],
        photos: Optional[dict[str, bytes]] = None,
    ):
        self._contacts = list(contacts)
        self._photos = dict(photos or {})

    def load_index(self) -> dict[str, str]:
        index = build_messaging_index(self._contacts)
        logger.info(f"Loaded {len(index)} messaging contacts")
        return index

    def fetch_photo(self, contact_id: str) -> Optional[bytes]:
        return self._photos.get(contact_id)
