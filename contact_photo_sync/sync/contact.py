"""
Contact data models for photo synchronization.

Provides:
- DirectoryContact: a Google Contacts entry reduced to what the photo sync
  needs (resource name, phone numbers, whether it has a real photo)
- DirectorySnapshot: the current display name and photo of a directory
  contact, shown to the user when asking for approval
"""

from dataclasses import dataclass
from typing import Any, Optional

from contact_photo_sync.utils.normalization import normalize_phone_number


@dataclass(frozen=True)
class DirectoryContact:
    """
    A directory (Google Contacts) entry.

    Attributes:
        resource_name: Google's unique ID (e.g., "people/c12345")
        numbers: Normalized phone numbers (digits only, with country code),
                 in the order the directory lists them
        has_photo: True if at least one photo is not the default placeholder

    Usage:
        contact = DirectoryContact.from_api_response(person)
        if contact is not None and not contact.has_photo:
            ...
    """

    resource_name: str
    numbers: tuple[str, ...]
    has_photo: bool = False

    @classmethod
    def from_api_response(cls, person: dict[str, Any]) -> Optional["DirectoryContact"]:
        """
        Create a DirectoryContact from a Google People API person.

        Only phone numbers with a canonical (E.164) form are kept, since the
        display value can be in any local format.

        Args:
            person: Dictionary from the People API, e.g.::

                {
                    'resourceName': 'people/c12345',
                    'phoneNumbers': [
                        {'value': '(11) 91234-5678',
                         'canonicalForm': '+5511912345678'}
                    ],
                    'photos': [{'url': '...', 'default': True}]
                }

        Returns:
            DirectoryContact, or None if the person has no phone numbers
        """
        phone_numbers = person.get("phoneNumbers")
        if not phone_numbers:
            return None

        numbers = tuple(
            normalize_phone_number(phone["canonicalForm"])
            for phone in phone_numbers
            if phone.get("canonicalForm")
        )

        # Every contact gets a generated placeholder photo flagged as default
        photos = person.get("photos", [])
        has_photo = not all(photo.get("default", False) for photo in photos)

        return cls(
            resource_name=person.get("resourceName", ""),
            numbers=numbers,
            has_photo=has_photo,
        )


@dataclass(frozen=True)
class DirectorySnapshot:
    """
    Current state of a directory contact, for side-by-side comparison.

    Attributes:
        display_name: Contact's display name
        photo: Current photo bytes, or None if it could not be retrieved
    """

    display_name: str
    photo: Optional[bytes] = None
