"""
Phone-number matching between directory contacts and the messaging index.

Matching is an exact lookup of the normalized number, with one fallback for
Brazilian mobile numbers. Brazil added a leading '9' to mobile subscriber
numbers, and the two sources don't always agree on whether a stored number
has it, so both forms are tried:

    55 11 12345678   (12 digits, no extra digit)  ->  try 55 11 9 12345678
    55 11 9 12345678 (13 digits)                  ->  try 55 11 12345678

The fallback is a heuristic; a miss just means the contact is skipped.
"""

import logging
from typing import Optional

from contact_photo_sync.sync.contact import DirectoryContact

# Brazil country code
BRAZIL_COUNTRY_CODE = "55"

# Country code + area code, e.g. "5511"
BRAZIL_PREFIX_LENGTH = 4

# Country code + area code + 8-digit subscriber number
BRAZIL_LEGACY_LENGTH = 12

BRAZIL_MOBILE_DIGIT = "9"

logger = logging.getLogger(__name__)


def brazil_alternate_number(number: str) -> Optional[str]:
    """
    Return the other historical form of a Brazilian number.

    Args:
        number: Normalized number (digits only)

    Returns:
        The number with the mobile digit inserted (12-digit input) or the
        fifth digit removed (any other length), or None for non-Brazilian
        numbers
    """
    if not number.startswith(BRAZIL_COUNTRY_CODE):
        return None

    prefix = number[:BRAZIL_PREFIX_LENGTH]
    if len(number) == BRAZIL_LEGACY_LENGTH:
        return prefix + BRAZIL_MOBILE_DIGIT + number[BRAZIL_PREFIX_LENGTH:]
    return prefix + number[BRAZIL_PREFIX_LENGTH + 1 :]


class ContactMatcher:
    """
    Resolves directory phone numbers against a messaging index.

    The matcher holds no state besides the index, so repeated calls with
    the same number always give the same answer.

    Usage:
        matcher = ContactMatcher(index)
        match = matcher.match_contact(contact)
        if match:
            number, messaging_id = match
    """

    def __init__(self, index: dict[str, str]):
        """
        Args:
            index: Normalized phone number -> messaging contact id
        """
        self.index = index

    def match_number(self, number: str) -> Optional[str]:
        """
        Find the messaging contact id for a phone number.

        Args:
            number: Normalized phone number from the directory

        Returns:
            Messaging contact id, or None if no match
        """
        contact_id = self.index.get(number)
        if contact_id is not None:
            return contact_id

        alternate = brazil_alternate_number(number)
        if alternate is None:
            return None

        contact_id = self.index.get(alternate)
        if contact_id is not None:
            logger.debug(f"Matched {number} via Brazilian alternate {alternate}")
        return contact_id

    def match_contact(self, contact: DirectoryContact) -> Optional[tuple[str, str]]:
        """
        Match a directory contact by its numbers, in order.

        The first number with a match wins; later numbers are not looked at.

        Args:
            contact: Directory contact

        Returns:
            (directory number, messaging contact id), or None
        """
        for number in contact.numbers:
            contact_id = self.match_number(number)
            if contact_id is not None:
                return number, contact_id

        logger.debug(f"No messaging match for {contact.resource_name}")
        return None
