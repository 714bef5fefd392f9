"""
contact_photo_sync - Messaging-app to Google Contacts photo synchronization.

Copies contact photos from a messaging-app contact list onto Google Contacts,
matching records by phone number, throttled by the People API rate limit and
optionally gated by a human approval step.
"""

__version__ = "0.1.0"
