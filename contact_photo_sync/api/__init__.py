"""
contact_photo_sync.api - Clients for the two contact sources

The Google People API directory client and the messaging source interface.
"""
