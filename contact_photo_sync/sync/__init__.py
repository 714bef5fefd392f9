"""
contact_photo_sync.sync - Photo synchronization core

Contact matching, rate limiting, user approval, progress reporting and the
sync orchestrator that ties them together.
"""
