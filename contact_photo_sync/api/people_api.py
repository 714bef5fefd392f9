"""
Google People API wrapper for contact photo synchronization.

Provides a high-level interface to the Google People API for:
- Listing directory contacts with their phone numbers and photo state
- Reading a contact's current name and photo
- Uploading a contact photo
- Exponential backoff retry logic for rate limits and server errors
"""

import base64
import logging
import time
from collections.abc import Callable
from typing import Any

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from contact_photo_sync.sync.contact import DirectoryContact, DirectorySnapshot
from contact_photo_sync.sync.photo import PhotoError, download_photo

# Person fields requested when listing contacts
LIST_PERSON_FIELDS = "names,phoneNumbers,photos"

# Person fields requested for the approval comparison
SNAPSHOT_PERSON_FIELDS = "names,photos"

# Contacts per page when listing (API max is 1000)
DEFAULT_PAGE_SIZE = 250

# Retry configuration defaults
DEFAULT_MAX_RETRIES = 5
DEFAULT_INITIAL_RETRY_DELAY = 1.0  # seconds
DEFAULT_MAX_RETRY_DELAY = 60.0  # seconds

logger = logging.getLogger(__name__)


class PeopleAPIError(Exception):
    """Raised when a People API operation fails."""

    pass


class RateLimitError(PeopleAPIError):
    """Raised when rate limit is exceeded and retries are exhausted."""

    pass


class PeopleAPI:
    """
    Google People API wrapper for the directory side of a photo sync.

    Attributes:
        credentials: Google OAuth2 credentials with the contacts scope
        service: Google API service object (created lazily)

    Usage:
        api = PeopleAPI(credentials)

        contacts = api.list_directory_contacts()
        snapshot = api.get_directory_snapshot("people/c12345")
        api.upload_photo("people/c12345", jpeg_bytes)
    """

    def __init__(
        self,
        credentials: Credentials,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_retries: int = DEFAULT_MAX_RETRIES,
        initial_retry_delay: float = DEFAULT_INITIAL_RETRY_DELAY,
        max_retry_delay: float = DEFAULT_MAX_RETRY_DELAY,
    ):
        """
        Initialize the People API wrapper.

        Args:
            credentials: Valid Google OAuth2 credentials with contacts scope
            page_size: Number of contacts per page when listing (default 250)
            max_retries: Maximum attempts for failed API calls (default 5)
            initial_retry_delay: Initial backoff delay in seconds (default 1.0)
            max_retry_delay: Maximum backoff delay in seconds (default 60.0)
        """
        self.credentials = credentials
        self.page_size = min(page_size, 1000)
        self.max_retries = max_retries
        self.initial_retry_delay = initial_retry_delay
        self.max_retry_delay = max_retry_delay
        self._service = None

    @property
    def service(self) -> Any:
        """
        Get or create the Google API service object.

        Raises:
            PeopleAPIError: If service cannot be created
        """
        if self._service is None:
            try:
                self._service = build(
                    "people", "v1", credentials=self.credentials, cache_discovery=False
                )
                logger.debug("Created People API service")
            except Exception as e:
                logger.error(f"Failed to create People API service: {e}")
                raise PeopleAPIError(f"Failed to create API service: {e}") from e
        return self._service

    def _retry_with_backoff(
        self, operation: Callable[[], Any], operation_name: str
    ) -> Any:
        """
        Execute an operation with exponential backoff retry.

        429/403 (quota) and 5xx responses are retried; anything else fails
        immediately.

        Args:
            operation: Callable to execute
            operation_name: Name for logging purposes

        Returns:
            Result of the operation

        Raises:
            RateLimitError: If retries are exhausted due to rate limits
            PeopleAPIError: For other API errors
        """
        delay = self.initial_retry_delay

        for attempt in range(self.max_retries):
            try:
                return operation()

            except HttpError as e:
                status_code = e.resp.status
                last_attempt = attempt >= self.max_retries - 1

                if status_code in (429, 403):
                    if last_attempt:
                        raise RateLimitError(
                            f"Rate limit exceeded for {operation_name} "
                            f"after {self.max_retries} retries"
                        ) from e
                    logger.warning(
                        f"{operation_name} rate limited, retrying in "
                        f"{delay:.1f}s (attempt {attempt + 1}/{self.max_retries})"
                    )
                elif status_code >= 500 and not last_attempt:
                    logger.warning(
                        f"{operation_name} server error ({status_code}), "
                        f"retrying in {delay:.1f}s"
                    )
                else:
                    logger.error(
                        f"{operation_name} failed with status {status_code}: {e}"
                    )
                    raise PeopleAPIError(f"{operation_name} failed: {e}") from e

                time.sleep(delay)
                delay = min(delay * 2, self.max_retry_delay)

        raise PeopleAPIError(f"{operation_name} failed after all retries")

    def list_directory_contacts(self) -> list[DirectoryContact]:
        """
        List every contact that has at least one phone number.

        Follows nextPageToken until all pages are read.

        Returns:
            List of DirectoryContact in the order the API returns them

        Raises:
            PeopleAPIError: If listing fails
            RateLimitError: If rate limit exceeded
        """
        contacts: list[DirectoryContact] = []
        page_token: str | None = None
        pages = 0

        while True:
            params: dict[str, Any] = {
                "resourceName": "people/me",
                "personFields": LIST_PERSON_FIELDS,
                "pageSize": self.page_size,
            }
            if page_token:
                params["pageToken"] = page_token

            def execute_list(p: dict[str, Any] = params) -> Any:
                return self.service.people().connections().list(**p).execute()

            response = self._retry_with_backoff(execute_list, "list_directory_contacts")
            pages += 1

            for person in response.get("connections", []):
                contact = DirectoryContact.from_api_response(person)
                if contact is not None:
                    contacts.append(contact)

            page_token = response.get("nextPageToken")
            if not page_token:
                break

        logger.info(
            f"Listed {len(contacts)} contacts with phone numbers ({pages} pages)"
        )
        return contacts

    def get_directory_snapshot(self, resource_name: str) -> DirectorySnapshot:
        """
        Get a contact's current display name and photo.

        A photo that cannot be downloaded is reported as None rather than
        failing the call.

        Args:
            resource_name: Contact's resource name (e.g., "people/c12345")

        Returns:
            DirectorySnapshot

        Raises:
            PeopleAPIError: If the contact cannot be read
        """
        logger.debug(f"Getting snapshot of contact: {resource_name}")

        def execute_get() -> Any:
            return (
                self.service.people()
                .get(resourceName=resource_name, personFields=SNAPSHOT_PERSON_FIELDS)
                .execute()
            )

        person = self._retry_with_backoff(
            execute_get, f"get_directory_snapshot({resource_name})"
        )

        names = person.get("names") or [{}]
        display_name = names[0].get("displayName", "")

        photo: bytes | None = None
        photos = person.get("photos") or []
        if photos and photos[0].get("url"):
            try:
                photo = download_photo(photos[0]["url"])
            except PhotoError as e:
                logger.warning(
                    f"Could not download current photo of {resource_name}: {e}"
                )

        return DirectorySnapshot(display_name=display_name, photo=photo)

    def upload_photo(self, resource_name: str, photo_bytes: bytes) -> bool:
        """
        Replace a contact's photo.

        Args:
            resource_name: Contact's resource name (e.g., "people/c12345")
            photo_bytes: JPEG or PNG bytes

        Returns:
            True if upload succeeded

        Raises:
            PeopleAPIError: If upload fails
            ValueError: If resource_name or photo_bytes is missing
        """
        if not resource_name:
            raise ValueError("resource_name is required")
        if not photo_bytes:
            raise ValueError("photo_bytes is required")

        body = {"photoBytes": base64.b64encode(photo_bytes).decode("utf-8")}

        def execute_upload() -> Any:
            return (
                self.service.people()
                .updateContactPhoto(resourceName=resource_name, body=body)
                .execute()
            )

        self._retry_with_backoff(execute_upload, f"upload_photo({resource_name})")
        logger.info(f"Uploaded photo for contact: {resource_name}")
        return True
