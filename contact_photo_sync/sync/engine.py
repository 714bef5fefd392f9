"""
Sync engine for messaging-app to Google Contacts photo synchronization.

Orchestrates one sync run: loads both contact sources, matches directory
contacts to messaging contacts by phone number, fetches candidate photos,
asks the user for approval, applies approved photos under the People API
rate limit, and reports progress after every contact.

The run is a single sequential flow. It stops early when the user
disconnects (the event channel closes) and never raises: the caller sees the
returned SyncReport and the events sent on the channel.
"""

import logging
import random
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from contact_photo_sync.api.messaging import MessagingSource
from contact_photo_sync.api.people_api import PeopleAPI
from contact_photo_sync.channel.base import ChannelClosedError, EventChannel
from contact_photo_sync.config.sync_config import SyncOptions, SyncSettings
from contact_photo_sync.sync.approval import (
    DEFAULT_APPROVAL_TIMEOUT,
    ApprovalGate,
    ApprovalRequest,
)
from contact_photo_sync.sync.contact import DirectoryContact
from contact_photo_sync.sync.matcher import ContactMatcher
from contact_photo_sync.sync.photo import PhotoError, process_photo
from contact_photo_sync.sync.progress import ProgressEvent, ProgressReporter
from contact_photo_sync.sync.rate_limiter import RateLimiter
from contact_photo_sync.utils.logging import run_context

# Error shown to the user when either contact list cannot be loaded
LOAD_ERROR_MESSAGE = "Failed to load contacts, please try again."

# Error shown to the user when the run fails unexpectedly
UNEXPECTED_ERROR_MESSAGE = "Sync failed unexpectedly, please try again."

logger = logging.getLogger(__name__)


class SyncPhase(str, Enum):
    """States of a sync run."""

    IDLE = "idle"
    LOADING = "loading"
    ITERATING = "iterating"
    MATCHING = "matching"
    FETCHING_PHOTO = "fetching_photo"
    AWAITING_APPROVAL = "awaiting_approval"
    APPLYING = "applying"
    DONE = "done"
    ABORTED = "aborted"


@dataclass
class SyncState:
    """
    Mutable counters of a running sync.

    Attributes:
        sync_count: Photos applied
        skipped_count: Photos denied by the user or that failed to apply
        current_photo: Candidate photo of the contact being processed
        last_synced: Outcome of the most recent apply/deny decision
    """

    sync_count: int = 0
    skipped_count: int = 0
    current_photo: Optional[bytes] = None
    last_synced: Optional[bool] = None


@dataclass(frozen=True)
class SyncReport:
    """
    Outcome of a sync run.

    Attributes:
        phase: Terminal phase, DONE or ABORTED
        sync_count: Photos applied
        skipped_count: Photos denied or failed
        total_contacts: Directory contacts loaded (0 if loading failed)
        error: Error message if the run failed
    """

    phase: SyncPhase
    sync_count: int = 0
    skipped_count: int = 0
    total_contacts: int = 0
    error: Optional[str] = None

    @property
    def completed(self) -> bool:
        """True if every contact was processed."""
        return self.phase is SyncPhase.DONE


class SyncOrchestrator:
    """
    Drives one photo sync run.

    Collaborators are passed in explicitly; one orchestrator (and one rate
    limiter) per run.

    Usage:
        orchestrator = SyncOrchestrator(
            directory=PeopleAPI(credentials),
            messaging=my_messaging_source,
            channel=channel,
            options=SyncOptions(require_confirmation=True),
        )
        report = orchestrator.run()
        print(report.sync_count, report.skipped_count)
    """

    def __init__(
        self,
        directory: PeopleAPI,
        messaging: MessagingSource,
        channel: Optional[EventChannel] = None,
        options: Optional[SyncOptions] = None,
        rate_limiter: Optional[RateLimiter] = None,
        approval_timeout: float = DEFAULT_APPROVAL_TIMEOUT,
        shuffle: bool = True,
        rng: Optional[random.Random] = None,
        run_id: Optional[str] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            directory: Directory client (list, snapshot, upload)
            messaging: Messaging contact source
            channel: Channel to the user; None runs without approvals or
                progress events
            options: Run options (default: don't overwrite, no confirmation)
            rate_limiter: Limiter for photo uploads (default: new RateLimiter)
            approval_timeout: Seconds to wait for each approval (must be > 0)
            shuffle: Randomize contact order before iterating
            rng: Random source for shuffling
            run_id: Identifier attached to this run's log records
                (default: random 8 hex digits)
        """
        if approval_timeout <= 0:
            raise ValueError(f"approval_timeout must be > 0, got {approval_timeout}")

        self.directory = directory
        self.messaging = messaging
        self.channel = channel
        self.options = options or SyncOptions()
        self.rate_limiter = rate_limiter or RateLimiter()
        self.approval_timeout = approval_timeout
        self.shuffle = shuffle
        self._random = rng or random.Random()
        self.run_id = run_id or uuid.uuid4().hex[:8]
        self._reporter = ProgressReporter(channel)
        self._phase = SyncPhase.IDLE

    @property
    def phase(self) -> SyncPhase:
        """Current phase of the run."""
        return self._phase

    def _set_phase(self, phase: SyncPhase) -> None:
        self._phase = phase

    def _disconnected(self) -> bool:
        return self.channel is not None and not self.channel.is_open

    def run(self) -> SyncReport:
        """
        Execute the sync run.

        Returns:
            SyncReport with the terminal phase and final counts
        """
        with run_context(self.run_id):
            return self._run()

    def _run(self) -> SyncReport:
        logger.info(
            f"Starting photo sync (overwrite_photos={self.options.overwrite_photos}, "
            f"require_confirmation={self.options.require_confirmation})"
        )

        gate = ApprovalGate(
            self.channel,
            required=self.options.require_confirmation,
            timeout=self.approval_timeout,
        )
        state = SyncState()
        total = 0

        try:
            contacts, index = self._load()
            if contacts is None or index is None:
                return self._abort(state, total, LOAD_ERROR_MESSAGE)

            total = len(contacts)
            return self._iterate(contacts, ContactMatcher(index), gate, state)

        except Exception as e:
            logger.exception(f"Sync failed with unexpected error: {e}")
            return self._abort(state, total, UNEXPECTED_ERROR_MESSAGE)

        finally:
            gate.detach()

    def _load(
        self,
    ) -> tuple[Optional[list[DirectoryContact]], Optional[dict[str, str]]]:
        """Load both contact sources; (None, None) on failure."""
        self._set_phase(SyncPhase.LOADING)

        try:
            contacts = self.directory.list_directory_contacts()
            index = self.messaging.load_index()
        except Exception as e:
            logger.error(f"Failed to load contacts: {e}")
            return None, None

        logger.info(
            f"Loaded {len(contacts)} directory contacts and "
            f"{len(index)} messaging contacts"
        )
        return contacts, index

    def _abort(
        self, state: SyncState, total: int, error: Optional[str] = None
    ) -> SyncReport:
        self._set_phase(SyncPhase.ABORTED)

        if error is not None:
            self._reporter.emit(
                ProgressEvent(
                    progress=0,
                    sync_count=state.sync_count,
                    skipped_count=state.skipped_count,
                    error=error,
                )
            )
        else:
            logger.info("User disconnected, stopping sync")

        return SyncReport(
            phase=SyncPhase.ABORTED,
            sync_count=state.sync_count,
            skipped_count=state.skipped_count,
            total_contacts=total,
            error=error,
        )

    def _iterate(
        self,
        contacts: list[DirectoryContact],
        matcher: ContactMatcher,
        gate: ApprovalGate,
        state: SyncState,
    ) -> SyncReport:
        self._set_phase(SyncPhase.ITERATING)
        total = len(contacts)

        # The directory lists photo-less contacts first; shuffling spreads
        # the photos out so progress looks steady
        ordered = list(contacts)
        if self.shuffle:
            self._random.shuffle(ordered)

        for index, contact in enumerate(ordered):
            if self._disconnected():
                return self._abort(state, total)

            if not self.options.overwrite_photos and contact.has_photo:
                logger.debug(f"Skipping {contact.resource_name}: already has a photo")
                continue

            try:
                self._process_contact(contact, matcher, gate, state)
            except ChannelClosedError:
                return self._abort(state, total)

            self._set_phase(SyncPhase.ITERATING)
            self._reporter.emit(
                ProgressEvent(
                    progress=index / total * 100,
                    sync_count=state.sync_count,
                    skipped_count=state.skipped_count,
                    total_contacts=total,
                    photo=state.current_photo,
                    is_synced=state.last_synced,
                )
            )
            state.current_photo = None

        self._set_phase(SyncPhase.DONE)
        self._reporter.emit(
            ProgressEvent(
                progress=100,
                sync_count=state.sync_count,
                skipped_count=state.skipped_count,
                total_contacts=total,
            )
        )
        if self.channel is not None:
            self.channel.close()

        logger.info(
            f"Photo sync finished: {state.sync_count} synced, "
            f"{state.skipped_count} skipped, {total} contacts"
        )
        return SyncReport(
            phase=SyncPhase.DONE,
            sync_count=state.sync_count,
            skipped_count=state.skipped_count,
            total_contacts=total,
        )

    def _process_contact(
        self,
        contact: DirectoryContact,
        matcher: ContactMatcher,
        gate: ApprovalGate,
        state: SyncState,
    ) -> None:
        """
        Match, fetch, approve and apply a photo for one contact.

        Only the first matched number is attempted, even if it yields no
        photo or is denied.

        Raises:
            ChannelClosedError: If the user disconnects while approving
        """
        self._set_phase(SyncPhase.MATCHING)
        match = matcher.match_contact(contact)
        if match is None:
            return
        number, messaging_id = match

        self._set_phase(SyncPhase.FETCHING_PHOTO)
        photo = self._fetch_photo(messaging_id)
        if photo is None:
            logger.debug(f"No messaging photo for {number}")
            return
        state.current_photo = photo

        self._set_phase(SyncPhase.AWAITING_APPROVAL)
        approved = self._request_approval(contact, photo, gate)
        if not approved:
            state.skipped_count += 1
            state.last_synced = False
            return

        self._set_phase(SyncPhase.APPLYING)
        self.rate_limiter.acquire()
        try:
            self.directory.upload_photo(contact.resource_name, photo)
        except Exception as e:
            logger.error(f"Failed to apply photo to {contact.resource_name}: {e}")
            state.skipped_count += 1
            state.last_synced = False
            return

        state.sync_count += 1
        state.last_synced = True

    def _fetch_photo(self, messaging_id: str) -> Optional[bytes]:
        """Fetch and prepare a candidate photo; None if there is none usable."""
        try:
            raw = self.messaging.fetch_photo(messaging_id)
        except Exception as e:
            logger.warning(f"Failed to fetch photo for {messaging_id}: {e}")
            return None

        if not raw:
            return None

        try:
            return process_photo(raw)
        except PhotoError as e:
            logger.warning(f"Unusable photo for {messaging_id}: {e}")
            return None

    def _request_approval(
        self, contact: DirectoryContact, photo: bytes, gate: ApprovalGate
    ) -> bool:
        """
        Ask the user to approve the update, if approval is needed.

        Raises:
            ChannelClosedError: If the user disconnects while approving
        """
        if not gate.required or gate.channel is None:
            return True

        if self._disconnected():
            raise ChannelClosedError("Channel closed before approval")

        try:
            snapshot = self.directory.get_directory_snapshot(contact.resource_name)
        except Exception as e:
            logger.warning(
                f"Could not read {contact.resource_name} for comparison, "
                f"skipping: {e}"
            )
            return False

        return gate.request_approval(
            ApprovalRequest(
                display_name=snapshot.display_name,
                directory_photo=snapshot.photo,
                candidate_photo=photo,
            )
        )


def run_sync(
    directory: PeopleAPI,
    messaging: MessagingSource,
    channel: Optional[EventChannel] = None,
    options: Optional[SyncOptions] = None,
    settings: Optional[SyncSettings] = None,
) -> SyncReport:
    """
    Run one sync with a fresh orchestrator and rate limiter.

    Args:
        directory: Directory client
        messaging: Messaging contact source
        channel: Channel to the user (None for an unattended run)
        options: Run options; defaults to settings.options
        settings: Tunables (default: SyncSettings())

    Returns:
        SyncReport
    """
    settings = settings or SyncSettings()
    orchestrator = SyncOrchestrator(
        directory=directory,
        messaging=messaging,
        channel=channel,
        options=options or settings.options,
        rate_limiter=RateLimiter(interval=settings.rate_limit_interval),
        approval_timeout=settings.approval_timeout,
        shuffle=settings.shuffle_contacts,
    )
    return orchestrator.run()
