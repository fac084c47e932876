"""Ingestion submitters: text, listing, file and URL.

Why this exists:
- Normalizes four kinds of user input into the gateway's knowledge base calls
- Reports each failure site distinctly (empty input, rejected request,
  missing upload URL, failed byte transfer)
- Tells the status tracker about accepted items

A successful submission means the platform accepted the item for
processing. It does not mean the item is ready; the tracker follows it
from there.

How to use:
    service = IngestionService(gateway, tracker)
    result = await service.submit_text(replica_id, "Open house Saturday 10am", title="FAQ")
    if result.accepted:
        form.clear()
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional, Union
from urllib.parse import urlparse

from pydantic import ValidationError

from replica_studio.core.tracker import KnowledgeTracker
from replica_studio.entities.knowledge import KnowledgeKind
from replica_studio.entities.listing import PropertyListing
from replica_studio.entities.upload import FileUpload
from replica_studio.gateway.client import SensayGateway
from replica_studio.observability.logging import get_logger

logger = get_logger(__name__)

YOUTUBE_HOSTS = frozenset({"youtube.com", "youtu.be", "youtube-nocookie.com"})


class SubmissionFailure(str, Enum):
    """Why a submission was not accepted."""

    EMPTY_CONTENT = "empty_content"
    INVALID_INPUT = "invalid_input"
    REJECTED = "rejected"
    UPLOAD_URL_UNAVAILABLE = "upload_url_unavailable"
    UPLOAD_TRANSFER_FAILED = "upload_transfer_failed"


@dataclass
class SubmissionResult:
    """Result of one submission."""

    accepted: bool
    kind: KnowledgeKind
    title: Optional[str] = None
    reason: Optional[SubmissionFailure] = None
    record: Optional[dict[str, Any]] = None
    detail: Optional[str] = None


def classify_url(url: str) -> KnowledgeKind:
    """Return ``youtube`` for recognized video hosts, ``website`` otherwise."""
    host = (urlparse(url).hostname or "").lower()
    for prefix in ("www.", "m.", "music."):
        if host.startswith(prefix):
            host = host[len(prefix):]
            break
    return KnowledgeKind.YOUTUBE if host in YOUTUBE_HOSTS else KnowledgeKind.WEBSITE


def extract_signed_url(response: Optional[Mapping[str, Any]]) -> Optional[str]:
    """Pull ``results[0].signedURL`` out of a file upload response."""
    if not response:
        return None
    results = response.get("results")
    if not isinstance(results, list) or not results:
        return None
    first = results[0]
    if not isinstance(first, Mapping):
        return None
    signed_url = first.get("signedURL")
    return signed_url or None


def _clean_title(title: Optional[str]) -> Optional[str]:
    if title is None:
        return None
    title = title.strip()
    return title or None


class IngestionService:
    """Submits knowledge to a replica and keeps its tracker current."""

    def __init__(self, gateway: SensayGateway, tracker: Optional[KnowledgeTracker] = None):
        """Initialize the ingestion service.

        Args:
            gateway: Platform gateway
            tracker: Status tracker to notify about accepted items
        """
        self.gateway = gateway
        self.tracker = tracker

    def _accepted(
        self, kind: KnowledgeKind, title: Optional[str], record: Optional[dict[str, Any]]
    ) -> SubmissionResult:
        if self.tracker is not None:
            self.tracker.add_placeholder(kind, title)
            self.tracker.invalidate()
        return SubmissionResult(accepted=True, kind=kind, title=title, record=record)

    async def submit_text(
        self, replica_id: str, text: str, title: Optional[str] = None
    ) -> SubmissionResult:
        """Submit free text. Whitespace-only text never reaches the gateway."""
        content = (text or "").strip()
        title = _clean_title(title)
        if not content:
            logger.info("text_submission_skipped_empty", replica_id=replica_id)
            return SubmissionResult(
                accepted=False, kind=KnowledgeKind.TEXT, title=title, reason=SubmissionFailure.EMPTY_CONTENT
            )

        record = await self.gateway.add_text_knowledge(replica_id, content, title)
        if record is None:
            return SubmissionResult(
                accepted=False, kind=KnowledgeKind.TEXT, title=title, reason=SubmissionFailure.REJECTED
            )
        return self._accepted(KnowledgeKind.TEXT, title, record)

    async def submit_listing(
        self, replica_id: str, listing: Union[PropertyListing, Mapping[str, Any]]
    ) -> SubmissionResult:
        """Coerce a listing form, serialize it to JSON and submit it as text."""
        if not isinstance(listing, PropertyListing):
            try:
                listing = PropertyListing.model_validate(dict(listing))
            except ValidationError as e:
                logger.info("listing_submission_invalid", replica_id=replica_id, errors=e.error_count())
                return SubmissionResult(
                    accepted=False,
                    kind=KnowledgeKind.TEXT,
                    reason=SubmissionFailure.INVALID_INPUT,
                    detail=str(e),
                )

        logger.debug("listing_serialized", replica_id=replica_id, address=listing.address)
        return await self.submit_text(replica_id, listing.to_document(), title=listing.title)

    async def submit_file(
        self, replica_id: str, upload: FileUpload, title: Optional[str] = None
    ) -> SubmissionResult:
        """Two-phase file submission: negotiate a signed URL, then PUT the bytes."""
        title = _clean_title(title)
        if not upload.content:
            return SubmissionResult(
                accepted=False, kind=KnowledgeKind.FILE, title=title, reason=SubmissionFailure.EMPTY_CONTENT
            )

        response = await self.gateway.request_file_upload(replica_id, upload.filename, title)
        if response is None:
            return SubmissionResult(
                accepted=False, kind=KnowledgeKind.FILE, title=title, reason=SubmissionFailure.REJECTED
            )

        signed_url = extract_signed_url(response)
        if signed_url is None:
            logger.warning("signed_url_missing", replica_id=replica_id, filename=upload.filename)
            self.gateway.notifier.error("Could not get upload URL.")
            return SubmissionResult(
                accepted=False,
                kind=KnowledgeKind.FILE,
                title=title,
                reason=SubmissionFailure.UPLOAD_URL_UNAVAILABLE,
                record=response,
            )

        uploaded = await self.gateway.upload_file_to_signed_url(signed_url, upload)
        if not uploaded:
            return SubmissionResult(
                accepted=False,
                kind=KnowledgeKind.FILE,
                title=title,
                reason=SubmissionFailure.UPLOAD_TRANSFER_FAILED,
                record=response,
            )

        return self._accepted(KnowledgeKind.FILE, title or upload.filename, response)

    async def submit_url(
        self, replica_id: str, url: str, title: Optional[str] = None
    ) -> SubmissionResult:
        """Submit a web page or video URL; the platform fetches the content."""
        url = (url or "").strip()
        title = _clean_title(title)
        kind = classify_url(url) if url else KnowledgeKind.WEBSITE
        if not url:
            return SubmissionResult(accepted=False, kind=kind, title=title, reason=SubmissionFailure.EMPTY_CONTENT)

        if urlparse(url).scheme not in ("http", "https"):
            return SubmissionResult(
                accepted=False,
                kind=kind,
                title=title,
                reason=SubmissionFailure.INVALID_INPUT,
                detail="URL must start with http:// or https://",
            )

        record = await self.gateway.add_url_knowledge(replica_id, url, title)
        if record is None:
            return SubmissionResult(accepted=False, kind=kind, title=title, reason=SubmissionFailure.REJECTED)
        return self._accepted(kind, title or url, record)
