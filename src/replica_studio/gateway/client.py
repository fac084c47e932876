"""Typed async client for the Sensay platform API.

Why this exists:
- One place that attaches credentials and the pinned API version
- Unwraps the platform's ``{items: [...]}`` envelopes into entities
- Turns non-2xx responses into notifications and null results, so a
  failed request never unwinds the caller

Trade-offs:
- No retries: every retry is a user action (re-submit or refresh)
- No request deduplication: two identical submissions create two items
"""

from typing import Any, Optional

import httpx
from pydantic import ValidationError

from replica_studio.config.schema import PlatformConfig
from replica_studio.entities.knowledge import KnowledgeItem
from replica_studio.entities.replica import Replica, ReplicaDraft
from replica_studio.entities.session import Session
from replica_studio.entities.upload import FileUpload
from replica_studio.gateway.base import (
    ConfigurationError,
    HeaderScope,
    SlugConflictError,
    is_slug_conflict,
)
from replica_studio.observability.logging import get_logger
from replica_studio.observability.notifications import Notifier, NullNotifier

logger = get_logger(__name__)


class SensayGateway:
    """Client for user, replica, knowledge base and chat endpoints.

    Example:
        async with SensayGateway(config.platform, session, notifier) as gateway:
            items = await gateway.list_knowledge_base(replica_id)
    """

    def __init__(
        self,
        platform: PlatformConfig,
        session: Session,
        notifier: Optional[Notifier] = None,
        client: Optional[httpx.AsyncClient] = None,
        llm_provider: str = "openai",
        llm_model: str = "gpt-4o",
    ) -> None:
        """Initialize the gateway.

        Args:
            platform: Base URL, API version and timeout
            session: Organization secret and acting user id
            notifier: Receives user-facing success/error messages
            client: Pre-built HTTP client (tests inject a MockTransport here)
            llm_provider: LLM provider recorded on new replicas
            llm_model: LLM model recorded on new replicas
        """
        self.platform = platform
        self.session = session
        self.notifier = notifier or NullNotifier()
        self.llm_provider = llm_provider
        self.llm_model = llm_model
        self._base_url = platform.base_url.rstrip("/")
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=platform.timeout)

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _headers(self, scope: HeaderScope) -> dict[str, str]:
        secret = self.session.organization_secret
        if not secret:
            raise ConfigurationError("API Key not found. Please configure your organization secret.")

        headers = {
            "Content-Type": "application/json",
            "X-API-Version": self.platform.api_version,
            "X-ORGANIZATION-SECRET": secret,
        }
        if scope == HeaderScope.USER:
            if not self.session.user_id:
                raise ConfigurationError("User ID not found. Configure the session before chatting.")
            headers["X-USER-ID"] = self.session.user_id
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        scope: HeaderScope = HeaderScope.ADMIN,
        json: Optional[dict[str, Any]] = None,
    ) -> Optional[httpx.Response]:
        """Send a platform request; None means the transport failed."""
        headers = self._headers(scope)
        url = f"{self._base_url}{path}"
        try:
            logger.debug("platform_request", method=method, path=path, scope=scope.value)
            response = await self.client.request(method, url, headers=headers, json=json)
        except httpx.HTTPError as e:
            logger.error("platform_request_failed", method=method, path=path, error=str(e))
            return None

        if not response.is_success:
            logger.warning(
                "platform_error_response",
                method=method,
                path=path,
                status_code=response.status_code,
                message=_error_message(response),
            )
        return response

    def _fail(self, message: str, response: Optional[httpx.Response] = None) -> None:
        if response is not None:
            detail = _error_message(response)
            if detail:
                message = f"{message} {detail}"
        self.notifier.error(message)

    # ------------------------------------------------------------------
    # Users and replicas
    # ------------------------------------------------------------------

    async def create_user(self, user_id: str) -> Optional[dict[str, Any]]:
        """Create the acting user identity."""
        response = await self._request("POST", "/users", json={"id": user_id})
        if response is None or not response.is_success:
            self._fail("Failed to create user.", response)
            return None

        logger.info("user_created", user_id=user_id)
        return _json_or_empty(response)

    async def list_replicas(self) -> list[Replica]:
        """List the organization's replicas; [] on failure."""
        response = await self._request("GET", "/replicas")
        if response is None or not response.is_success:
            self._fail("Failed to fetch AI agents.", response)
            return []

        replicas = _parse_items(_json_or_empty(response), Replica)
        logger.info("replicas_listed", count=len(replicas))
        return replicas

    async def get_replica(self, replica_id: str) -> Optional[Replica]:
        """Fetch one replica; None on failure."""
        response = await self._request("GET", f"/replicas/{replica_id}")
        if response is None or not response.is_success:
            self._fail("Failed to fetch AI agent.", response)
            return None

        try:
            return Replica.model_validate(_json_or_empty(response))
        except ValidationError as e:
            logger.error("replica_parse_failed", replica_id=replica_id, error=str(e))
            self._fail("AI agent response could not be read.")
            return None

    async def create_replica(self, draft: ReplicaDraft, owner_id: str) -> Optional[Replica]:
        """Create a replica owned by ``owner_id``.

        Raises:
            SlugConflictError: If the platform reports the slug as taken
            ConfigurationError: If no organization secret is configured
        """
        payload = draft.to_payload(owner_id, self.llm_provider, self.llm_model)
        response = await self._request("POST", "/replicas", json=payload)
        if response is None:
            self._fail("Failed to create agent: network error.")
            return None

        if not response.is_success:
            message = _error_message(response)
            if is_slug_conflict(message):
                logger.info("replica_slug_conflict", slug=draft.slug)
                raise SlugConflictError(draft.slug, remote_message=message)
            self.notifier.error(f"Failed to create agent: {message or 'Unknown error'}")
            return None

        # The platform may answer with only {success, uuid}
        record = {**payload, **_json_or_empty(response)}
        try:
            replica = Replica.model_validate(record)
        except ValidationError as e:
            logger.error("replica_parse_failed", slug=draft.slug, error=str(e))
            self._fail("AI agent was created but its id was missing from the response.")
            return None

        logger.info("replica_created", replica_id=replica.id, slug=replica.slug)
        self.notifier.success("AI Agent created successfully!")
        return replica

    async def send_chat_message(self, replica_id: str, content: str) -> Optional[str]:
        """Send one chat message and return the replica's reply."""
        response = await self._request(
            "POST",
            f"/replicas/{replica_id}/chat/completions",
            scope=HeaderScope.USER,
            json={"content": content},
        )
        if response is None or not response.is_success:
            self._fail("Failed to get a reply from the AI agent.", response)
            return None

        return _json_or_empty(response).get("content")

    # ------------------------------------------------------------------
    # Knowledge base
    # ------------------------------------------------------------------

    async def list_knowledge_base(self, replica_id: str) -> Optional[list[KnowledgeItem]]:
        """List every knowledge item of a replica; None on failure."""
        response = await self._request("GET", f"/replicas/{replica_id}/knowledge-base")
        if response is None or not response.is_success:
            self._fail("Failed to fetch knowledge base.", response)
            return None

        return _parse_items(_json_or_empty(response), KnowledgeItem)

    async def _add_knowledge(
        self, replica_id: str, body: dict[str, Any], title: Optional[str], failure: str, success: Optional[str]
    ) -> Optional[dict[str, Any]]:
        if title:
            body["title"] = title
        response = await self._request("POST", f"/replicas/{replica_id}/knowledge-base", json=body)
        if response is None or not response.is_success:
            self._fail(failure, response)
            return None

        if success:
            self.notifier.success(success)
        return _json_or_empty(response)

    async def add_text_knowledge(
        self,
        replica_id: str,
        text: str,
        title: Optional[str] = None,
        success_message: Optional[str] = "Text content added.",
    ) -> Optional[dict[str, Any]]:
        """Add a text item; pass ``success_message=None`` to skip the success toast."""
        result = await self._add_knowledge(
            replica_id, {"text": text}, title, "Failed to add text content.", success_message
        )
        if result is not None:
            logger.info("text_knowledge_added", replica_id=replica_id, title=title, length=len(text))
        return result

    async def request_file_upload(
        self, replica_id: str, filename: str, title: Optional[str] = None
    ) -> Optional[dict[str, Any]]:
        """Ask for a signed upload target; the response carries ``results[].signedURL``."""
        result = await self._add_knowledge(
            replica_id, {"filename": filename}, title, "Failed to start file upload.", None
        )
        if result is not None:
            logger.info("file_upload_requested", replica_id=replica_id, filename=filename)
        return result

    async def upload_file_to_signed_url(self, signed_url: str, upload: FileUpload) -> bool:
        """PUT raw bytes to a pre-authorized storage URL.

        No platform headers are sent; the URL carries its own authorization.
        """
        try:
            response = await self.client.put(
                signed_url,
                content=upload.content,
                headers={"Content-Type": upload.content_type},
            )
        except httpx.HTTPError as e:
            logger.error("signed_upload_failed", filename=upload.filename, error=str(e))
            self.notifier.error("Failed to upload file to storage.")
            return False

        if not response.is_success:
            logger.warning(
                "signed_upload_rejected",
                filename=upload.filename,
                status_code=response.status_code,
            )
            self.notifier.error("Failed to upload file to storage.")
            return False

        logger.info("signed_upload_completed", filename=upload.filename, size=upload.size)
        self.notifier.success("File uploaded. Processing has started.")
        return True

    async def add_url_knowledge(
        self, replica_id: str, url: str, title: Optional[str] = None
    ) -> Optional[dict[str, Any]]:
        result = await self._add_knowledge(
            replica_id, {"url": url}, title, "Failed to add URL.", "URL added."
        )
        if result is not None:
            logger.info("url_knowledge_added", replica_id=replica_id, url=url)
        return result

    async def delete_knowledge_item(self, replica_id: str, item_id: int) -> bool:
        response = await self._request("DELETE", f"/replicas/{replica_id}/knowledge-base/{item_id}")
        if response is None or not response.is_success:
            self._fail("Failed to delete knowledge item.", response)
            return False

        logger.info("knowledge_item_deleted", replica_id=replica_id, item_id=item_id)
        self.notifier.success("Knowledge item deleted.")
        return True

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Close the HTTP client if this gateway created it."""
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> "SensayGateway":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


def _json_or_empty(response: httpx.Response) -> dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text.strip()
    if isinstance(data, dict):
        return str(data.get("message") or data.get("error") or "")
    return ""


def _parse_items(data: dict[str, Any], model: type) -> list:
    """Unwrap ``{items: [...]}`` and validate each entry, skipping bad ones."""
    parsed = []
    for raw in data.get("items") or []:
        try:
            parsed.append(model.model_validate(raw))
        except ValidationError as e:
            logger.warning("platform_item_skipped", model=model.__name__, error=str(e))
    return parsed
