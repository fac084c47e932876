"""Shared fixtures: an in-process fake of the Sensay platform."""

import json
import re
from datetime import datetime, timezone
from typing import Any, Optional

import httpx
import pytest

from replica_studio.config.schema import PlatformConfig
from replica_studio.entities.session import Session
from replica_studio.gateway.client import SensayGateway
from replica_studio.observability.notifications import CollectingNotifier

BASE_URL = "https://api.sensay.io/v1"
STORAGE_URL = "https://storage.example.com/upload"

# Each knowledge base fetch moves an item one step along its path
TEXT_PATH = ["NEW", "RAW_TEXT", "PROCESSED_TEXT", "READY"]
FILE_PATH = ["NEW", "FILE_UPLOADED", "RAW_TEXT", "PROCESSED_TEXT", "VECTOR_CREATED"]


class FakePlatform:
    """Minimal stand-in for the platform API, served through MockTransport."""

    def __init__(self, secret: str = "org-secret"):
        self.secret = secret
        self.requests: list[httpx.Request] = []
        self.users: set[str] = set()
        self.replicas: dict[str, dict[str, Any]] = {}
        self.knowledge: dict[str, list[dict[str, Any]]] = {}
        self.uploads: dict[str, bytes] = {}
        self.advance_on_fetch = True
        self.fail_next: dict[str, int] = {}
        self.chat_reply = "Happy to help!"
        self._next_item_id = 100
        self._next_replica = 1

    # -- helpers -----------------------------------------------------------

    def add_item(self, replica_id: str, kind: str, title: Optional[str], status: str = "NEW") -> dict[str, Any]:
        now = datetime.now(timezone.utc).isoformat()
        item = {
            "id": self._next_item_id,
            "type": kind,
            "title": title,
            "status": status,
            "createdAt": now,
            "updatedAt": now,
        }
        self._next_item_id += 1
        self.knowledge.setdefault(replica_id, []).append(item)
        return item

    def fail(self, key: str, times: int = 1) -> None:
        """Make the next ``times`` requests matching ``key`` ("METHOD /path-prefix") fail with 500."""
        self.fail_next[key] = times

    def _should_fail(self, method: str, path: str) -> bool:
        for key, remaining in list(self.fail_next.items()):
            key_method, key_path = key.split(" ", 1)
            if remaining > 0 and method == key_method and path.startswith(key_path):
                self.fail_next[key] = remaining - 1
                return True
        return False

    def _advance(self, replica_id: str) -> None:
        for item in self.knowledge.get(replica_id, []):
            path = FILE_PATH if item["type"] == "file" else TEXT_PATH
            if item["status"] in path and item["status"] != path[-1]:
                if item["type"] == "file" and item["status"] == "NEW":
                    continue  # waits for the byte transfer
                item["status"] = path[path.index(item["status"]) + 1]

    def requests_to(self, method: str, pattern: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and re.search(pattern, r.url.path)]

    # -- transport ---------------------------------------------------------

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)

        if url.startswith(STORAGE_URL):
            return self._storage(request)

        if request.headers.get("X-ORGANIZATION-SECRET") != self.secret:
            return httpx.Response(401, json={"success": False, "message": "Invalid organization secret"})

        path = request.url.path.removeprefix("/v1")
        if self._should_fail(request.method, path):
            return httpx.Response(500, json={"success": False, "message": "Internal error"})

        body = json.loads(request.content) if request.content else {}

        if request.method == "POST" and path == "/users":
            self.users.add(body["id"])
            return httpx.Response(200, json={"id": body["id"]})

        if request.method == "GET" and path == "/replicas":
            return httpx.Response(200, json={"success": True, "items": list(self.replicas.values())})

        if request.method == "POST" and path == "/replicas":
            if any(r["slug"] == body["slug"] for r in self.replicas.values()):
                return httpx.Response(
                    409, json={"success": False, "message": f"Replica with slug {body['slug']} already exists"}
                )
            replica_id = f"replica-{self._next_replica}"
            self._next_replica += 1
            self.replicas[replica_id] = {
                "uuid": replica_id,
                "name": body["name"],
                "slug": body["slug"],
                "short_description": body["shortDescription"],
                "introduction": body["greeting"],
                "profile_image": body.get("profileImage"),
            }
            return httpx.Response(200, json={"success": True, "uuid": replica_id})

        match = re.fullmatch(r"/replicas/([^/]+)", path)
        if match and request.method == "GET":
            replica = self.replicas.get(match.group(1))
            if replica is None:
                return httpx.Response(404, json={"message": "Replica not found"})
            return httpx.Response(200, json=replica)

        match = re.fullmatch(r"/replicas/([^/]+)/knowledge-base", path)
        if match:
            replica_id = match.group(1)
            if request.method == "GET":
                if self.advance_on_fetch:
                    self._advance(replica_id)
                return httpx.Response(200, json={"items": [dict(i) for i in self.knowledge.get(replica_id, [])]})
            if request.method == "POST":
                return self._create_knowledge(replica_id, body)

        match = re.fullmatch(r"/replicas/([^/]+)/knowledge-base/(\d+)", path)
        if match and request.method == "DELETE":
            items = self.knowledge.get(match.group(1), [])
            item_id = int(match.group(2))
            remaining = [i for i in items if i["id"] != item_id]
            if len(remaining) == len(items):
                return httpx.Response(404, json={"message": "Knowledge base entry not found"})
            self.knowledge[match.group(1)] = remaining
            return httpx.Response(200, json={"success": True})

        match = re.fullmatch(r"/replicas/([^/]+)/chat/completions", path)
        if match and request.method == "POST":
            if not request.headers.get("X-USER-ID"):
                return httpx.Response(400, json={"message": "X-USER-ID header is required"})
            return httpx.Response(200, json={"success": True, "content": self.chat_reply})

        return httpx.Response(404, json={"message": f"No route for {request.method} {path}"})

    def _create_knowledge(self, replica_id: str, body: dict[str, Any]) -> httpx.Response:
        if "text" in body:
            item = self.add_item(replica_id, "text", body.get("title"))
            return httpx.Response(200, json={"success": True, "results": [{"knowledgeBaseID": item["id"]}]})
        if "url" in body:
            kind = "youtube" if "youtu" in body["url"] else "website"
            item = self.add_item(replica_id, kind, body.get("title"))
            return httpx.Response(200, json={"success": True, "results": [{"knowledgeBaseID": item["id"]}]})
        if "filename" in body:
            item = self.add_item(replica_id, "file", body.get("title") or body["filename"])
            signed = f"{STORAGE_URL}/{item['id']}?signature=abc"
            return httpx.Response(
                200, json={"success": True, "results": [{"knowledgeBaseID": item["id"], "signedURL": signed}]}
            )
        return httpx.Response(400, json={"message": "One of text, url or filename is required"})

    def _storage(self, request: httpx.Request) -> httpx.Response:
        if request.method != "PUT":
            return httpx.Response(405)
        item_id = int(request.url.path.rsplit("/", 1)[-1])
        self.uploads[str(item_id)] = request.content
        for items in self.knowledge.values():
            for item in items:
                if item["id"] == item_id:
                    item["status"] = "FILE_UPLOADED"
        return httpx.Response(200)


@pytest.fixture
def platform() -> FakePlatform:
    return FakePlatform()


@pytest.fixture
def notifier() -> CollectingNotifier:
    return CollectingNotifier()


@pytest.fixture
def session() -> Session:
    return Session(organization_secret="org-secret", user_id="agent_test")


@pytest.fixture
async def gateway(platform, session, notifier):
    client = httpx.AsyncClient(transport=httpx.MockTransport(platform.handler))
    gateway = SensayGateway(PlatformConfig(base_url=BASE_URL), session, notifier=notifier, client=client)
    yield gateway
    await client.aclose()


class FakeClock:
    """Records requested delays instead of sleeping."""

    def __init__(self):
        self.delays: list[float] = []

    async def sleep(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
