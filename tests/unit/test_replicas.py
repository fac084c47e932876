"""Unit tests for ReplicaManager."""

import json
from pathlib import Path

import pytest

from replica_studio.core.replicas import DEFAULT_SEED_TITLE, ReplicaManager
from replica_studio.core.seed import DEFAULT_BEHAVIOR_GUIDE, load_behavior_guide
from replica_studio.entities.replica import ReplicaDraft
from replica_studio.entities.session import Session
from replica_studio.gateway.base import ConfigurationError, SlugConflictError


def _draft(slug="jane-realty"):
    return ReplicaDraft(
        name="Jane's Assistant",
        short_description="Specialist in downtown condos",
        greeting="Hi! I can help you find your dream home.",
        slug=slug,
    )


@pytest.mark.asyncio
class TestCreateReplica:
    """Create-then-seed sequence."""

    async def test_created_and_seeded(self, gateway, platform, notifier):
        manager = ReplicaManager(gateway)

        result = await manager.create_replica(_draft())

        assert result.created and result.seeded
        assert result.seed_error is None
        assert result.replica.id in platform.replicas

        seed = platform.requests_to("POST", "knowledge-base$")[0]
        assert seed.url.path == f"/v1/replicas/{result.replica.id}/knowledge-base"
        assert json.loads(seed.content) == {"text": DEFAULT_BEHAVIOR_GUIDE, "title": DEFAULT_SEED_TITLE}
        assert platform.knowledge[result.replica.id][0]["title"] == "Replica Behavior Guide"

    async def test_seed_has_no_text_toast(self, gateway, notifier):
        await ReplicaManager(gateway).create_replica(_draft())

        assert notifier.successes == ["AI Agent created successfully!"]
        assert notifier.errors == []

    async def test_owner_is_session_user(self, gateway, platform):
        await ReplicaManager(gateway).create_replica(_draft())

        body = json.loads(platform.requests_to("POST", "^/v1/replicas$")[0].content)
        assert body["ownerID"] == "agent_test"

    async def test_seed_failure_is_reported_separately(self, gateway, platform):
        platform.fail("POST /replicas/replica-1/knowledge-base")

        result = await ReplicaManager(gateway).create_replica(_draft())

        assert result.created
        assert not result.seeded
        assert result.seed_error == "The agent was created, but its behavior guide could not be added."

    async def test_create_failure_skips_seed(self, gateway, platform):
        platform.fail("POST /replicas")

        result = await ReplicaManager(gateway).create_replica(_draft())

        assert not result.created
        assert platform.requests_to("POST", "knowledge-base") == []

    async def test_slug_conflict_propagates(self, gateway, platform):
        manager = ReplicaManager(gateway)
        await manager.create_replica(_draft())

        with pytest.raises(SlugConflictError):
            await manager.create_replica(_draft())

        assert len(platform.replicas) == 1
        assert len(platform.requests_to("POST", "knowledge-base")) == 1

    async def test_missing_user_id(self, gateway, platform):
        gateway.session = Session(organization_secret="org-secret")

        with pytest.raises(ConfigurationError, match="User ID not found"):
            await ReplicaManager(gateway).create_replica(_draft())

        assert platform.requests == []

    async def test_custom_guide_and_title(self, gateway, platform):
        manager = ReplicaManager(gateway, behavior_guide="Answer politely.", seed_title="Guide")

        await manager.create_replica(_draft())

        body = json.loads(platform.requests_to("POST", "knowledge-base$")[0].content)
        assert body == {"text": "Answer politely.", "title": "Guide"}

    async def test_list_and_get(self, gateway):
        manager = ReplicaManager(gateway)
        created = (await manager.create_replica(_draft())).replica

        assert [r.slug for r in await manager.list_replicas()] == ["jane-realty"]
        fetched = await manager.get_replica(created.id)
        assert fetched.greeting == "Hi! I can help you find your dream home."


class TestBehaviorGuide:
    def test_default_guide(self):
        assert load_behavior_guide() == DEFAULT_BEHAVIOR_GUIDE
        assert "virtualTourUrl" in DEFAULT_BEHAVIOR_GUIDE
        assert "Property Listing:" in DEFAULT_BEHAVIOR_GUIDE

    def test_guide_from_file(self, tmp_path: Path):
        path = tmp_path / "guide.md"
        path.write_text("Be brief.\n", encoding="utf-8")

        assert load_behavior_guide(path).strip() == "Be brief."

    def test_empty_guide_rejected(self, tmp_path: Path):
        path = tmp_path / "guide.md"
        path.write_text("   \n", encoding="utf-8")

        with pytest.raises(ValueError):
            load_behavior_guide(path)
