"""Replica provisioning logic.

Provides high-level operations for managing replicas including:
- Creating a replica and seeding its behavior guide
- Listing and retrieving replicas
"""

from dataclasses import dataclass
from typing import Optional

from replica_studio.core.seed import DEFAULT_BEHAVIOR_GUIDE
from replica_studio.entities.replica import Replica, ReplicaDraft
from replica_studio.gateway.base import ConfigurationError
from replica_studio.gateway.client import SensayGateway
from replica_studio.observability.logging import get_logger

logger = get_logger(__name__)

DEFAULT_SEED_TITLE = "Replica Behavior Guide"


@dataclass
class ReplicaCreationResult:
    """Outcome of the two-step create-then-seed sequence.

    The steps are not atomic: a replica can exist without its guide.
    """

    replica: Optional[Replica]
    seeded: bool = False
    seed_error: Optional[str] = None

    @property
    def created(self) -> bool:
        return self.replica is not None


class ReplicaManager:
    """Creates replicas and seeds them with behavior instructions."""

    def __init__(
        self,
        gateway: SensayGateway,
        behavior_guide: str = DEFAULT_BEHAVIOR_GUIDE,
        seed_title: str = DEFAULT_SEED_TITLE,
    ):
        """Initialize replica manager.

        Args:
            gateway: Platform gateway
            behavior_guide: Text added to every new replica's knowledge base
            seed_title: Title of the seeded knowledge item
        """
        self.gateway = gateway
        self.behavior_guide = behavior_guide
        self.seed_title = seed_title

    async def create_replica(self, draft: ReplicaDraft) -> ReplicaCreationResult:
        """Create a replica, then seed its knowledge base.

        Args:
            draft: Validated creation form

        Returns:
            ReplicaCreationResult distinguishing not created, created and
            seeded, and created with a failed seed

        Raises:
            ConfigurationError: If the session has no user id
            SlugConflictError: If the slug is already taken
        """
        owner_id = self.gateway.session.user_id
        if not owner_id:
            raise ConfigurationError("User ID not found. Cannot create agent.")

        logger.info("replica_create_started", slug=draft.slug)
        replica = await self.gateway.create_replica(draft, owner_id)
        if replica is None:
            return ReplicaCreationResult(replica=None)

        # The caller reports the seed outcome itself
        seed = await self.gateway.add_text_knowledge(
            replica.id, self.behavior_guide, self.seed_title, success_message=None
        )
        if seed is None:
            logger.warning("replica_seed_failed", replica_id=replica.id, slug=replica.slug)
            return ReplicaCreationResult(
                replica=replica,
                seeded=False,
                seed_error="The agent was created, but its behavior guide could not be added.",
            )

        logger.info("replica_seeded", replica_id=replica.id, title=self.seed_title)
        return ReplicaCreationResult(replica=replica, seeded=True)

    async def list_replicas(self) -> list[Replica]:
        return await self.gateway.list_replicas()

    async def get_replica(self, replica_id: str) -> Optional[Replica]:
        return await self.gateway.get_replica(replica_id)
