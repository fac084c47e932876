"""Workspace initialization service.

Provides a helper that opens the session store, loads the session and builds
the gateway and managers from one AppConfig.
"""

from dataclasses import dataclass, field
from typing import Optional

from replica_studio.config.schema import AppConfig
from replica_studio.core.replicas import ReplicaManager
from replica_studio.core.seed import load_behavior_guide
from replica_studio.core.submitters import IngestionService
from replica_studio.core.tracker import KnowledgeTracker
from replica_studio.entities.session import Session
from replica_studio.gateway import create_gateway
from replica_studio.gateway.client import SensayGateway
from replica_studio.observability.notifications import Notifier
from replica_studio.service.session import SessionManager
from replica_studio.storage import create_session_store
from replica_studio.storage.base import SessionStore


@dataclass
class Workspace:
    """Everything a command needs for one session."""

    config: AppConfig
    store: SessionStore
    session: Session
    gateway: SensayGateway
    sessions: SessionManager
    trackers: dict[str, KnowledgeTracker] = field(default_factory=dict)

    def replica_manager(self) -> ReplicaManager:
        defaults = self.config.replica_defaults
        return ReplicaManager(
            self.gateway,
            behavior_guide=load_behavior_guide(defaults.seed_guide_path),
            seed_title=defaults.seed_title,
        )

    def tracker(self, replica_id: str) -> KnowledgeTracker:
        """Return the tracker for a replica, creating it on first use."""
        if replica_id not in self.trackers:
            self.trackers[replica_id] = KnowledgeTracker(
                self.gateway,
                replica_id,
                poll_interval=self.config.tracker.poll_interval,
            )
        return self.trackers[replica_id]

    def ingestion(self, replica_id: str) -> IngestionService:
        return IngestionService(self.gateway, self.tracker(replica_id))

    async def reconfigure(self, secret: str, notifier: Optional[Notifier] = None) -> Session:
        """Store a new secret and rebuild everything that read the old one."""
        for tracker in self.trackers.values():
            tracker.reset()
        self.trackers.clear()

        self.session = await self.sessions.configure(secret)
        await self.gateway.close()
        self.gateway = _build_gateway(self.config, self.session, notifier or self.gateway.notifier)
        return self.session

    async def close(self) -> None:
        for tracker in self.trackers.values():
            tracker.stop()
        await self.gateway.close()
        await self.store.close()


def _build_gateway(config: AppConfig, session: Session, notifier: Optional[Notifier]) -> SensayGateway:
    return create_gateway(
        config.platform,
        session,
        notifier=notifier,
        llm_provider=config.replica_defaults.llm_provider,
        llm_model=config.replica_defaults.llm_model,
    )


async def open_workspace(config: AppConfig, notifier: Optional[Notifier] = None) -> Workspace:
    """Open the session store and build a gateway for the stored session.

    Args:
        config: Application configuration
        notifier: Sink for user-facing messages

    Returns:
        Workspace (call ``close()`` when done)
    """
    store = create_session_store(config.session_store)
    await store.initialize()

    sessions = SessionManager(store)
    session = await sessions.load()

    return Workspace(
        config=config,
        store=store,
        session=session,
        gateway=_build_gateway(config, session, notifier),
        sessions=sessions,
    )
