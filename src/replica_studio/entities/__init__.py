"""Entities - Domain models for replica provisioning and knowledge ingestion.

This module contains pure domain entities without business logic:
- Replica / ReplicaDraft: a hosted agent and its creation form
- KnowledgeItem: a unit of ingested content and its processing status
- PropertyListing: a structured listing submitted as text
- Session: organization credential and acting user id
- FileUpload: raw bytes bound for a signed upload URL
"""

from replica_studio.entities.knowledge import (
    STATUS_TABLE,
    TERMINAL_STATUSES,
    KnowledgeItem,
    KnowledgeKind,
    KnowledgeStatus,
    StatusInfo,
    StatusOutcome,
    is_terminal,
    status_badge,
    status_info,
)
from replica_studio.entities.listing import PropertyListing
from replica_studio.entities.replica import Replica, ReplicaDraft
from replica_studio.entities.session import Session
from replica_studio.entities.upload import FileUpload

__all__ = [
    "FileUpload",
    "KnowledgeItem",
    "KnowledgeKind",
    "KnowledgeStatus",
    "PropertyListing",
    "Replica",
    "ReplicaDraft",
    "STATUS_TABLE",
    "Session",
    "StatusInfo",
    "StatusOutcome",
    "TERMINAL_STATUSES",
    "is_terminal",
    "status_badge",
    "status_info",
]
