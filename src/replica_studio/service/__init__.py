"""Service layer - Business logic orchestration.

This module contains service helpers that wire components together:
- SessionManager: Credential and user id bootstrap
- open_workspace: Load config-driven session, gateway and managers
"""

from replica_studio.service.session import SessionManager, generate_user_id
from replica_studio.service.workspace import Workspace, open_workspace

__all__ = [
    "SessionManager",
    "Workspace",
    "generate_user_id",
    "open_workspace",
]
