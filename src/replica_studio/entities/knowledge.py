"""KnowledgeItem entity and the status classification table.

Every decision about whether an item is still being processed goes through
STATUS_TABLE, so the tracker, the CLI badges and the tests agree on which
statuses are terminal.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class KnowledgeKind(str, Enum):
    """Content kinds the platform ingests."""

    TEXT = "text"
    FILE = "file"
    WEBSITE = "website"
    YOUTUBE = "youtube"
    OTHER = "other"

    @classmethod
    def _missing_(cls, value: object) -> "KnowledgeKind":
        # New platform content types are kept and tracked, not dropped
        if isinstance(value, str):
            for member in cls:
                if member.value == value.lower():
                    return member
        return cls.OTHER


class KnowledgeStatus(str, Enum):
    """Processing status reported by the remote pipeline.

    NEW -> {FILE_UPLOADED | RAW_TEXT} -> PROCESSED_TEXT
        -> VECTOR_CREATED / READY | UNPROCESSABLE
    """

    NEW = "NEW"
    FILE_UPLOADED = "FILE_UPLOADED"
    RAW_TEXT = "RAW_TEXT"
    PROCESSED_TEXT = "PROCESSED_TEXT"
    VECTOR_CREATED = "VECTOR_CREATED"
    READY = "READY"
    UNPROCESSABLE = "UNPROCESSABLE"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def _missing_(cls, value: object) -> "KnowledgeStatus":
        if isinstance(value, str):
            for member in cls:
                if member.value == value.upper():
                    return member
        return cls.UNKNOWN


class StatusOutcome(str, Enum):
    IN_FLIGHT = "in_flight"
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True)
class StatusInfo:
    terminal: bool
    outcome: StatusOutcome
    label: str
    style: str


STATUS_TABLE: dict[KnowledgeStatus, StatusInfo] = {
    KnowledgeStatus.NEW: StatusInfo(False, StatusOutcome.IN_FLIGHT, "Queued", "yellow"),
    KnowledgeStatus.FILE_UPLOADED: StatusInfo(False, StatusOutcome.IN_FLIGHT, "Uploaded", "yellow"),
    KnowledgeStatus.RAW_TEXT: StatusInfo(False, StatusOutcome.IN_FLIGHT, "Extracting", "yellow"),
    KnowledgeStatus.PROCESSED_TEXT: StatusInfo(False, StatusOutcome.IN_FLIGHT, "Processing", "cyan"),
    KnowledgeStatus.VECTOR_CREATED: StatusInfo(True, StatusOutcome.SUCCESS, "Ready", "green"),
    KnowledgeStatus.READY: StatusInfo(True, StatusOutcome.SUCCESS, "Ready", "green"),
    KnowledgeStatus.UNPROCESSABLE: StatusInfo(True, StatusOutcome.FAILURE, "Failed", "red"),
    KnowledgeStatus.UNKNOWN: StatusInfo(False, StatusOutcome.IN_FLIGHT, "Unknown", "dim"),
}

TERMINAL_STATUSES = frozenset(status for status, info in STATUS_TABLE.items() if info.terminal)


def status_info(status: KnowledgeStatus | str) -> StatusInfo:
    return STATUS_TABLE[KnowledgeStatus(status)]


def is_terminal(status: KnowledgeStatus | str) -> bool:
    """Return True if no further automatic transition will happen."""
    return status_info(status).terminal


def status_badge(status: KnowledgeStatus | str) -> str:
    """Rich markup badge for a status, e.g. ``[green]Ready[/green]``."""
    info = status_info(status)
    return f"[{info.style}]{info.label}[/{info.style}]"


class KnowledgeItem(BaseModel):
    """A unit of ingested content bound to one replica.

    Items are read-only snapshots of the remote record. Local placeholders
    created at submission time have ``pending=True`` and a negative id until
    the next refresh replaces them.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: int
    kind: KnowledgeKind = Field(..., alias="type")
    title: str | None = None
    status: KnowledgeStatus = KnowledgeStatus.NEW
    created_at: datetime | None = Field(default=None, alias="createdAt")
    updated_at: datetime | None = Field(default=None, alias="updatedAt")
    pending: bool = False

    @field_validator("title", mode="before")
    @classmethod
    def blank_title_is_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("kind", mode="before")
    @classmethod
    def coerce_kind(cls, v: Any) -> Any:
        return KnowledgeKind(v) if isinstance(v, str) else v

    @field_validator("status", mode="before")
    @classmethod
    def coerce_status(cls, v: Any) -> Any:
        return KnowledgeStatus(v) if isinstance(v, str) else v

    @property
    def terminal(self) -> bool:
        return is_terminal(self.status)

    @property
    def display_title(self) -> str:
        return self.title or f"Untitled {self.kind.value}"
