"""User-facing notifications (the dashboard's toasts).

The gateway and submitters report outcomes to a Notifier rather than
printing. The CLI plugs in a Rich-backed notifier; tests use
CollectingNotifier to assert on what the user would have seen.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum


class NotificationLevel(str, Enum):
    """Severity of a user-facing notification."""

    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class Notification:
    level: NotificationLevel
    message: str


class Notifier(ABC):
    """Sink for transient user notifications."""

    @abstractmethod
    def notify(self, notification: Notification) -> None:
        pass

    def success(self, message: str) -> None:
        self.notify(Notification(NotificationLevel.SUCCESS, message))

    def error(self, message: str) -> None:
        self.notify(Notification(NotificationLevel.ERROR, message))


class NullNotifier(Notifier):
    """Discards notifications."""

    def notify(self, notification: Notification) -> None:
        return None


class CollectingNotifier(Notifier):
    """Keeps every notification in order."""

    def __init__(self) -> None:
        self.notifications: list[Notification] = []

    def notify(self, notification: Notification) -> None:
        self.notifications.append(notification)

    @property
    def errors(self) -> list[str]:
        return [n.message for n in self.notifications if n.level == NotificationLevel.ERROR]

    @property
    def successes(self) -> list[str]:
        return [n.message for n in self.notifications if n.level == NotificationLevel.SUCCESS]

    def clear(self) -> None:
        self.notifications.clear()
