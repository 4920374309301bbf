"""Transient user notifications.

Operations and the job poller report user-visible outcomes through a
:class:`Notifier`. The default implementation keeps a bounded in-memory queue
that the HTTP layer drains for the browser to display.
"""
from __future__ import annotations

import logging
from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Literal, Protocol

logger = logging.getLogger(__name__)

Level = Literal["success", "error", "info"]


@dataclass(slots=True)
class Notification:
    level: Level
    message: str
    kind: str | None = None
    job_id: int | None = None
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


class Notifier(Protocol):
    """Contract for notification sinks."""

    def notify(self, notification: Notification) -> None: ...


class InMemoryNotifier:
    """Keeps the most recent notifications until they are drained."""

    def __init__(self, maxlen: int = 100) -> None:
        self._items: deque[Notification] = deque(maxlen=maxlen)

    def notify(self, notification: Notification) -> None:
        logger.info("notification [%s] %s", notification.level, notification.message)
        self._items.append(notification)

    @property
    def items(self) -> list[Notification]:
        return list(self._items)

    def drain(self) -> list[Notification]:
        drained = list(self._items)
        self._items.clear()
        return drained


__all__ = ["InMemoryNotifier", "Level", "Notification", "Notifier"]
