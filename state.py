from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field

from config import (
    AUTHORIZED_USER,
    DEDUP_CAPACITY,
    DEDUP_EVICT_FRACTION,
    WORKSPACE_PATH,
)
from assistant import Assistant
from workspace import Workspace

LOGGER = logging.getLogger(__name__)


class ChatState(enum.Enum):
    ACTIVE = "active"
    STOPPED = "stopped"


class SessionStore:
    """Per-chat active/stopped flag; chats start ACTIVE."""

    def __init__(self) -> None:
        self._states: dict[int, ChatState] = {}

    def state_of(self, chat_id: int) -> ChatState:
        return self._states.setdefault(chat_id, ChatState.ACTIVE)

    def is_stopped(self, chat_id: int) -> bool:
        return self.state_of(chat_id) is ChatState.STOPPED

    def stop(self, chat_id: int) -> None:
        self._states[chat_id] = ChatState.STOPPED

    def start(self, chat_id: int) -> None:
        self._states[chat_id] = ChatState.ACTIVE


class UpdateDeduplicator:
    """Window of recently seen update ids.

    Capacity is approximate: once the window grows past `capacity`, the
    oldest `evict_fraction` of it is dropped in one go. Seeing an id again
    does not refresh its position.
    """

    def __init__(
        self,
        capacity: int = DEDUP_CAPACITY,
        *,
        evict_fraction: float = DEDUP_EVICT_FRACTION,
    ) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._evict_count = max(1, int(capacity * evict_fraction))
        # dict keeps insertion order, which is all the eviction needs.
        self._seen: dict[int, None] = {}

    def __len__(self) -> int:
        return len(self._seen)

    def __contains__(self, update_id: object) -> bool:
        return update_id in self._seen

    def admit(self, update_id: int) -> bool:
        if update_id in self._seen:
            return False
        self._seen[update_id] = None
        if len(self._seen) > self.capacity:
            oldest = list(self._seen)[: self._evict_count]
            for key in oldest:
                del self._seen[key]
            LOGGER.debug("dedup window evicted %s ids", len(oldest))
        return True


@dataclass
class BotState:
    authorized_user: str = AUTHORIZED_USER
    workspace: Workspace = field(default_factory=lambda: Workspace(WORKSPACE_PATH))
    offset: int = 0
    dedup: UpdateDeduplicator = field(default_factory=UpdateDeduplicator)
    sessions: SessionStore = field(default_factory=SessionStore)
    assistant: Assistant | None = None
