from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..conversation.models import generate_id, utcnow

logger = logging.getLogger(__name__)


class QueuedMessage(BaseModel):
    id: str = Field(default_factory=lambda: generate_id("queued"))
    content: str
    enqueued_at: datetime = Field(default_factory=utcnow)
    retry_count: int = 0
    conversation_id: Optional[str] = None
    message_id: Optional[str] = None  # the persisted user message awaiting a reply


class SettledResult(BaseModel):
    """Outcome of one queued send during a drain."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    message: QueuedMessage
    ok: bool
    error: Optional[BaseException] = None
    requeued: bool = False


class OfflineQueue:
    """Messages that could not be sent because the client was offline."""

    def __init__(self, max_retries: int = 3) -> None:
        self.max_retries = max_retries
        self._items: list[QueuedMessage] = []

    def __len__(self) -> int:
        return len(self._items)

    def enqueue(
        self,
        content: str,
        conversation_id: Optional[str] = None,
        message_id: Optional[str] = None,
    ) -> str:
        item = QueuedMessage(content=content, conversation_id=conversation_id, message_id=message_id)
        self._items.append(item)
        logger.info("Queued message %s for sending when back online", item.id)
        return item.id

    def list(self) -> list[QueuedMessage]:
        return list(self._items)

    def remove(self, message_id: str) -> None:
        self._items = [m for m in self._items if m.id != message_id]

    def clear(self) -> None:
        self._items = []

    async def drain(
        self, send: Callable[[QueuedMessage], Awaitable[object]]
    ) -> list[SettledResult]:
        """Send every queued message independently.

        The queue is swapped out before the first await, so a concurrent drain
        sees an empty queue instead of sending the same messages twice.
        Messages of one conversation go out one after another in queue order;
        separate conversations are sent concurrently. A failure never stops
        the messages behind it.
        """
        batch, self._items = self._items, []
        if not batch:
            return []

        lanes: dict[str, list[QueuedMessage]] = {}
        for item in batch:
            lanes.setdefault(item.conversation_id or item.id, []).append(item)

        outcomes: dict[str, Optional[Exception]] = {}

        async def run_lane(items: list[QueuedMessage]) -> None:
            for item in items:
                try:
                    await send(item)
                except Exception as e:
                    outcomes[item.id] = e
                else:
                    outcomes[item.id] = None

        await asyncio.gather(*(run_lane(items) for items in lanes.values()))

        results: list[SettledResult] = []
        for item in batch:
            outcome = outcomes[item.id]
            if outcome is None:
                results.append(SettledResult(message=item, ok=True))
                continue
            requeued = item.retry_count < self.max_retries
            if requeued:
                self._items.append(item.model_copy(update={"retry_count": item.retry_count + 1}))
            else:
                logger.warning("Dropping queued message %s after %d retries", item.id, item.retry_count)
            results.append(SettledResult(message=item, ok=False, error=outcome, requeued=requeued))
        return results
