import logging
from typing import Optional

from pydantic import BaseModel
from pydantic import ValidationError as ModelValidationError

from ..client.errors import StorageError, StorageQuotaError
from .backends import StorageBackend
from .models import ChatStorage, Conversation, ConversationSummary, Message, utcnow

logger = logging.getLogger(__name__)

DEFAULT_KEY = "ai-chat-history"
DEFAULT_SOURCE = "default"

SESSION_LOAD_WARNING = "Conversation history loaded from session storage (temporary)"
LOAD_FAILED_WARNING = "Unable to load conversation history"
SESSION_SAVE_WARNING = "Using session storage (data will not persist after browser close)"
SAVE_FAILED_WARNING = "Unable to save conversation history"
NOT_FOUND_WARNING = "Conversation not found"

_HEALTH_PROBE_KEY = "__storage_health_test__"


class LoadResult(BaseModel):
    storage: ChatStorage
    source: str
    warning: Optional[str] = None


class SaveResult(BaseModel):
    ok: bool
    warning: Optional[str] = None
    source: Optional[str] = None


class ConversationResult(BaseModel):
    conversation: Optional[Conversation] = None
    ok: bool = True
    warning: Optional[str] = None


class StorageHealth(BaseModel):
    backends: dict[str, bool]
    recommendations: list[str] = []


class ConversationStore:
    """Sole writer of the persisted conversation document.

    Backends are tried in priority order. Reads start from whichever backend
    accepted the last write, so a fallback write is never shadowed by stale data
    in a higher tier. When every backend refuses a write the document is kept in
    memory so the conversation stays usable for the rest of the process.
    """

    def __init__(
        self,
        backends: list[StorageBackend],
        key: str = DEFAULT_KEY,
        max_kept_conversations: int = 5,
    ) -> None:
        if not backends:
            raise ValueError("ConversationStore needs at least one storage backend")
        self.backends = list(backends)
        self.key = key
        self.max_kept_conversations = max_kept_conversations
        self._last_writer: Optional[int] = None
        self._transient: Optional[ChatStorage] = None

    # ---- Load / save ----

    def _read_order(self) -> list[int]:
        order = list(range(len(self.backends)))
        if self._last_writer is not None:
            order.remove(self._last_writer)
            order.insert(0, self._last_writer)
        return order

    def load(self) -> LoadResult:
        if self._transient is not None:
            return LoadResult(
                storage=self._transient.model_copy(deep=True),
                source=DEFAULT_SOURCE,
                warning=SAVE_FAILED_WARNING,
            )

        had_failure = False
        for index in self._read_order():
            backend = self.backends[index]
            try:
                raw = backend.get(self.key)
            except StorageError as e:
                logger.warning("Reading '%s' failed, trying next backend: %s", backend.name, e)
                had_failure = True
                continue
            if not raw:
                continue
            try:
                storage = ChatStorage.model_validate_json(raw)
            except ModelValidationError as e:
                logger.warning("Discarding unreadable history in '%s': %s", backend.name, e)
                had_failure = True
                continue
            warning = None if index == 0 else SESSION_LOAD_WARNING
            return LoadResult(storage=storage, source=backend.name, warning=warning)

        return LoadResult(
            storage=ChatStorage(),
            source=DEFAULT_SOURCE,
            warning=LOAD_FAILED_WARNING if had_failure else None,
        )

    def _write(self, index: int, storage: ChatStorage) -> None:
        self.backends[index].set(self.key, storage.to_json())
        self._last_writer = index
        self._transient = None

    def save(self, storage: ChatStorage) -> SaveResult:
        primary = self.backends[0]
        candidate = storage
        try:
            self._write(0, candidate)
            return SaveResult(ok=True, source=primary.name)
        except StorageQuotaError as e:
            logger.warning("'%s' is full, pruning old conversations: %s", primary.name, e)
            candidate = self.prune(storage)
            try:
                self._write(0, candidate)
                storage.conversations = candidate.conversations
                return SaveResult(ok=True, source=primary.name)
            except StorageError as retry_error:
                logger.warning("'%s' still refuses the pruned history: %s", primary.name, retry_error)
        except StorageError as e:
            logger.warning("Saving to '%s' failed: %s", primary.name, e)

        for index in range(1, len(self.backends)):
            backend = self.backends[index]
            try:
                self._write(index, candidate)
            except StorageError as e:
                logger.warning("Fallback save to '%s' failed: %s", backend.name, e)
                continue
            storage.conversations = candidate.conversations
            return SaveResult(ok=True, warning=SESSION_SAVE_WARNING, source=backend.name)

        logger.error("No storage backend accepted the conversation history")
        self._transient = storage.model_copy(deep=True)
        return SaveResult(ok=False, warning=SAVE_FAILED_WARNING)

    def prune(self, storage: ChatStorage) -> ChatStorage:
        """Keep the most recently updated conversations plus the current one."""
        ordered = sorted(storage.conversations, key=lambda c: c.updated_at, reverse=True)
        kept = ordered[: self.max_kept_conversations]
        current_id = storage.current_conversation_id
        if current_id and all(c.id != current_id for c in kept):
            current = storage.find(current_id)
            if current is not None:
                if len(kept) >= self.max_kept_conversations:
                    kept.pop()
                kept.append(current)
        return storage.model_copy(update={"conversations": kept}, deep=True)

    # ---- Conversation operations ----

    def get_or_create_current(self) -> ConversationResult:
        loaded = self.load()
        storage = loaded.storage
        if storage.current_conversation_id:
            existing = storage.find(storage.current_conversation_id)
            if existing is not None:
                return ConversationResult(conversation=existing, warning=loaded.warning)
            logger.info("Current conversation %s is missing, starting a new one",
                        storage.current_conversation_id)

        conv = Conversation()
        storage.conversations.append(conv)
        storage.current_conversation_id = conv.id
        saved = self.save(storage)
        return ConversationResult(
            conversation=conv,
            ok=saved.ok,
            warning=saved.warning or loaded.warning,
        )

    def append_message(
        self, conversation_id: str, message: Message, after_id: Optional[str] = None
    ) -> SaveResult:
        """Add a message at the end, or right after message ``after_id`` when given."""
        storage = self.load().storage
        conv = storage.find(conversation_id)
        if conv is None:
            return SaveResult(ok=False, warning=NOT_FOUND_WARNING)
        position = next(
            (i + 1 for i, m in enumerate(conv.messages) if after_id and m.id == after_id),
            len(conv.messages),
        )
        conv.messages.insert(position, message)
        conv.updated_at = utcnow()
        return self.save(storage)

    def get(self, conversation_id: str) -> Optional[Conversation]:
        return self.load().storage.find(conversation_id)

    def list_by_recency(self) -> list[Conversation]:
        conversations = self.load().storage.conversations
        return sorted(conversations, key=lambda c: c.updated_at, reverse=True)

    def create_new(self) -> ConversationResult:
        storage = self.load().storage
        conv = Conversation()
        storage.conversations.append(conv)
        storage.current_conversation_id = conv.id
        saved = self.save(storage)
        return ConversationResult(conversation=conv, ok=saved.ok, warning=saved.warning)

    def switch_to(self, conversation_id: str) -> ConversationResult:
        storage = self.load().storage
        conv = storage.find(conversation_id)
        if conv is None:
            return ConversationResult(ok=False, warning=NOT_FOUND_WARNING)
        storage.current_conversation_id = conversation_id
        saved = self.save(storage)
        return ConversationResult(conversation=conv, ok=saved.ok, warning=saved.warning)

    def delete(self, conversation_id: str) -> ConversationResult:
        """Delete a conversation; returns the new current one if it changed."""
        storage = self.load().storage
        conv = storage.find(conversation_id)
        if conv is None:
            return ConversationResult(ok=False, warning=NOT_FOUND_WARNING)
        storage.conversations.remove(conv)

        new_current: Optional[Conversation] = None
        if storage.current_conversation_id == conversation_id:
            if storage.conversations:
                new_current = max(storage.conversations, key=lambda c: c.updated_at)
            else:
                new_current = Conversation()
                storage.conversations.append(new_current)
            storage.current_conversation_id = new_current.id

        saved = self.save(storage)
        return ConversationResult(conversation=new_current, ok=saved.ok, warning=saved.warning)

    def clear_all(self) -> SaveResult:
        """Reset every backend to the default empty document."""
        raw = ChatStorage().to_json()
        accepted: Optional[str] = None
        for index, backend in enumerate(self.backends):
            try:
                backend.set(self.key, raw)
            except StorageError as e:
                logger.warning("Failed to clear '%s': %s", backend.name, e)
                continue
            if accepted is None:
                accepted = backend.name
                self._last_writer = index
        self._transient = None
        if accepted is None:
            return SaveResult(ok=False, warning=SAVE_FAILED_WARNING)
        return SaveResult(ok=True, source=accepted)

    # ---- Diagnostics ----

    @staticmethod
    def summarize(conversation: Conversation) -> ConversationSummary:
        title = conversation.title or "New Conversation"
        preview = "No messages yet"
        if conversation.messages:
            for msg in conversation.messages:
                if msg.role == "user":
                    content = msg.content
                    title = content[:30] + "..." if len(content) > 30 else content
                    break
            last = conversation.messages[-1].content
            preview = last[:50] + "..." if len(last) > 50 else last
        return ConversationSummary(
            title=title,
            message_count=len(conversation.messages),
            last_activity=conversation.updated_at,
            preview=preview,
        )

    def check_health(self) -> StorageHealth:
        status: dict[str, bool] = {}
        recommendations: list[str] = []
        for backend in self.backends:
            try:
                backend.set(_HEALTH_PROBE_KEY, "test")
                backend.remove(_HEALTH_PROBE_KEY)
                status[backend.name] = True
            except StorageError:
                status[backend.name] = False
                recommendations.append(f"{backend.name} storage unavailable")

        if not any(status.values()):
            recommendations.append("No storage available - conversations will not persist")
        elif not status[self.backends[0].name]:
            recommendations.append(
                "Using session storage - conversations will not persist after restart"
            )
        return StorageHealth(backends=status, recommendations=recommendations)

    def migrate(self, source: str, target: str) -> bool:
        """Copy the raw history document from one backend to another."""
        backends = {b.name: b for b in self.backends}
        if source not in backends or target not in backends:
            raise ValueError(f"Unknown storage backend: {source!r} or {target!r}")
        try:
            raw = backends[source].get(self.key)
            if not raw:
                return False
            backends[target].set(self.key, raw)
        except StorageError as e:
            logger.error("Storage migration %s -> %s failed: %s", source, target, e)
            return False
        return True
