"""Chat session: validation, persistence, offline queueing and streamed replies.

One ``ChatSession`` ties the client pieces together for a single user:

  submit(text)
    -> validate            (invalid: nothing stored, nothing sent)
    -> append user message
    -> offline? enqueue    (queued: notice, no network call)
    -> retry(transport.send) -> stream deltas -> append assistant message
"""

import logging
from pathlib import Path
from typing import AsyncIterator, Callable, Literal, Optional

import httpx
from pydantic import BaseModel

from ..config import AppConfig, get_config, get_config_dir
from ..conversation.backends import FileStorageBackend, MemoryStorageBackend
from ..conversation.models import Message, MessageMetadata, generate_id
from ..conversation.storage import ConversationStore
from .connectivity import ConnectivityMonitor
from .errors import NetworkError, UserFacingError, describe_error
from .queue import OfflineQueue, QueuedMessage, SettledResult
from .retry import RetryExecutor
from .transport import ChatTransport
from .validation import MessageValidator

logger = logging.getLogger(__name__)

QUEUED_NOTICE = "Your message has been queued and will be sent when connection is restored."

DeltaCallback = Callable[[str], None]


class StreamAccumulator:
    """Mutable buffer for the reply of one in-flight request."""

    def __init__(self, model: Optional[str] = None) -> None:
        self.message_id = generate_id("assistant")
        self.model = model
        self._parts: list[str] = []

    def feed(self, delta: str) -> str:
        """Append a fragment and return the text received so far."""
        self._parts.append(delta)
        return self.text

    @property
    def text(self) -> str:
        return "".join(self._parts)

    def finalize(self, error: Optional[str] = None) -> Message:
        metadata = None
        if self.model or error:
            metadata = MessageMetadata(model=self.model, error=error)
        return Message(
            id=self.message_id,
            role="assistant",
            content=self.text,
            metadata=metadata,
        )


class SubmitResult(BaseModel):
    status: Literal["invalid", "queued", "sent", "failed"]
    reason: Optional[str] = None
    notice: Optional[str] = None
    queued_id: Optional[str] = None
    message: Optional[Message] = None
    error: Optional[UserFacingError] = None
    storage_warning: Optional[str] = None


class ChatSession:
    def __init__(
        self,
        store: ConversationStore,
        transport: ChatTransport,
        monitor: ConnectivityMonitor,
        queue: Optional[OfflineQueue] = None,
        executor: Optional[RetryExecutor] = None,
        validator: Optional[MessageValidator] = None,
    ) -> None:
        self.store = store
        self.transport = transport
        self.monitor = monitor
        self.queue = queue or OfflineQueue()
        self.executor = executor or RetryExecutor(monitor=monitor)
        self.validator = validator or MessageValidator()
        self.pending_input = ""
        self.conversation_id: Optional[str] = None
        self.storage_warning: Optional[str] = None

    # ---- Connectivity ----

    def attach(self) -> Callable[[], None]:
        """Flush the offline queue whenever connectivity comes back."""
        return self.monitor.add_listener(self._on_connectivity_change)

    async def _on_connectivity_change(self, online: bool) -> None:
        if online and len(self.queue):
            await self.flush_queue()

    async def flush_queue(self) -> list[SettledResult]:
        if not len(self.queue):
            return []
        logger.info("Sending %d queued message(s)", len(self.queue))
        results = await self.queue.drain(self._send_queued)
        sent = sum(1 for r in results if r.ok)
        if sent < len(results):
            logger.warning("%d of %d queued message(s) failed", len(results) - sent, len(results))
        return results

    async def _send_queued(self, item: QueuedMessage) -> Optional[Message]:
        # The user message was persisted when it was queued; only the reply is missing.
        conversation_id = item.conversation_id or self._current_conversation_id()
        if self.store.get(conversation_id) is None:
            logger.warning("Conversation %s was deleted, dropping queued message %s",
                           conversation_id, item.id)
            return None
        message, _ = await self._exchange(conversation_id, reply_to=item.message_id)
        return message

    # ---- Conversation ----

    def _current_conversation_id(self) -> str:
        result = self.store.get_or_create_current()
        if result.warning:
            self.storage_warning = result.warning
        self.conversation_id = result.conversation.id
        return self.conversation_id

    def history(self, conversation_id: str, upto: Optional[str] = None) -> list[dict]:
        """Role/content turns of a conversation, ending at message ``upto`` when given."""
        conv = self.store.get(conversation_id)
        if conv is None:
            return []
        turns = []
        for m in conv.messages:
            turns.append({"role": m.role, "content": m.content})
            if upto and m.id == upto:
                break
        return turns

    # ---- Streaming ----

    async def stream_reply(
        self, history: list[dict], session_id: Optional[str] = None
    ) -> AsyncIterator[str]:
        response = await self.executor.run(
            lambda: self.transport.send(history, session_id=session_id)
        )
        async for delta in self.transport.iter_deltas(response):
            yield delta

    async def _exchange(
        self,
        conversation_id: str,
        on_delta: Optional[DeltaCallback] = None,
        reply_to: Optional[str] = None,
    ) -> tuple[Message, Optional[str]]:
        """Ask for the reply to message ``reply_to`` and store it right after that message."""
        accumulator = StreamAccumulator()
        history = self.history(conversation_id, upto=reply_to)
        try:
            async for delta in self.stream_reply(history, session_id=conversation_id):
                snapshot = accumulator.feed(delta)
                if on_delta is not None:
                    on_delta(snapshot)
        except Exception as e:
            if accumulator.text:
                partial = accumulator.finalize(error=str(e))
                self.store.append_message(conversation_id, partial, after_id=reply_to)
            raise

        message = accumulator.finalize()
        saved = self.store.append_message(conversation_id, message, after_id=reply_to)
        return message, saved.warning

    async def submit(
        self, text: object, on_delta: Optional[DeltaCallback] = None
    ) -> SubmitResult:
        reason = self.validator.explain(text)
        if reason:
            self.pending_input = text if isinstance(text, str) else ""
            return SubmitResult(status="invalid", reason=reason)

        conversation_id = self._current_conversation_id()
        user_message = Message(role="user", content=text)
        saved = self.store.append_message(conversation_id, user_message)
        warning = saved.warning or self.storage_warning
        self.pending_input = ""

        if not self.monitor.is_online:
            queued_id = self.queue.enqueue(text, conversation_id, user_message.id)
            return SubmitResult(
                status="queued",
                notice=QUEUED_NOTICE,
                queued_id=queued_id,
                storage_warning=warning,
            )

        try:
            message, reply_warning = await self._exchange(
                conversation_id, on_delta, reply_to=user_message.id
            )
        except Exception as e:
            if isinstance(e, NetworkError) and not self.monitor.is_online:
                queued_id = self.queue.enqueue(text, conversation_id, user_message.id)
                return SubmitResult(
                    status="queued",
                    notice=QUEUED_NOTICE,
                    queued_id=queued_id,
                    storage_warning=warning,
                )
            logger.error("Failed to send message: %s", e)
            self.pending_input = text
            return SubmitResult(
                status="failed",
                error=describe_error(e, online=self.monitor.is_online),
                storage_warning=warning,
            )

        return SubmitResult(
            status="sent",
            message=message,
            storage_warning=reply_warning or warning,
        )


def build_session(
    base_url: str,
    config: Optional[AppConfig] = None,
    storage_dir: Optional[Path] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> ChatSession:
    """Wire a ChatSession for ``base_url`` from the app config.

    History is kept in ``storage_dir`` (default ``<config dir>/history``) with an
    in-memory session tier behind it.
    """
    cfg = config or get_config()
    store = ConversationStore(
        [
            FileStorageBackend(
                storage_dir or get_config_dir() / "history",
                name="local",
                quota_bytes=cfg.storage.quota_bytes,
            ),
            MemoryStorageBackend(name="session"),
        ],
        key=cfg.storage.key,
        max_kept_conversations=cfg.storage.max_kept_conversations,
    )
    monitor = ConnectivityMonitor(
        base_url.rstrip("/") + cfg.connectivity.probe_path,
        client=client,
        interval=cfg.connectivity.interval,
        timeout=cfg.connectivity.timeout,
    )
    return ChatSession(
        store=store,
        transport=ChatTransport(base_url, client=client),
        monitor=monitor,
        queue=OfflineQueue(max_retries=cfg.retry.max_retries),
        executor=RetryExecutor(cfg.retry, monitor=monitor),
        validator=MessageValidator(cfg.validation),
    )
