"""Tests for the offline send queue and the retry executor."""
import asyncio

import pytest

from liffmember.client.errors import (
    AuthError,
    BadRequestError,
    NetworkError,
    RateLimitError,
    RequestTimeoutError,
    ServiceUnavailableError,
)
from liffmember.client.queue import OfflineQueue
from liffmember.client.retry import RetryExecutor
from liffmember.config import RetryConfig


class TestOfflineQueue:
    """Tests for OfflineQueue."""

    def test_enqueue_and_list(self):
        """Test that messages are kept in order with fresh retry counts."""
        queue = OfflineQueue()
        first = queue.enqueue("one")
        queue.enqueue("two")
        items = queue.list()
        assert [m.content for m in items] == ["one", "two"]
        assert items[0].id == first
        assert items[0].id.startswith("queued-")
        assert all(m.retry_count == 0 for m in items)

    def test_remove_and_clear(self):
        """Test removing one message and clearing the rest."""
        queue = OfflineQueue()
        first = queue.enqueue("one")
        queue.enqueue("two")
        queue.remove(first)
        assert [m.content for m in queue.list()] == ["two"]
        queue.clear()
        assert len(queue) == 0

    async def test_drain_settles_independently(self):
        """Test that one failing send does not stop the others."""
        queue = OfflineQueue()
        for text in ("a", "bad", "c"):
            queue.enqueue(text)
        sent = []

        async def send(item):
            if item.content == "bad":
                raise NetworkError("down")
            sent.append(item.content)

        results = await queue.drain(send)
        assert sorted(sent) == ["a", "c"]
        assert [r.ok for r in results] == [True, False, True]
        assert isinstance(results[1].error, NetworkError)
        assert results[1].requeued

        remaining = queue.list()
        assert [m.content for m in remaining] == ["bad"]
        assert remaining[0].retry_count == 1

    async def test_drain_drops_after_max_retries(self):
        """Test that a message is dropped once it has used up its retries."""
        queue = OfflineQueue(max_retries=2)
        queue.enqueue("never")

        async def send(item):
            raise NetworkError("down")

        for _ in range(2):
            await queue.drain(send)
            assert len(queue) == 1
        results = await queue.drain(send)
        assert results[0].requeued is False
        assert len(queue) == 0

    async def test_drain_empty(self):
        """Test that draining an empty queue does nothing."""
        assert await OfflineQueue().drain(lambda item: asyncio.sleep(0)) == []

    async def test_concurrent_drains_send_once(self):
        """Test that overlapping drains do not send the same message twice."""
        queue = OfflineQueue()
        queue.enqueue("only once")
        sent = []

        async def send(item):
            await asyncio.sleep(0)
            sent.append(item.content)

        await asyncio.gather(queue.drain(send), queue.drain(send))
        assert sent == ["only once"]

    async def test_same_conversation_sends_in_order(self):
        """Test that one conversation's messages go out one at a time, in order."""
        queue = OfflineQueue()
        queue.enqueue("a1", conversation_id="A")
        queue.enqueue("b1", conversation_id="B")
        queue.enqueue("a2", conversation_id="A")
        events = []

        async def send(item):
            events.append(("start", item.content))
            await asyncio.sleep(0)
            await asyncio.sleep(0)
            events.append(("end", item.content))

        results = await queue.drain(send)

        assert [r.message.content for r in results] == ["a1", "b1", "a2"]
        assert events.index(("end", "a1")) < events.index(("start", "a2"))
        # the other conversation is not held up behind conversation A
        assert events.index(("start", "b1")) < events.index(("end", "a1"))

    async def test_failure_does_not_block_later_messages(self):
        """Test that a failed message still lets the next one in its conversation go out."""
        queue = OfflineQueue()
        queue.enqueue("first", conversation_id="A")
        queue.enqueue("second", conversation_id="A")

        async def send(item):
            if item.content == "first":
                raise NetworkError("down")

        results = await queue.drain(send)

        assert [r.ok for r in results] == [False, True]
        assert [m.content for m in queue.list()] == ["first"]

    def test_enqueue_records_origin(self):
        """Test that a queued message remembers its conversation and user message."""
        queue = OfflineQueue()
        queue.enqueue("hi", conversation_id="conv-1", message_id="user-1")
        item = queue.list()[0]
        assert (item.conversation_id, item.message_id) == ("conv-1", "user-1")


class Flaky:
    """Fails with the given errors, then returns 'ok'."""

    def __init__(self, *errors):
        self.errors = list(errors)
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return "ok"


def _executor(**overrides) -> tuple[RetryExecutor, list[float]]:
    delays: list[float] = []

    async def fake_sleep(delay):
        delays.append(delay)

    config = RetryConfig(**overrides)
    return RetryExecutor(config, sleep=fake_sleep, rand=lambda: 0.0), delays


class TestRetryExecutor:
    """Tests for RetryExecutor."""

    async def test_fail_fail_succeed(self):
        """Test that two transient failures then success takes three calls."""
        executor, delays = _executor()
        op = Flaky(ServiceUnavailableError("503", 503), NetworkError("reset"))
        assert await executor.run(op) == "ok"
        assert op.calls == 3
        assert delays == [1.0, 2.0]

    async def test_terminal_error_not_retried(self):
        """Test that a non-retryable error surfaces after one call."""
        executor, delays = _executor()
        op = Flaky(BadRequestError("bad", 400))
        with pytest.raises(BadRequestError):
            await executor.run(op)
        assert op.calls == 1
        assert delays == []

    async def test_auth_error_not_retried(self):
        """Test that authentication failures are terminal."""
        executor, _ = _executor()
        op = Flaky(AuthError("no", 401))
        with pytest.raises(AuthError):
            await executor.run(op)
        assert op.calls == 1

    async def test_gives_up_after_max_retries(self):
        """Test that max_retries bounds the number of calls."""
        executor, delays = _executor(max_retries=2)
        op = Flaky(*(NetworkError("down") for _ in range(5)))
        with pytest.raises(NetworkError):
            await executor.run(op)
        assert op.calls == 3
        assert len(delays) == 2

    async def test_linear_backoff(self):
        """Test that non-exponential mode keeps the base delay."""
        executor, delays = _executor(exponential=False, base_delay=0.5)
        op = Flaky(NetworkError("a"), NetworkError("b"))
        await executor.run(op)
        assert delays == [0.5, 0.5]

    async def test_jitter_added(self):
        """Test that jitter is added on top of the backoff."""
        executor = RetryExecutor(RetryConfig(jitter=1.0), rand=lambda: 0.5)
        assert executor.delay_for(2, 1.0, True) == 4.5

    async def test_retry_after_respected(self):
        """Test that a rate limit waits at least the server's Retry-After."""
        executor, delays = _executor()
        op = Flaky(RateLimitError("slow down", 429, retry_after=7))
        await executor.run(op)
        assert delays == [7]

    async def test_attempt_timeout(self):
        """Test that a hanging attempt becomes a retryable timeout."""
        executor, _ = _executor(max_retries=0, attempt_timeout=0.01)

        async def hang():
            await asyncio.sleep(10)

        with pytest.raises(RequestTimeoutError):
            await executor.run(hang)

    async def test_offline_fails_fast(self):
        """Test that an offline monitor stops the attempt before the operation runs."""
        monitor = type("Offline", (), {"is_online": False})()
        executor = RetryExecutor(RetryConfig(max_retries=0), monitor=monitor)
        op = Flaky()
        with pytest.raises(NetworkError):
            await executor.run(op)
        assert op.calls == 0
