"""Online/offline tracking for the chat client.

Two inputs drive the state: platform connectivity events (``set_online``) and a
periodic HEAD probe against the health endpoint. Listeners hear about
transitions only, once each, in registration order.
"""

import asyncio
import inspect
import logging
from typing import Any, Callable, Optional

import httpx

logger = logging.getLogger(__name__)

Listener = Callable[[bool], Any]


class ConnectivityMonitor:
    def __init__(
        self,
        probe_url: str,
        client: Optional[httpx.AsyncClient] = None,
        interval: float = 30.0,
        timeout: float = 5.0,
        initially_online: bool = True,
    ) -> None:
        self.probe_url = probe_url
        self.interval = interval
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None
        self._online = initially_online
        self._listeners: list[Listener] = []
        self._task: Optional[asyncio.Task] = None
        self._pending: set[asyncio.Task] = set()

    @property
    def is_online(self) -> bool:
        return self._online

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; the returned callable removes it again."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return unsubscribe

    def set_online(self, online: bool) -> bool:
        """Record the current state. Returns True when it was a transition."""
        if online == self._online:
            return False
        self._online = online
        logger.info("Connectivity changed: %s", "online" if online else "offline")
        for listener in list(self._listeners):
            try:
                result = listener(online)
            except Exception:
                logger.exception("Connectivity listener %r failed", listener)
                continue
            if inspect.isawaitable(result):
                self._track(asyncio.ensure_future(result))
        return True

    def _track(self, task: asyncio.Future) -> None:
        self._pending.add(task)

        def _done(t: asyncio.Future) -> None:
            self._pending.discard(t)
            if not t.cancelled() and t.exception() is not None:
                logger.error("Connectivity listener task failed: %s", t.exception())

        task.add_done_callback(_done)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client

    async def probe(self) -> bool:
        """Hit the health endpoint once and update the state from the outcome."""
        try:
            response = await self._get_client().head(
                self.probe_url,
                timeout=self.timeout,
                headers={"Cache-Control": "no-cache", "Pragma": "no-cache"},
            )
            online = response.is_success
        except httpx.HTTPError as e:
            logger.debug("Health probe failed: %s", e)
            online = False
        self.set_online(online)
        return online

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            await self.probe()

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "ConnectivityMonitor":
        self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()
