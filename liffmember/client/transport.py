"""HTTP transport for the chat endpoint and decoding of its streamed reply.

The endpoint answers with lines of the form::

    0:{"type":"text-delta","textDelta":"..."}

and the concatenation of every ``textDelta`` is the assistant reply.
"""

import json
import logging
from typing import AsyncIterator, Optional

import httpx

from .errors import NetworkError, RequestTimeoutError, ServiceError

logger = logging.getLogger(__name__)

FRAME_PREFIX = "0:"


def decode_frame(line: str) -> Optional[str]:
    """Return the text delta carried by one stream line, if any."""
    if not line.startswith(FRAME_PREFIX):
        return None
    try:
        data = json.loads(line[len(FRAME_PREFIX):])
    except json.JSONDecodeError:
        return None
    if isinstance(data, dict) and data.get("type") == "text-delta" and data.get("textDelta"):
        return data["textDelta"]
    return None


def _retry_after(response: httpx.Response, body: dict) -> Optional[float]:
    value = body.get("retryAfter") or response.headers.get("retry-after")
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None


class ChatTransport:
    def __init__(
        self,
        base_url: str,
        client: Optional[httpx.AsyncClient] = None,
        chat_path: str = "/api/chat",
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.chat_path = chat_path
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client

    @property
    def chat_url(self) -> str:
        return f"{self.base_url}{self.chat_path}"

    async def send(
        self, messages: list[dict], session_id: Optional[str] = None
    ) -> httpx.Response:
        """POST the history and return the open, status-checked stream response.

        ``session_id`` keys server-side dialogue state (one per conversation).
        """
        payload: dict = {"messages": messages}
        if session_id:
            payload["sessionId"] = session_id
        request = self.client.build_request("POST", self.chat_url, json=payload)
        try:
            response = await self.client.send(request, stream=True)
        except httpx.TimeoutException as e:
            raise RequestTimeoutError("Request timeout") from e
        except httpx.TransportError as e:
            raise NetworkError(f"Network request failed: {e}") from e

        if response.is_success:
            return response

        try:
            await response.aread()
            body = response.json()
            if not isinstance(body, dict):
                body = {}
        except (json.JSONDecodeError, httpx.HTTPError):
            body = {}
        finally:
            await response.aclose()

        message = body.get("message") or f"HTTP {response.status_code}: {response.reason_phrase}"
        logger.warning("Chat endpoint answered %d: %s", response.status_code, message)
        raise ServiceError.from_status(
            response.status_code,
            message=message,
            code=body.get("code", ""),
            retry_after=_retry_after(response, body),
        )

    async def iter_deltas(self, response: httpx.Response) -> AsyncIterator[str]:
        try:
            async for line in response.aiter_lines():
                delta = decode_frame(line)
                if delta:
                    yield delta
        except httpx.TimeoutException as e:
            raise RequestTimeoutError("Stream timed out") from e
        except httpx.TransportError as e:
            raise NetworkError(f"Stream interrupted: {e}") from e
        finally:
            await response.aclose()

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
