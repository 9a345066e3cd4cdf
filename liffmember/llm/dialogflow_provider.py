"""Dialogflow ES agent as an answer provider.

Dialogflow keeps its own dialogue state per session, so only the latest user
turn is sent. The session comes from the caller's conversation or LINE user
key; without one every request gets a fresh session, so no two users ever
share dialogue state.
"""

import hashlib
import re
import uuid
from typing import AsyncGenerator, Optional

from google.api_core import exceptions as gexc
from google.cloud import dialogflow_v2 as dialogflow

from .base import LLMProvider, ProviderError, ProviderRateLimitError, last_user_content

# Dialogflow session ids: at most 36 characters from this set
_SESSION_ID = re.compile(r"^[A-Za-z0-9_-]{1,36}$")


def session_id_for(key: Optional[str]) -> str:
    if not key:
        return uuid.uuid4().hex
    if _SESSION_ID.match(key):
        return key
    return hashlib.sha256(key.encode("utf-8")).hexdigest()[:32]


class DialogflowProvider(LLMProvider):
    name = "dialogflow"

    def __init__(
        self,
        project_id: str,
        language_code: str = "th",
        client: Optional[dialogflow.SessionsAsyncClient] = None,
    ) -> None:
        self.project_id = project_id
        self.language_code = language_code
        self.client = client or dialogflow.SessionsAsyncClient()

    async def complete(
        self, messages: list[dict], model: str, **kwargs
    ) -> str:
        text = last_user_content(messages)
        session_id = session_id_for(kwargs.get("session_id"))
        session = self.client.session_path(self.project_id, session_id)
        try:
            response = await self.client.detect_intent(
                request={
                    "session": session,
                    "query_input": {
                        "text": {"text": text, "language_code": self.language_code},
                    },
                }
            )
        except gexc.ResourceExhausted as e:
            raise ProviderRateLimitError(str(e)) from e
        except gexc.GoogleAPICallError as e:
            raise ProviderError(str(e), status_code=e.code) from e
        return response.query_result.fulfillment_text or ""

    async def stream(
        self, messages: list[dict], model: str, **kwargs
    ) -> AsyncGenerator[str, None]:
        # detect-intent answers in one piece
        answer = await self.complete(messages, model, **kwargs)
        if answer:
            yield answer
