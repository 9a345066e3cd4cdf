from typing import AsyncGenerator

import openai
from openai import AsyncOpenAI

from .base import LLMProvider, ProviderError, ProviderRateLimitError


def _translate(e: openai.OpenAIError) -> ProviderError:
    if isinstance(e, openai.RateLimitError):
        retry_after = e.response.headers.get("retry-after") if e.response is not None else None
        try:
            seconds = float(retry_after) if retry_after else None
        except ValueError:
            seconds = None
        return ProviderRateLimitError(str(e), retry_after=seconds)
    if isinstance(e, openai.APIStatusError):
        return ProviderError(str(e), status_code=e.status_code)
    return ProviderError(str(e))


class OpenAIProvider(LLMProvider):
    name = "openai"

    def __init__(self, api_key: str, temperature: float = 0.7, max_tokens: int = 1000) -> None:
        self.client = AsyncOpenAI(api_key=api_key)
        self.temperature = temperature
        self.max_tokens = max_tokens

    def _params(self, kwargs: dict) -> dict:
        # only sampling settings go to the API; session keys and the like stay here
        return {
            "temperature": kwargs.get("temperature", self.temperature),
            "max_tokens": kwargs.get("max_tokens", self.max_tokens),
        }

    async def complete(
        self, messages: list[dict], model: str, **kwargs
    ) -> str:
        try:
            response = await self.client.chat.completions.create(
                model=model,
                messages=messages,
                **self._params(kwargs),
            )
        except openai.OpenAIError as e:
            raise _translate(e) from e
        return response.choices[0].message.content or ""

    async def stream(
        self, messages: list[dict], model: str, **kwargs
    ) -> AsyncGenerator[str, None]:
        try:
            response = await self.client.chat.completions.create(
                model=model,
                messages=messages,
                stream=True,
                **self._params(kwargs),
            )
            async for chunk in response:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta
                if delta.content:
                    yield delta.content
        except openai.OpenAIError as e:
            raise _translate(e) from e
