from typing import AsyncGenerator, Optional

from google import genai
from google.genai import errors, types

from .base import LLMProvider, ProviderError, ProviderRateLimitError


def _translate(e: errors.APIError) -> ProviderError:
    if e.code == 429:
        return ProviderRateLimitError(e.message or str(e))
    return ProviderError(e.message or str(e), status_code=e.code)


class GeminiProvider(LLMProvider):
    name = "gemini"

    def __init__(self, api_key: str, temperature: float = 0.7, max_tokens: int = 1000) -> None:
        self.client = genai.Client(api_key=api_key)
        self.temperature = temperature
        self.max_tokens = max_tokens

    def _build_contents(
        self, messages: list[dict]
    ) -> tuple[Optional[str], list[types.Content]]:
        system_instruction = None
        contents: list[types.Content] = []
        for msg in messages:
            role = msg["role"]
            text = msg["content"].strip()
            if role == "system":
                system_instruction = text
            else:
                # Gemini calls the assistant side of the dialogue "model"
                contents.append(
                    types.Content(
                        role="model" if role == "assistant" else "user",
                        parts=[types.Part.from_text(text=text)],
                    )
                )
        return system_instruction, contents

    def _config(self, system_instruction: Optional[str]) -> types.GenerateContentConfig:
        return types.GenerateContentConfig(
            system_instruction=system_instruction,
            temperature=self.temperature,
            max_output_tokens=self.max_tokens,
        )

    async def complete(
        self, messages: list[dict], model: str, **kwargs
    ) -> str:
        system_instruction, contents = self._build_contents(messages)
        try:
            response = await self.client.aio.models.generate_content(
                model=model,
                contents=contents,
                config=self._config(system_instruction),
            )
        except errors.APIError as e:
            raise _translate(e) from e
        return response.text or ""

    async def stream(
        self, messages: list[dict], model: str, **kwargs
    ) -> AsyncGenerator[str, None]:
        system_instruction, contents = self._build_contents(messages)
        try:
            async for chunk in await self.client.aio.models.generate_content_stream(
                model=model,
                contents=contents,
                config=self._config(system_instruction),
            ):
                if chunk.text:
                    yield chunk.text
        except errors.APIError as e:
            raise _translate(e) from e
