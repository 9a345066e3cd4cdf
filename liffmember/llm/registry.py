import logging
from typing import Optional

from ..config import get_config
from .base import LLMProvider
from .dialogflow_provider import DialogflowProvider
from .gemini_provider import GeminiProvider
from .guided_provider import GuidedProvider
from .openai_provider import OpenAIProvider

logger = logging.getLogger(__name__)

ALL_PROVIDERS = [
    GeminiProvider,
    OpenAIProvider,
    DialogflowProvider,
    GuidedProvider,
]

_PROVIDER_CLASS_MAP = {cls.name: cls for cls in ALL_PROVIDERS}

_providers: dict[str, LLMProvider] = {}


def _init_provider(provider_name: str) -> Optional[LLMProvider]:
    llm = get_config().llm

    if provider_name == "guided":
        return GuidedProvider()

    # Dialogflow authenticates through Application Default Credentials
    if provider_name == "dialogflow":
        if not llm.dialogflow_project_id:
            return None
        return DialogflowProvider(llm.dialogflow_project_id, llm.dialogflow_language)

    key_attr = f"{provider_name}_api_key"
    api_key = getattr(llm, key_attr, "")
    if not api_key:
        return None
    provider_cls = _PROVIDER_CLASS_MAP.get(provider_name)
    if not provider_cls:
        return None
    return provider_cls(api_key, temperature=llm.temperature, max_tokens=llm.max_tokens)


def _cached(provider_name: str) -> Optional[LLMProvider]:
    if provider_name not in _providers:
        provider = _init_provider(provider_name)
        if provider is None:
            return None
        _providers[provider_name] = provider
    return _providers[provider_name]


def model_for(provider_name: str) -> str:
    llm = get_config().llm
    if provider_name == "openai":
        return llm.openai_model
    if provider_name == "gemini":
        return llm.model
    return provider_name


def get_provider() -> Optional[LLMProvider]:
    """The configured provider, the guided flow as fallback, or None."""
    llm = get_config().llm
    if llm.provider not in _PROVIDER_CLASS_MAP:
        logger.warning("Unknown LLM provider '%s'", llm.provider)
    else:
        provider = _cached(llm.provider)
        if provider is not None:
            return provider
        logger.warning("LLM provider '%s' has no credentials configured", llm.provider)

    if llm.guided_fallback:
        return _cached("guided")
    return None


def reset_providers() -> None:
    _providers.clear()
