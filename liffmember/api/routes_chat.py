import json
import logging
from typing import AsyncIterator, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, StreamingResponse

from ..catalog.faq import FAQ
from ..catalog.firestore import CatalogRepository, get_catalog
from ..catalog.products import format_products_for_ai, is_product_query, rank_products
from ..config import get_config
from ..i18n import lang_instruction, t
from ..llm.base import LLMProvider, ProviderError, ProviderRateLimitError
from ..llm.registry import get_provider, model_for

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["chat"])

VALID_ROLES = {"user", "assistant", "system"}
STREAM_MEDIA_TYPE = "text/plain; charset=utf-8"


def encode_frame(text: str) -> str:
    payload = json.dumps({"type": "text-delta", "textDelta": text}, ensure_ascii=False)
    return f"0:{payload}\n"


def error_response(
    status_code: int, error: str, message: str, code: str, **extra
) -> JSONResponse:
    body = {"error": error, "message": message, "code": code}
    body.update({k: v for k, v in extra.items() if v is not None})
    return JSONResponse(body, status_code=status_code)


def single_reply(text: str) -> StreamingResponse:
    async def generate():
        yield encode_frame(text)

    return StreamingResponse(generate(), media_type=STREAM_MEDIA_TYPE)


def filter_messages(raw: list) -> list[dict]:
    """Keep well-formed messages with a known role and non-blank content."""
    valid = []
    for m in raw:
        if not isinstance(m, dict):
            continue
        role, content = m.get("role"), m.get("content")
        if role in VALID_ROLES and isinstance(content, str) and content.strip():
            valid.append({"role": role, "content": content})
    return valid


def session_key(body: dict) -> Optional[str]:
    """Per-user, per-conversation key for providers that keep dialogue state."""
    parts = [body.get(field) for field in ("lineId", "sessionId")]
    parts = [p for p in parts if isinstance(p, str) and p.strip()]
    return ":".join(parts) or None


def apply_context_window(messages: list[dict], max_before_window: int, window_size: int) -> list[dict]:
    """If messages exceed threshold, keep system prompt + last N messages."""
    if len(messages) <= max_before_window:
        return messages
    system_msgs = []
    non_system = []
    for m in messages:
        if m["role"] == "system" and not non_system:
            system_msgs.append(m)
        else:
            non_system.append(m)
    return system_msgs + non_system[-window_size:]


# ---------------------------------------------------------------------------
# Catalog lookups (failures never fail the chat)
# ---------------------------------------------------------------------------

async def find_faq_answer(catalog: Optional[CatalogRepository], text: str) -> Optional[FAQ]:
    if catalog is None:
        return None
    try:
        return await catalog.search_faq(text)
    except Exception as e:
        logger.error("[Chat] FAQ search failed: %s", e)
        return None


async def build_product_context(
    catalog: Optional[CatalogRepository], text: str, lang: str
) -> str:
    if catalog is None:
        return ""
    cfg = get_config().chat
    try:
        products = await catalog.list_products()
    except Exception as e:
        logger.error("[Chat] Product search failed: %s", e)
        return ""

    relevant = rank_products(text, products, cfg.product_limit)
    if not relevant and is_product_query(text):
        logger.info("[Chat] No direct product match, using catalog overview")
        relevant = products[: cfg.product_fallback_limit]
    logger.info("[Chat] Products found: %d", len(relevant))
    return format_products_for_ai(relevant, lang)


def build_system_prompt(product_context: str, lang: str) -> str:
    prompt = t("chat.system_prompt", lang) + lang_instruction(lang)
    if product_context:
        prompt += f"\n\n{t('chat.products_header', lang)}\n{product_context}"
    return prompt


# ---------------------------------------------------------------------------
# Streaming
# ---------------------------------------------------------------------------

async def _relay(
    first: Optional[str], rest: AsyncIterator[str], lang: str
) -> AsyncIterator[str]:
    if first:
        yield encode_frame(first)
    try:
        async for token in rest:
            if token:
                yield encode_frame(token)
    except Exception as e:
        logger.error("[Chat] Provider failed mid-stream: %s", e)
        yield encode_frame("\n\n" + t("chat.unavailable", lang))


@router.post("/chat")
async def chat(
    request: Request,
    catalog: Optional[CatalogRepository] = Depends(get_catalog),
    provider: Optional[LLMProvider] = Depends(get_provider),
):
    try:
        body = await request.json()
    except ValueError:
        body = None
    raw = body.get("messages") if isinstance(body, dict) else None
    if not isinstance(raw, list):
        return error_response(400, "Invalid request", "Messages array is required", "INVALID_REQUEST")

    messages = filter_messages(raw)
    if not messages:
        return error_response(
            400, "No valid messages", "At least one valid message is required", "NO_VALID_MESSAGES"
        )
    last_user = next((m["content"] for m in reversed(messages) if m["role"] == "user"), None)
    if last_user is None:
        return error_response(
            400, "No user message", "At least one user message is required", "NO_USER_MESSAGE"
        )

    config = get_config()
    lang = config.language
    logger.info("[Chat] %d message(s), last: %s", len(messages), last_user[:30])

    try:
        faq = await find_faq_answer(catalog, last_user)
        if faq is not None:
            logger.info("[Chat] Answered from FAQ %s", faq.id)
            return single_reply(faq.answer)

        if provider is None:
            logger.error("[Chat] No LLM provider configured")
            return single_reply(t("chat.not_configured", lang))

        product_context = await build_product_context(catalog, last_user, lang)
        turns = [m for m in messages if m["role"] != "system"]
        history = apply_context_window(
            [{"role": "system", "content": build_system_prompt(product_context, lang)}] + turns,
            config.chat.max_history_before_window,
            config.chat.window_size,
        )
        model = model_for(provider.name)
        logger.info("[Chat] Calling %s (%s)", provider.name, model)

        stream = provider.stream(history, model, session_id=session_key(body)).__aiter__()
        try:
            first = await stream.__anext__()
        except StopAsyncIteration:
            first = None
        except ProviderRateLimitError as e:
            logger.warning("[Chat] Provider rate limited: %s", e)
            return error_response(
                429, "Rate limited", t("chat.busy", lang), "RATE_LIMITED",
                retryable=True, retryAfter=e.retry_after,
            )
        except ProviderError as e:
            logger.error("[Chat] Provider error: %s (status %s)", e, e.status_code)
            return error_response(
                502, "Provider error", t("chat.unavailable", lang), "PROVIDER_ERROR", retryable=True,
            )

        return StreamingResponse(_relay(first, stream, lang), media_type=STREAM_MEDIA_TYPE)
    except Exception:
        logger.exception("[Chat] Unexpected error")
        return error_response(500, "Internal server error", "An unexpected error occurred", "INTERNAL_ERROR")
