import json
import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class LLMConfig(BaseModel):
    provider: str = "gemini"  # gemini | openai | dialogflow | guided
    model: str = "gemini-2.5-flash"
    openai_api_key: str = ""
    openai_model: str = "gpt-3.5-turbo"
    gemini_api_key: str = ""
    dialogflow_project_id: str = ""
    dialogflow_language: str = "th"
    temperature: float = 0.7
    max_tokens: int = 1000
    guided_fallback: bool = True  # Use the rule-based flow when no provider is configured


class DatabaseConfig(BaseModel):
    mongodb_uri: str = ""
    mongodb_database: str = "liffmembership"
    firestore_project_id: str = ""
    firestore_database: str = "(default)"


class ValidationConfig(BaseModel):
    min_length: int = 1
    max_length: int = 4000
    allow_only_whitespace: bool = False
    require_meaningful_content: bool = True


class RetryConfig(BaseModel):
    max_retries: int = 3
    base_delay: float = 1.0     # seconds
    exponential: bool = True
    jitter: float = 1.0         # max random extra delay, seconds
    attempt_timeout: float = 30.0


class ConnectivityConfig(BaseModel):
    probe_path: str = "/api/health"
    interval: float = 30.0
    timeout: float = 5.0


class StorageConfig(BaseModel):
    key: str = "ai-chat-history"
    max_kept_conversations: int = 5
    quota_bytes: Optional[int] = None  # None = only the filesystem limits apply


class ChatConfig(BaseModel):
    max_history_before_window: int = 40
    window_size: int = 20
    product_limit: int = 10
    product_fallback_limit: int = 30
    stream_chunk_timeout: float = 30.0


class RateLimitConfig(BaseModel):
    enabled: bool = True
    max_requests: int = 30
    window_seconds: int = 60
    paths: list[str] = ["/api/chat"]
    trust_forwarded: bool = False  # only behind a proxy that appends X-Forwarded-For


class AppConfig(BaseModel):
    llm: LLMConfig = LLMConfig()
    database: DatabaseConfig = DatabaseConfig()
    chat: ChatConfig = ChatConfig()
    validation: ValidationConfig = ValidationConfig()
    retry: RetryConfig = RetryConfig()
    connectivity: ConnectivityConfig = ConnectivityConfig()
    storage: StorageConfig = StorageConfig()
    rate_limit: RateLimitConfig = RateLimitConfig()
    seed_token: str = ""
    cors_origins: list[str] = [
        "http://localhost:3000",     # Next.js / LIFF dev server
        "http://127.0.0.1:3000",
        "https://liff.line.me",
    ]
    language: str = "th"


_config_dir = Path(os.environ.get("LIFFMEMBER_CONFIG_DIR", Path.home() / ".liffmember"))
_config_file = _config_dir / "config.json"

# ---------------------------------------------------------------------------
# Environment overrides  (ENV_NAME -> "section.field")
# ---------------------------------------------------------------------------

ENV_OVERRIDES: dict[str, str] = {
    "LLM_PROVIDER": "llm.provider",
    "LLM_MODEL": "llm.model",
    "OPENAI_API_KEY": "llm.openai_api_key",
    "GOOGLE_GENERATIVE_AI_API_KEY": "llm.gemini_api_key",
    "DIALOGFLOW_PROJECT_ID": "llm.dialogflow_project_id",
    "MONGODB_URI": "database.mongodb_uri",
    "MONGODB_DATABASE": "database.mongodb_database",
    "FIRESTORE_PROJECT_ID": "database.firestore_project_id",
    "SEED_TOKEN": "seed_token",
    "APP_LANGUAGE": "language",
}


def _apply_env_overrides(data: dict) -> dict:
    """Overlay deployment environment variables on top of the file config."""
    for env_name, dotpath in ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if not value:
            continue
        if "." in dotpath:
            section, field = dotpath.split(".", 1)
            data.setdefault(section, {})[field] = value
        else:
            data[dotpath] = value

    origins = os.environ.get("CORS_ORIGINS")
    if origins:
        data["cors_origins"] = [o.strip() for o in origins.split(",") if o.strip()]
    return data


def _ensure_config_dir() -> None:
    _config_dir.mkdir(parents=True, exist_ok=True)


def get_config_dir() -> Path:
    return _config_dir


def load_config() -> AppConfig:
    data: dict = {}
    if _config_file.exists():
        try:
            data = json.loads(_config_file.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            logger.warning("Failed to load %s, using defaults", _config_file)
            data = {}
    return AppConfig(**_apply_env_overrides(data))


def save_config(config: AppConfig) -> None:
    _ensure_config_dir()
    _config_file.write_text(
        config.model_dump_json(indent=2),
        encoding="utf-8",
    )


_current_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    global _current_config
    if _current_config is None:
        _current_config = load_config()
    return _current_config


def update_config(config: AppConfig) -> AppConfig:
    global _current_config
    save_config(config)
    _current_config = config
    return _current_config


def reset_config() -> None:
    """Drop the cached config so the next get_config() re-reads file and env."""
    global _current_config
    _current_config = None
