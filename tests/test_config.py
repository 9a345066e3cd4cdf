"""Tests for configuration loading and message translation."""
import json

from liffmember import config as config_module
from liffmember.config import AppConfig, _apply_env_overrides
from liffmember.i18n import lang_instruction, resolve_lang, t


class TestEnvOverrides:
    """Tests for deployment environment variables."""

    def test_section_fields(self, monkeypatch):
        """Test that env vars land in their config sections."""
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        monkeypatch.setenv("MONGODB_URI", "mongodb://db:27017")
        monkeypatch.setenv("SEED_TOKEN", "tok")
        data = _apply_env_overrides({"llm": {"provider": "openai"}})
        cfg = AppConfig(**data)
        assert cfg.llm.provider == "openai"
        assert cfg.llm.openai_api_key == "sk-env"
        assert cfg.database.mongodb_uri == "mongodb://db:27017"
        assert cfg.seed_token == "tok"

    def test_empty_values_are_ignored(self, monkeypatch):
        """Test that an empty variable keeps the file value."""
        monkeypatch.setenv("LLM_PROVIDER", "")
        data = _apply_env_overrides({"llm": {"provider": "guided"}})
        assert data["llm"]["provider"] == "guided"

    def test_cors_origins(self, monkeypatch):
        """Test the comma-separated origin list."""
        monkeypatch.setenv("CORS_ORIGINS", "https://a.example, https://b.example,")
        data = _apply_env_overrides({})
        assert data["cors_origins"] == ["https://a.example", "https://b.example"]

    def test_load_from_file(self, monkeypatch, tmp_path):
        """Test that the JSON file is read and a broken file falls back to defaults."""
        path = tmp_path / "config.json"
        monkeypatch.setattr(config_module, "_config_file", path)
        path.write_text(json.dumps({"language": "en", "chat": {"window_size": 10}}), encoding="utf-8")
        cfg = config_module.load_config()
        assert cfg.language == "en"
        assert cfg.chat.window_size == 10

        path.write_text("{broken", encoding="utf-8")
        assert config_module.load_config().language == "th"


class TestTranslations:
    """Tests for the i18n helpers."""

    def test_thai_default(self):
        """Test a plain Thai lookup."""
        assert t("redeem.unknown_code") == "รหัสไม่ถูกต้อง"

    def test_format_arguments(self):
        """Test placeholder formatting."""
        assert t("redeem.success", points=50) == "คุณได้รับ 50 แต้ม"

    def test_english(self):
        """Test that English strings exist for redemption."""
        assert t("redeem.success", "en", points=5) != t("redeem.success", "th", points=5)

    def test_fallbacks(self):
        """Test the fallback to Thai, then to the key."""
        assert t("redeem.unknown_code", "xx") == "รหัสไม่ถูกต้อง"
        assert t("no.such.key", "en") == "no.such.key"

    def test_lang_instruction(self):
        """Test the system-prompt language suffix."""
        assert lang_instruction("th") == " Always respond in Thai."
        assert lang_instruction("ja") == " Always respond in ja."

    def test_locale_variants(self):
        """Test that region-qualified LIFF locales resolve to their language."""
        assert resolve_lang("en-US") == "en"
        assert resolve_lang("th_TH") == "th"
        assert resolve_lang("") == "th"
        assert t("redeem.unknown_code", "en-GB") == t("redeem.unknown_code", "en")
        assert lang_instruction("en-US") == " Always respond in English."
