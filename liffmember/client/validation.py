import re
from typing import Optional

from ..config import ValidationConfig

# Latin letters/digits, accented Latin, Thai and CJK ideographs
_MEANINGFUL = re.compile(r"[a-zA-Z0-9\u00C0-\u017F\u0E00-\u0E7F\u4e00-\u9fff]")


class MessageValidator:
    """Checks chat input before it is stored or sent."""

    def __init__(self, config: Optional[ValidationConfig] = None) -> None:
        self.config = config or ValidationConfig()

    def explain(self, text: object) -> Optional[str]:
        """Return why ``text`` is rejected, or None when it is acceptable."""
        cfg = self.config
        if not text or not isinstance(text, str):
            return "Please enter a message"

        if len(text) > cfg.max_length:
            return f"Message cannot exceed {cfg.max_length} characters"

        stripped = text.strip()
        if not stripped and not cfg.allow_only_whitespace:
            return "Message cannot contain only whitespace"

        if len(stripped) < cfg.min_length:
            plural = "s" if cfg.min_length > 1 else ""
            return f"Message must be at least {cfg.min_length} character{plural} long"

        if cfg.require_meaningful_content and not _MEANINGFUL.search(stripped):
            return "Message must contain meaningful content"

        return None

    def is_valid(self, text: object) -> bool:
        return self.explain(text) is None


_default_validator = MessageValidator()


def is_valid(text: object) -> bool:
    return _default_validator.is_valid(text)


def explain(text: object) -> Optional[str]:
    return _default_validator.explain(text)
