import os
from dataclasses import dataclass


def _looks_like_placeholder(value: str) -> bool:
    lower = value.strip().lower()
    return lower.startswith("your_") or lower.startswith("replace_") or lower in {"changeme", "todo"}


@dataclass(frozen=True)
class AIConfig:
    provider: str
    model: str
    api_key: str
    base_url: str | None
    timeout_s: float
    max_retries: int
    response_format: str

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key) and not _looks_like_placeholder(self.api_key)


def load_ai_config() -> AIConfig:
    return AIConfig(
        provider=os.getenv("AI_PROVIDER", "openai").strip().lower(),
        model=(os.getenv("AI_MODEL") or os.getenv("OPENAI_MODEL") or "gpt-4o-mini").strip(),
        api_key=(os.getenv("OPENAI_API_KEY") or "").strip(),
        base_url=(os.getenv("OPENAI_BASE_URL") or "").strip() or None,
        timeout_s=float(os.getenv("OPENAI_TIMEOUT_S", "60")),
        max_retries=int(os.getenv("OPENAI_MAX_RETRIES", "2")),
        response_format=(os.getenv("OPENAI_RESPONSE_FORMAT") or "json").strip().lower(),
    )
