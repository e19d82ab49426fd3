# config.py
# Session configuration, read once from the environment (and .env).
# Nothing here is hot-reloaded; build a new session to pick up changes.

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
ANTHROPIC_BASE_URL = "https://api.anthropic.com/v1/"

BASE_URLS = {
    "openrouter": OPENROUTER_BASE_URL,
    "anthropic": ANTHROPIC_BASE_URL,
}

DEFAULT_MODELS = {
    "openai": "gpt-5-mini",
    "openrouter": "anthropic/claude-haiku-4.5",
    "anthropic": "claude-haiku-4-5",
}

API_KEY_NAMES = {
    "openai": "OPENAI_API_KEY",
    "openrouter": "OPENROUTER_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
}


class Settings(BaseModel):
    provider: str = "openai"
    model: str = DEFAULT_MODELS["openai"]
    api_key: str | None = None
    base_url: str | None = None
    temperature: float = 0.7
    max_steps: int = Field(default=10, ge=1)
    max_retries: int = Field(default=3, ge=0)
    max_context_chars: int = Field(default=4000, ge=1)
    challenge_max_iterations: int = Field(default=20, ge=1)
    challenge_settle_delay: float = Field(default=2.0, ge=0)
    tool_server_urls: list[str] = Field(default_factory=list)

    @property
    def api_key_name(self) -> str:
        return API_KEY_NAMES.get(self.provider, "OPENAI_API_KEY")

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key)


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, default))
    except ValueError:
        return default


def load_settings() -> Settings:
    """Build Settings from environment variables, falling back to defaults."""
    provider = (os.getenv("LLM_PROVIDER") or "openai").strip().lower()
    if provider not in DEFAULT_MODELS:
        provider = "openai"

    # Non-OpenAI providers are reached through their OpenAI-compatible endpoints.
    base_url = os.getenv("LLM_BASE_URL") or BASE_URLS.get(provider)

    urls = os.getenv("TOOL_SERVER_URLS", "")

    return Settings(
        provider=provider,
        model=os.getenv("LLM_MODEL") or DEFAULT_MODELS[provider],
        api_key=os.getenv(API_KEY_NAMES[provider]) or None,
        base_url=base_url,
        temperature=_env_float("LLM_TEMPERATURE", 0.7),
        max_steps=max(1, _env_int("AGENT_MAX_STEPS", 10)),
        max_retries=max(0, _env_int("LLM_MAX_RETRIES", 3)),
        max_context_chars=max(1, _env_int("AGENT_MAX_CONTEXT_CHARS", 4000)),
        challenge_max_iterations=max(1, _env_int("CHALLENGE_MAX_ITERATIONS", 20)),
        challenge_settle_delay=max(0.0, _env_float("CHALLENGE_SETTLE_DELAY", 2.0)),
        tool_server_urls=[u.strip() for u in urls.split(",") if u.strip()],
    )
