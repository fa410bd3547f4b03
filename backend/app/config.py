from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List

DEFAULT_GATEWAY_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_GATEWAY_MODELS = [
    "deepseek/deepseek-chat-v3.1:free",
    "meta-llama/llama-3.3-70b-instruct:free",
    "mistralai/mistral-7b-instruct:free",
]
LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


def get_env(name: str, default: str = "") -> str:
    value = os.getenv(name)
    if value is not None:
        return str(value)
    # BOM-prefixed key names show up when .env is saved by some Windows editors.
    bom_value = os.getenv(f"\ufeff{name}")
    if bom_value is not None:
        return str(bom_value)
    return default


def env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw.strip())
    except ValueError:
        return default


def env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def env_list(name: str, default: List[str] | None = None) -> List[str]:
    raw = get_env(name, "")
    items = [item.strip() for item in raw.split(",") if item.strip()]
    if items:
        return items
    return list(default or [])



def _log_level(raw: str) -> str:
    level = raw.strip().upper()
    return level if level in LOG_LEVELS else "INFO"

@dataclass
class AdvisorSettings:
    supabase_url: str = ""
    supabase_service_key: str = ""
    supabase_jwt_secret: str = ""
    dev_bypass_auth: bool = False
    use_in_memory_store: bool = False
    sql_timeout_sec: int = 20

    gateway_base_url: str = DEFAULT_GATEWAY_BASE_URL
    gateway_api_keys: List[str] = field(default_factory=list)
    gateway_models: List[str] = field(default_factory=lambda: list(DEFAULT_GATEWAY_MODELS))

    openai_api_key: str = ""
    openai_model: str = "gpt-3.5-turbo"
    openai_base_url: str = "https://api.openai.com/v1"

    gemini_api_key: str = ""
    gemini_model: str = "gemini-pro"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"

    provider_timeout_sec: float = 15.0
    temperature: float = 0.7
    max_tokens: int = 1000

    currency: str = "USD"
    locale: str = "en-US"
    context_window_days: int = 30
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "AdvisorSettings":
        return cls(
            supabase_url=get_env("SUPABASE_URL").strip().rstrip("/"),
            supabase_service_key=get_env("SUPABASE_SERVICE_ROLE_KEY").strip(),
            supabase_jwt_secret=get_env("SUPABASE_JWT_SECRET").strip(),
            dev_bypass_auth=env_bool("DEV_BYPASS_AUTH", False),
            use_in_memory_store=env_bool("USE_IN_MEMORY_STORE", False),
            sql_timeout_sec=max(1, env_int("SQL_TIMEOUT_SEC", 20)),
            gateway_base_url=get_env("AI_GATEWAY_BASE_URL", DEFAULT_GATEWAY_BASE_URL).strip().rstrip("/")
            or DEFAULT_GATEWAY_BASE_URL,
            gateway_api_keys=env_list("AI_GATEWAY_API_KEYS"),
            gateway_models=env_list("AI_GATEWAY_MODELS", DEFAULT_GATEWAY_MODELS),
            openai_api_key=get_env("OPENAI_API_KEY").strip(),
            openai_model=get_env("OPENAI_MODEL", "gpt-3.5-turbo").strip() or "gpt-3.5-turbo",
            openai_base_url=get_env("OPENAI_BASE_URL", "https://api.openai.com/v1").strip().rstrip("/"),
            gemini_api_key=get_env("GEMINI_API_KEY").strip(),
            gemini_model=get_env("GEMINI_MODEL", "gemini-pro").strip() or "gemini-pro",
            gemini_base_url=get_env(
                "GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta"
            ).strip().rstrip("/"),
            provider_timeout_sec=max(1.0, env_float("ADVISOR_PROVIDER_TIMEOUT_SEC", 15.0)),
            temperature=env_float("ADVISOR_TEMPERATURE", 0.7),
            max_tokens=max(1, env_int("ADVISOR_MAX_TOKENS", 1000)),
            currency=get_env("ADVISOR_CURRENCY", "USD").strip().upper() or "USD",
            locale=get_env("ADVISOR_LOCALE", "en-US").strip() or "en-US",
            context_window_days=max(1, env_int("CONTEXT_WINDOW_DAYS", 30)),
            log_level=_log_level(get_env("LOG_LEVEL", "INFO")),
        )
