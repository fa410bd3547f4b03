from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List, Sequence

import requests

from app.config import AdvisorSettings
from app.services.formatting import DEFAULT_CURRENCY, DEFAULT_LOCALE

from .contracts import FinancialSnapshot, ProviderResult
from .prompt import build_system_prompt

logger = logging.getLogger(__name__)

DEFAULT_PROVIDER_TIMEOUT = 15.0
NOT_CONFIGURED = "not configured"
_MALFORMED = (ValueError, KeyError, IndexError, TypeError)


class ProviderHTTPError(RuntimeError):
    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(f"HTTP {status_code}: {body[:300]}")
        self.status_code = status_code


class AdviceProvider:
    """One chat-completion backend.

    ``generate`` never raises: transport and envelope errors come back as
    ``ProviderResult(success=False, error=...)`` so the orchestrator can move
    on to the next provider.
    """

    name = "provider"

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_PROVIDER_TIMEOUT,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        currency: str = DEFAULT_CURRENCY,
        locale: str = DEFAULT_LOCALE,
    ) -> None:
        self.timeout = timeout
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.currency = currency
        self.locale = locale

    @property
    def configured(self) -> bool:
        return False

    def system_prompt(self, snapshot: FinancialSnapshot | None) -> str:
        return build_system_prompt(snapshot, self.currency, self.locale)

    def _failure(self, error: str, model: str | None = None) -> ProviderResult:
        return ProviderResult(success=False, provider_name=self.name, error=error, model=model)

    def _success(self, content: str, model: str | None = None) -> ProviderResult:
        return ProviderResult(success=True, provider_name=self.name, content=content, model=model)

    def _post_json(
        self,
        url: str,
        payload: Dict[str, Any],
        *,
        headers: Dict[str, str] | None = None,
        params: Dict[str, str] | None = None,
    ) -> Dict[str, Any]:
        response = requests.post(
            url,
            params=params,
            json=payload,
            headers={"Content-Type": "application/json", **(headers or {})},
            timeout=self.timeout,
        )
        if response.status_code >= 400:
            raise ProviderHTTPError(response.status_code, response.text or response.reason or "")
        return response.json()

    def generate(self, prompt: str, snapshot: FinancialSnapshot | None) -> ProviderResult:
        raise NotImplementedError


def _chat_messages(system_prompt: str, prompt: str) -> List[Dict[str, str]]:
    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": prompt},
    ]


def _chat_completion_text(data: Dict[str, Any]) -> str:
    content = data["choices"][0]["message"]["content"]
    text = str(content or "").strip()
    if not text:
        raise ValueError("empty completion")
    return text


class GatewayProvider(AdviceProvider):
    """OpenAI-compatible gateway reached through a pool of API keys and models.

    Models are tried in configured order. Within a model, keys are tried
    starting at a round-robin cursor that advances on every call, and the first
    successful completion wins. 401/403 retires the key for the rest of the
    call, 400/404 skips to the next model, anything else (429, 5xx, timeouts,
    bad envelopes) moves on to the next key. There is no sleep between
    attempts.
    """

    name = "gateway"

    def __init__(
        self,
        *,
        base_url: str,
        api_keys: Sequence[str],
        models: Sequence[str],
        app_title: str = "FinanceFlow",
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.base_url = (base_url or "").strip().rstrip("/")
        self.api_keys = [key.strip() for key in api_keys if key and key.strip()]
        self.models = [model.strip() for model in models if model and model.strip()]
        self.app_title = app_title
        self._cursor = 0
        self._cursor_lock = threading.Lock()

    @property
    def configured(self) -> bool:
        return bool(self.base_url and self.api_keys and self.models)

    def _key_order(self) -> List[int]:
        with self._cursor_lock:
            start = self._cursor % len(self.api_keys)
            self._cursor = (self._cursor + 1) % len(self.api_keys)
        return [(start + offset) % len(self.api_keys) for offset in range(len(self.api_keys))]

    def generate(self, prompt: str, snapshot: FinancialSnapshot | None) -> ProviderResult:
        if not self.configured:
            return self._failure(NOT_CONFIGURED)

        messages = _chat_messages(self.system_prompt(snapshot), prompt)
        key_order = self._key_order()
        retired: set[int] = set()
        last_error = "no attempt made"

        for model in self.models:
            for key_index in key_order:
                if key_index in retired:
                    continue
                try:
                    data = self._post_json(
                        f"{self.base_url}/chat/completions",
                        {
                            "model": model,
                            "messages": messages,
                            "temperature": self.temperature,
                            "max_tokens": self.max_tokens,
                        },
                        headers={
                            "Authorization": f"Bearer {self.api_keys[key_index]}",
                            "X-Title": self.app_title,
                        },
                    )
                    return self._success(_chat_completion_text(data), model=model)
                except ProviderHTTPError as exc:
                    last_error = f"{model}: {exc}"
                    logger.warning(
                        "gateway_attempt_failed model=%s key_index=%s status=%s",
                        model,
                        key_index,
                        exc.status_code,
                    )
                    if exc.status_code in (401, 403):
                        retired.add(key_index)
                        continue
                    if exc.status_code in (400, 404):
                        break
                except requests.RequestException as exc:
                    last_error = f"{model}: {exc}"
                    logger.warning("gateway_attempt_failed model=%s key_index=%s error=%s", model, key_index, exc)
                except _MALFORMED as exc:
                    last_error = f"{model}: malformed response ({exc})"
                    logger.warning("gateway_malformed_response model=%s key_index=%s error=%s", model, key_index, exc)
            if len(retired) == len(self.api_keys):
                break

        return self._failure(last_error)


class OpenAIProvider(AdviceProvider):
    name = "openai"

    def __init__(
        self,
        *,
        api_key: str,
        model: str = "gpt-3.5-turbo",
        base_url: str = "https://api.openai.com/v1",
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.api_key = (api_key or "").strip()
        self.model = model
        self.base_url = (base_url or "").strip().rstrip("/")

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def generate(self, prompt: str, snapshot: FinancialSnapshot | None) -> ProviderResult:
        if not self.configured:
            return self._failure(NOT_CONFIGURED)
        try:
            data = self._post_json(
                f"{self.base_url}/chat/completions",
                {
                    "model": self.model,
                    "messages": _chat_messages(self.system_prompt(snapshot), prompt),
                    "max_tokens": self.max_tokens,
                    "temperature": self.temperature,
                },
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
            return self._success(_chat_completion_text(data), model=self.model)
        except (ProviderHTTPError, requests.RequestException) as exc:
            logger.warning("openai_request_failed model=%s error=%s", self.model, exc)
            return self._failure(str(exc), model=self.model)
        except _MALFORMED as exc:
            logger.warning("openai_malformed_response model=%s error=%s", self.model, exc)
            return self._failure(f"malformed response ({exc})", model=self.model)


class GeminiProvider(AdviceProvider):
    name = "gemini"

    def __init__(
        self,
        *,
        api_key: str,
        model: str = "gemini-pro",
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.api_key = (api_key or "").strip()
        self.model = model
        self.base_url = (base_url or "").strip().rstrip("/")

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def generate(self, prompt: str, snapshot: FinancialSnapshot | None) -> ProviderResult:
        if not self.configured:
            return self._failure(NOT_CONFIGURED)
        text = f"{self.system_prompt(snapshot)}\n\nUser Query: {prompt}"
        try:
            data = self._post_json(
                f"{self.base_url}/models/{self.model}:generateContent",
                {
                    "contents": [{"parts": [{"text": text}]}],
                    "generationConfig": {
                        "temperature": self.temperature,
                        "topK": 40,
                        "topP": 0.95,
                        "maxOutputTokens": self.max_tokens,
                    },
                },
                params={"key": self.api_key},
            )
            content = str(data["candidates"][0]["content"]["parts"][0]["text"] or "").strip()
            if not content:
                raise ValueError("empty candidate")
            return self._success(content, model=self.model)
        except (ProviderHTTPError, requests.RequestException) as exc:
            logger.warning("gemini_request_failed model=%s error=%s", self.model, exc)
            return self._failure(str(exc), model=self.model)
        except _MALFORMED as exc:
            logger.warning("gemini_malformed_response model=%s error=%s", self.model, exc)
            return self._failure(f"malformed response ({exc})", model=self.model)


def build_providers(settings: AdvisorSettings) -> List[AdviceProvider]:
    """Providers in priority order: gateway, then OpenAI, then Gemini."""
    common = {
        "timeout": settings.provider_timeout_sec,
        "temperature": settings.temperature,
        "max_tokens": settings.max_tokens,
        "currency": settings.currency,
        "locale": settings.locale,
    }
    return [
        GatewayProvider(
            base_url=settings.gateway_base_url,
            api_keys=settings.gateway_api_keys,
            models=settings.gateway_models,
            **common,
        ),
        OpenAIProvider(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            base_url=settings.openai_base_url,
            **common,
        ),
        GeminiProvider(
            api_key=settings.gemini_api_key,
            model=settings.gemini_model,
            base_url=settings.gemini_base_url,
            **common,
        ),
    ]
