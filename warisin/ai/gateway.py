"""
Text generation for Warisin.

The gateway picks a provider from the model name (Gemini, or the local stub
when no GEMINI_API_KEY is set), retries transient provider failures and
logs token usage and latency for every call.

    from warisin.ai.gateway import LLMGateway
    result = LLMGateway(app=current_app).chat(
        [{"role": "user", "content": "Describe a batik program"}],
    )
"""

import logging
import os
import threading
import time
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)


class LLMError(Exception):
    """Raised when every attempt to reach the provider failed.

    Args:
        message: Last provider error.
        status_code: HTTP-ish classification of the failure (401, 429, 502 ...).
    """

    def __init__(self, message: str, status_code: int = 502) -> None:
        self.status_code = status_code
        super().__init__(message)


def classify_provider_error(error: Exception) -> int:
    """Map a provider exception to the status the API should report."""
    code = getattr(error, "code", None) or getattr(error, "status_code", None)
    if isinstance(code, int) and 400 <= code < 600:
        return code
    text = str(error).lower()
    if "api key" in text or "permission" in text or "unauthenticated" in text:
        return 401
    if "quota" in text or "rate" in text or "resource_exhausted" in text:
        return 429
    if "safety" in text or "blocked" in text:
        return 400
    if "timeout" in text or "deadline" in text:
        return 504
    return 502


# ── Providers ─────────────────────────────────────────────────────────────────

class LLMProvider(ABC):
    """One backend. ``chat`` returns content, prompt_tokens, completion_tokens and model."""

    @abstractmethod
    def chat(self, messages: list, model: str, **kwargs) -> dict:
        ...


class GeminiProvider(LLMProvider):
    """Google Gemini through the google-genai SDK (key from GEMINI_API_KEY)."""

    def __init__(self, api_key: str | None = None):
        self.api_key = api_key or os.getenv("GEMINI_API_KEY", "")
        self._client = None

    @property
    def client(self):
        if self._client is None:
            from google import genai
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    @staticmethod
    def _split_messages(messages: list, types) -> tuple[str, list]:
        """System turns become the system instruction; the rest become contents."""
        instruction = "\n\n".join(m["content"] for m in messages if m["role"] == "system")
        contents = [
            types.Content(
                role="model" if m["role"] == "assistant" else "user",
                parts=[types.Part(text=m["content"])],
            )
            for m in messages
            if m["role"] != "system"
        ]
        return instruction, contents

    def chat(self, messages: list, model: str = "gemini-2.5-flash", **kwargs) -> dict:
        from google.genai import types

        instruction, contents = self._split_messages(messages, types)
        generation = types.GenerateContentConfig(
            temperature=kwargs.get("temperature", 0.7),
            max_output_tokens=kwargs.get("max_tokens", 1024),
            system_instruction=instruction or None,
        )
        response = self.client.models.generate_content(model=model, contents=contents, config=generation)

        usage = response.usage_metadata
        return {
            "content": response.text or "",
            "prompt_tokens": getattr(usage, "prompt_token_count", 0) or 0,
            "completion_tokens": getattr(usage, "candidates_token_count", 0) or 0,
            "model": model,
        }


class LocalStubProvider(LLMProvider):
    """Canned description used when no provider key is configured."""

    TEMPLATE = (
        "{title} invites you to learn a living tradition directly from a master "
        "artisan. Over the course of the program you will work side by side with "
        "the maestro, practise the core techniques every day, and create your own "
        "pieces from the first sketch to the final finish. Beyond the craft itself, "
        "you will hear the stories and values that keep this heritage alive in the "
        "community. No prior experience is needed, only curiosity, patience and "
        "respect for the process."
    )

    @staticmethod
    def _title_from(prompt: str) -> str:
        for line in prompt.splitlines():
            label, sep, value = line.partition(":")
            if sep and label.strip().lower() == "program title" and value.strip():
                return value.strip()
        return "this apprenticeship"

    def chat(self, messages: list, model: str = "local-stub", **kwargs) -> dict:
        prompt = next((m["content"] for m in reversed(messages) if m["role"] == "user"), "")
        content = self.TEMPLATE.format(title=self._title_from(prompt))
        return {
            "content": content,
            "prompt_tokens": len(prompt.split()) * 2,
            "completion_tokens": len(content.split()) * 2,
            "model": "local-stub",
        }


# ── Gateway ───────────────────────────────────────────────────────────────────

# Failures a retry cannot fix (bad key, blocked prompt)
NON_RETRYABLE = frozenset({400, 401, 403})


class LLMGateway:
    """
    Routes a chat call to the provider serving ``model``, retries transient
    failures with capped exponential backoff, and logs usage per call.

        gw = LLMGateway(app=current_app)
        gw.chat([{"role": "user", "content": "..."}], purpose="program_description")
    """

    PROVIDER_MAP = {
        "gemini-2.5-flash": "gemini",
        "gemini-2.5-pro": "gemini",
        "gemini-2.0-flash": "gemini",
        "gemini-1.5-flash": "gemini",
        "local-stub": "local",
    }

    DEFAULT_CHAT_MODEL = os.getenv("LLM_DEFAULT_CHAT_MODEL", "gemini-2.5-flash")

    def __init__(self, app=None):
        self._app = app
        self._providers = {"local": LocalStubProvider()}
        gemini_key = self._config("GEMINI_API_KEY")
        if gemini_key:
            self._providers["gemini"] = GeminiProvider(api_key=gemini_key)

    def _config(self, key, default=None):
        if self._app is None:
            return os.getenv(key, default)
        return self._app.config.get(key, default)

    def _route(self, model: str) -> tuple[str, LLMProvider]:
        wanted = self.PROVIDER_MAP.get(model, "local")
        if wanted not in self._providers:
            logger.warning("No %s provider configured; model %s served by the local stub", wanted, model)
            wanted = "local"
        return wanted, self._providers[wanted]

    def chat(self, messages: list, model: str | None = None, *, purpose: str = "",
             user: str = "system", max_retries: int | None = None, **kwargs) -> dict:
        """
        Returns the provider result plus ``latency_ms`` and ``provider``.
        Raises LLMError once every attempt has failed; ``max_retries`` counts
        attempts and defaults to LLM_MAX_RETRIES.
        """
        model = model or self._config("LLM_DEFAULT_CHAT_MODEL") or self.DEFAULT_CHAT_MODEL
        attempts = max_retries if max_retries is not None else int(self._config("LLM_MAX_RETRIES", 3) or 3)
        provider_name, provider = self._route(model)

        failure = None
        for attempt in range(1, attempts + 1):
            started = time.monotonic()
            try:
                result = provider.chat(messages, model, **kwargs)
            except Exception as exc:
                failure = exc
                logger.warning("LLM attempt %d/%d via %s failed: %s", attempt, attempts, provider_name, exc)
                if classify_provider_error(exc) in NON_RETRYABLE:
                    break
                if attempt < attempts:
                    threading.Event().wait(min(2 ** (attempt - 1), 4))
                continue

            result["latency_ms"] = int((time.monotonic() - started) * 1000)
            result["provider"] = provider_name
            logger.info(
                "LLM ok purpose=%s provider=%s model=%s tokens=%d+%d latency=%dms user=%s",
                purpose, provider_name, result["model"], result["prompt_tokens"],
                result["completion_tokens"], result["latency_ms"], user,
            )
            return result

        logger.error("LLM gave up purpose=%s provider=%s model=%s: %s", purpose, provider_name, model, failure)
        raise LLMError(
            f"LLM call failed after {attempts} attempt(s): {failure}",
            status_code=classify_provider_error(failure),
        )
