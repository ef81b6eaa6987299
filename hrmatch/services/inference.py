"""
Text-generation client with API-key rotation, rate limiting and retries.

Every piece of mutable state (current key, per-key request counts) lives on
the ``KeyPool`` instance, and time enters only through the injected ``clock``
and ``sleep`` callables.
"""
import asyncio
import time
from typing import Awaitable, Callable, Dict, List, Optional, Protocol

import requests

from hrmatch.utils.exceptions import InferenceError, ConfigurationError
from hrmatch.utils.logging_config import get_logger
from hrmatch.utils.settings import InferenceSettings

logger = get_logger(__name__)

RATE_LIMIT_MARKERS = ("rate limit", "quota", "too many requests", "429")


class KeyPool:
    """Round-robin API keys with a fixed request budget per key per window"""

    def __init__(
        self,
        keys: List[str],
        max_requests_per_window: int = 30,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_requests_per_window < 1:
            raise ConfigurationError(
                "max_requests_per_window must be at least 1",
                config_key="RATE_LIMIT_MAX_REQUESTS",
                config_value=max_requests_per_window,
            )
        self.keys = list(keys) or [""]
        self.max_requests_per_window = max_requests_per_window
        self.window_seconds = window_seconds
        self.clock = clock
        self.index = 0
        self._windows: Dict[int, List[float]] = {}  # key index -> [count, reset_at]

    @property
    def size(self) -> int:
        return len(self.keys)

    @property
    def current_key(self) -> str:
        return self.keys[self.index]

    def rotate(self) -> None:
        if self.size > 1:
            self.index = (self.index + 1) % self.size
            logger.info(f"Rotated to API key {self.index + 1}/{self.size}")

    def try_acquire(self) -> bool:
        """Take one request slot for the current key, False when the window is spent."""
        now = self.clock()
        window = self._windows.setdefault(self.index, [0, now + self.window_seconds])
        if now >= window[1]:
            window[0] = 0
            window[1] = now + self.window_seconds
        if window[0] < self.max_requests_per_window:
            window[0] += 1
            return True
        return False

    def wait_time(self) -> float:
        window = self._windows.get(self.index)
        if not window:
            return 0.0
        return max(0.0, window[1] - self.clock())


def exponential_backoff(base: float = 1.0, cap: float = 10.0) -> Callable[[int], float]:
    def backoff(attempt: int) -> float:
        return min(base * (2 ** attempt), cap)
    return backoff


class RetryPolicy:
    """How many attempts each model gets and how long to wait between them"""

    def __init__(
        self,
        max_attempts: int = 3,
        backoff: Callable[[int], float] = None,
        rotation_delay: float = 1.0,
    ):
        if max_attempts < 1:
            raise ConfigurationError("max_attempts must be at least 1", config_key="max_attempts", config_value=max_attempts)
        self.max_attempts = max_attempts
        self.backoff = backoff or exponential_backoff()
        self.rotation_delay = rotation_delay

    @classmethod
    def for_keys(cls, key_count: int, **kwargs) -> "RetryPolicy":
        # each key gets two tries, never fewer than three overall
        return cls(max_attempts=max(key_count * 2, 3), **kwargs)


class ChatTransport(Protocol):
    async def __call__(
        self, api_key: str, model: str, system_prompt: str, user_prompt: str,
        temperature: float, max_tokens: int,
    ) -> str:
        ...


class GroqTransport:
    """OpenAI-compatible chat completions endpoint (Groq by default)"""

    def __init__(self, base_url: str = "https://api.groq.com/openai/v1", timeout: int = 120):
        self.url = f"{base_url.rstrip('/')}/chat/completions"
        self.timeout = timeout

    def _post(self, api_key, model, system_prompt, user_prompt, temperature, max_tokens) -> str:
        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json"
        }
        payload = {
            "model": model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt}
            ],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        resp = requests.post(self.url, headers=headers, json=payload, timeout=self.timeout)
        resp.raise_for_status()
        choices = resp.json().get("choices") or [{}]
        return (choices[0].get("message") or {}).get("content") or ""

    async def __call__(self, api_key, model, system_prompt, user_prompt, temperature, max_tokens) -> str:
        return await asyncio.to_thread(
            self._post, api_key, model, system_prompt, user_prompt, temperature, max_tokens
        )


class OllamaTransport:
    """Local Ollama /api/generate endpoint; the api_key is ignored"""

    def __init__(self, base_url: str = "http://localhost:11434", timeout: int = 120):
        self.url = f"{base_url.rstrip('/')}/api/generate"
        self.timeout = timeout

    def _post(self, model, system_prompt, user_prompt, temperature, max_tokens) -> str:
        resp = requests.post(
            self.url,
            json={
                "model": model,
                "system": system_prompt,
                "prompt": user_prompt,
                "options": {"temperature": temperature, "num_predict": max_tokens},
                "stream": False  # important
            },
            timeout=self.timeout,
        )
        resp.raise_for_status()
        return resp.json().get("response", "") or ""

    async def __call__(self, api_key, model, system_prompt, user_prompt, temperature, max_tokens) -> str:
        return await asyncio.to_thread(self._post, model, system_prompt, user_prompt, temperature, max_tokens)


def is_rate_limit_error(exc: Exception) -> bool:
    response = getattr(exc, "response", None)
    if response is not None and getattr(response, "status_code", None) == 429:
        return True
    message = str(exc).lower()
    return any(marker in message for marker in RATE_LIMIT_MARKERS)


class InferenceClient:
    """Free-form completion with model fallback, key rotation and backoff"""

    def __init__(
        self,
        transport: ChatTransport,
        key_pool: KeyPool,
        models: List[str],
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        provider: str = "groq",
    ):
        if not models:
            raise ConfigurationError("At least one model is required", config_key="models")
        self.transport = transport
        self.key_pool = key_pool
        self.models = list(models)
        self.retry_policy = retry_policy or RetryPolicy.for_keys(key_pool.size)
        self.sleep = sleep
        self.provider = provider

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 1024,
    ) -> str:
        max_attempts = self.retry_policy.max_attempts
        last_error: Optional[Exception] = None

        for model in self.models:
            attempts = 0
            while attempts < max_attempts:
                if not self.key_pool.try_acquire():
                    wait = self.key_pool.wait_time()
                    logger.info(f"Rate limit window exhausted for key {self.key_pool.index + 1}, waiting {wait:.1f}s")
                    await self.sleep(wait)
                    continue

                try:
                    return await self.transport(
                        self.key_pool.current_key, model, system_prompt, user_prompt,
                        temperature, max_tokens,
                    )
                except Exception as e:
                    attempts += 1
                    last_error = e
                    logger.warning(f"Attempt {attempts}/{max_attempts} failed for model '{model}': {e}")

                    if attempts >= max_attempts:
                        logger.error(f"Model '{model}' exhausted after {max_attempts} attempts")
                        break

                    if is_rate_limit_error(e) and self.key_pool.size > 1:
                        self.key_pool.rotate()
                        await self.sleep(self.retry_policy.rotation_delay)
                        continue

                    await self.sleep(self.retry_policy.backoff(attempts))

        raise InferenceError(
            "Failed to get a completion after trying all models and API keys",
            provider=self.provider,
            models=self.models,
            cause=last_error,
        )


def build_inference_client(settings: InferenceSettings) -> InferenceClient:
    """Wire the transport, key pool and retry policy described by settings"""
    if settings.provider == "ollama":
        transport = OllamaTransport(settings.base_url, timeout=settings.timeout)
        keys: List[str] = []
    elif settings.provider == "groq":
        if not settings.api_keys:
            raise ConfigurationError("No Groq API keys configured", config_key="GROQ_API_KEYS")
        transport = GroqTransport(settings.base_url, timeout=settings.timeout)
        keys = settings.api_keys
    else:
        raise ConfigurationError("Unknown inference provider", config_key="LLM_PROVIDER", config_value=settings.provider)

    key_pool = KeyPool(
        keys,
        max_requests_per_window=settings.max_requests_per_window,
        window_seconds=settings.window_seconds,
    )
    if settings.max_attempts:
        retry_policy = RetryPolicy(max_attempts=settings.max_attempts)
    else:
        retry_policy = RetryPolicy.for_keys(len(keys))
    return InferenceClient(transport, key_pool, settings.models, retry_policy, provider=settings.provider)
