"""Responders: async HTTP clients for the Gemini, Groq and Ollama APIs."""

import asyncio
from typing import Awaitable, Callable, Iterable, Protocol, TypeVar

import aiohttp

from agent.config import HttpSettings, ProviderConfig, detect_provider
from agent.exceptions import ProviderConnectionError, ProviderResponseError, ResponderError


T = TypeVar("T")

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
GROQ_CHAT_URL = "https://api.groq.com/openai/v1/chat/completions"


class Responder(Protocol):
    """Anything that turns a system context and a user message into raw model text."""

    async def ask(self, system_context: str, user_message: str) -> str:
        ...


class ProviderClient:
    """Shared HTTP plumbing: timeouts, retries and error mapping."""

    provider_name = "provider"

    def __init__(self, settings: HttpSettings | None = None):
        self.settings = settings or HttpSettings()

    async def ask(self, system_context: str, user_message: str) -> str:
        raise NotImplementedError

    async def _post_json(self, url: str, payload: dict, headers: dict | None = None) -> dict:
        """POST a JSON payload and return the decoded JSON body, retrying transport errors."""
        async def _request() -> dict:
            async with aiohttp.ClientSession(timeout=self._timeout()) as session:
                async with session.post(url, json=payload, headers=headers) as resp:
                    body = await resp.text()
                    if resp.status != 200:
                        raise ProviderResponseError(
                            f"{self.provider_name} error: HTTP {resp.status}: {body}"
                        )
                    try:
                        return await resp.json(content_type=None)
                    except ValueError as e:
                        raise ProviderResponseError(
                            f"{self.provider_name} parse error: {e}"
                        ) from e

        return await self._with_retry(self.provider_name, _request)

    def _timeout(self) -> aiohttp.ClientTimeout:
        """Build a client timeout configuration from settings."""
        return aiohttp.ClientTimeout(
            total=self.settings.total_timeout,
            connect=self.settings.connect_timeout,
            sock_connect=self.settings.connect_timeout,
            sock_read=self.settings.read_timeout,
        )

    async def _with_retry(self, operation: str, func: Callable[[], Awaitable[T]]) -> T:
        """Run an async operation with exponential backoff retries."""
        delay = 1.0
        last_error: Exception | None = None
        for attempt in range(1, self.settings.max_retries + 1):
            try:
                return await func()
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                last_error = e
                if attempt >= self.settings.max_retries:
                    break
                await asyncio.sleep(delay)
                delay *= 2

        raise ProviderConnectionError(self._connection_error_message(operation, last_error))

    def _connection_error_message(self, operation: str, error: Exception | None) -> str:
        """Create a user-friendly connection error message."""
        details = f"{error}" if error else "unknown error"
        return (
            f"Cannot reach {self.provider_name} during {operation} "
            f"(after {self.settings.max_retries} attempt(s)): {details}"
        )

    def _raise_payload_error(self, data: dict) -> None:
        """Surface an {"error": {"message": ...}} body as a ProviderResponseError."""
        error = data.get("error") if isinstance(data, dict) else None
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            raise ProviderResponseError(f"{self.provider_name} error: {error['message']}")


class GeminiClient(ProviderClient):
    """Google Gemini generateContent client."""

    provider_name = "Gemini"

    def __init__(
        self,
        model: str,
        api_key: str | None,
        temperature: float = 0.7,
        settings: HttpSettings | None = None,
        base_url: str = GEMINI_BASE_URL,
    ):
        super().__init__(settings)
        self.model = model
        self.api_key = api_key
        self.temperature = temperature
        self.base_url = base_url.rstrip("/")

    async def ask(self, system_context: str, user_message: str) -> str:
        if not self.api_key:
            raise ResponderError("GEMINI_API_KEY not set")

        url = f"{self.base_url}/models/{self.model}:generateContent?key={self.api_key}"
        payload = {
            "system_instruction": {"parts": [{"text": system_context}]},
            "contents": [{"parts": [{"text": user_message}]}],
            "generationConfig": {"temperature": self.temperature},
        }
        data = await self._post_json(url, payload)
        return self.extract_text(data)

    def extract_text(self, data: dict) -> str:
        self._raise_payload_error(data)
        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            text = None
        if not isinstance(text, str):
            raise ProviderResponseError(f"No response from Gemini: {data}")
        return text


class GroqClient(ProviderClient):
    """Groq OpenAI-compatible chat completions client."""

    provider_name = "Groq"

    def __init__(
        self,
        model: str,
        api_key: str | None,
        temperature: float = 0.7,
        settings: HttpSettings | None = None,
        url: str = GROQ_CHAT_URL,
    ):
        super().__init__(settings)
        self.model = model
        self.api_key = api_key
        self.temperature = temperature
        self.url = url

    async def ask(self, system_context: str, user_message: str) -> str:
        if not self.api_key:
            raise ResponderError("GROQ_API_KEY not set")

        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_context},
                {"role": "user", "content": user_message},
            ],
            "temperature": self.temperature,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}
        data = await self._post_json(self.url, payload, headers=headers)
        return self.extract_text(data)

    def extract_text(self, data: dict) -> str:
        self._raise_payload_error(data)
        try:
            text = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            text = None
        if not isinstance(text, str):
            raise ProviderResponseError(f"No response from Groq: {data}")
        return text


class OllamaClient(ProviderClient):
    """Direct async HTTP client for the Ollama API."""

    provider_name = "Ollama"

    def __init__(
        self,
        model: str = "llama3.2",
        base_url: str = "http://localhost:11434",
        settings: HttpSettings | None = None,
    ):
        super().__init__(settings)
        self.model = model
        self.base_url = base_url.rstrip("/")

    async def ask(self, system_context: str, user_message: str) -> str:
        """One-shot generation. POST /api/generate"""
        payload = {
            "model": self.model,
            "prompt": user_message,
            "system": system_context,
            "stream": False,
        }
        data = await self._post_json(f"{self.base_url}/api/generate", payload)
        return self.extract_text(data)

    def extract_text(self, data: dict) -> str:
        text = data.get("response") if isinstance(data, dict) else None
        if not isinstance(text, str):
            raise ProviderResponseError(f"Invalid Ollama response format: {data}")
        if not text:
            raise ProviderResponseError("Ollama returned empty response")
        return text

    async def health_check(self) -> bool:
        """Check if Ollama is running. GET /api/tags"""
        try:
            async def _request() -> bool:
                async with aiohttp.ClientSession(timeout=self._timeout()) as session:
                    async with session.get(f"{self.base_url}/api/tags") as resp:
                        return resp.status == 200

            return await self._with_retry("health check", _request)
        except ProviderConnectionError:
            return False

    async def list_models(self) -> list[dict]:
        """List available local models. GET /api/tags"""
        async def _request() -> list[dict]:
            async with aiohttp.ClientSession(timeout=self._timeout()) as session:
                async with session.get(f"{self.base_url}/api/tags") as resp:
                    if resp.status != 200:
                        body = await resp.text()
                        raise ProviderResponseError(
                            f"Failed to list models (HTTP {resp.status}): {body}"
                        )
                    data = await resp.json()
                    return data.get("models", [])

        return await self._with_retry("list models", _request)

    @staticmethod
    def filter_missing_models(
        required_models: Iterable[str],
        available_models: Iterable[str],
    ) -> list[str]:
        """Filter required models against a list of available model names."""
        available = [m for m in available_models if m]
        missing: list[str] = []
        for required in required_models:
            if not required:
                continue
            if not OllamaClient._model_available(required, available):
                missing.append(required)
        return missing

    @staticmethod
    def _model_available(required: str, available: Iterable[str]) -> bool:
        """Check whether a model name is available, accounting for tags."""
        if required in available:
            return True
        tag_prefix = f"{required}:"
        return any(name.startswith(tag_prefix) for name in available)


class LLMResponder:
    """Routes requests to the configured provider; the model can be switched at runtime."""

    def __init__(self, config: ProviderConfig, settings: HttpSettings | None = None):
        self.config = config
        self.settings = settings or HttpSettings()

    @property
    def model(self) -> str:
        return self.config.model

    @property
    def provider(self) -> str:
        return self.config.provider

    def set_model(self, model: str) -> None:
        """Switch model and pick the provider that serves it."""
        self.config.model = model
        self.config.provider = detect_provider(model)

    def client(self) -> ProviderClient:
        provider = self.config.provider
        if provider == "gemini":
            return GeminiClient(
                self.config.model,
                self.config.gemini_api_key,
                temperature=self.config.temperature,
                settings=self.settings,
            )
        if provider == "groq":
            return GroqClient(
                self.config.model,
                self.config.groq_api_key,
                temperature=self.config.temperature,
                settings=self.settings,
            )
        if provider == "ollama":
            return OllamaClient(
                model=self.config.model,
                base_url=self.config.ollama_url,
                settings=self.settings,
            )
        raise ResponderError("Unknown provider")

    async def ask(self, system_context: str, user_message: str) -> str:
        return await self.client().ask(system_context, user_message)
