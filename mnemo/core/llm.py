"""
Mnemo Multi-Provider LLM Adapter

Unified completion interface for the language models used to read
transcripts:
- OpenAI (gpt-4o-mini by default)
- Anthropic
- Local models (via OpenAI-compatible API)
- Mock provider (for testing)
"""

from __future__ import annotations

import os
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

import httpx
import structlog
from tenacity import retry, stop_after_attempt, wait_exponential

logger = structlog.get_logger(__name__)


class LLMProvider(str, Enum):
    """Supported LLM providers."""
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    LOCAL = "local"
    MOCK = "mock"


@dataclass
class Message:
    """A chat message sent to a model."""
    role: str  # "system", "user", "assistant"
    content: str

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(role="system", content=content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role="user", content=content)


@dataclass
class LLMResponse:
    """Response from an LLM call."""
    content: str
    model: str
    provider: LLMProvider
    finish_reason: str
    usage: dict[str, int] = field(default_factory=dict)
    latency_ms: float = 0.0
    raw_response: Optional[dict] = None


@dataclass
class LLMConfig:
    """Configuration for an LLM provider."""
    provider: LLMProvider
    model: str
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    max_tokens: int = 1024
    temperature: float = 0.3
    timeout: float = 60.0
    max_retries: int = 3


class BaseLLMProvider(ABC):
    """Abstract base class for LLM providers."""

    def __init__(self, config: LLMConfig):
        self.config = config
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize the provider."""
        pass

    async def close(self) -> None:
        """Close the client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @abstractmethod
    async def complete(
        self,
        messages: list[Message],
        **kwargs,
    ) -> LLMResponse:
        """Generate a completion."""
        pass


class OpenAIProvider(BaseLLMProvider):
    """OpenAI chat completions provider."""

    async def initialize(self) -> None:
        """Initialize the OpenAI client."""
        api_key = self.config.api_key or os.environ.get("OPENAI_API_KEY")
        if not api_key and self.config.provider != LLMProvider.LOCAL:
            raise ValueError("OpenAI API key not provided")

        base_url = self.config.base_url or "https://api.openai.com/v1"
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"

        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=self.config.timeout,
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
    )
    async def complete(
        self,
        messages: list[Message],
        **kwargs,
    ) -> LLMResponse:
        """Generate a completion using OpenAI."""
        if not self._client:
            raise RuntimeError("Provider not initialized")

        start_time = time.monotonic()

        request_data = {
            "model": self.config.model,
            "messages": [
                {"role": msg.role, "content": msg.content}
                for msg in messages
            ],
            "max_tokens": kwargs.get("max_tokens", self.config.max_tokens),
            "temperature": kwargs.get("temperature", self.config.temperature),
        }

        response = await self._client.post("/chat/completions", json=request_data)
        response.raise_for_status()
        data = response.json()

        latency_ms = (time.monotonic() - start_time) * 1000

        choice = data["choices"][0]
        message = choice["message"]

        return LLMResponse(
            content=message.get("content") or "",
            model=data.get("model", self.config.model),
            provider=self.config.provider,
            finish_reason=choice.get("finish_reason") or "stop",
            usage=data.get("usage", {}),
            latency_ms=latency_ms,
            raw_response=data,
        )


class AnthropicProvider(BaseLLMProvider):
    """Anthropic messages API provider."""

    async def initialize(self) -> None:
        """Initialize the Anthropic client."""
        api_key = self.config.api_key or os.environ.get("ANTHROPIC_API_KEY")
        if not api_key:
            raise ValueError("Anthropic API key not provided")

        base_url = self.config.base_url or "https://api.anthropic.com"

        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={
                "x-api-key": api_key,
                "anthropic-version": "2023-06-01",
                "Content-Type": "application/json",
            },
            timeout=self.config.timeout,
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
    )
    async def complete(
        self,
        messages: list[Message],
        **kwargs,
    ) -> LLMResponse:
        """Generate a completion using Anthropic."""
        if not self._client:
            raise RuntimeError("Provider not initialized")

        start_time = time.monotonic()

        # System prompt travels outside the message list
        system_message = None
        formatted_messages = []

        for msg in messages:
            if msg.role == "system":
                system_message = msg.content
            else:
                formatted_messages.append({
                    "role": msg.role,
                    "content": msg.content,
                })

        request_data = {
            "model": self.config.model,
            "messages": formatted_messages,
            "max_tokens": kwargs.get("max_tokens", self.config.max_tokens),
            "temperature": kwargs.get("temperature", self.config.temperature),
        }

        if system_message:
            request_data["system"] = system_message

        response = await self._client.post("/v1/messages", json=request_data)
        response.raise_for_status()
        data = response.json()

        latency_ms = (time.monotonic() - start_time) * 1000

        content = "".join(
            block.get("text", "")
            for block in data.get("content", [])
            if block.get("type") == "text"
        )

        return LLMResponse(
            content=content,
            model=data.get("model", self.config.model),
            provider=LLMProvider.ANTHROPIC,
            finish_reason=data.get("stop_reason") or "stop",
            usage={
                "prompt_tokens": data.get("usage", {}).get("input_tokens", 0),
                "completion_tokens": data.get("usage", {}).get("output_tokens", 0),
            },
            latency_ms=latency_ms,
            raw_response=data,
        )


class MockProvider(BaseLLMProvider):
    """Mock provider for testing."""

    def __init__(self, config: LLMConfig):
        super().__init__(config)
        self._responses: list[str] = []
        self._response_index = 0
        self._error: Optional[Exception] = None
        self.calls: list[list[Message]] = []

    def set_responses(self, responses: list[str]) -> None:
        """Set mock responses, returned in rotation."""
        self._responses = responses
        self._response_index = 0

    def set_error(self, error: Optional[Exception]) -> None:
        """Make every completion raise ``error`` (None clears it)."""
        self._error = error

    async def initialize(self) -> None:
        """Initialize the mock provider."""
        pass

    async def complete(
        self,
        messages: list[Message],
        **kwargs,
    ) -> LLMResponse:
        """Generate a mock completion."""
        self.calls.append(list(messages))

        if self._error is not None:
            raise self._error

        if self._responses:
            content = self._responses[self._response_index % len(self._responses)]
            self._response_index += 1
        else:
            content = "[]"

        return LLMResponse(
            content=content,
            model=self.config.model,
            provider=LLMProvider.MOCK,
            finish_reason="stop",
            usage={"prompt_tokens": 10, "completion_tokens": 20},
            latency_ms=10.0,
        )


class LLMAdapter:
    """
    Unified LLM Adapter for Mnemo.

    Provides a consistent interface across multiple LLM providers
    with automatic fallback, retry logic, and call statistics.
    """

    def __init__(self, config: LLMConfig):
        self.config = config
        self._provider: Optional[BaseLLMProvider] = None
        self._fallback_providers: list[BaseLLMProvider] = []
        self._call_count = 0
        self._total_latency_ms = 0.0
        self._error_count = 0

    async def __aenter__(self):
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    @property
    def provider(self) -> Optional[BaseLLMProvider]:
        """The primary provider, once initialized."""
        return self._provider

    async def initialize(self) -> None:
        """Initialize the primary and fallback providers."""
        self._provider = self._create_provider(self.config)
        await self._provider.initialize()
        for fallback in self._fallback_providers:
            await fallback.initialize()
        logger.info(
            "LLM adapter initialized",
            provider=self.config.provider.value,
            model=self.config.model,
            fallbacks=len(self._fallback_providers),
        )

    async def close(self) -> None:
        """Close all providers."""
        if self._provider:
            await self._provider.close()
        for fallback in self._fallback_providers:
            await fallback.close()

    def _create_provider(self, config: LLMConfig) -> BaseLLMProvider:
        """Create a provider instance based on config."""
        providers = {
            LLMProvider.OPENAI: OpenAIProvider,
            LLMProvider.ANTHROPIC: AnthropicProvider,
            LLMProvider.LOCAL: OpenAIProvider,  # Local uses OpenAI-compatible API
            LLMProvider.MOCK: MockProvider,
        }

        provider_class = providers.get(config.provider)
        if not provider_class:
            raise ValueError(f"Unknown provider: {config.provider}")

        return provider_class(config)

    def add_fallback(self, config: LLMConfig) -> None:
        """Add a fallback provider, tried in order after the primary."""
        provider = self._create_provider(config)
        self._fallback_providers.append(provider)

    async def complete(
        self,
        messages: list[Message],
        **kwargs,
    ) -> LLMResponse:
        """
        Generate a completion with automatic fallback.

        Args:
            messages: List of messages in the conversation
            **kwargs: Per-call overrides (max_tokens, temperature)

        Returns:
            LLMResponse with the completion

        Raises:
            RuntimeError: If the adapter is not initialized or all providers fail
        """
        if not self._provider:
            raise RuntimeError("LLM adapter not initialized")

        providers = [self._provider] + self._fallback_providers
        last_error = None

        for provider in providers:
            try:
                response = await provider.complete(messages, **kwargs)
                self._call_count += 1
                self._total_latency_ms += response.latency_ms
                return response
            except Exception as e:
                last_error = e
                self._error_count += 1
                logger.warning(
                    "Provider failed, trying fallback",
                    provider=provider.config.provider.value,
                    error=str(e),
                )

        raise RuntimeError(f"All LLM providers failed: {last_error}")

    def get_stats(self) -> dict[str, Any]:
        """Get adapter statistics."""
        return {
            "call_count": self._call_count,
            "error_count": self._error_count,
            "total_latency_ms": self._total_latency_ms,
            "avg_latency_ms": (
                self._total_latency_ms / self._call_count
                if self._call_count > 0
                else 0
            ),
        }

    def reset_stats(self) -> None:
        """Reset statistics."""
        self._call_count = 0
        self._total_latency_ms = 0.0
        self._error_count = 0


DEFAULT_MODELS = {
    LLMProvider.OPENAI: "gpt-4o-mini",
    LLMProvider.ANTHROPIC: "claude-3-5-haiku-latest",
    LLMProvider.LOCAL: "local-model",
    LLMProvider.MOCK: "mock-model",
}


async def create_llm_adapter(
    provider: Union[str, LLMProvider] = LLMProvider.OPENAI,
    model: Optional[str] = None,
    api_key: Optional[str] = None,
    **kwargs,
) -> LLMAdapter:
    """
    Create and initialize an LLM adapter.

    Args:
        provider: LLM provider to use
        model: Model name (provider default when omitted)
        api_key: API key
        **kwargs: Additional LLMConfig fields

    Returns:
        Initialized LLMAdapter
    """
    if isinstance(provider, str):
        provider = LLMProvider(provider)

    config = LLMConfig(
        provider=provider,
        model=model or DEFAULT_MODELS[provider],
        api_key=api_key,
        **kwargs,
    )

    adapter = LLMAdapter(config)
    await adapter.initialize()
    return adapter
