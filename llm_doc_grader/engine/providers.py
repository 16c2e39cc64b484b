from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import anthropic
import httpx
import openai
from langchain_anthropic import ChatAnthropic
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage
from langchain_google_genai import ChatGoogleGenerativeAI
from langchain_openai import ChatOpenAI

from ..config import GraderConfig, ProviderSettings
from ..errors import ConfigError, ProviderError, UnknownProviderError
from ..models import Provider

logger = logging.getLogger(__name__)

_TIMEOUT_ERRORS: Tuple[type, ...] = (
    asyncio.TimeoutError,
    TimeoutError,
    openai.APITimeoutError,
    anthropic.APITimeoutError,
    httpx.TimeoutException,
)
_STATUS_ERRORS: Tuple[type, ...] = (
    openai.APIStatusError,
    anthropic.APIStatusError,
    httpx.HTTPStatusError,
)


class ProviderClient(ABC):
    """Capability interface: one external language-model service."""

    @abstractmethod
    async def invoke(self, prompt: str) -> str:
        """Send one prompt and return the completion text."""


def _content_to_text(content: Any) -> str:
    # Some chat models return a list of content parts instead of a string
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts: List[str] = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type", "text") == "text":
                parts.append(str(part.get("text", "")))
        return "".join(parts)
    return str(content)


class LangChainProviderClient(ProviderClient):
    """
    Adapts a LangChain chat model to the ProviderClient contract.

    The prompt is sent as a role-tagged user message, preceded by an optional
    system message.
    """

    def __init__(self, llm: BaseChatModel, system_prompt: Optional[str] = None, label: str = "") -> None:
        self._llm = llm
        self._system_prompt = system_prompt
        self.label = label

    def _messages(self, prompt: str) -> List[BaseMessage]:
        messages: List[BaseMessage] = []
        if self._system_prompt:
            messages.append(SystemMessage(content=self._system_prompt))
        messages.append(HumanMessage(content=prompt))
        return messages

    async def invoke(self, prompt: str) -> str:
        response = await self._llm.ainvoke(self._messages(prompt))
        return _content_to_text(getattr(response, "content", response))


def build_chat_model(settings: ProviderSettings) -> BaseChatModel:
    """
    Returns a LangChain chat model for the given provider settings.

    DeepSeek and Perplexity expose OpenAI-compatible endpoints, so they are
    served by ChatOpenAI with a base_url. Retries are disabled: a failed call
    fails the evaluation.

    Raises:
        ConfigError: if the API key is missing or the provider is unknown.
    """
    provider = Provider.parse(settings.name)
    api_key = settings.api_key()

    if provider in (Provider.OPENAI, Provider.DEEPSEEK, Provider.PERPLEXITY):
        kwargs: Dict[str, Any] = {
            "model": settings.model,
            "temperature": settings.temperature,
            "api_key": api_key,
            "max_retries": 0,
        }
        if settings.max_tokens:
            kwargs["max_tokens"] = settings.max_tokens
        if settings.base_url:
            kwargs["base_url"] = settings.base_url
        return ChatOpenAI(**kwargs)
    if provider is Provider.ANTHROPIC:
        return ChatAnthropic(
            model=settings.model,
            temperature=settings.temperature,
            max_tokens=settings.max_tokens or 4000,
            api_key=api_key,
            max_retries=0,
        )
    if provider is Provider.GOOGLE:
        kwargs = {
            "model": settings.model,
            "temperature": settings.temperature,
            "google_api_key": api_key,
            "max_retries": 0,
        }
        if settings.max_tokens:
            kwargs["max_output_tokens"] = settings.max_tokens
        return ChatGoogleGenerativeAI(**kwargs)
    raise ConfigError(f"No chat model mapping for provider: {provider.value}")


def classify_failure(exc: BaseException) -> Tuple[str, Optional[int]]:
    """Map a client exception to (kind, status_code) of the ProviderError taxonomy."""
    if isinstance(exc, _TIMEOUT_ERRORS):
        return "timeout", None
    status = getattr(exc, "status_code", None)
    if status is None:
        response = getattr(exc, "response", None)
        status = getattr(response, "status_code", None)
    if isinstance(exc, _STATUS_ERRORS) or isinstance(status, int):
        return "http", status if isinstance(status, int) else None
    return "transport", None


class ProviderGateway:
    """
    Uniform call contract over the configured provider clients.

    invoke(provider_id, prompt) returns the completion text or raises
    ProviderError. Clients are injected; the gateway holds no other state.
    """

    def __init__(
        self,
        clients: Mapping[Any, ProviderClient],
        timeout_seconds: Optional[float] = 120.0,
        unavailable: Optional[Mapping[Any, str]] = None,
    ) -> None:
        self._clients: Dict[Provider, ProviderClient] = {Provider.parse(k): v for k, v in clients.items()}
        self._unavailable: Dict[Provider, str] = {Provider.parse(k): v for k, v in (unavailable or {}).items()}
        self.timeout_seconds = timeout_seconds

    @property
    def providers(self) -> List[Provider]:
        return list(self._clients)

    def supports(self, provider_id: Any) -> bool:
        try:
            return Provider.parse(provider_id) in self._clients
        except UnknownProviderError:
            return False

    def ensure_available(self, provider_id: Any) -> Provider:
        """Validate the provider id without making a call."""
        provider = Provider.parse(provider_id)
        if provider in self._clients:
            return provider
        if provider in self._unavailable:
            raise ConfigError(f"Provider '{provider.value}' is unavailable: {self._unavailable[provider]}")
        raise UnknownProviderError(provider.value)

    async def invoke(self, provider_id: Any, prompt: str) -> str:
        provider = self.ensure_available(provider_id)
        client = self._clients[provider]
        logger.debug(f"Sending prompt to {provider.value} ({len(prompt)} chars):\n{prompt[:500]}...")
        try:
            if self.timeout_seconds:
                text = await asyncio.wait_for(client.invoke(prompt), timeout=self.timeout_seconds)
            else:
                text = await client.invoke(prompt)
        except ProviderError:
            raise
        except asyncio.CancelledError:
            raise
        except Exception as e:
            kind, status = classify_failure(e)
            message = str(e) or type(e).__name__
            if kind == "timeout" and self.timeout_seconds:
                message = f"no response within {self.timeout_seconds}s"
            logger.error(f"{provider.value} call failed ({kind}): {message}")
            raise ProviderError(kind, provider.value, message, status_code=status) from e

        text = text or ""
        logger.debug(f"Received response from {provider.value} ({len(text)} chars):\n{text[:500]}...")
        return text


def build_gateway(
    config: GraderConfig,
    only: Optional[Iterable[Any]] = None,
) -> ProviderGateway:
    """
    Construct every configured provider client once.

    Providers whose API key is missing are recorded as unavailable rather than
    failing the whole build; invoking one raises ConfigError before any call.
    """
    wanted = {Provider.parse(p) for p in only} if only is not None else None
    clients: Dict[Provider, ProviderClient] = {}
    unavailable: Dict[Provider, str] = {}
    for name, settings in config.providers.items():
        provider = Provider.parse(name)
        if wanted is not None and provider not in wanted:
            continue
        try:
            llm = build_chat_model(settings)
        except ConfigError as e:
            logger.warning(f"Provider {provider.value} not available: {e}")
            unavailable[provider] = str(e)
            continue
        clients[provider] = LangChainProviderClient(llm, system_prompt=config.system_prompt, label=settings.model)
        logger.info(f"Initialized {provider.value} client with model: {settings.model}")
    return ProviderGateway(clients, timeout_seconds=config.timeout_seconds, unavailable=unavailable)
