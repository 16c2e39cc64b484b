import asyncio

import httpx
import pytest
from langchain_core.language_models.fake_chat_models import FakeListChatModel

from conftest import FakeProviderClient, make_gateway
from llm_doc_grader.config import API_KEY_ENV, GraderConfig
from llm_doc_grader.engine.providers import (
    LangChainProviderClient,
    ProviderClient,
    _content_to_text,
    build_gateway,
    classify_failure,
)
from llm_doc_grader.errors import ConfigError, ProviderError, UnknownProviderError
from llm_doc_grader.models import Provider


class SlowClient(ProviderClient):
    async def invoke(self, prompt: str) -> str:
        await asyncio.sleep(1)
        return "too late"


class StatusError(Exception):
    def __init__(self, status_code):
        super().__init__(f"status {status_code}")
        self.status_code = status_code


def test_gateway_returns_completion_text():
    gateway = make_gateway(FakeProviderClient(["80/100"]))
    assert asyncio.run(gateway.invoke("openai", "Grade this.")) == "80/100"


def test_empty_completion_is_empty_string():
    gateway = make_gateway(FakeProviderClient([""]))
    assert asyncio.run(gateway.invoke("openai", "Grade this.")) == ""


def test_timeout_maps_to_timeout_kind():
    gateway = make_gateway(SlowClient(), timeout_seconds=0.01)

    with pytest.raises(ProviderError) as exc_info:
        asyncio.run(gateway.invoke("openai", "Grade this."))

    assert exc_info.value.kind == "timeout"
    assert exc_info.value.provider == "openai"


def test_unknown_provider_rejected_without_call():
    client = FakeProviderClient(["80/100"])
    gateway = make_gateway(client)

    with pytest.raises(UnknownProviderError):
        asyncio.run(gateway.invoke("bogus", "Grade this."))
    with pytest.raises(UnknownProviderError):
        asyncio.run(gateway.invoke("deepseek", "Grade this."))
    assert client.prompts == []


def test_status_errors_map_to_http_kind():
    client = FakeProviderClient([StatusError(429)])
    gateway = make_gateway(client)

    with pytest.raises(ProviderError) as exc_info:
        asyncio.run(gateway.invoke("openai", "Grade this."))

    assert exc_info.value.kind == "http"
    assert exc_info.value.status_code == 429


@pytest.mark.parametrize(
    "exc, expected",
    [
        (httpx.ConnectError("refused"), ("transport", None)),
        (httpx.ReadTimeout("slow"), ("timeout", None)),
        (asyncio.TimeoutError(), ("timeout", None)),
        (StatusError(503), ("http", 503)),
        (ValueError("bad payload"), ("transport", None)),
    ],
)
def test_classify_failure(exc, expected):
    assert classify_failure(exc) == expected


def test_classify_httpx_status_error_reads_response_status():
    request = httpx.Request("POST", "https://api.example.com/v1/chat")
    response = httpx.Response(502, request=request)
    exc = httpx.HTTPStatusError("bad gateway", request=request, response=response)

    assert classify_failure(exc) == ("http", 502)


def test_provider_error_rejects_unknown_kind():
    with pytest.raises(ValueError):
        ProviderError("dns", "openai", "nope")


def test_content_parts_are_flattened():
    parts = [{"type": "text", "text": "Score "}, "85/100", {"type": "image_url", "image_url": "x"}]
    assert _content_to_text(parts) == "Score 85/100"
    assert _content_to_text(None) == ""


def test_langchain_client_returns_message_content():
    llm = FakeListChatModel(responses=["Well argued. 88/100"])
    client = LangChainProviderClient(llm, system_prompt="You are a strict grader.")

    assert asyncio.run(client.invoke("Grade this.")) == "Well argued. 88/100"
    messages = client._messages("Grade this.")
    assert [m.type for m in messages] == ["system", "human"]


def test_build_gateway_marks_providers_without_keys_unavailable(monkeypatch):
    for env_name in API_KEY_ENV.values():
        monkeypatch.delenv(env_name, raising=False)
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")

    gateway = build_gateway(GraderConfig())

    assert gateway.providers == [Provider.OPENAI]
    with pytest.raises(ConfigError):
        gateway.ensure_available("anthropic")


def test_build_gateway_can_limit_providers(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setenv("DEEPSEEK_API_KEY", "sk-test")

    gateway = build_gateway(GraderConfig(), only=["deepseek"])

    assert gateway.providers == [Provider.DEEPSEEK]
    assert not gateway.supports("openai")
