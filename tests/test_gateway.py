"""Tests for the OpenAI-compatible generation gateway."""
from types import SimpleNamespace

import httpx
import openai
import pytest

from novel_rag.exceptions import GatewayError
from novel_rag.generation.gateway import OpenAIGateway, _normalise_base_url
from novel_rag.schemas import ModelConfig


class _FakeCompletions:
    def __init__(self, content="生成的内容", error=None, choices=True):
        self.content = content
        self.error = error
        self.choices = choices
        self.requests: list[dict] = []

    async def create(self, **kwargs):
        self.requests.append(kwargs)
        if self.error is not None:
            raise self.error
        choices = [SimpleNamespace(message=SimpleNamespace(content=self.content))] if self.choices else []
        return SimpleNamespace(
            choices=choices,
            usage=SimpleNamespace(prompt_tokens=10, completion_tokens=20),
        )


class _ClientFactory:
    """Stands in for AsyncOpenAI; records constructor kwargs."""

    def __init__(self, completions: _FakeCompletions) -> None:
        self.completions = completions
        self.created: list[dict] = []

    def __call__(self, **kwargs):
        self.created.append(kwargs)
        return SimpleNamespace(chat=SimpleNamespace(completions=self.completions))


def _status_error(status: int, message: str) -> openai.APIStatusError:
    request = httpx.Request("POST", "https://api.example.com/v1/chat/completions")
    response = httpx.Response(status, request=request)
    return openai.APIStatusError(message, response=response, body=None)


class TestOpenAIGateway:

    async def test_builtin_model_without_user_config(self):
        completions = _FakeCompletions()
        factory = _ClientFactory(completions)
        gateway = OpenAIGateway(model="gpt-4o-mini", client_factory=factory)

        text = await gateway.complete("写一章")

        assert text == "生成的内容"
        assert factory.created == [{}]
        request = completions.requests[0]
        assert request["model"] == "gpt-4o-mini"
        assert request["messages"] == [{"role": "user", "content": "写一章"}]
        assert request["temperature"] == 0.7

    async def test_builtin_client_is_reused(self):
        factory = _ClientFactory(_FakeCompletions())
        gateway = OpenAIGateway(client_factory=factory)

        await gateway.complete("一")
        await gateway.complete("二", ModelConfig(api_key="sk-only-key"))

        assert factory.created == [{}]

    async def test_user_endpoint_when_key_and_url_given(self):
        completions = _FakeCompletions()
        factory = _ClientFactory(completions)
        gateway = OpenAIGateway(user_default_model="gpt-4", client_factory=factory)

        await gateway.complete("写一章", ModelConfig(api_key="sk-user", base_url="https://llm.example.com"))

        assert factory.created == [{"api_key": "sk-user", "base_url": "https://llm.example.com/v1"}]
        assert completions.requests[0]["model"] == "gpt-4"

    async def test_user_model_override(self):
        completions = _FakeCompletions()
        gateway = OpenAIGateway(client_factory=_ClientFactory(completions))

        await gateway.complete(
            "写", ModelConfig(api_key="k", base_url="https://x.example/v1", model="deepseek-chat")
        )

        assert completions.requests[0]["model"] == "deepseek-chat"

    async def test_status_error_becomes_gateway_error(self):
        completions = _FakeCompletions(error=_status_error(429, "Too Many Requests"))
        gateway = OpenAIGateway(client_factory=_ClientFactory(completions))

        with pytest.raises(GatewayError) as exc_info:
            await gateway.complete("写")

        assert exc_info.value.status_code == 429
        assert "Too Many Requests" in exc_info.value.message

    async def test_connection_error_becomes_gateway_error(self):
        request = httpx.Request("POST", "https://api.example.com/v1/chat/completions")
        completions = _FakeCompletions(error=openai.APIConnectionError(request=request))
        gateway = OpenAIGateway(client_factory=_ClientFactory(completions))

        with pytest.raises(GatewayError) as exc_info:
            await gateway.complete("写")

        assert exc_info.value.status_code is None

    async def test_empty_choices_raise(self):
        gateway = OpenAIGateway(client_factory=_ClientFactory(_FakeCompletions(choices=False)))
        with pytest.raises(GatewayError):
            await gateway.complete("写")

    async def test_none_content_becomes_empty_string(self):
        gateway = OpenAIGateway(client_factory=_ClientFactory(_FakeCompletions(content=None)))
        assert await gateway.complete("写") == ""


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("https://api.example.com", "https://api.example.com/v1"),
        ("https://api.example.com/", "https://api.example.com/v1"),
        ("https://api.example.com/v1", "https://api.example.com/v1"),
        ("https://api.example.com/v1/", "https://api.example.com/v1"),
    ],
)
def test_normalise_base_url(raw, expected):
    assert _normalise_base_url(raw) == expected
