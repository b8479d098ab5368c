import asyncio
import json

import httpx
import pytest

from draftflow.domain.errors import GenerationServiceError
from draftflow.infrastructure.llm.deepseek import DeepSeekCompletionService


def service_for(handler, api_key="sk-test") -> DeepSeekCompletionService:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="https://api.deepseek.com")
    return DeepSeekCompletionService(api_key=api_key, client=http)


def test_complete_posts_chat_completion():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["auth"] = request.headers["authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"choices": [{"message": {"content": "1. 甲"}}]})

    text = asyncio.run(service_for(handler).complete("写三个选题", max_tokens=300))

    assert text == "1. 甲"
    assert seen["path"] == "/v1/chat/completions"
    assert seen["auth"] == "Bearer sk-test"
    assert seen["body"] == {
        "model": "deepseek-chat",
        "max_tokens": 300,
        "messages": [{"role": "user", "content": "写三个选题"}],
    }


def test_missing_api_key_fails_without_calling_out():
    def handler(request):
        raise AssertionError("no request expected")

    with pytest.raises(GenerationServiceError):
        asyncio.run(service_for(handler, api_key="").complete("x"))


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, text="upstream down"),
        httpx.Response(401, json={"error": {"message": "invalid key"}}),
        httpx.Response(200, json={"error": "quota exceeded"}),
    ],
)
def test_error_responses_raise(response):
    with pytest.raises(GenerationServiceError):
        asyncio.run(service_for(lambda request: response).complete("x"))


def test_transport_errors_raise():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(GenerationServiceError):
        asyncio.run(service_for(handler).complete("x"))


def test_unexpected_shape_returns_empty_text():
    service = service_for(lambda request: httpx.Response(200, json={"choices": []}))

    assert asyncio.run(service.complete("x")) == ""
