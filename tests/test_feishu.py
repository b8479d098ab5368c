import asyncio
import json

import httpx
import pytest

from draftflow.domain.errors import MessagingError, PersistenceError
from draftflow.domain.views.cards import ignored_view
from draftflow.infrastructure.feishu.client import FeishuAPIError, FeishuClient
from draftflow.infrastructure.feishu.documents import FeishuDocumentSink, paragraph_blocks
from draftflow.infrastructure.feishu.messenger import FeishuMessenger


class FakeFeishu:
    """In-memory Feishu Open API answering through httpx.MockTransport"""

    def __init__(self, fail_paths=()):
        self.requests = []
        self.fail_paths = fail_paths
        self.token_calls = 0

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        self.requests.append((request.method, request.url.path, dict(request.url.params), body, request.headers.get("authorization")))
        path = request.url.path

        if path in self.fail_paths:
            return httpx.Response(200, json={"code": 99991663, "msg": "permission denied"})
        if path == "/open-apis/auth/v3/tenant_access_token/internal":
            self.token_calls += 1
            return httpx.Response(200, json={"code": 0, "tenant_access_token": "t-123", "expire": 7200})
        if path == "/open-apis/im/v1/messages":
            return httpx.Response(200, json={"code": 0, "data": {"message_id": "om_1"}})
        if path.startswith("/open-apis/im/v1/messages/"):
            return httpx.Response(200, json={"code": 0, "data": {}})
        if path == "/open-apis/docx/v1/documents":
            return httpx.Response(200, json={"code": 0, "data": {"document": {"document_id": "doxcn42"}}})
        if path.endswith("/children"):
            return httpx.Response(200, json={"code": 0, "data": {}})
        return httpx.Response(404, json={"code": 404, "msg": "not found"})

    def client(self) -> FeishuClient:
        http = httpx.AsyncClient(transport=httpx.MockTransport(self.handler), base_url="https://open.feishu.cn")
        return FeishuClient(app_id="cli_a", app_secret="secret", client=http)

    def calls_to(self, path):
        return [r for r in self.requests if r[1] == path]


def test_tenant_token_is_cached():
    feishu = FakeFeishu()
    client = feishu.client()

    async def scenario():
        await client.request("POST", "/open-apis/im/v1/messages", json={})
        await client.request("POST", "/open-apis/im/v1/messages", json={})

    asyncio.run(scenario())

    assert feishu.token_calls == 1
    token_request = feishu.calls_to("/open-apis/auth/v3/tenant_access_token/internal")[0]
    assert token_request[3] == {"app_id": "cli_a", "app_secret": "secret"}
    assert all(r[4] == "Bearer t-123" for r in feishu.calls_to("/open-apis/im/v1/messages"))


def test_nonzero_code_raises_api_error():
    feishu = FakeFeishu(fail_paths=("/open-apis/im/v1/messages",))
    client = feishu.client()

    with pytest.raises(FeishuAPIError) as exc_info:
        asyncio.run(client.request("POST", "/open-apis/im/v1/messages", json={}))

    assert exc_info.value.code == 99991663


def test_messenger_sends_and_updates_cards():
    feishu = FakeFeishu()
    messenger = FeishuMessenger(feishu.client())

    async def scenario():
        ref = await messenger.send_view("oc_chat", ignored_view("稍等"))
        await messenger.update_view(ref, ignored_view("好了"))
        await messenger.send_text("oc_chat", "帮助")
        return ref

    ref = asyncio.run(scenario())

    assert ref == "om_1"
    card_call, text_call = feishu.calls_to("/open-apis/im/v1/messages")
    assert card_call[2] == {"receive_id_type": "chat_id"}
    assert card_call[3]["receive_id"] == "oc_chat"
    assert card_call[3]["msg_type"] == "interactive"
    assert "稍等" in json.loads(card_call[3]["content"])["elements"][0]["text"]["content"]
    assert text_call[3]["msg_type"] == "text"
    assert json.loads(text_call[3]["content"]) == {"text": "帮助"}

    [patch] = feishu.calls_to("/open-apis/im/v1/messages/om_1")
    assert patch[0] == "PATCH"
    assert "好了" in patch[3]["content"]


def test_messenger_wraps_api_errors():
    feishu = FakeFeishu(fail_paths=("/open-apis/im/v1/messages",))
    messenger = FeishuMessenger(feishu.client())

    with pytest.raises(MessagingError):
        asyncio.run(messenger.send_view("oc_chat", ignored_view("稍等")))


def test_document_sink_creates_and_fills_document():
    feishu = FakeFeishu()
    sink = FeishuDocumentSink(feishu.client(), doc_base_url="https://example.feishu.cn/")

    link = asyncio.run(sink.persist_document("第一段\n\n第二段", "选题 · 2024/3/5"))

    assert link == "https://example.feishu.cn/docx/doxcn42"
    [create] = feishu.calls_to("/open-apis/docx/v1/documents")
    assert create[3] == {"title": "选题 · 2024/3/5"}
    [fill] = feishu.calls_to("/open-apis/docx/v1/documents/doxcn42/blocks/doxcn42/children")
    assert fill[2] == {"document_revision_id": "-1"}
    assert len(fill[3]["children"]) == 2


def test_document_sink_wraps_api_errors():
    feishu = FakeFeishu(fail_paths=("/open-apis/docx/v1/documents",))
    sink = FeishuDocumentSink(feishu.client())

    with pytest.raises(PersistenceError):
        asyncio.run(sink.persist_document("正文", "标题"))


def test_paragraph_blocks_skip_blank_paragraphs():
    blocks = paragraph_blocks("一\n\n\n\n  二  \n\n")

    assert [b["text"]["elements"][0]["text_run"]["content"] for b in blocks] == ["一", "二"]
    assert {b["block_type"] for b in blocks} == {2}
