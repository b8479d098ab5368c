import asyncio
from types import SimpleNamespace
from typing import Dict, List, Optional, Tuple, Union

import pytest

from draftflow.domain.context.state.session_store import SessionStore
from draftflow.domain.errors import MessagingError, PersistenceError
from draftflow.domain.generation.completion import BaseCompletionService
from draftflow.domain.generation.generation_adapter import GenerationAdapter
from draftflow.domain.models.view import View, ViewKind
from draftflow.domain.orchestration.dispatcher import CallbackDispatcher
from draftflow.domain.orchestration.workflow import WorkflowEngine
from draftflow.domain.persistence.document_sink import BaseDocumentSink
from draftflow.domain.streaming.transport import BaseMessagingTransport
from draftflow.infrastructure.observability.logging import metrics

TOPICS_TEXT = "1. 面试前一晚该做的三件事\n2. HR 不会告诉你的反问技巧\n3. 群面里如何不当小透明"
OUTLINE_TEXT = "## 开场（为什么重要）\n## 准备（怎么做）\n## 复盘（如何改进）"
ARTICLE_TEXT = "第一段，讲清楚问题。\n\n第二段，给出方法。\n\n第三段，总结行动。"


def step_of(prompt: str) -> str:
    """Which generation step a prompt belongs to"""
    if "选题标题" in prompt:
        return "topics"
    if "文章大纲" in prompt:
        return "outline"
    return "article"


class ScriptedCompletion(BaseCompletionService):
    """Returns canned text per step; an Exception value is raised instead"""

    def __init__(self, responses: Optional[Dict[str, Union[str, Exception]]] = None, gate: Optional[asyncio.Event] = None):
        super().__init__("scripted")
        self.responses = {"topics": TOPICS_TEXT, "outline": OUTLINE_TEXT, "article": ARTICLE_TEXT}
        self.responses.update(responses or {})
        self.gate = gate
        self.calls: List[Tuple[str, int]] = []

    async def complete(self, prompt: str, max_tokens: int = 1000) -> str:
        step = step_of(prompt)
        self.calls.append((step, max_tokens))
        if self.gate is not None:
            await self.gate.wait()
        response = self.responses[step]
        if isinstance(response, Exception):
            raise response
        return response


class FakeDocumentSink(BaseDocumentSink):
    def __init__(self, link: str = "https://doc/abc", fail: bool = False, store: Optional[SessionStore] = None):
        self.link = link
        self.fail = fail
        self.store = store
        self.documents: List[Tuple[str, str]] = []
        self.states_seen: List[str] = []

    async def persist_document(self, text: str, title: str) -> str:
        if self.store is not None:
            self.states_seen.extend(s.state.value for s in self.store.sessions.values())
        if self.fail:
            raise PersistenceError("disk full")
        self.documents.append((title, text))
        return self.link


class RecordingTransport(BaseMessagingTransport):
    def __init__(self, fail_send: bool = False, fail_update: bool = False):
        self.fail_send = fail_send
        self.fail_update = fail_update
        self.sent: List[Tuple[str, View]] = []
        self.updated: List[Tuple[str, View]] = []
        self.texts: List[Tuple[str, str]] = []

    async def send_view(self, conversation_id: str, view: View) -> str:
        if self.fail_send:
            raise MessagingError("send failed")
        self.sent.append((conversation_id, view))
        return f"msg_{len(self.sent)}"

    async def update_view(self, message_ref: str, view: View) -> None:
        if self.fail_update:
            raise MessagingError("update failed")
        self.updated.append((message_ref, view))

    async def send_text(self, conversation_id: str, text: str) -> str:
        self.texts.append((conversation_id, text))
        return f"text_{len(self.texts)}"

    def delivered(self) -> List[View]:
        """Every non-progress view that reached the chat"""
        views = [view for _, view in self.sent] + [view for _, view in self.updated]
        return [view for view in views if view.kind != ViewKind.PROGRESS]


def build_workflow(
    completion: Optional[BaseCompletionService] = None,
    sink: Optional[BaseDocumentSink] = None,
    transport: Optional[RecordingTransport] = None,
    transition_timeout: float = 5.0,
) -> SimpleNamespace:
    store = SessionStore()
    completion = completion or ScriptedCompletion()
    sink = sink or FakeDocumentSink()
    transport = transport or RecordingTransport()
    engine = WorkflowEngine(store=store, generation=GenerationAdapter(completion), document_sink=sink)
    dispatcher = CallbackDispatcher(
        store=store, engine=engine, transport=transport, transition_timeout=transition_timeout
    )
    return SimpleNamespace(
        store=store,
        completion=completion,
        sink=sink,
        transport=transport,
        engine=engine,
        dispatcher=dispatcher,
    )


@pytest.fixture
def workflow():
    return build_workflow()


@pytest.fixture(autouse=True)
def reset_metrics():
    metrics.reset()
    yield
    metrics.reset()
