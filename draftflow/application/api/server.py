from fastapi import BackgroundTasks, FastAPI, Request
from typing import Any, Dict, Optional
import asyncio
import json
from datetime import datetime
import structlog
from langchain.chat_models import init_chat_model

from draftflow.application.api.commands import HELP_TEXT, parse_command
from draftflow.config import Settings, get_settings
from draftflow.domain.context.state.session_store import SessionStore
from draftflow.domain.generation.completion import BaseCompletionService
from draftflow.domain.generation.generation_adapter import GenerationAdapter
from draftflow.domain.orchestration.dispatcher import CallbackDispatcher, DispatchStatus
from draftflow.domain.orchestration.workflow import WorkflowEngine
from draftflow.infrastructure.feishu.cards import render_card
from draftflow.infrastructure.feishu.client import FeishuClient
from draftflow.infrastructure.feishu.documents import FeishuDocumentSink
from draftflow.infrastructure.feishu.messenger import FeishuMessenger
from draftflow.infrastructure.llm.chat_model import ChatModelCompletionService
from draftflow.infrastructure.llm.deepseek import DeepSeekCompletionService
from draftflow.infrastructure.observability.logging import metrics, setup_logging

logger = structlog.get_logger(__name__)


async def _deliver(send, conversation_id: str, content) -> None:
    """Background reply; failures are logged since the webhook already answered"""
    try:
        await send(conversation_id, content)
    except Exception as e:
        logger.error("Background reply failed", conversation_id=conversation_id, error=str(e))


def build_completion_service(settings: Settings) -> BaseCompletionService:
    """Completion backend named by COMPLETION_BACKEND"""

    backend = settings.completion_backend
    if backend == "deepseek":
        return DeepSeekCompletionService(
            api_key=settings.deepseek_api_key,
            base_url=settings.deepseek_base_url,
            model=settings.deepseek_model,
            timeout=settings.completion_timeout_seconds,
        )

    if backend == "chat_model":
        if not settings.chat_model:
            raise ValueError("CHAT_MODEL is required when COMPLETION_BACKEND=chat_model")
        model = init_chat_model(
            settings.chat_model,
            model_provider=settings.chat_model_provider or None,
        )
        return ChatModelCompletionService(model, name=settings.chat_model)

    raise ValueError(f"Unknown COMPLETION_BACKEND {backend!r}, expected 'deepseek' or 'chat_model'")


def build_dispatcher(settings: Settings) -> CallbackDispatcher:
    """Wire the workflow against Feishu and the configured completion backend"""

    feishu = FeishuClient(
        app_id=settings.feishu_app_id,
        app_secret=settings.feishu_app_secret,
        base_url=settings.feishu_base_url,
    )
    completion = build_completion_service(settings)
    logger.info("Completion backend selected", backend=settings.completion_backend, name=completion.name)
    store = SessionStore()
    engine = WorkflowEngine(
        store=store,
        generation=GenerationAdapter(completion),
        document_sink=FeishuDocumentSink(feishu, settings.feishu_doc_base_url),
    )
    return CallbackDispatcher(
        store=store,
        engine=engine,
        transport=FeishuMessenger(feishu),
        transition_timeout=settings.transition_timeout_seconds,
    )


def create_app(settings: Optional[Settings] = None, dispatcher: Optional[CallbackDispatcher] = None) -> FastAPI:
    """Webhook shell feeding Feishu callbacks into the workflow"""

    settings = settings or get_settings()
    setup_logging(settings.log_level, settings.log_format)
    dispatcher = dispatcher or build_dispatcher(settings)

    app = FastAPI(title="Draftflow Bot")
    app.state.settings = settings
    app.state.dispatcher = dispatcher
    app.state.sweep_task = None

    @app.on_event("startup")
    async def startup_event():
        """Start the idle-session sweep"""
        app.state.sweep_task = asyncio.create_task(
            dispatcher.store.sweep_idle(settings.session_idle_ttl_seconds)
        )
        logger.info("Webhook server started", port=settings.bot_port)

    @app.on_event("shutdown")
    async def shutdown_event():
        """Finish in-flight transitions and close clients"""
        if app.state.sweep_task:
            app.state.sweep_task.cancel()
        await dispatcher.drain()
        await dispatcher.transport.aclose()
        await dispatcher.engine.generation.completion_service.aclose()
        await dispatcher.engine.document_sink.aclose()
        logger.info("Webhook server shutdown")

    @app.post("/webhook/card")
    async def card_callback(request: Request) -> Dict[str, Any]:
        """Card button clicks; the response replaces the clicked card"""

        data = await request.json()
        if data.get("type") == "url_verification":
            return {"challenge": data.get("challenge")}

        chat_id = data.get("open_chat_id")
        value = (data.get("action") or {}).get("value") or {}
        action = value.get("action")
        if not chat_id or not action:
            return {}

        payload = {key: item for key, item in value.items() if key != "action"}
        ack = await dispatcher.handle(chat_id, action, payload)
        return render_card(ack.view)

    @app.post("/webhook/event")
    async def event_callback(request: Request, background_tasks: BackgroundTasks) -> Dict[str, Any]:
        """Message events; text commands start the workflow or show help"""

        data = await request.json()
        if data.get("type") == "url_verification":
            return {"challenge": data.get("challenge")}

        message = (data.get("event") or {}).get("message") or {}
        if message.get("message_type") != "text":
            return {"ok": True}

        try:
            text = json.loads(message.get("content") or "{}").get("text", "")
        except (ValueError, AttributeError):
            return {"ok": True}

        chat_id = message.get("chat_id")
        command = parse_command(text)
        if not chat_id or command is None:
            return {"ok": True}

        logger.info("Command received", conversation_id=chat_id, command=command)

        if command == "help":
            background_tasks.add_task(_deliver, dispatcher.transport.send_text, chat_id, HELP_TEXT)
        elif command == "write":
            ack = await dispatcher.start_workflow(chat_id)
            if ack.status == DispatchStatus.IGNORED:
                background_tasks.add_task(_deliver, dispatcher.transport.send_view, chat_id, ack.view)

        return {"ok": True}

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "active_sessions": await dispatcher.store.active_sessions(),
            "in_flight": len(dispatcher.store.in_flight),
            "metrics": metrics.get_metrics_summary(),
            "timestamp": datetime.utcnow().isoformat()
        }

    return app
