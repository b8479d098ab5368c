from typing import Any, Dict, Optional, Set
import asyncio
import time
from datetime import datetime
from enum import Enum
from pydantic import BaseModel, ValidationError
import structlog

from draftflow.domain.context.state.session_store import SessionStore, TransitionHandle
from draftflow.domain.errors import (
    Busy, IllegalTransition, InvariantViolation, StaleAction, TransitionTimeout, WorkflowError
)
from draftflow.domain.models.events import ActionEvent, ActionType, parse_action_payload
from draftflow.domain.models.session import Session, WorkflowState
from draftflow.domain.models.view import View
from draftflow.domain.orchestration.workflow import WorkflowEngine, target_state
from draftflow.domain.streaming.transport import BaseMessagingTransport
from draftflow.domain.views.cards import error_view, ignored_view, progress_view, view_for_session
from draftflow.infrastructure.observability.logging import metrics, workflow_logger

logger = structlog.get_logger(__name__)

DEFAULT_TRANSITION_TIMEOUT = 150.0

ACTION_NAMES = frozenset(action.value for action in ActionType)


class DispatchStatus(str, Enum):
    PROCESSING = "processing"
    IGNORED = "ignored"


class DispatchAck(BaseModel):
    """Immediate reply to an action event"""
    status: DispatchStatus
    reason: Optional[str] = None
    view: View


class CallbackDispatcher:
    """Acknowledges action events immediately and runs their transitions in the background"""

    def __init__(
        self,
        store: SessionStore,
        engine: WorkflowEngine,
        transport: BaseMessagingTransport,
        transition_timeout: float = DEFAULT_TRANSITION_TIMEOUT
    ):
        self.store = store
        self.engine = engine
        self.transport = transport
        self.transition_timeout = transition_timeout
        self.tasks: Set[asyncio.Task] = set()

    async def handle(
        self,
        conversation_id: str,
        action: str,
        payload: Optional[Dict[str, Any]] = None
    ) -> DispatchAck:
        """Entry point for raw (conversation id, action, payload) triples"""

        try:
            typed_payload = parse_action_payload(action, payload)
        except ValidationError as e:
            # A known action that cannot run in this state is illegal however its payload looks
            state = await self._current_state(conversation_id)
            if isinstance(action, str) and action in ACTION_NAMES and target_state(state, action) is None:
                return self._ignored(conversation_id, action, "illegal", IllegalTransition(state.value, action))

            workflow_logger.log_rejected_action(
                conversation_id, action, "malformed", {"errors": e.error_count()}
            )
            metrics.increment_counter("dispatch.ignored", tags={"reason": "malformed"})
            return DispatchAck(
                status=DispatchStatus.IGNORED,
                reason="malformed",
                view=ignored_view("无法识别的操作")
            )

        return await self.dispatch(ActionEvent(conversation_id=conversation_id, payload=typed_payload))

    async def start_workflow(self, conversation_id: str) -> DispatchAck:
        """Begin a fresh workflow in a conversation"""
        return await self.handle(conversation_id, ActionType.START_OVER.value)

    async def dispatch(self, event: ActionEvent) -> DispatchAck:
        """Validate the event, take the session lock and schedule the transition"""

        conversation_id = event.conversation_id
        try:
            handle = await self.store.try_begin_transition(
                conversation_id, event.action, event.payload.version
            )
        except (Busy, StaleAction) as e:
            return self._ignored(conversation_id, event.action, "busy" if isinstance(e, Busy) else "stale", e)

        session = handle.session
        try:
            self.engine.check_legal(session, event.payload)
        except IllegalTransition as e:
            await self.store.abort(handle)
            return self._ignored(conversation_id, event.action, "illegal", e)

        message = self.engine.progress_message(session, event.payload)
        task = asyncio.create_task(self._run_transition(handle, event, message))
        self.tasks.add(task)
        task.add_done_callback(self.tasks.discard)

        metrics.increment_counter("dispatch.processing", tags={"action": event.action})
        return DispatchAck(status=DispatchStatus.PROCESSING, view=progress_view(message))

    async def drain(self):
        """Wait for every scheduled transition to finish"""
        while self.tasks:
            await asyncio.gather(*list(self.tasks), return_exceptions=True)

    async def _run_transition(self, handle: TransitionHandle, event: ActionEvent, message: str):
        """Deferred effect: run the transition and emit exactly one resulting view"""

        conversation_id = event.conversation_id
        with structlog.contextvars.bound_contextvars(conversation_id=conversation_id, action=event.action):
            message_ref = await self._send_progress(conversation_id, message)

            started = time.perf_counter()
            committed: Optional[Session] = None
            error: Optional[BaseException] = None
            try:
                committed = await asyncio.wait_for(
                    self.engine.execute(handle, event.payload),
                    timeout=self.transition_timeout
                )
            except asyncio.TimeoutError:
                error = TransitionTimeout(
                    f"Transition {event.action} exceeded {self.transition_timeout}s"
                )
            except WorkflowError as e:
                error = e
            except Exception as e:
                logger.exception("Transition crashed", error=str(e))
                error = e
            finally:
                # Force-release if the engine did not get to commit or abort
                if await self.store.abort(handle):
                    logger.warning("Transition lock force-released", held_seconds=handle.held_seconds())

            metrics.record_latency(f"transition.{event.action}", (time.perf_counter() - started) * 1000)

            if error is None:
                view = view_for_session(committed)
            else:
                metrics.increment_counter("transition.failed", tags={"action": event.action})
                view = await self._failure_view(conversation_id, error)

            await self._emit(conversation_id, message_ref, view)
            metrics.record_latency(
                "action_to_view",
                (datetime.utcnow() - event.received_at).total_seconds() * 1000,
                tags={"action": event.action}
            )

    async def _current_state(self, conversation_id: str) -> WorkflowState:
        session = await self.store.get(conversation_id)
        return session.state if session else WorkflowState.DIRECTION

    async def _send_progress(self, conversation_id: str, message: str) -> Optional[str]:
        try:
            return await self.transport.send_view(conversation_id, progress_view(message))
        except Exception as e:
            logger.warning("Failed to send progress view", error=str(e))
            return None

    async def _failure_view(self, conversation_id: str, error: BaseException) -> View:
        """Current state's view annotated with the failure"""

        notice = error.user_message if isinstance(error, WorkflowError) else WorkflowError.user_message
        session = await self.store.get(conversation_id)
        logger.warning(
            "Transition failed",
            error=str(error),
            error_type=type(error).__name__,
            session=session.get_state_summary() if session else None
        )
        if session is None:
            return error_view(notice)

        try:
            return view_for_session(session, notice=notice)
        except InvariantViolation:
            return error_view(notice)

    async def _emit(self, conversation_id: str, message_ref: Optional[str], view: View):
        """Replace the progress message with view, or send it as a new message"""

        if message_ref:
            try:
                await self.transport.update_view(message_ref, view)
                return
            except Exception as e:
                logger.warning("Failed to update progress view", message_ref=message_ref, error=str(e))

        try:
            await self.transport.send_view(conversation_id, view)
        except Exception as e:
            logger.error("Failed to emit view", error=str(e), view_kind=view.kind.value)

    def _ignored(self, conversation_id: str, action: str, reason: str, error: WorkflowError) -> DispatchAck:
        workflow_logger.log_rejected_action(conversation_id, action, reason, {"error": str(error)})
        metrics.increment_counter("dispatch.ignored", tags={"reason": reason})
        return DispatchAck(
            status=DispatchStatus.IGNORED,
            reason=reason,
            view=ignored_view(error.user_message)
        )
