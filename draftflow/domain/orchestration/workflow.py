from typing import Dict, Optional, Tuple
from datetime import datetime
import structlog

from draftflow.domain.context.state.session_store import SessionMutator, SessionStore, TransitionHandle
from draftflow.domain.errors import IllegalTransition, PersistenceError, TransitionTimeout
from draftflow.domain.generation.generation_adapter import GenerationAdapter
from draftflow.domain.models.events import (
    ActionPayload, ActionType, SelectDirection, SelectTopic
)
from draftflow.domain.models.session import Session, WorkflowState
from draftflow.domain.persistence.document_sink import BaseDocumentSink
from draftflow.domain.views.cards import preview_of
from draftflow.infrastructure.observability.logging import workflow_logger

logger = structlog.get_logger(__name__)


# (from state, action) -> to state; start_over is legal from every state
TRANSITIONS: Dict[Tuple[WorkflowState, str], WorkflowState] = {
    (WorkflowState.DIRECTION, ActionType.SELECT_DIRECTION.value): WorkflowState.TOPIC,
    (WorkflowState.TOPIC, ActionType.REGENERATE_TOPICS.value): WorkflowState.TOPIC,
    (WorkflowState.TOPIC, ActionType.SELECT_TOPIC.value): WorkflowState.OUTLINE,
    (WorkflowState.OUTLINE, ActionType.REGENERATE_OUTLINE.value): WorkflowState.OUTLINE,
    (WorkflowState.OUTLINE, ActionType.CONFIRM_OUTLINE.value): WorkflowState.DONE,
    (WorkflowState.OUTLINE, ActionType.BACK_TO_DIRECTION.value): WorkflowState.DIRECTION,
}


def target_state(state: WorkflowState, action: str) -> Optional[WorkflowState]:
    """Resulting state of action in state, or None if the action is illegal"""
    if action == ActionType.START_OVER.value:
        return WorkflowState.DIRECTION
    return TRANSITIONS.get((state, action))


def document_title(topic: str, now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    return f"{topic} · {now.year}/{now.month}/{now.day}"


class WorkflowEngine:
    """Per-conversation content workflow: direction, topic, outline, article"""

    def __init__(
        self,
        store: SessionStore,
        generation: GenerationAdapter,
        document_sink: BaseDocumentSink
    ):
        self.store = store
        self.generation = generation
        self.document_sink = document_sink

    def check_legal(self, session: Session, payload: ActionPayload) -> WorkflowState:
        """Return the target state or raise IllegalTransition"""

        to_state = target_state(session.state, payload.action)
        if to_state is None:
            raise IllegalTransition(session.state.value, payload.action)
        return to_state

    def progress_message(self, session: Session, payload: ActionPayload) -> str:
        """Status line shown while the transition runs"""

        action = payload.action
        if isinstance(payload, SelectDirection):
            return f"正在为「{payload.direction}」生成选题..."
        if action == ActionType.REGENERATE_TOPICS:
            return f"重新生成「{session.direction}」选题..."
        if isinstance(payload, SelectTopic):
            return f"正在为「{payload.topic}」生成大纲..."
        if action == ActionType.REGENERATE_OUTLINE:
            return f"重新生成「{session.selected_topic}」大纲..."
        if action == ActionType.CONFIRM_OUTLINE:
            return f"正在写作「{session.selected_topic}」，大约需要 30 秒..."
        return "处理中，稍等..."

    async def execute(self, handle: TransitionHandle, payload: ActionPayload) -> Session:
        """Run the generation step of the transition and commit its result.

        Any failure aborts the transition, restoring the pre-transition
        session, and propagates to the caller.
        """

        session = handle.session
        try:
            from_state = session.state
            self.check_legal(session, payload)

            mutator = await self._run_step(handle, session, payload)
            committed = await self.store.commit(handle, mutator)
            if committed is None:
                raise TransitionTimeout(f"Transition {payload.action} was released before commit")

        except BaseException:
            await self.store.abort(handle)
            raise

        workflow_logger.log_transition(
            conversation_id=committed.conversation_id,
            action=payload.action,
            from_state=from_state.value,
            to_state=committed.state.value,
            version=committed.version
        )
        return committed

    async def _run_step(self, handle: TransitionHandle, session: Session, payload: ActionPayload) -> SessionMutator:
        """Call the external services for the action and build the session mutator"""

        action = payload.action

        if isinstance(payload, SelectDirection):
            direction = payload.direction
            topics = await self.generation.generate_topics(direction)

            def mutate(s: Session):
                s.state = WorkflowState.TOPIC
                s.direction = direction
                s.topic_candidates = topics
            return mutate

        if action == ActionType.REGENERATE_TOPICS:
            topics = await self.generation.generate_topics(session.direction)

            def mutate(s: Session):
                s.topic_candidates = topics
            return mutate

        if isinstance(payload, SelectTopic):
            topic = payload.topic
            outline = await self.generation.generate_outline(topic)

            def mutate(s: Session):
                s.state = WorkflowState.OUTLINE
                s.selected_topic = topic
                s.outline = outline
            return mutate

        if action == ActionType.REGENERATE_OUTLINE:
            outline = await self.generation.generate_outline(session.selected_topic)

            def mutate(s: Session):
                s.outline = outline
            return mutate

        if action == ActionType.CONFIRM_OUTLINE:
            return await self._write_article(handle, session)

        if action in (ActionType.BACK_TO_DIRECTION, ActionType.START_OVER):
            return Session.reset

        raise IllegalTransition(session.state.value, action)

    async def _write_article(self, handle: TransitionHandle, session: Session) -> SessionMutator:
        """Generate the article and persist it; both must succeed"""

        await self.store.mark_progress(handle, WorkflowState.WRITING)

        topic = session.selected_topic
        article = await self.generation.generate_article(topic, session.outline)
        link = await self.document_sink.persist_document(article, document_title(topic))
        if not link:
            raise PersistenceError("Document sink returned an empty link")
        preview = preview_of(article)

        logger.info("Article persisted", conversation_id=session.conversation_id, link=link)

        def mutate(s: Session):
            s.state = WorkflowState.DONE
            s.document_link = link
            s.article_preview = preview
        return mutate
